"""Alignment solver: bring a geographic point to a fixed screen composition.

A single "rotate the target point to the pole" transform would give every
target a different visual roll.  Instead the rotation is decomposed into two
independent steps applied in a fixed order, each a world-axis quaternion
premultiplied onto the body orientation:

1. **Yaw** about world +Y.  The target (latitude clamped near the poles) is
   rotated into world space and projected onto the horizontal XZ plane; its
   azimuth is compared with the azimuth of the origin-to-camera direction,
   and the body turns by the signed shortest-path difference in (-pi, pi].
2. **Pitch** about the horizontal axis perpendicular to the camera
   direction, by a fixed canonical angle that does not depend on the
   target's latitude.  The latitude is handed to the camera layer through
   :attr:`RotationResult.latitude_offset_rad` instead, so apparent size,
   screen position and horizon tilt stay the same for every target.

The pitch applied by the previous solve is undone before the yaw step, which
makes a repeated solve with an unchanged target a no-op.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from celestial_align.config import EngineConfig
from celestial_align.coordinates import CoordinateMapper, wrap_angle
from celestial_align.errors import NumericInstability
from celestial_align.models import AlignmentTarget, RotationResult, SolveStatus
from celestial_align.vectors import (
    EPSILON,
    WORLD_UP,
    Quaternion,
    Vec3,
    cross,
    is_finite,
    normalize,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TiltState:
    """Pitch currently applied to the body: *angle_rad* about world *axis*."""

    axis: Vec3 = (1.0, 0.0, 0.0)
    angle_rad: float = 0.0

    def quaternion(self) -> Quaternion:
        return Quaternion.from_axis_angle(self.axis, self.angle_rad)


def _horizontal_azimuth(v: Vec3) -> Tuple[float, float]:
    """Azimuth ``atan2(x, z)`` of *v* on the XZ plane and its horizontal length."""
    return math.atan2(v[0], v[2]), math.hypot(v[0], v[2])


class AlignmentSolver:
    """Stateless two-step yaw/pitch solver.

    Args:
        config: Engine configuration (canonical pitch, pole clamp, calibration).
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config or EngineConfig()
        self._mapper = CoordinateMapper(self._config.calibration)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def mapper(self) -> CoordinateMapper:
        return self._mapper

    def solve(
        self,
        orientation: Quaternion,
        tilt: TiltState,
        target: AlignmentTarget,
        camera_position: Vec3,
    ) -> Tuple[RotationResult, TiltState]:
        """Solve the rotation placing *target* at the canonical screen position.

        Args:
            orientation: Current body orientation (body -> world).
            tilt: Pitch applied by the previous solve.
            target: Geographic target and optional pitch override.
            camera_position: World-space camera position; the camera is
                assumed to look at the body centre.

        Returns:
            The rotation result and the tilt now applied to the body.

        Raises:
            NumericInstability: On non-finite input or intermediate values,
                or when the camera has no horizontal offset from the body.
        """
        if not is_finite(camera_position):
            raise NumericInstability(f"non-finite camera position {camera_position!r}")
        if not (math.isfinite(target.target_lat_deg) and math.isfinite(target.target_lon_deg)):
            raise NumericInstability(f"non-finite target {target!r}")
        if not orientation.is_finite():
            raise NumericInstability(f"non-finite orientation {orientation!r}")

        desired_az, camera_horizontal = _horizontal_azimuth(camera_position)
        if camera_horizontal < EPSILON:
            raise NumericInstability("camera has no horizontal offset from the body")

        status = SolveStatus.OK
        lat = target.target_lat_deg
        clamp = self._config.pole_clamp_deg
        if abs(lat) > clamp:
            logger.warning(
                "Target latitude %.3f beyond +/-%.1f, clamping for the yaw step", lat, clamp
            )
            lat = math.copysign(clamp, lat)
            status = SolveStatus.DEGRADED_PRECISION

        pitch_deg = target.canonical_pitch_deg
        if pitch_deg is None:
            pitch_deg = self._config.canonical_pitch_deg
        if not math.isfinite(pitch_deg):
            raise NumericInstability(f"non-finite canonical pitch {pitch_deg!r}")
        pitch_rad = math.radians(pitch_deg)

        # Undo the previous pitch so yaw is measured on an upright body.
        upright = orientation.premultiply(tilt.quaternion().conjugate())

        # Yaw step
        target_world = upright.rotate(self._mapper.calibrated_vector(lat, target.target_lon_deg))
        current_az, target_horizontal = _horizontal_azimuth(target_world)
        if target_horizontal < EPSILON:
            raise NumericInstability("target has no horizontal component after untilting")
        delta = desired_az - current_az
        yaw = wrap_angle(math.atan2(math.sin(delta), math.cos(delta)))
        yawed = upright.premultiply(Quaternion.from_axis_angle(WORLD_UP, yaw))

        # Pitch step
        camera_dir = normalize((camera_position[0], 0.0, camera_position[2]))
        new_tilt = TiltState(axis=normalize(cross(WORLD_UP, camera_dir)), angle_rad=pitch_rad)
        final = yawed.premultiply(new_tilt.quaternion())
        pitch_delta = pitch_rad - tilt.angle_rad

        if not (final.is_finite() and math.isfinite(yaw) and math.isfinite(pitch_delta)):
            raise NumericInstability("rotation solve produced non-finite values")

        logger.debug(
            "Aligned (%.3f, %.3f): yaw=%.4fdeg pitch=%.4fdeg status=%s",
            target.target_lat_deg,
            target.target_lon_deg,
            math.degrees(yaw),
            math.degrees(pitch_delta),
            status.value,
        )
        result = RotationResult(
            yaw_rad=yaw,
            pitch_rad=pitch_delta,
            quaternion=final,
            status=status,
            latitude_offset_rad=math.radians(lat),
        )
        return result, new_tilt


class AlignmentController:
    """Owns the body orientation and exposes typed commands and queries.

    Each viewport owns its own controller; orientation state is never shared
    or reachable by global name.

    Args:
        config: Engine configuration.
        orientation: Initial body orientation; identity by default.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        orientation: Optional[Quaternion] = None,
    ) -> None:
        self._solver = AlignmentSolver(config)
        self._orientation = (orientation or Quaternion.identity()).normalized()
        self._tilt = TiltState()
        self._last_result: Optional[RotationResult] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._solver.config

    @property
    def orientation(self) -> Quaternion:
        return self._orientation

    @property
    def tilt(self) -> TiltState:
        return self._tilt

    @property
    def last_result(self) -> Optional[RotationResult]:
        return self._last_result

    def default_camera_position(self) -> Vec3:
        return (0.0, 0.0, self.config.camera_distance)

    def world_position_of(self, lat: float, lon: float, radius: float = 1.0) -> Vec3:
        """World-space position of a geographic point under the current orientation."""
        return self._orientation.rotate(self._solver.mapper.calibrated_vector(lat, lon, radius))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def align(
        self, target: AlignmentTarget, camera_position: Optional[Vec3] = None
    ) -> RotationResult:
        """Rotate the body so *target* sits at the canonical screen position.

        Never raises for numeric problems: on failure the previous orientation
        is kept and a result with ``NUMERIC_INSTABILITY`` status is returned.
        """
        if camera_position is None:
            camera_position = self.default_camera_position()
        try:
            result, tilt = self._solver.solve(
                self._orientation, self._tilt, target, camera_position
            )
        except NumericInstability as exc:
            logger.error("Alignment aborted, keeping previous orientation: %s", exc)
            result = RotationResult(
                yaw_rad=0.0,
                pitch_rad=0.0,
                quaternion=self._orientation,
                status=SolveStatus.NUMERIC_INSTABILITY,
            )
            self._last_result = result
            return result

        self._orientation = result.quaternion
        self._tilt = tilt
        self._last_result = result
        return result

    def set_orientation(self, orientation: Quaternion, tilt: Optional[TiltState] = None) -> None:
        """Replace the body orientation (e.g. restored from a saved scene).

        Raises:
            ValueError: If *orientation* is not finite or has zero norm.
        """
        if not orientation.is_finite() or orientation.norm() < EPSILON:
            raise ValueError(f"invalid orientation {orientation!r}")
        self._orientation = orientation.normalized()
        self._tilt = tilt or TiltState()

    def reset(self) -> None:
        """Return to the identity orientation with no tilt."""
        self._orientation = Quaternion.identity()
        self._tilt = TiltState()
        self._last_result = None

    def update_config(self, config: EngineConfig) -> None:
        """Swap in a new configuration; the current orientation is kept.

        The render-frame calibration is fixed for the controller's lifetime.

        Raises:
            ValueError: If *config* carries a different calibration.
        """
        if config.calibration != self.config.calibration:
            raise ValueError(
                "calibration is fixed at startup: "
                f"{self.config.calibration!r} cannot become {config.calibration!r}"
            )
        self._solver = AlignmentSolver(config)
