"""Screen-anchored placement of auxiliary bodies.

Normalized screen coordinates have (0, 0) at the bottom-left corner and
(1, 1) at the top-right.  They map to normalized device coordinates with
``ndc = 2 * s - 1`` and are unprojected through the camera's orthonormal
basis (forward, right, up), so an anchored object stays at the same screen
position whatever the camera does.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from celestial_align.config import DEFAULT_ASPECT, DEFAULT_CAMERA_DISTANCE, DEFAULT_FOV_Y_DEG
from celestial_align.errors import NumericInstability
from celestial_align.models import AnchorPlacement, SolveStatus
from celestial_align.vectors import (
    EPSILON,
    WORLD_UP,
    Vec3,
    add,
    cross,
    dot,
    is_finite,
    length,
    normalize,
    scale,
    sub,
)

logger = logging.getLogger(__name__)

_FALLBACK_DIRECTION: Vec3 = (0.0, 0.0, -1.0)


@dataclass(frozen=True)
class PerspectiveCamera:
    """Pinhole camera looking from *position* toward *target*."""

    position: Vec3 = (0.0, 0.0, DEFAULT_CAMERA_DISTANCE)
    target: Vec3 = (0.0, 0.0, 0.0)
    up: Vec3 = WORLD_UP
    fov_y_deg: float = DEFAULT_FOV_Y_DEG
    aspect: float = DEFAULT_ASPECT

    def is_finite(self) -> bool:
        return (
            is_finite(self.position)
            and is_finite(self.target)
            and is_finite(self.up)
            and math.isfinite(self.fov_y_deg)
            and math.isfinite(self.aspect)
        )

    def basis(self) -> Tuple[Vec3, Vec3, Vec3]:
        """Return the ``(forward, right, up)`` unit vectors of the camera.

        Raises:
            NumericInstability: If the camera state is non-finite or the view
                direction is parallel to *up*.
        """
        if not self.is_finite():
            raise NumericInstability(f"non-finite camera {self!r}")
        if not (0.0 < self.fov_y_deg < 180.0 and self.aspect > 0.0):
            raise NumericInstability(
                f"invalid camera lens fov={self.fov_y_deg} aspect={self.aspect}"
            )
        view = sub(self.target, self.position)
        if length(view) < EPSILON:
            raise NumericInstability("camera position coincides with its target")
        forward = normalize(view)
        side = cross(forward, self.up)
        if length(side) < EPSILON:
            raise NumericInstability("camera up vector is parallel to the view direction")
        right = normalize(side)
        return forward, right, cross(right, forward)

    @property
    def tan_half_fov(self) -> float:
        return math.tan(math.radians(self.fov_y_deg) / 2.0)


class ScreenAnchorProjector:
    """Maps normalized screen coordinates to world placements and back.

    Placements are cached per ``(camera, screen_x, screen_y, distance)``;
    the camera is a frozen value, so a moved camera is a new key.
    """

    def __init__(self, max_cache_entries: int = 64) -> None:
        self._cache: Dict[Tuple[PerspectiveCamera, float, float, float], AnchorPlacement] = {}
        self._max_cache_entries = max_cache_entries

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def placement(
        self,
        screen_x: float,
        screen_y: float,
        distance: float,
        camera: PerspectiveCamera,
    ) -> AnchorPlacement:
        """World position *distance* units from the camera along the screen ray.

        Never raises: a degenerate camera yields a placement straight ahead of
        it with ``NUMERIC_INSTABILITY`` status.
        """
        key = (camera, screen_x, screen_y, distance)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            result = self._compute(screen_x, screen_y, distance, camera)
        except NumericInstability as exc:
            logger.error("Anchor placement failed, using fallback: %s", exc)
            return self._fallback(distance, camera)

        if len(self._cache) >= self._max_cache_entries:
            self._cache.clear()
        self._cache[key] = result
        return result

    def _compute(
        self, screen_x: float, screen_y: float, distance: float, camera: PerspectiveCamera
    ) -> AnchorPlacement:
        if not (math.isfinite(screen_x) and math.isfinite(screen_y) and math.isfinite(distance)):
            raise NumericInstability(
                f"non-finite anchor ({screen_x!r}, {screen_y!r}) at distance {distance!r}"
            )
        forward, right, up = camera.basis()
        tan_half = camera.tan_half_fov
        ndc_x = 2.0 * screen_x - 1.0
        ndc_y = 2.0 * screen_y - 1.0

        ray = add(
            forward,
            add(scale(right, ndc_x * tan_half * camera.aspect), scale(up, ndc_y * tan_half)),
        )
        direction = normalize(ray)
        position = add(camera.position, scale(direction, distance))
        if not is_finite(position):
            raise NumericInstability("anchor placement produced non-finite values")
        logger.debug(
            "Anchor (%.3f, %.3f) at %.2f -> (%.3f, %.3f, %.3f)",
            screen_x,
            screen_y,
            distance,
            *position,
        )
        return AnchorPlacement(position=position, direction=direction)

    def _fallback(self, distance: float, camera: PerspectiveCamera) -> AnchorPlacement:
        if not math.isfinite(distance):
            distance = 0.0
        direction = normalize(sub(camera.target, camera.position))
        position = add(camera.position, scale(direction, distance))
        if not (is_finite(direction) and length(direction) > 0.0 and is_finite(position)):
            direction = _FALLBACK_DIRECTION
            position = scale(_FALLBACK_DIRECTION, distance)
        return AnchorPlacement(
            position=position, direction=direction, status=SolveStatus.NUMERIC_INSTABILITY
        )

    def to_screen(
        self, point: Vec3, camera: PerspectiveCamera
    ) -> Optional[Tuple[float, float]]:
        """Project a world point to normalized screen coordinates.

        Returns ``None`` when the point is behind the camera or the camera
        is degenerate.
        """
        try:
            forward, right, up = camera.basis()
        except NumericInstability as exc:
            logger.error("Cannot project %r: %s", point, exc)
            return None
        rel = sub(point, camera.position)
        depth = dot(rel, forward)
        if not math.isfinite(depth) or depth <= EPSILON:
            return None
        tan_half = camera.tan_half_fov
        ndc_x = dot(rel, right) / (depth * tan_half * camera.aspect)
        ndc_y = dot(rel, up) / (depth * tan_half)
        return ((ndc_x + 1.0) / 2.0, (ndc_y + 1.0) / 2.0)

    def scale_for_screen_size(
        self,
        fraction: float,
        distance: float,
        radius: float,
        camera: PerspectiveCamera,
    ) -> float:
        """Mesh scale keeping a body of *radius* at *fraction* of screen height.

        Raises:
            ValueError: If *fraction*, *distance* or *radius* is not positive.
        """
        if not (fraction > 0.0 and distance > 0.0 and radius > 0.0):
            raise ValueError(
                f"fraction, distance and radius must be positive, got "
                f"{fraction}, {distance}, {radius}"
            )
        half_angle = math.radians(camera.fov_y_deg) * fraction / 2.0
        return distance * math.tan(half_angle) / radius
