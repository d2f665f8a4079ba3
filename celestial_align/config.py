"""Engine configuration.

:class:`EngineConfig` is the single typed configuration object of the
engine.  It is immutable (frozen) so a running controller can never observe
a half-applied change; callers derive a modified copy with
:meth:`EngineConfig.update`, which re-runs validation.

The render-frame calibration is kept in its own frozen dataclass because it
is a process-wide constant fixed at startup, while the composition fields
may be tuned between frames.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any, Tuple

# Default tilt applied to every alignment target (degrees, negative tilts the
# body's top away from the camera).
DEFAULT_CANONICAL_PITCH_DEG = -10.0

# Beyond this absolute latitude the target azimuth is numerically unstable
# and the latitude used for the yaw step is clamped.
DEFAULT_POLE_CLAMP_DEG = 85.0

# Camera defaults mirror the reference scene: camera on +Z looking at the
# origin with a 45 degree vertical field of view.
DEFAULT_CAMERA_DISTANCE = 12.0
DEFAULT_FOV_Y_DEG = 45.0
DEFAULT_ASPECT = 16.0 / 9.0

# Screen anchor for the auxiliary body: horizontally centred, upper quarter.
DEFAULT_ANCHOR_SCREEN = (0.5, 0.75)
DEFAULT_ANCHOR_DISTANCE = 14.0


@dataclass(frozen=True)
class RenderFrameCalibration:
    """Offset between texture-space longitude zero and geographic longitude zero.

    Attributes:
        longitude_offset_deg: Degrees added to a geographic longitude to find
            the matching longitude on the rendered body's texture.
    """

    longitude_offset_deg: float = 0.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.longitude_offset_deg):
            raise ValueError(
                f"longitude_offset_deg must be finite, got {self.longitude_offset_deg!r}"
            )


@dataclass(frozen=True)
class EngineConfig:
    """Validated configuration for the alignment engine.

    Attributes:
        calibration: Render-frame longitude calibration.
        canonical_pitch_deg: Fixed body tilt applied for every target.
        pole_clamp_deg: Latitude magnitude above which the yaw step clamps.
        camera_distance: Default camera distance from the body centre.
        fov_y_deg: Vertical field of view of the default camera.
        aspect: Viewport width / height of the default camera.
        anchor_screen: Normalized ``(x, y)`` screen anchor for auxiliary
            objects, ``(0, 0)`` bottom-left.
        anchor_distance: Camera-relative distance of anchored objects.
    """

    calibration: RenderFrameCalibration = field(default_factory=RenderFrameCalibration)
    canonical_pitch_deg: float = DEFAULT_CANONICAL_PITCH_DEG
    pole_clamp_deg: float = DEFAULT_POLE_CLAMP_DEG
    camera_distance: float = DEFAULT_CAMERA_DISTANCE
    fov_y_deg: float = DEFAULT_FOV_Y_DEG
    aspect: float = DEFAULT_ASPECT
    anchor_screen: Tuple[float, float] = DEFAULT_ANCHOR_SCREEN
    anchor_distance: float = DEFAULT_ANCHOR_DISTANCE

    def __post_init__(self) -> None:
        """Validate field values after initialization."""
        if not isinstance(self.calibration, RenderFrameCalibration):
            raise TypeError(
                "calibration expects RenderFrameCalibration, "
                f"got {type(self.calibration).__name__}"
            )
        if not -90.0 < self.canonical_pitch_deg < 90.0:
            raise ValueError(
                f"canonical_pitch_deg must be within (-90, 90), got {self.canonical_pitch_deg}"
            )
        if not 0.0 < self.pole_clamp_deg < 90.0:
            raise ValueError(
                f"pole_clamp_deg must be within (0, 90), got {self.pole_clamp_deg}"
            )
        if not self.camera_distance > 0.0:
            raise ValueError(f"camera_distance must be positive, got {self.camera_distance}")
        if not 0.0 < self.fov_y_deg < 180.0:
            raise ValueError(f"fov_y_deg must be within (0, 180), got {self.fov_y_deg}")
        if not self.aspect > 0.0:
            raise ValueError(f"aspect must be positive, got {self.aspect}")
        if len(self.anchor_screen) != 2 or not all(
            0.0 <= c <= 1.0 for c in self.anchor_screen
        ):
            raise ValueError(
                f"anchor_screen must be two values in [0, 1], got {self.anchor_screen!r}"
            )
        if not self.anchor_distance > 0.0:
            raise ValueError(f"anchor_distance must be positive, got {self.anchor_distance}")

    @property
    def longitude_offset_deg(self) -> float:
        return self.calibration.longitude_offset_deg

    @property
    def canonical_pitch_rad(self) -> float:
        return math.radians(self.canonical_pitch_deg)

    def update(self, **changes: Any) -> "EngineConfig":
        """Return a copy with *changes* applied and validated.

        Raises:
            TypeError: If a change names an unknown field.
            ValueError: If the resulting configuration is invalid.
        """
        return dataclasses.replace(self, **changes)
