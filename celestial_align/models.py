"""Data model definitions: explicit boundaries between ephemeris, geometry and render layers."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from celestial_align.coordinates import normalize_longitude
from celestial_align.vectors import Quaternion, Vec3

# J2000.0 epoch (2000-01-01 12:00 UTC) and its Julian day number.
_J2000 = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
_J2000_JD = 2451545.0

# Phase names keyed on the upper bound of the ecliptic-longitude difference
# (fraction of the synodic cycle).
_PHASE_NAMES = (
    (0.03, "New Moon"),
    (0.22, "Waxing Crescent"),
    (0.28, "First Quarter"),
    (0.47, "Waxing Gibbous"),
    (0.53, "Full Moon"),
    (0.72, "Waning Gibbous"),
    (0.78, "Last Quarter"),
    (0.97, "Waning Crescent"),
    (1.00, "New Moon"),
)


class SolveStatus(enum.Enum):
    """Outcome flag attached to every frame-path result."""

    OK = "ok"
    DEGRADED_PRECISION = "degraded_precision"
    NUMERIC_INSTABILITY = "numeric_instability"


@dataclass(frozen=True)
class ObserverLocation:
    """Observer on the body surface. Longitude is normalized on construction."""

    lat_deg: float  # Latitude, -90..90
    lon_deg: float  # Longitude, (-180, 180]

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat_deg) and -90.0 <= self.lat_deg <= 90.0):
            raise ValueError(f"lat_deg must be within [-90, 90], got {self.lat_deg}")
        if not math.isfinite(self.lon_deg):
            raise ValueError(f"lon_deg must be finite, got {self.lon_deg}")
        object.__setattr__(self, "lon_deg", normalize_longitude(self.lon_deg))


@dataclass(frozen=True)
class TimeSample:
    """A single UTC instant. Naive datetimes are taken to be UTC."""

    utc: datetime

    def __post_init__(self) -> None:
        if self.utc.tzinfo is None:
            object.__setattr__(self, "utc", self.utc.replace(tzinfo=timezone.utc))
        else:
            object.__setattr__(self, "utc", self.utc.astimezone(timezone.utc))

    @classmethod
    def parse(cls, text: str) -> "TimeSample":
        """Parse an ISO 8601 timestamp such as ``2024-01-11T00:00:00Z``."""
        cleaned = text.strip()
        if cleaned.endswith(("Z", "z")):
            cleaned = cleaned[:-1] + "+00:00"
        return cls(datetime.fromisoformat(cleaned))

    @property
    def julian_day(self) -> float:
        """Julian day number of this instant (UTC used as a proxy for TT)."""
        return _J2000_JD + (self.utc - _J2000).total_seconds() / 86400.0


@dataclass(frozen=True)
class CelestialVectors:
    """Geocentric equatorial unit vectors (x = vernal equinox, z = celestial north)."""

    sun_dir: Vec3
    moon_dir: Vec3


@dataclass(frozen=True)
class EphemerisSample:
    """Raw output of an ephemeris provider for one instant."""

    time: TimeSample
    vectors: CelestialVectors
    illumination_fraction: Optional[float]  # Lit fraction of the disc, 0..1
    phase_angle_deg: Optional[float]  # Sun-moon separation seen from Earth


@dataclass(frozen=True)
class PhaseState:
    """Renderable illumination state. Recomputed on every input change."""

    illumination: float  # 0 = new, 1 = full
    phase_angle_rad: float  # [0, pi]
    position_angle_rad: float  # (-pi, pi], 0 at full moon
    sun_dir_render_frame: Vec3  # Y-up, camera on +Z
    phase_lon_rad: float  # Ecliptic longitude difference, [0, 2*pi)
    degraded: bool = False
    sun_altitude_deg: Optional[float] = None  # Only with an observer
    sun_azimuth_deg: Optional[float] = None  # 0 = north, clockwise

    @property
    def waxing(self) -> bool:
        return self.phase_lon_rad < math.pi

    @property
    def phase_name(self) -> str:
        fraction = self.phase_lon_rad / (2.0 * math.pi)
        for upper, name in _PHASE_NAMES:
            if fraction < upper:
                return name
        return "New Moon"


@dataclass(frozen=True)
class AlignmentTarget:
    """Geographic point to bring to the screen anchor."""

    target_lat_deg: float
    target_lon_deg: float
    canonical_pitch_deg: Optional[float] = None  # None: use the configured pitch

    def __post_init__(self) -> None:
        if not -90.0 <= self.target_lat_deg <= 90.0:
            raise ValueError(
                f"target_lat_deg must be within [-90, 90], got {self.target_lat_deg}"
            )
        if math.isfinite(self.target_lon_deg):
            object.__setattr__(
                self, "target_lon_deg", normalize_longitude(self.target_lon_deg)
            )


@dataclass(frozen=True)
class RotationResult:
    """Outcome of one alignment solve, consumed immediately by the scene graph."""

    yaw_rad: float  # Yaw delta applied by this solve, (-pi, pi]
    pitch_rad: float  # Pitch delta applied by this solve
    quaternion: Quaternion  # Body orientation after the solve
    status: SolveStatus = SolveStatus.OK
    latitude_offset_rad: float = 0.0  # Clamped target latitude, for the camera layer

    @property
    def ok(self) -> bool:
        return self.status is SolveStatus.OK


@dataclass(frozen=True)
class AnchorPlacement:
    """World-space placement of a screen-anchored object."""

    position: Vec3
    direction: Vec3  # Unit ray from the camera through the anchor
    status: SolveStatus = SolveStatus.OK
