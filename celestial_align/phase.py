"""Phase geometry: ephemeris output -> renderable :class:`PhaseState`.

The rendered moon is pinned to a fixed screen position, so its true
position in the sky is deliberately ignored.  The light direction used for
shading is rebuilt from the ecliptic-longitude difference between moon and
sun (``phase_lon``) in a Y-up frame whose camera sits on +Z:

    sun_dir_render_frame = (sin(phase_lon), 0, -cos(phase_lon))

so new moon lights the far side, full moon the camera-facing side, and the
screen-right (+X) limb brightens first after new moon.  This is the only
sign convention in the engine; every consumer reads it from here.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

from celestial_align.coordinates import wrap_angle, wrap_positive
from celestial_align.ephemeris import (
    EphemerisProvider,
    MeeusEphemeris,
    ecliptic_longitude,
    gmst_deg,
    mean_obliquity_rad,
)
from celestial_align.errors import DomainError, EphemerisUnavailable
from celestial_align.models import EphemerisSample, ObserverLocation, PhaseState, TimeSample
from celestial_align.vectors import EPSILON, Vec3, dot, length, normalize

logger = logging.getLogger(__name__)


def illumination_from_phase_angle(phase_angle: float) -> float:
    """Lit fraction for a geocentric sun-moon angle (radians), 0 at new, 1 at full."""
    return max(0.0, min(1.0, (1.0 - math.cos(phase_angle)) / 2.0))


def render_sun_direction(phase_lon: float) -> Vec3:
    """Render-frame light direction for a wrapped ``phase_lon`` in [0, 2*pi)."""
    return (math.sin(phase_lon), 0.0, -math.cos(phase_lon))


def fallback_phase_state() -> PhaseState:
    """Neutral first-quarter state used when the ephemeris is unavailable."""
    phase_lon = math.pi / 2.0
    return PhaseState(
        illumination=0.5,
        phase_angle_rad=math.pi / 2.0,
        position_angle_rad=wrap_angle(phase_lon - math.pi),
        sun_dir_render_frame=render_sun_direction(phase_lon),
        phase_lon_rad=phase_lon,
        degraded=True,
    )


def _unit(vec: Vec3, label: str) -> Vec3:
    n = length(vec)
    if not math.isfinite(n) or n < EPSILON:
        raise DomainError(f"{label} vector is degenerate: {vec!r}")
    return normalize(vec)


def sun_alt_az(sun_dir: Vec3, jd: float, observer: ObserverLocation) -> Tuple[float, float]:
    """Altitude and azimuth (degrees, azimuth 0 = north, clockwise) of the sun.

    Args:
        sun_dir: Geocentric equatorial unit vector toward the sun.
        jd: Julian day of the sample.
        observer: Observer position on Earth.
    """
    ra = math.atan2(sun_dir[1], sun_dir[0])
    dec = math.asin(max(-1.0, min(1.0, sun_dir[2])))
    lst = math.radians(gmst_deg(jd) + observer.lon_deg)
    hour_angle = wrap_angle(lst - ra)
    phi = math.radians(observer.lat_deg)

    east = -math.cos(dec) * math.sin(hour_angle)
    north = math.cos(phi) * math.sin(dec) - math.sin(phi) * math.cos(dec) * math.cos(hour_angle)
    up = math.sin(phi) * math.sin(dec) + math.cos(phi) * math.cos(dec) * math.cos(hour_angle)

    altitude = math.degrees(math.asin(max(-1.0, min(1.0, up))))
    if math.hypot(east, north) < 1e-9:
        # Sun at the zenith or nadir: azimuth undefined.
        return altitude, 0.0
    azimuth = math.degrees(math.atan2(east, north)) % 360.0
    return altitude, azimuth


class PhaseGeometryResolver:
    """Converts ephemeris samples into :class:`PhaseState` values.

    Args:
        provider: Ephemeris provider; defaults to :class:`MeeusEphemeris`.
    """

    def __init__(self, provider: Optional[EphemerisProvider] = None) -> None:
        self._provider = provider or MeeusEphemeris()

    @property
    def provider(self) -> EphemerisProvider:
        return self._provider

    def resolve(
        self, time: TimeSample, observer: Optional[ObserverLocation] = None
    ) -> PhaseState:
        """Compute the phase state for *time*, never raising.

        Any provider failure is logged and replaced by
        :func:`fallback_phase_state`.
        """
        try:
            sample = self._sample(time)
        except EphemerisUnavailable as exc:
            logger.warning("Ephemeris unavailable at %s, using fallback: %s", time.utc, exc)
            return fallback_phase_state()
        return self.resolve_sample(sample, observer)

    def _sample(self, time: TimeSample) -> EphemerisSample:
        """Sample the provider, reporting any failure as :class:`EphemerisUnavailable`.

        A result that is not an :class:`EphemerisSample` with two 3-component
        vectors counts as a failure too.
        """
        name = type(self._provider).__name__
        try:
            sample = self._provider.sample(time)
        except EphemerisUnavailable:
            raise
        except Exception as exc:
            raise EphemerisUnavailable(f"{name} failed: {exc}") from exc

        if not isinstance(sample, EphemerisSample):
            raise EphemerisUnavailable(
                f"{name} returned {type(sample).__name__}, expected EphemerisSample"
            )
        if not isinstance(sample.time, TimeSample):
            raise EphemerisUnavailable(f"{name} returned a sample without a TimeSample")
        for label in ("sun_dir", "moon_dir"):
            vec = getattr(sample.vectors, label, None)
            if (
                not isinstance(vec, (tuple, list))
                or len(vec) != 3
                or not all(isinstance(c, (int, float)) for c in vec)
            ):
                raise EphemerisUnavailable(f"{name} returned a malformed {label}: {vec!r}")
        return sample

    def resolve_sample(
        self, sample: EphemerisSample, observer: Optional[ObserverLocation] = None
    ) -> PhaseState:
        """Compute the phase state from an already-sampled ephemeris."""
        degraded = False
        jd = sample.time.julian_day
        try:
            sun_dir = _unit(sample.vectors.sun_dir, "sun")
            moon_dir = _unit(sample.vectors.moon_dir, "moon")
        except DomainError as exc:
            logger.warning("Degenerate ephemeris vectors: %s", exc)
            return self._from_scalar_sample(sample)

        phase_angle = math.acos(max(-1.0, min(1.0, dot(sun_dir, moon_dir))))

        fraction = sample.illumination_fraction
        if fraction is None or not math.isfinite(fraction):
            degraded = True
            illumination = illumination_from_phase_angle(phase_angle)
        else:
            illumination = max(0.0, min(1.0, fraction))

        obliquity = mean_obliquity_rad(jd)
        # Wrap before any subtraction so the 0/2*pi seam never leaks through.
        phase_lon = wrap_positive(
            ecliptic_longitude(moon_dir, obliquity) - ecliptic_longitude(sun_dir, obliquity)
        )

        altitude = azimuth = None
        if observer is not None:
            altitude, azimuth = sun_alt_az(sun_dir, jd, observer)

        state = PhaseState(
            illumination=illumination,
            phase_angle_rad=phase_angle,
            position_angle_rad=wrap_angle(phase_lon - math.pi),
            sun_dir_render_frame=render_sun_direction(phase_lon),
            phase_lon_rad=phase_lon,
            degraded=degraded,
            sun_altitude_deg=altitude,
            sun_azimuth_deg=azimuth,
        )
        logger.debug(
            "Phase at %s: illumination=%.3f phase_angle=%.1fdeg phase_lon=%.1fdeg",
            sample.time.utc,
            state.illumination,
            math.degrees(state.phase_angle_rad),
            math.degrees(state.phase_lon_rad),
        )
        return state

    def _from_scalar_sample(self, sample: EphemerisSample) -> PhaseState:
        """Best-effort state when only the scalar outputs are usable."""
        angle_deg = sample.phase_angle_deg
        if angle_deg is None or not math.isfinite(angle_deg):
            return fallback_phase_state()
        phase_angle = math.radians(max(0.0, min(180.0, angle_deg)))
        fraction = sample.illumination_fraction
        if fraction is None or not math.isfinite(fraction):
            illumination = illumination_from_phase_angle(phase_angle)
        else:
            illumination = max(0.0, min(1.0, fraction))
        # Without vectors the waxing/waning side is unknown; assume waxing.
        phase_lon = phase_angle
        return PhaseState(
            illumination=illumination,
            phase_angle_rad=phase_angle,
            position_angle_rad=wrap_angle(phase_lon - math.pi),
            sun_dir_render_frame=render_sun_direction(phase_lon),
            phase_lon_rad=phase_lon,
            degraded=True,
        )
