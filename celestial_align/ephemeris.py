"""Ephemeris providers: time -> geocentric sun/moon directions and illumination.

The engine treats the provider as an interchangeable black box behind the
:class:`EphemerisProvider` protocol.  Two implementations ship here:

* :class:`MeeusEphemeris` evaluates truncated Meeus series for the sun and
  moon.  It needs no data files, runs in microseconds and is accurate to a
  few arcminutes, which is far below what a rendered phase can show.
* :class:`SkyfieldEphemeris` observes the sun and moon through a JPL kernel
  with skyfield.  The kernel is opened lazily on the first sample so that
  constructing the provider never touches the network.

Vectors are unit vectors in the geocentric equatorial frame: x toward the
vernal equinox, z toward the north celestial pole.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Optional, Protocol, Tuple, Union

from skyfield import almanac
from skyfield.api import Loader

from celestial_align.errors import EphemerisUnavailable
from celestial_align.models import CelestialVectors, EphemerisSample, TimeSample
from celestial_align.vectors import Vec3, dot, normalize

logger = logging.getLogger(__name__)

_J2000_JD = 2451545.0
_DAYS_PER_CENTURY = 36525.0

# Mean Earth-Sun and Earth-Moon distances (km), used for the phase angle at
# the moon.
_AU_KM = 149597870.7
_MOON_MEAN_DISTANCE_KM = 385000.56

DEFAULT_KERNEL = "de421.bsp"


class EphemerisProvider(Protocol):
    """Anything that can sample sun/moon geometry for an instant."""

    def sample(self, time: TimeSample) -> EphemerisSample:
        ...


# ---------------------------------------------------------------------------
# Shared astronomy helpers
# ---------------------------------------------------------------------------


def julian_centuries(jd: float) -> float:
    """Julian centuries since J2000.0."""
    return (jd - _J2000_JD) / _DAYS_PER_CENTURY


def mean_obliquity_rad(jd: float) -> float:
    """Mean obliquity of the ecliptic for Julian day *jd* (radians)."""
    t = julian_centuries(jd)
    seconds = 21.448 - t * (46.8150 + t * (0.00059 - 0.001813 * t))
    return math.radians(23.0 + 26.0 / 60.0 + seconds / 3600.0)


def gmst_deg(jd: float) -> float:
    """Greenwich mean sidereal time in degrees, [0, 360)."""
    t = julian_centuries(jd)
    theta = (
        280.46061837
        + 360.98564736629 * (jd - _J2000_JD)
        + 0.000387933 * t * t
        - t * t * t / 38710000.0
    )
    return theta % 360.0


def ecliptic_to_equatorial(lon: float, lat: float, obliquity: float) -> Vec3:
    """Ecliptic (lon, lat) in radians -> equatorial unit vector."""
    cos_lat = math.cos(lat)
    x = cos_lat * math.cos(lon)
    y_ecl = cos_lat * math.sin(lon)
    z_ecl = math.sin(lat)
    cos_e, sin_e = math.cos(obliquity), math.sin(obliquity)
    return (x, y_ecl * cos_e - z_ecl * sin_e, y_ecl * sin_e + z_ecl * cos_e)


def ecliptic_longitude(vec: Vec3, obliquity: float) -> float:
    """Ecliptic longitude (radians, (-pi, pi]) of an equatorial vector."""
    x, y, z = vec
    return math.atan2(y * math.cos(obliquity) + z * math.sin(obliquity), x)


# ---------------------------------------------------------------------------
# Truncated Meeus series
# ---------------------------------------------------------------------------


def sun_ecliptic(jd: float) -> Tuple[float, float]:
    """Apparent ecliptic longitude (radians) and distance (km) of the sun."""
    t = julian_centuries(jd)
    l0 = math.radians((280.46646 + 36000.76983 * t + 0.0003032 * t * t) % 360.0)
    m = math.radians(357.52911 + 35999.05029 * t - 0.0001537 * t * t)
    c = (
        (1.914602 - 0.004817 * t - 0.000014 * t * t) * math.sin(m)
        + (0.019993 - 0.000101 * t) * math.sin(2 * m)
        + 0.000289 * math.sin(3 * m)
    )
    true_lon = l0 + math.radians(c)
    omega = math.radians(125.04 - 1934.136 * t)
    apparent = true_lon - math.radians(0.00569) - math.radians(0.00478) * math.sin(omega)
    distance_au = 1.00014 - 0.01671 * math.cos(m) - 0.00014 * math.cos(2 * m)
    return apparent, distance_au * _AU_KM


def moon_ecliptic(jd: float) -> Tuple[float, float, float]:
    """Ecliptic longitude, latitude (radians) and distance (km) of the moon.

    Only the dominant terms of the ELP-2000/82 periodic series are kept.
    """
    t = julian_centuries(jd)
    t2, t3, t4 = t * t, t * t * t, t * t * t * t
    lp = math.radians(
        (218.3164477 + 481267.88123421 * t - 0.0015786 * t2 + t3 / 538841.0 - t4 / 65194000.0)
        % 360.0
    )
    d = math.radians(
        (297.8501921 + 445267.1114034 * t - 0.0018819 * t2 + t3 / 545868.0 - t4 / 113065000.0)
        % 360.0
    )
    m = math.radians(357.5291092 + 35999.0502909 * t - 0.0001536 * t2 + t3 / 24490000.0)
    mp = math.radians(
        (134.9633964 + 477198.8675055 * t + 0.0087414 * t2 + t3 / 69699.0 - t4 / 14712000.0)
        % 360.0
    )
    f = math.radians(
        (93.2720950 + 483202.0175233 * t - 0.0036539 * t2 - t3 / 3526000.0 + t4 / 863310000.0)
        % 360.0
    )
    a1 = math.radians(119.75 + 131.849 * t)
    a2 = math.radians(53.09 + 479264.290 * t)
    a3 = math.radians(313.45 + 481266.484 * t)

    sin = math.sin
    cos = math.cos

    # Longitude terms (1e-6 degree)
    sum_l = (
        6288774 * sin(mp) + 1274027 * sin(2 * d - mp) + 658314 * sin(2 * d)
        + 213618 * sin(2 * mp) - 185116 * sin(m) - 114332 * sin(2 * f)
        + 58793 * sin(2 * d - 2 * mp) + 57066 * sin(2 * d - m - mp)
        + 53322 * sin(2 * d + mp) + 45758 * sin(2 * d - m) - 40923 * sin(m - mp)
        - 34720 * sin(d) - 30383 * sin(m + mp) + 15327 * sin(2 * d - 2 * f)
        - 12528 * sin(mp + 2 * f) + 10980 * sin(mp - 2 * f)
        + 10675 * sin(4 * d - mp) + 10034 * sin(3 * mp)
    )
    # Latitude terms (1e-6 degree)
    sum_b = (
        5128122 * sin(f) + 280602 * sin(mp + f) + 277693 * sin(mp - f)
        + 173237 * sin(2 * d - f) + 55413 * sin(2 * d - mp + f)
        + 46271 * sin(2 * d - mp - f) + 32573 * sin(2 * d + f)
        + 17198 * sin(2 * mp + f) + 9266 * sin(2 * d + mp - f)
        + 8822 * sin(2 * mp - f) + 8216 * sin(2 * d - m - f)
        + 4324 * sin(2 * d - 2 * mp - f) + 4200 * sin(2 * d + mp + f)
    )
    # Distance terms (metres)
    sum_r = (
        -20905355 * cos(mp) - 3699111 * cos(2 * d - mp) - 2955968 * cos(2 * d)
        - 569925 * cos(2 * mp) + 48888 * cos(m) - 3149 * cos(2 * f)
        + 246158 * cos(2 * d - 2 * mp) - 152138 * cos(2 * d - m - mp)
        - 170733 * cos(2 * d + mp) - 204586 * cos(2 * d - m) - 129620 * cos(m - mp)
        + 108743 * cos(d) + 104755 * cos(m + mp) + 10321 * cos(2 * d - 2 * f)
        + 79661 * cos(mp - 2 * f)
    )

    lon = lp + math.radians((sum_l + 3958 * sin(a1) + 1962 * sin(lp - f) + 318 * sin(a2)) / 1e6)
    lat = math.radians(
        (
            sum_b - 2235 * sin(lp) + 382 * sin(a3) + 175 * sin(a1 - f)
            + 175 * sin(a1 + f) + 127 * sin(lp - mp) - 115 * sin(lp + mp)
        )
        / 1e6
    )
    distance_km = _MOON_MEAN_DISTANCE_KM + sum_r / 1000.0
    return lon, lat, distance_km


def illuminated_fraction(elongation: float, sun_km: float, moon_km: float) -> float:
    """Lit fraction of the lunar disc from the geocentric elongation (radians)."""
    phase_angle = math.atan2(
        sun_km * math.sin(elongation), moon_km - sun_km * math.cos(elongation)
    )
    return (1.0 + math.cos(phase_angle)) / 2.0


class MeeusEphemeris:
    """Analytic low-precision sun/moon ephemeris.

    No state and no data files; safe to share between controllers.
    """

    def sample(self, time: TimeSample) -> EphemerisSample:
        jd = time.julian_day
        if not math.isfinite(jd):
            raise EphemerisUnavailable(f"non-finite Julian day for {time.utc!r}")
        obliquity = mean_obliquity_rad(jd)
        sun_lon, sun_km = sun_ecliptic(jd)
        moon_lon, moon_lat, moon_km = moon_ecliptic(jd)

        sun_dir = ecliptic_to_equatorial(sun_lon, 0.0, obliquity)
        moon_dir = ecliptic_to_equatorial(moon_lon, moon_lat, obliquity)
        elongation = math.acos(max(-1.0, min(1.0, dot(sun_dir, moon_dir))))

        return EphemerisSample(
            time=time,
            vectors=CelestialVectors(sun_dir=sun_dir, moon_dir=moon_dir),
            illumination_fraction=illuminated_fraction(elongation, sun_km, moon_km),
            phase_angle_deg=math.degrees(elongation),
        )


# ---------------------------------------------------------------------------
# Skyfield / JPL kernels
# ---------------------------------------------------------------------------


class SkyfieldEphemeris:
    """Sun/moon geometry from a JPL kernel via skyfield.

    Args:
        kernel: Kernel file name understood by :class:`skyfield.api.Loader`.
        data_dir: Directory where the loader caches kernels and timescale
            files.  Defaults to ``~/.skyfield``.
        loader: Pre-built loader (mainly for tests).
    """

    def __init__(
        self,
        kernel: str = DEFAULT_KERNEL,
        data_dir: Optional[Union[str, Path]] = None,
        loader: Optional[Any] = None,
    ) -> None:
        if loader is None:
            directory = Path(data_dir) if data_dir else Path.home() / ".skyfield"
            loader = Loader(str(directory))
        self._loader = loader
        self._kernel = kernel
        self._eph: Any = None
        self._ts: Any = None

    def _ensure_loaded(self) -> None:
        if self._eph is not None:
            return
        try:
            self._eph = self._loader(self._kernel)
            self._ts = self._loader.timescale()
        except Exception as exc:
            self._eph = None
            raise EphemerisUnavailable(f"cannot open kernel {self._kernel}: {exc}") from exc
        logger.info("Loaded ephemeris kernel %s", self._kernel)

    def sample(self, time: TimeSample) -> EphemerisSample:
        self._ensure_loaded()
        t = self._ts.from_datetime(time.utc)
        earth = self._eph["earth"]
        observer = earth.at(t)
        sun = observer.observe(self._eph["sun"]).apparent()
        moon = observer.observe(self._eph["moon"]).apparent()

        sun_dir = normalize(tuple(float(c) for c in sun.position.au))
        moon_dir = normalize(tuple(float(c) for c in moon.position.au))
        illumination = float(almanac.fraction_illuminated(self._eph, "moon", t))
        separation = float(sun.separation_from(moon).degrees)

        return EphemerisSample(
            time=time,
            vectors=CelestialVectors(sun_dir=sun_dir, moon_dir=moon_dir),
            illumination_fraction=illumination,
            phase_angle_deg=separation,
        )
