"""Geographic <-> unit-sphere mapping.

Convention (shared by the whole engine):
    x = right, y = up, z = toward the viewer.
    lat=0, lon=0 maps to +Z; lon=+90 maps to +X; latitude is measured from
    the equatorial plane toward +Y.

The mapping is a bijection on the sphere except at the poles, where the
longitude is undefined.  :meth:`CoordinateMapper.to_lat_lon` reports
longitude 0 there by convention; it is not an error.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

from celestial_align.config import RenderFrameCalibration
from celestial_align.errors import DomainError
from celestial_align.vectors import EPSILON, Vec3, length

TWO_PI = 2.0 * math.pi


def normalize_longitude(lon: float) -> float:
    """Wrap a longitude in degrees to the half-open range (-180, 180]."""
    wrapped = math.fmod(lon + 180.0, 360.0)
    if wrapped < 0.0:
        wrapped += 360.0
    wrapped -= 180.0
    if wrapped <= -180.0:
        wrapped += 360.0
    return wrapped


def wrap_angle(angle: float) -> float:
    """Wrap an angle in radians to the half-open range (-pi, pi]."""
    wrapped = math.remainder(angle, TWO_PI)
    if wrapped <= -math.pi:
        wrapped += TWO_PI
    return wrapped


def wrap_positive(angle: float) -> float:
    """Wrap an angle in radians to [0, 2*pi)."""
    wrapped = math.fmod(angle, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


def latlon_to_xyz(lat: float, lon: float, radius: float = 1.0) -> Vec3:
    """Convert latitude/longitude (degrees) to a point on a sphere.

    Args:
        lat: Latitude in degrees (-90 to 90).
        lon: Longitude in degrees.
        radius: Sphere radius.

    Returns:
        (x, y, z) on the sphere of the given radius.
    """
    lat_r = math.radians(lat)
    lon_r = math.radians(lon)
    cos_lat = math.cos(lat_r)
    return (
        radius * cos_lat * math.sin(lon_r),
        radius * math.sin(lat_r),
        radius * cos_lat * math.cos(lon_r),
    )


class CoordinateMapper:
    """Bidirectional geographic <-> 3D mapping with longitude calibration.

    Args:
        calibration: Render-frame calibration; defaults to a zero offset.
    """

    def __init__(self, calibration: Optional[RenderFrameCalibration] = None) -> None:
        self._calibration = calibration or RenderFrameCalibration()

    @property
    def calibration(self) -> RenderFrameCalibration:
        return self._calibration

    def to_vector(self, lat: float, lon: float, radius: float = 1.0) -> Vec3:
        """Map (lat, lon) in degrees to a 3D point on a sphere of *radius*."""
        return latlon_to_xyz(lat, lon, radius)

    def to_lat_lon(self, vec: Vec3) -> Tuple[float, float]:
        """Map a 3D vector back to ``(lat, lon)`` in degrees.

        The vector need not be unit length.

        Raises:
            DomainError: If *vec* has (near) zero length.
        """
        n = length(vec)
        if not math.isfinite(n) or n < EPSILON:
            raise DomainError(f"cannot map vector {vec!r} to lat/lon: zero length")
        x, y, z = vec[0] / n, vec[1] / n, vec[2] / n
        lat = math.degrees(math.asin(max(-1.0, min(1.0, y))))
        if math.hypot(x, z) < EPSILON:
            # Pole: longitude undefined, report 0.
            return (lat, 0.0)
        lon = normalize_longitude(math.degrees(math.atan2(x, z)))
        return (lat, lon)

    def apply_calibration(self, lon: float) -> float:
        """Geographic longitude -> texture-space longitude, in (-180, 180]."""
        return normalize_longitude(lon + self._calibration.longitude_offset_deg)

    def remove_calibration(self, lon: float) -> float:
        """Texture-space longitude -> geographic longitude, in (-180, 180]."""
        return normalize_longitude(lon - self._calibration.longitude_offset_deg)

    def calibrated_vector(self, lat: float, lon: float, radius: float = 1.0) -> Vec3:
        """Point on the rendered body for a geographic (lat, lon)."""
        return latlon_to_xyz(lat, self.apply_calibration(lon), radius)
