"""Tests for celestial_align.coordinates - geographic <-> sphere mapping."""

from __future__ import annotations

import math

import pytest

from celestial_align.config import RenderFrameCalibration
from celestial_align.coordinates import (
    CoordinateMapper,
    latlon_to_xyz,
    normalize_longitude,
    wrap_angle,
    wrap_positive,
)
from celestial_align.errors import DomainError
from celestial_align.vectors import length


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _approx(a: float, b: float, tol: float = 1e-6) -> bool:
    return abs(a - b) < tol


def _approx_tuple(a: tuple, b: tuple, tol: float = 1e-9) -> bool:
    return all(abs(ai - bi) < tol for ai, bi in zip(a, b))


# ---------------------------------------------------------------------------
# Angle normalization
# ---------------------------------------------------------------------------

class TestNormalizeLongitude:
    @pytest.mark.parametrize(
        "lon, expected",
        [
            (0.0, 0.0),
            (180.0, 180.0),
            (-180.0, 180.0),
            (190.0, -170.0),
            (-190.0, 170.0),
            (360.0, 0.0),
            (540.0, 180.0),
            (-725.0, -5.0),
        ],
    )
    def test_range(self, lon, expected):
        assert _approx(normalize_longitude(lon), expected, tol=1e-9)

    def test_result_always_in_half_open_range(self):
        for lon in range(-1000, 1000, 7):
            value = normalize_longitude(float(lon))
            assert -180.0 < value <= 180.0


class TestWrapAngle:
    def test_pi_stays_positive(self):
        assert wrap_angle(math.pi) == pytest.approx(math.pi)
        assert wrap_angle(-math.pi) == pytest.approx(math.pi)

    def test_wraps_large_angles(self):
        assert wrap_angle(2 * math.pi + 0.1) == pytest.approx(0.1)
        assert wrap_angle(-2 * math.pi - 0.1) == pytest.approx(-0.1)

    def test_wrap_positive(self):
        assert wrap_positive(-0.1) == pytest.approx(2 * math.pi - 0.1)
        assert wrap_positive(2 * math.pi) == pytest.approx(0.0)
        assert 0.0 <= wrap_positive(-1e-18) < 2 * math.pi


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------

class TestToVector:
    def test_origin_faces_viewer(self):
        assert _approx_tuple(latlon_to_xyz(0, 0), (0.0, 0.0, 1.0))

    def test_east_is_positive_x(self):
        assert _approx_tuple(latlon_to_xyz(0, 90), (1.0, 0.0, 0.0))

    def test_north_pole_is_up(self):
        assert _approx_tuple(latlon_to_xyz(90, 0), (0.0, 1.0, 0.0))

    def test_radius(self):
        assert _approx(length(CoordinateMapper().to_vector(12.0, 34.0, 6.5)), 6.5)


class TestToLatLon:
    def test_round_trip_to_the_edges(self):
        mapper = CoordinateMapper()
        for lat in (-89.9, -80.0, -45.5, 0.0, 12.3, 60.0, 80.0, 89.9):
            for lon in (-179.9, -179.5, -90.0, 0.0, 45.0, 116.4, 179.5, 180.0):
                for radius in (0.5, 1.0, 6371.0):
                    lat2, lon2 = mapper.to_lat_lon(mapper.to_vector(lat, lon, radius))
                    assert _approx(lat2, lat), (lat, lon, radius)
                    assert _approx(lon2, lon), (lat, lon, radius)

    def test_antimeridian_stays_positive(self):
        """lon = 180 is the closed end of (-180, 180] and must not come back as -180."""
        _, lon = CoordinateMapper().to_lat_lon(latlon_to_xyz(30.0, 180.0))
        assert _approx(lon, 180.0)

    def test_pole_reports_zero_longitude(self):
        assert CoordinateMapper().to_lat_lon((0.0, 2.0, 0.0)) == (90.0, 0.0)
        lat, lon = CoordinateMapper().to_lat_lon((0.0, -1.0, 0.0))
        assert lat == -90.0 and lon == 0.0

    def test_zero_vector_raises(self):
        with pytest.raises(DomainError):
            CoordinateMapper().to_lat_lon((0.0, 0.0, 0.0))

    def test_non_finite_vector_raises(self):
        with pytest.raises(DomainError):
            CoordinateMapper().to_lat_lon((math.nan, 0.0, 1.0))


class TestCalibration:
    def test_round_trip(self):
        for offset in (-250.0, -33.3, 0.0, 12.5, 180.0):
            mapper = CoordinateMapper(RenderFrameCalibration(offset))
            for lon in (-179.0, -90.0, 0.0, 45.0, 170.0):
                restored = mapper.remove_calibration(mapper.apply_calibration(lon))
                assert _approx(restored, lon, tol=1e-9), (offset, lon)

    def test_apply_wraps(self):
        mapper = CoordinateMapper(RenderFrameCalibration(20.0))
        assert _approx(mapper.apply_calibration(170.0), -170.0, tol=1e-9)

    def test_calibrated_vector_uses_offset(self):
        mapper = CoordinateMapper(RenderFrameCalibration(15.0))
        assert _approx_tuple(mapper.calibrated_vector(10.0, 20.0), latlon_to_xyz(10.0, 35.0))

    def test_default_is_zero_offset(self):
        assert CoordinateMapper().calibration.longitude_offset_deg == 0.0
