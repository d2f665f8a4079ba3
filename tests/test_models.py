"""Tests for celestial_align.models - data boundaries between layers."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from celestial_align.models import (
    AlignmentTarget,
    ObserverLocation,
    PhaseState,
    RotationResult,
    SolveStatus,
    TimeSample,
)
from celestial_align.vectors import Quaternion


def _phase(phase_lon: float) -> PhaseState:
    return PhaseState(
        illumination=0.5,
        phase_angle_rad=0.0,
        position_angle_rad=0.0,
        sun_dir_render_frame=(0.0, 0.0, 1.0),
        phase_lon_rad=phase_lon,
    )


class TestObserverLocation:
    def test_longitude_normalized(self):
        assert ObserverLocation(10.0, 190.0).lon_deg == pytest.approx(-170.0)

    def test_latitude_out_of_range(self):
        with pytest.raises(ValueError):
            ObserverLocation(91.0, 0.0)

    def test_non_finite_longitude(self):
        with pytest.raises(ValueError):
            ObserverLocation(0.0, math.nan)


class TestTimeSample:
    def test_parse_zulu(self):
        sample = TimeSample.parse("2024-01-11T00:00:00Z")
        assert sample.utc == datetime(2024, 1, 11, tzinfo=timezone.utc)

    def test_parse_offset_converted_to_utc(self):
        sample = TimeSample.parse("2024-01-11T08:00:00+08:00")
        assert sample.utc == datetime(2024, 1, 11, tzinfo=timezone.utc)
        assert sample.utc.utcoffset() == timedelta(0)

    def test_naive_is_utc(self):
        assert TimeSample(datetime(2024, 1, 1)).utc.tzinfo is timezone.utc

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            TimeSample.parse("yesterday")

    def test_julian_day(self):
        assert TimeSample.parse("2000-01-01T12:00:00Z").julian_day == pytest.approx(2451545.0)
        # Meeus example 7.a: 1957 Oct 4.81
        sample = TimeSample(datetime(1957, 10, 4, 19, 26, 24, tzinfo=timezone.utc))
        assert sample.julian_day == pytest.approx(2436116.31, abs=1e-6)


class TestPhaseState:
    @pytest.mark.parametrize(
        "phase_lon, name",
        [
            (0.0, "New Moon"),
            (math.pi / 4, "Waxing Crescent"),
            (math.pi / 2, "First Quarter"),
            (math.pi, "Full Moon"),
            (3 * math.pi / 2, "Last Quarter"),
            (7 * math.pi / 4, "Waning Crescent"),
            (2 * math.pi - 0.01, "New Moon"),
        ],
    )
    def test_phase_name(self, phase_lon, name):
        assert _phase(phase_lon).phase_name == name

    def test_waxing(self):
        assert _phase(0.5).waxing
        assert not _phase(4.0).waxing


class TestAlignmentTarget:
    def test_longitude_normalized(self):
        assert AlignmentTarget(0.0, 181.0).target_lon_deg == pytest.approx(-179.0)

    def test_latitude_out_of_range(self):
        with pytest.raises(ValueError):
            AlignmentTarget(95.0, 0.0)

    def test_default_pitch_is_none(self):
        assert AlignmentTarget(10.0, 20.0).canonical_pitch_deg is None


class TestRotationResult:
    def test_ok(self):
        result = RotationResult(0.0, 0.0, Quaternion.identity())
        assert result.ok
        degraded = RotationResult(
            0.0, 0.0, Quaternion.identity(), status=SolveStatus.DEGRADED_PRECISION
        )
        assert not degraded.ok
