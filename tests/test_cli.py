"""Tests for celestial_align.cli module.

Covers:
- Argument parsing (subcommands, defaults, validation errors)
- Smoke runs of every subcommand against the analytic ephemeris
- Exit codes for unstable solves and provider failures
"""

from __future__ import annotations

import io
from unittest import mock

import pytest

from celestial_align import __version__
from celestial_align.cli import build_parser, format_phase, main, parse_args
from celestial_align.errors import EphemerisUnavailable
from celestial_align.models import TimeSample
from celestial_align.phase import fallback_phase_state

NEW_MOON = "2024-01-11T00:00:00Z"


def _run(argv):
    out = io.StringIO()
    code = main(argv, out=out)
    return code, out.getvalue()


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

class TestParseArgs:
    def test_phase(self):
        args = parse_args(["phase", "--time", NEW_MOON])
        assert args.command == "phase"
        assert args.time == TimeSample.parse(NEW_MOON)
        assert args.ephemeris == "meeus"
        assert args.lat is None and args.lon is None
        assert args.verbose is False

    def test_verbose_before_subcommand(self):
        assert parse_args(["--verbose", "phase", "--time", NEW_MOON]).verbose is True

    def test_align_camera(self):
        args = parse_args(["align", "--lat", "10", "--lon", "20", "--camera", "1", "2", "3"])
        assert args.camera == [1.0, 2.0, 3.0]
        assert args.pitch is None
        assert args.offset == 0.0

    def test_anchor_defaults(self):
        args = parse_args(["anchor"])
        assert (args.x, args.y) == (0.5, 0.75)
        assert args.distance == 14.0
        assert args.fov == 45.0

    def test_missing_subcommand(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args([])
        assert exc_info.value.code == 2

    @pytest.mark.parametrize(
        "argv",
        [
            ["align", "--lat", "91", "--lon", "0"],
            ["align", "--lat", "nan", "--lon", "0"],
            ["align", "--lat", "10"],
            ["phase", "--time", "not-a-time"],
            ["phase", "--time", NEW_MOON, "--lat", "10"],
            ["phase", "--time", NEW_MOON, "--ephemeris", "vsop"],
            ["preview", "--width", "0"],
        ],
    )
    def test_invalid_arguments_exit_2(self, argv):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(argv)
        assert exc_info.value.code == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

class TestPhaseCommand:
    def test_new_moon(self):
        code, output = _run(["phase", "--time", NEW_MOON])
        assert code == 0
        assert "illumination:    0.00" in output
        assert "degraded:        no" in output

    def test_with_observer(self):
        code, output = _run(["phase", "--time", NEW_MOON, "--lat", "39.9", "--lon", "116.4"])
        assert code == 0
        assert "sun altitude:" in output
        assert "sun azimuth:" in output

    def test_skyfield_failure_degrades(self):
        provider = mock.Mock()
        provider.sample.side_effect = EphemerisUnavailable("offline")
        with mock.patch("celestial_align.cli.SkyfieldEphemeris", return_value=provider):
            code, output = _run(["phase", "--time", NEW_MOON, "--ephemeris", "skyfield"])
        assert code == 0
        assert "degraded:        yes" in output
        assert "First Quarter" in output

    def test_format_phase(self):
        lines = format_phase(TimeSample.parse(NEW_MOON), fallback_phase_state())
        assert lines[0].startswith("time:")
        assert any(line.startswith("phase:") and "First Quarter" in line for line in lines)


class TestAlignCommand:
    def test_beijing(self):
        code, output = _run(["align", "--lat", "39.9042", "--lon", "116.4074"])
        assert code == 0
        assert "yaw:             -116.4074 deg" in output
        assert "pitch:           -10.0000 deg" in output
        assert "status:          ok" in output

    def test_offset_and_pitch(self):
        code, output = _run(
            ["align", "--lat", "0", "--lon", "0", "--offset", "-30", "--pitch", "-5"]
        )
        assert code == 0
        assert "yaw:             30.0000 deg" in output
        assert "pitch:           -5.0000 deg" in output

    def test_pole_is_degraded(self):
        code, output = _run(["align", "--lat", "89", "--lon", "0"])
        assert code == 0
        assert "degraded_precision" in output

    def test_vertical_camera_fails(self):
        code, output = _run(["align", "--lat", "10", "--lon", "0", "--camera", "0", "12", "0"])
        assert code == 1
        assert "numeric_instability" in output


class TestAnchorCommand:
    def test_default_anchor(self):
        code, output = _run(["anchor"])
        assert code == 0
        assert "status:          ok" in output
        assert "screen:          (0.500000, 0.750000)" in output

    def test_degenerate_lens_fails(self):
        code, output = _run(["anchor", "--fov", "200"])
        assert code == 1
        assert "numeric_instability" in output


class TestPreviewCommand:
    def test_ascii_preview(self):
        code, output = _run(
            ["preview", "--time", NEW_MOON, "--width", "40", "--height", "20", "--ascii"]
        )
        assert code == 0
        lines = output.splitlines()
        assert len(lines) == 21
        assert "New Moon" in lines[-1]

    def test_full_moon_caption(self):
        code, output = _run(
            ["preview", "--time", "2024-01-25T18:00:00Z", "--width", "41",
             "--height", "21", "--ascii"]
        )
        assert code == 0
        assert "Full Moon" in output.splitlines()[-1]

    def test_preview_has_no_target_options(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["preview", "--lat", "0", "--lon", "0"])
        assert exc_info.value.code == 2
