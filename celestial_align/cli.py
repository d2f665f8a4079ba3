"""CLI argument parsing and entry point.

Subcommands:

* ``phase``   - lunar phase state for an instant (optionally for an observer).
* ``align``   - solve the rotation that brings a geographic target to the
  canonical screen position.
* ``anchor``  - world placement of a screen-anchored object.
* ``preview`` - ASCII rendering of the lit disc.
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from celestial_align import __version__
from celestial_align.alignment import AlignmentController
from celestial_align.anchor import PerspectiveCamera, ScreenAnchorProjector
from celestial_align.config import EngineConfig, RenderFrameCalibration
from celestial_align.ephemeris import DEFAULT_KERNEL, MeeusEphemeris, SkyfieldEphemeris
from celestial_align.errors import CelestialAlignError
from celestial_align.models import (
    AlignmentTarget,
    ObserverLocation,
    PhaseState,
    SolveStatus,
    TimeSample,
)
from celestial_align.phase import PhaseGeometryResolver
from celestial_align.preview import PreviewRenderer, RenderMode, get_terminal_size

logger = logging.getLogger(__name__)

EPHEMERIS_CHOICES = ("meeus", "skyfield")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Rows kept free below the preview for the caption.
_PREVIEW_CAPTION_ROWS = 2


# ---------------------------------------------------------------------------
# Argument types
# ---------------------------------------------------------------------------


def _iso_time(text: str) -> TimeSample:
    try:
        return TimeSample.parse(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 time: {text!r}")


def _latitude(text: str) -> float:
    value = _finite_float(text)
    if not -90.0 <= value <= 90.0:
        raise argparse.ArgumentTypeError(f"latitude must be within [-90, 90], got {value}")
    return value


def _finite_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}")
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"value must be finite, got {text!r}")
    return value


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"value must be positive, got {value}")
    return value


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_ephemeris_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ephemeris",
        choices=EPHEMERIS_CHOICES,
        default="meeus",
        help="Ephemeris provider (default: meeus)",
    )
    parser.add_argument(
        "--kernel",
        default=DEFAULT_KERNEL,
        metavar="FILE",
        help=f"JPL kernel for the skyfield provider (default: {DEFAULT_KERNEL})",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        metavar="DIR",
        help="Directory where skyfield caches kernels (default: ~/.skyfield)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the ``celestial-align`` argument parser."""
    defaults = EngineConfig()
    parser = argparse.ArgumentParser(
        prog="celestial-align",
        description="Lunar phase geometry and globe alignment for fixed-composition renders.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    phase = subparsers.add_parser("phase", help="Compute the lunar phase state")
    phase.add_argument("--time", type=_iso_time, required=True, metavar="ISO",
                       help="UTC instant, e.g. 2024-01-11T00:00:00Z")
    phase.add_argument("--lat", type=_latitude, default=None, help="Observer latitude")
    phase.add_argument("--lon", type=_finite_float, default=None, help="Observer longitude")
    _add_ephemeris_options(phase)

    align = subparsers.add_parser("align", help="Solve the globe alignment rotation")
    align.add_argument("--lat", type=_latitude, required=True, help="Target latitude")
    align.add_argument("--lon", type=_finite_float, required=True, help="Target longitude")
    align.add_argument(
        "--pitch",
        type=_finite_float,
        default=None,
        metavar="DEG",
        help=f"Canonical pitch override (default: {defaults.canonical_pitch_deg})",
    )
    align.add_argument(
        "--camera",
        type=_finite_float,
        nargs=3,
        default=None,
        metavar=("X", "Y", "Z"),
        help=f"Camera position (default: 0 0 {defaults.camera_distance})",
    )
    align.add_argument(
        "--offset",
        type=_finite_float,
        default=0.0,
        metavar="DEG",
        help="Texture longitude calibration offset (default: 0)",
    )

    anchor = subparsers.add_parser("anchor", help="Place an object at a screen anchor")
    anchor.add_argument("--x", type=_finite_float, default=defaults.anchor_screen[0],
                        help="Normalized screen x, 0 = left")
    anchor.add_argument("--y", type=_finite_float, default=defaults.anchor_screen[1],
                        help="Normalized screen y, 0 = bottom")
    anchor.add_argument("--distance", type=_finite_float, default=defaults.anchor_distance,
                        help="Distance from the camera")
    anchor.add_argument(
        "--camera",
        type=_finite_float,
        nargs=3,
        default=None,
        metavar=("X", "Y", "Z"),
        help=f"Camera position (default: 0 0 {defaults.camera_distance})",
    )
    anchor.add_argument("--fov", type=_finite_float, default=defaults.fov_y_deg,
                        help="Vertical field of view in degrees")
    anchor.add_argument("--aspect", type=_finite_float, default=defaults.aspect,
                        help="Viewport width / height")

    preview = subparsers.add_parser("preview", help="Render the lit disc as text")
    preview.add_argument("--time", type=_iso_time, default=None, metavar="ISO",
                         help="UTC instant (default: now)")
    preview.add_argument("--width", type=_positive_int, default=None,
                         help="Columns (default: terminal width)")
    preview.add_argument("--height", type=_positive_int, default=None,
                         help="Rows (default: terminal height)")
    preview.add_argument("--ascii", action="store_true", default=False,
                         help="Use ASCII glyphs only")
    _add_ephemeris_options(preview)

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse *argv* (``sys.argv[1:]`` when ``None``)."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "phase" and (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    return args


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _fmt_vec(v: Sequence[float]) -> str:
    return "(" + ", ".join(f"{c:.6f}" for c in v) + ")"


def _make_resolver(args: argparse.Namespace) -> PhaseGeometryResolver:
    if args.ephemeris == "skyfield":
        return PhaseGeometryResolver(SkyfieldEphemeris(args.kernel, data_dir=args.data_dir))
    return PhaseGeometryResolver(MeeusEphemeris())


def _observer(args: argparse.Namespace) -> Optional[ObserverLocation]:
    if args.lat is None:
        return None
    return ObserverLocation(args.lat, args.lon)


def format_phase(time: TimeSample, state: PhaseState) -> List[str]:
    lines = [
        f"time:            {time.utc.isoformat()}",
        f"phase:           {state.phase_name}",
        f"illumination:    {state.illumination:.4f}",
        f"phase angle:     {math.degrees(state.phase_angle_rad):.3f} deg",
        f"phase longitude: {math.degrees(state.phase_lon_rad):.3f} deg",
        f"position angle:  {math.degrees(state.position_angle_rad):.3f} deg",
        f"sun direction:   {_fmt_vec(state.sun_dir_render_frame)}",
    ]
    if state.sun_altitude_deg is not None:
        lines.append(f"sun altitude:    {state.sun_altitude_deg:.3f} deg")
        lines.append(f"sun azimuth:     {state.sun_azimuth_deg:.3f} deg")
    lines.append(f"degraded:        {'yes' if state.degraded else 'no'}")
    return lines


def _cmd_phase(args: argparse.Namespace, out: TextIO) -> int:
    state = _make_resolver(args).resolve(args.time, _observer(args))
    print("\n".join(format_phase(args.time, state)), file=out)
    return 0


def _cmd_align(args: argparse.Namespace, out: TextIO) -> int:
    config = EngineConfig(calibration=RenderFrameCalibration(args.offset))
    controller = AlignmentController(config)
    target = AlignmentTarget(args.lat, args.lon, canonical_pitch_deg=args.pitch)
    camera = tuple(args.camera) if args.camera is not None else None
    result = controller.align(target, camera)

    print(f"target:          ({target.target_lat_deg:.4f}, {target.target_lon_deg:.4f})", file=out)
    print(f"yaw:             {math.degrees(result.yaw_rad):.4f} deg", file=out)
    print(f"pitch:           {math.degrees(result.pitch_rad):.4f} deg", file=out)
    print(f"latitude offset: {math.degrees(result.latitude_offset_rad):.4f} deg", file=out)
    print(f"quaternion:      {_fmt_vec(result.quaternion.as_tuple())}", file=out)
    print(f"status:          {result.status.value}", file=out)
    return 1 if result.status is SolveStatus.NUMERIC_INSTABILITY else 0


def _cmd_anchor(args: argparse.Namespace, out: TextIO) -> int:
    config = EngineConfig()
    position = tuple(args.camera) if args.camera is not None else (0.0, 0.0, config.camera_distance)
    camera = PerspectiveCamera(position=position, fov_y_deg=args.fov, aspect=args.aspect)
    projector = ScreenAnchorProjector()
    placement = projector.placement(args.x, args.y, args.distance, camera)

    print(f"position:        {_fmt_vec(placement.position)}", file=out)
    print(f"direction:       {_fmt_vec(placement.direction)}", file=out)
    screen = projector.to_screen(placement.position, camera)
    if screen is not None:
        print(f"screen:          ({screen[0]:.6f}, {screen[1]:.6f})", file=out)
    print(f"status:          {placement.status.value}", file=out)
    return 1 if placement.status is SolveStatus.NUMERIC_INSTABILITY else 0


def _cmd_preview(args: argparse.Namespace, out: TextIO) -> int:
    time = args.time or TimeSample(datetime.now(timezone.utc))
    columns, rows = get_terminal_size()
    width = args.width or columns
    height = args.height or max(1, rows - _PREVIEW_CAPTION_ROWS)

    state = _make_resolver(args).resolve(time)
    renderer = PreviewRenderer(mode=RenderMode.ASCII if args.ascii else None)
    for line in renderer.render(state, width, height):
        print(line.rstrip(), file=out)
    print(
        f"{state.phase_name}, {state.illumination * 100.0:.1f}% lit"
        + (" (degraded)" if state.degraded else ""),
        file=out,
    )
    return 0


_COMMANDS: Dict[str, Callable[[argparse.Namespace, TextIO], int]] = {
    "phase": _cmd_phase,
    "align": _cmd_align,
    "anchor": _cmd_anchor,
    "preview": _cmd_preview,
}


def main(argv: Optional[Sequence[str]] = None, out: Optional[TextIO] = None) -> int:
    """Entry point for ``celestial-align``.

    Returns the process exit code: 0 on success, 1 on a runtime error or an
    unstable solve.  Argument errors exit with code 2 via argparse.
    """
    args = parse_args(argv)
    configure_logging(args.verbose)
    out = out or sys.stdout
    try:
        return _COMMANDS[args.command](args, out)
    except (CelestialAlignError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
