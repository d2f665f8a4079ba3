"""Orthographic terminal preview of the lit body.

For each character cell a ray is cast along -Z toward the unit sphere.  Where
it hits, the view-space surface normal is dotted with the render-frame sun
direction of a :class:`PhaseState`; positive values are lit, the rest is the
night side.
"""

from __future__ import annotations

import enum
import locale
import math
import os
import shutil
import sys
from typing import Dict, List, Optional, Tuple

from celestial_align.models import PhaseState
from celestial_align.vectors import Vec3, normalize

# Each projected cell is None (ray missed the disc) or a brightness in [0, 1],
# where 0 is the night side.
CellShade = Optional[float]

# Terminal characters are roughly twice as tall as they are wide.
DEFAULT_CELL_ASPECT = 2.0

# Fraction of the smaller screen dimension covered by the disc diameter.
_DISC_FILL = 0.8


class RenderMode(enum.Enum):
    """Supported glyph sets."""

    ASCII = "ascii"
    UNICODE_BLOCK = "unicode_block"


# Dark -> light. Index 0 is the night side, so the disc outline stays visible.
PALETTES: Dict[RenderMode, str] = {
    RenderMode.ASCII: ".:-=+*#%@",
    RenderMode.UNICODE_BLOCK: "·░▒▓█",
}


def detect_unicode_support() -> bool:
    """Check whether the current terminal likely supports Unicode output.

    Looks at ``LC_ALL`` / ``LC_CTYPE`` / ``LANG``, then the preferred locale
    encoding, then ``sys.stdout.encoding``.
    """
    for var in ("LC_ALL", "LC_CTYPE", "LANG"):
        if "utf" in os.environ.get(var, "").lower():
            return True

    if "utf" in locale.getpreferredencoding(False).lower():
        return True

    encoding = getattr(sys.stdout, "encoding", None) or ""
    return "utf" in encoding.lower()


def get_terminal_size() -> Tuple[int, int]:
    """Return ``(columns, rows)``, falling back to 80x24 when piped."""
    size = shutil.get_terminal_size(fallback=(80, 24))
    return (size.columns, size.lines)


class PreviewRenderer:
    """Renders a :class:`PhaseState` as a shaded disc of characters.

    Attributes:
        mode: Glyph set used by :meth:`render`.
        cell_aspect: Terminal character aspect ratio (height / width).
        zoom: Disc size multiplier (1.0 = 80% of the smaller dimension).
    """

    def __init__(
        self,
        mode: Optional[RenderMode] = None,
        cell_aspect: float = DEFAULT_CELL_ASPECT,
        zoom: float = 1.0,
    ) -> None:
        if cell_aspect <= 0.0:
            raise ValueError(f"cell_aspect must be positive, got {cell_aspect}")
        if zoom <= 0.0:
            raise ValueError(f"zoom must be positive, got {zoom}")
        if mode is None:
            mode = RenderMode.UNICODE_BLOCK if detect_unicode_support() else RenderMode.ASCII
        self.mode = mode
        self.cell_aspect = cell_aspect
        self.zoom = zoom

    def _disc_radius(self, width: int, height: int) -> float:
        half_min = min(width / self.cell_aspect, height) * 0.5
        return half_min * _DISC_FILL * self.zoom

    def project(self, width: int, height: int, sun_dir: Vec3) -> List[List[CellShade]]:
        """Shade a *height* x *width* grid for a light coming from *sun_dir*.

        Returns:
            A list of *height* rows of *width* entries, each ``None`` off the
            disc or a brightness in [0, 1].
        """
        if width <= 0 or height <= 0:
            return [[None] * max(width, 0) for _ in range(max(height, 0))]

        radius = self._disc_radius(width, height)
        if radius < 0.5:
            return [[None] * width for _ in range(height)]

        inv_radius = 1.0 / radius
        lx, ly, lz = normalize(sun_dir)
        cx_screen = (width - 1) * 0.5
        cy_screen = (height - 1) * 0.5

        grid: List[List[CellShade]] = []
        for row in range(height):
            # Rows grow downward; the view frame is Y-up.
            ny = -(row - cy_screen) * inv_radius
            if ny * ny > 1.0:
                grid.append([None] * width)
                continue
            max_nx_sq = 1.0 - ny * ny

            row_data: List[CellShade] = []
            for col in range(width):
                nx = (col - cx_screen) * inv_radius / self.cell_aspect
                if nx * nx > max_nx_sq:
                    row_data.append(None)
                    continue
                nz = math.sqrt(max(0.0, 1.0 - nx * nx - ny * ny))
                lambert = nx * lx + ny * ly + nz * lz
                row_data.append(max(0.0, min(1.0, lambert)))
            grid.append(row_data)
        return grid

    def render(self, phase: PhaseState, width: int, height: int) -> List[str]:
        """Render *phase* to a list of *height* strings of *width* characters."""
        palette = PALETTES[self.mode]
        grid = self.project(width, height, phase.sun_dir_render_frame)

        lines: List[str] = []
        for row in grid:
            chars = []
            for shade in row:
                if shade is None:
                    chars.append(" ")
                elif shade <= 0.0:
                    chars.append(palette[0])
                else:
                    # Lit cells never use the night-side glyph.
                    index = 1 + int(shade * (len(palette) - 2) + 0.5)
                    chars.append(palette[min(index, len(palette) - 1)])
            lines.append("".join(chars))
        return lines
