from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Iterable, List, Optional
from xml.sax.saxutils import escape

from flightrisk_cli.formatters.base import BaseFormatter
from flightrisk_cli.geometry import (
    DEFAULT_LAYOUT,
    GridLayout,
    Point,
    cell_of,
    evolution_path,
    format_number as _num,
)
from flightrisk_cli.matrix import grid_position, matrix_rows

PATH_COLOR = "#84cc16"
DOT_COLOR = "#0f172a"


class SvgFormatter(BaseFormatter):
    def write(self, data: Any, output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(str(data))

    def file_extension(self) -> str:
        return ".svg"


def render_matrix_svg(
    current: Any,
    initial: Any = None,
    layout: GridLayout = DEFAULT_LAYOUT,
    title: str = "",
) -> str:
    """Risk matrix with the *current* cell marked.

    When *initial* is given and sits elsewhere, it gets a faded dot and the
    evolution path is drawn from it to *current*.
    """
    current_cell = grid_position(*cell_of(current))
    initial_cell = grid_position(*cell_of(initial)) if initial is not None else None

    elements = _cells(layout)
    if initial_cell is not None and initial_cell != current_cell:
        elements.append(_dot(layout.center(*initial_cell), layout, DOT_COLOR, opacity=0.3, scale=0.06))
    elements.append(_dot(layout.center(*current_cell), layout, DOT_COLOR, opacity=1.0, scale=0.1))

    path = evolution_path(initial, current, layout)
    if path is not None:
        d = path.svg_path()
        elements.extend([
            f'<path d="{d}" stroke="white" stroke-width="4" opacity="0.6" fill="none" '
            'stroke-linecap="round" stroke-linejoin="round"/>',
            f'<path d="{d}" stroke="{PATH_COLOR}" stroke-width="2.5" fill="none" '
            'stroke-linecap="round" stroke-linejoin="round"/>',
            f'<circle cx="{_num(path.start.x)}" cy="{_num(path.start.y)}" '
            f'r="{_num(path.marker_radius)}" fill="{PATH_COLOR}" stroke="white" stroke-width="0.5"/>',
            f'<path d="{path.arrowhead_path()}" fill="{PATH_COLOR}" stroke="none"/>',
        ])
    return _document(layout, elements, title)


def render_synthesis_svg(
    assessments: Iterable[Any],
    layout: GridLayout = DEFAULT_LAYOUT,
    title: str = "",
) -> str:
    """Risk matrix with the number of assessments falling in each cell."""
    counts = Counter(grid_position(*cell_of(item)) for item in assessments)
    elements = _cells(layout, counts)
    font_size = layout.cell_extent * 0.45
    for (row, col), count in sorted(counts.items()):
        center = layout.center(row, col)
        elements.append(
            f'<text x="{_num(center.x)}" y="{_num(center.y)}" font-size="{_num(font_size)}" '
            'font-family="sans-serif" font-weight="bold" text-anchor="middle" '
            f'dominant-baseline="central" fill="{DOT_COLOR}">{count}</text>'
        )
    return _document(layout, elements, title)


def _cells(layout: GridLayout, counts: Optional[Counter] = None) -> List[str]:
    elements: List[str] = []
    size = _num(layout.cell_extent)
    radius = _num(layout.cell_extent * 0.15)
    for row, (severity, cells) in enumerate(matrix_rows()):
        for col, (likelihood, level) in enumerate(cells):
            origin = layout.cell_origin(row, col)
            opacity = ""
            if counts is not None and not counts.get((row, col)):
                opacity = ' opacity="0.3"'
            elements.append(
                f'<rect x="{_num(origin.x)}" y="{_num(origin.y)}" width="{size}" height="{size}" '
                f'rx="{radius}" fill="{level.color}"{opacity}>'
                f"<title>S{severity.value}/L{likelihood.value}: {level.value}</title></rect>"
            )
    return elements


def _dot(center: Point, layout: GridLayout, color: str, *, opacity: float, scale: float) -> str:
    return (
        f'<circle cx="{_num(center.x)}" cy="{_num(center.y)}" '
        f'r="{_num(layout.cell_extent * scale)}" fill="{color}" opacity="{opacity:g}"/>'
    )


def _document(layout: GridLayout, elements: List[str], title: str) -> str:
    size = _num(layout.view_size)
    lines = [
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {size} {size}" '
        f'width="{size}" height="{size}">'
    ]
    if title:
        lines.append(f"  <title>{escape(title)}</title>")
    lines.extend(f"  {element}" for element in elements)
    lines.append("</svg>")
    return "\n".join(lines) + "\n"
