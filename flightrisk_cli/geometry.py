from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional, Tuple

from flightrisk_cli.exceptions import ConfigError
from flightrisk_cli.matrix import LIKELIHOOD_COLUMNS, grid_position

_GRID_CELLS = len(LIKELIHOOD_COLUMNS)

# Exact cosine/sine for the four terminal angles an orthogonal path can have.
_QUARTER_TURNS: Dict[int, Tuple[int, int]] = {
    0: (1, 0),
    90: (0, 1),
    180: (-1, 0),
    270: (0, -1),
}


class Point(NamedTuple):
    x: float
    y: float

    def svg(self) -> str:
        return f"{format_number(self.x)},{format_number(self.y)}"


@dataclass(frozen=True)
class GridLayout:
    """Square 4x4 grid of equal cells separated by a uniform gap.

    Coordinates are expressed in a ``view_size`` square (the SVG viewBox),
    y growing downward. Centres are derived from ``cell_size`` and ``gap``
    alone, so every preset shares the same relative spacing.
    """

    cell_size: float
    gap: float
    view_size: float = 100.0
    corner_radius: float = 8.0
    arrow_size: float = 5.0
    marker_radius: float = 2.0

    def __post_init__(self) -> None:
        if self.cell_size <= 0:
            raise ConfigError("Grid cell size must be positive.")
        if self.gap < 0:
            raise ConfigError("Grid gap cannot be negative.")
        if self.view_size <= 0:
            raise ConfigError("Grid view size must be positive.")

    @property
    def span(self) -> float:
        return _GRID_CELLS * self.cell_size + (_GRID_CELLS - 1) * self.gap

    @property
    def scale(self) -> float:
        return self.view_size / self.span

    @property
    def cell_extent(self) -> float:
        return self.cell_size * self.scale

    def axis_center(self, index: int) -> float:
        return (index * (self.cell_size + self.gap) + self.cell_size / 2) * self.scale

    def axis_origin(self, index: int) -> float:
        return index * (self.cell_size + self.gap) * self.scale

    def center(self, row: int, col: int) -> Point:
        return Point(self.axis_center(col), self.axis_center(row))

    def cell_origin(self, row: int, col: int) -> Point:
        return Point(self.axis_origin(col), self.axis_origin(row))


LAYOUTS: Dict[str, GridLayout] = {
    "sm": GridLayout(cell_size=32, gap=8),
    "md": GridLayout(cell_size=48, gap=8),
    "lg": GridLayout(cell_size=64, gap=8),
}
DEFAULT_LAYOUT = LAYOUTS["md"]


def get_layout(name: str) -> GridLayout:
    try:
        return LAYOUTS[name]
    except KeyError:
        choices = ", ".join(LAYOUTS)
        raise ConfigError(f"Unknown grid size '{name}'. Choose one of: {choices}.") from None


@dataclass(frozen=True)
class PathDescription:
    start: Point
    end: Point
    corner: Optional[Point]
    radius: float
    angle: int
    arrowhead: Tuple[Point, Point, Point]
    marker_radius: float

    @property
    def kind(self) -> str:
        return "straight" if self.corner is None else "elbow"

    def svg_path(self) -> str:
        if self.corner is None:
            return f"M{self.start.svg()} L{self.end.svg()}"
        dir_x = 1 if self.end.x > self.start.x else -1
        dir_y = 1 if self.end.y > self.start.y else -1
        curve_in = Point(self.corner.x - dir_x * self.radius, self.corner.y)
        curve_out = Point(self.corner.x, self.corner.y + dir_y * self.radius)
        return (
            f"M{self.start.svg()}"
            f" L{curve_in.svg()}"
            f" Q{self.corner.svg()} {curve_out.svg()}"
            f" L{self.end.svg()}"
        )

    def arrowhead_path(self) -> str:
        tip, back1, back2 = self.arrowhead
        return f"M{tip.svg()} L{back1.svg()} L{back2.svg()} Z"


def evolution_path(
    start: Any,
    end: Any,
    layout: GridLayout = DEFAULT_LAYOUT,
) -> Optional[PathDescription]:
    """Describe the connector drawn from the *start* cell to the *end* cell.

    *start* and *end* are ``(severity, likelihood)`` pairs or assessments.
    Returns ``None`` when there is no start or both land on the same cell.
    Cells sharing a row or column get a straight segment; otherwise the path
    runs along the likelihood axis first, then along the severity axis, with
    a rounded corner.
    """
    if start is None:
        return None
    start_row, start_col = grid_position(*cell_of(start))
    end_row, end_col = grid_position(*cell_of(end))
    if (start_row, start_col) == (end_row, end_col):
        return None

    origin = layout.center(start_row, start_col)
    target = layout.center(end_row, end_col)

    corner: Optional[Point] = None
    radius = 0.0
    if start_row == end_row:
        angle = 0 if target.x > origin.x else 180
    elif start_col == end_col:
        angle = 90 if target.y > origin.y else 270
    else:
        corner = Point(target.x, origin.y)
        radius = min(
            layout.corner_radius,
            abs(target.x - origin.x) / 2,
            abs(target.y - origin.y) / 2,
        )
        angle = 90 if target.y > origin.y else 270

    return PathDescription(
        start=origin,
        end=target,
        corner=corner,
        radius=radius,
        angle=angle,
        arrowhead=_arrowhead(target, angle, layout.arrow_size),
        marker_radius=layout.marker_radius,
    )


def _arrowhead(tip: Point, angle: int, size: float) -> Tuple[Point, Point, Point]:
    cos, sin = _QUARTER_TURNS[angle]

    def place(x: float, y: float) -> Point:
        return Point(tip.x + x * cos - y * sin, tip.y + x * sin + y * cos)

    # Template points right, tip at the origin.
    return place(0, 0), place(-size, -size / 2), place(-size, size / 2)


def cell_of(value: Any) -> Tuple[Any, Any]:
    if hasattr(value, "severity") and hasattr(value, "likelihood"):
        return value.severity, value.likelihood
    severity, likelihood = value
    return severity, likelihood


def format_number(value: float) -> str:
    rounded = round(value, 3)
    if rounded == 0:
        rounded = 0.0
    return f"{rounded:g}"
