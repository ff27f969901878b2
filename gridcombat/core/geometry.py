"""
Grid geometry for the encounter grid.

Distances use the Chebyshev metric: a diagonal step costs the same as an
orthogonal one, so distance in squares is max(|drow|, |dcol|) and each
square is 5 feet.

Area shapes resolve to sets of cells with closed-form tests:
- sphere / cube / cylinder: every cell within the radius, origin included
- cone: cells within length whose direction from the origin has a
  normalized dot product >= 0.5 with the cast direction
- line: cells whose projection on the cast direction lies within length and
  whose perpendicular distance is at most half the width
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Union

from gridcombat.core.errors import InvalidPositionError

FEET_PER_SQUARE = 5
CONE_MIN_DOT = 0.5


@dataclass(frozen=True)
class GridPosition:
    """A cell on the encounter grid."""
    row: int
    col: int

    def to_dict(self) -> Dict[str, int]:
        return {"row": self.row, "col": self.col}

    @classmethod
    def from_dict(cls, data: Dict) -> "GridPosition":
        return cls(row=int(data["row"]), col=int(data["col"]))


# =============================================================================
# AREA SHAPES
# =============================================================================

@dataclass(frozen=True)
class SphereShape:
    origin: GridPosition
    radius_feet: int


@dataclass(frozen=True)
class CubeShape:
    origin: GridPosition
    radius_feet: int


@dataclass(frozen=True)
class CylinderShape:
    origin: GridPosition
    radius_feet: int


@dataclass(frozen=True)
class ConeShape:
    origin: GridPosition
    length_feet: int
    direction: GridPosition  # A point the cone faces toward


@dataclass(frozen=True)
class LineShape:
    origin: GridPosition
    length_feet: int
    direction: GridPosition
    width_feet: int = 5


AOEShape = Union[SphereShape, CubeShape, CylinderShape, ConeShape, LineShape]
RADIAL_SHAPES = (SphereShape, CubeShape, CylinderShape)


# =============================================================================
# DISTANCE
# =============================================================================

def distance(a: GridPosition, b: GridPosition) -> int:
    """Chebyshev distance in squares."""
    return max(abs(a.row - b.row), abs(a.col - b.col))


def feet_distance(a: GridPosition, b: GridPosition) -> int:
    """Distance in feet (squares * 5)."""
    return distance(a, b) * FEET_PER_SQUARE


def is_in_bounds(pos: GridPosition, grid_size: int) -> bool:
    return 0 <= pos.row < grid_size and 0 <= pos.col < grid_size


def require_in_bounds(pos: GridPosition, grid_size: int) -> GridPosition:
    """Return ``pos`` unchanged, or raise InvalidPositionError if it is off the grid."""
    if not is_in_bounds(pos, grid_size):
        raise InvalidPositionError(pos.row, pos.col, grid_size)
    return pos


def cells_in_range(origin: GridPosition, range_feet: int, grid_size: int) -> List[GridPosition]:
    """
    All in-bounds cells within ``floor(range_feet / 5)`` squares of origin.

    The origin cell itself is never included. Cells are returned in
    row-major order.
    """
    require_in_bounds(origin, grid_size)
    radius = range_feet // FEET_PER_SQUARE
    cells = []
    for row in range(max(0, origin.row - radius), min(grid_size, origin.row + radius + 1)):
        for col in range(max(0, origin.col - radius), min(grid_size, origin.col + radius + 1)):
            if row == origin.row and col == origin.col:
                continue
            cells.append(GridPosition(row, col))
    return cells


# =============================================================================
# AREA CELLS
# =============================================================================

def _unit_direction(origin: GridPosition, toward: GridPosition) -> Optional[tuple]:
    """Unit (dcol, drow) from origin toward a point, or None for a zero vector."""
    dx = toward.col - origin.col
    dy = toward.row - origin.row
    length = math.sqrt(dx * dx + dy * dy)
    if length == 0:
        return None
    return dx / length, dy / length


def _box_around(origin: GridPosition, radius: int, grid_size: int) -> Iterable[GridPosition]:
    for row in range(max(0, origin.row - radius), min(grid_size, origin.row + radius + 1)):
        for col in range(max(0, origin.col - radius), min(grid_size, origin.col + radius + 1)):
            if row == origin.row and col == origin.col:
                continue
            yield GridPosition(row, col)


def _cone_cells(shape: ConeShape, grid_size: int) -> List[GridPosition]:
    unit = _unit_direction(shape.origin, shape.direction)
    if unit is None:
        return []
    ndx, ndy = unit
    length = shape.length_feet // FEET_PER_SQUARE
    cells = []
    for cell in _box_around(shape.origin, length, grid_size):
        cdx = cell.col - shape.origin.col
        cdy = cell.row - shape.origin.row
        dot = (cdx * ndx + cdy * ndy) / math.sqrt(cdx * cdx + cdy * cdy)
        if dot >= CONE_MIN_DOT:
            cells.append(cell)
    return cells


def _line_cells(shape: LineShape, grid_size: int) -> List[GridPosition]:
    unit = _unit_direction(shape.origin, shape.direction)
    if unit is None:
        return []
    ndx, ndy = unit
    length = shape.length_feet // FEET_PER_SQUARE
    half_width = max(1, shape.width_feet // FEET_PER_SQUARE) / 2
    cells = []
    for cell in _box_around(shape.origin, length, grid_size):
        cdx = cell.col - shape.origin.col
        cdy = cell.row - shape.origin.row
        projection = cdx * ndx + cdy * ndy
        if projection < 0 or projection > length:
            continue
        perpendicular = abs(cdx * -ndy + cdy * ndx)
        if perpendicular <= half_width:
            cells.append(cell)
    return cells


def aoe_cells(shape: AOEShape, grid_size: int) -> List[GridPosition]:
    """
    Grid cells covered by an area shape.

    Raises:
        InvalidPositionError: If the shape's origin is off the grid
    """
    require_in_bounds(shape.origin, grid_size)
    if isinstance(shape, RADIAL_SHAPES):
        # Whoever stands on the point of origin is caught too
        return [shape.origin] + cells_in_range(shape.origin, shape.radius_feet, grid_size)
    if isinstance(shape, ConeShape):
        return _cone_cells(shape, grid_size)
    if isinstance(shape, LineShape):
        return _line_cells(shape, grid_size)
    raise TypeError(f"Unknown area shape: {type(shape).__name__}")


# =============================================================================
# PLACEMENT
# =============================================================================

def find_edge_slot(occupied: Set[GridPosition], grid_size: int) -> GridPosition:
    """First free cell along the top edge rows, scanning outward if they are full."""
    for row in range(1, 4):
        for col in range(3, grid_size - 3, 2):
            pos = GridPosition(row, col)
            if pos not in occupied:
                return pos
    for row in range(min(6, grid_size)):
        for col in range(grid_size):
            pos = GridPosition(row, col)
            if pos not in occupied:
                return pos
    return GridPosition(0, 0)


def compute_initial_positions(
    npc_ids: Iterable[str],
    grid_size: int,
    player_id: str = "player",
) -> Dict[str, GridPosition]:
    """Player at the center of the grid, NPCs spread along the top edge."""
    center = GridPosition(grid_size // 2, grid_size // 2)
    positions = {player_id: center}
    occupied = {center}
    for npc_id in npc_ids:
        slot = find_edge_slot(occupied, grid_size)
        positions[npc_id] = slot
        occupied.add(slot)
    return positions
