"""
Pathfinding and movement.

A* over the encounter grid with 8-directional movement and a uniform step
cost of one square. NPCs path to any cell adjacent to their target, never the
target's own cell; the player paths onto the chosen cell.
Walls from the collision map and cells held by other living combatants
block; corpses do not.

Movement writes the new cell straight into the shared position map, so an
NPC acting later in the same round paths around where earlier NPCs ended up.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set
import heapq

from gridcombat.core.geometry import (
    FEET_PER_SQUARE,
    GridPosition,
    distance,
    is_in_bounds,
    require_in_bounds,
)

# N, S, W, E, then diagonals. Fixed so equal-cost paths come out the same every time.
NEIGHBOR_OFFSETS = (
    (-1, 0), (1, 0), (0, -1), (0, 1),
    (-1, -1), (-1, 1), (1, -1), (1, 1),
)


@dataclass
class PathNode:
    """A node in the pathfinding graph."""
    row: int
    col: int
    g_cost: int = 0  # Steps from start
    h_cost: int = 0  # Estimated steps to a goal cell
    order: int = 0   # Insertion counter for stable tie-breaking
    parent: Optional["PathNode"] = None

    @property
    def f_cost(self) -> int:
        """Total estimated cost."""
        return self.g_cost + self.h_cost

    @property
    def position(self) -> GridPosition:
        return GridPosition(self.row, self.col)

    def __lt__(self, other: "PathNode") -> bool:
        """For heap comparison."""
        return (self.f_cost, self.h_cost, self.order) < (other.f_cost, other.h_cost, other.order)


@dataclass
class PathResult:
    """Result of a path search. ``path`` excludes the starting cell."""
    found: bool
    path: List[GridPosition]
    description: str

    @property
    def steps(self) -> int:
        return len(self.path)


@dataclass
class NPCMovementResult:
    """What happened when an NPC tried to close on its target."""
    npc_id: str
    from_pos: Optional[GridPosition]
    to_pos: Optional[GridPosition]
    moved: bool
    path: List[GridPosition] = field(default_factory=list)
    reason: str = ""

    @property
    def feet_moved(self) -> int:
        return len(self.path) * FEET_PER_SQUARE

    def to_dict(self) -> Dict:
        return {
            "npc_id": self.npc_id,
            "from": self.from_pos.to_dict() if self.from_pos else None,
            "to": self.to_pos.to_dict() if self.to_pos else None,
            "moved": self.moved,
            "path": [p.to_dict() for p in self.path],
            "reason": self.reason,
        }


def heuristic(pos: GridPosition, target: GridPosition) -> int:
    """Chebyshev steps left until the cell is adjacent to the target."""
    return max(0, distance(pos, target) - 1)


def build_blocked_set(
    positions: Dict[str, GridPosition],
    living_ids: Iterable[str],
    mover_id: str,
) -> Set[GridPosition]:
    """Cells held by living combatants other than the mover."""
    living = set(living_ids)
    return {
        pos for cid, pos in positions.items()
        if cid != mover_id and cid in living
    }


def _search(
    start: GridPosition,
    grid_size: int,
    blocked: Set[GridPosition],
    is_wall: Optional[Callable[[GridPosition], bool]],
    is_goal: Callable[[GridPosition], bool],
    estimate: Callable[[GridPosition], int],
    forbidden: Optional[GridPosition] = None,
) -> PathResult:
    """A* from ``start`` until a cell satisfying ``is_goal`` is popped."""
    counter = 0
    start_node = PathNode(row=start.row, col=start.col, h_cost=estimate(start))
    open_set: List[PathNode] = [start_node]
    closed_set: Set[GridPosition] = set()
    best_g: Dict[GridPosition, int] = {start: 0}

    while open_set:
        current = heapq.heappop(open_set)
        current_pos = current.position

        if current_pos in closed_set:
            continue
        closed_set.add(current_pos)

        # Found a goal cell
        if is_goal(current_pos):
            path = []
            node = current
            while node.parent is not None:
                path.append(node.position)
                node = node.parent
            path.reverse()
            return PathResult(found=True, path=path, description=f"Path found: {len(path)} squares")

        for d_row, d_col in NEIGHBOR_OFFSETS:
            neighbor = GridPosition(current.row + d_row, current.col + d_col)
            if neighbor in closed_set or neighbor == forbidden:
                continue
            if not is_in_bounds(neighbor, grid_size):
                continue
            if neighbor in blocked:
                continue
            if is_wall is not None and is_wall(neighbor):
                continue

            new_g = current.g_cost + 1
            if new_g >= best_g.get(neighbor, new_g + 1):
                continue
            best_g[neighbor] = new_g

            counter += 1
            heapq.heappush(open_set, PathNode(
                row=neighbor.row,
                col=neighbor.col,
                g_cost=new_g,
                h_cost=estimate(neighbor),
                order=counter,
                parent=current,
            ))

    return PathResult(found=False, path=[], description="No path found")


def find_path_to_adjacent(
    start: GridPosition,
    target: GridPosition,
    grid_size: int,
    blocked: Optional[Set[GridPosition]] = None,
    is_wall: Optional[Callable[[GridPosition], bool]] = None,
) -> PathResult:
    """
    Find the shortest path from ``start`` to any cell next to ``target``.

    Args:
        start: Mover's current cell
        target: Cell of the combatant being approached
        grid_size: Side length of the square grid
        blocked: Cells held by other living combatants
        is_wall: Predicate for wall/obstacle cells; None means open field

    Returns:
        PathResult whose path ends adjacent to the target

    Raises:
        InvalidPositionError: If start or target are off the grid
    """
    require_in_bounds(start, grid_size)
    require_in_bounds(target, grid_size)

    if distance(start, target) <= 1:
        return PathResult(found=True, path=[], description="Already adjacent to target")

    return _search(
        start,
        grid_size,
        blocked or set(),
        is_wall,
        is_goal=lambda pos: pos != target and distance(pos, target) <= 1,
        estimate=lambda pos: heuristic(pos, target),
        forbidden=target,
    )


def find_path(
    start: GridPosition,
    goal: GridPosition,
    grid_size: int,
    blocked: Optional[Set[GridPosition]] = None,
    is_wall: Optional[Callable[[GridPosition], bool]] = None,
) -> PathResult:
    """
    Find the shortest walkable path from ``start`` onto ``goal`` itself.

    Used for player moves, where the destination is a cell rather than a
    combatant. A blocked or walled goal is never reachable.
    """
    require_in_bounds(start, grid_size)
    require_in_bounds(goal, grid_size)
    blocked = blocked or set()

    if start == goal:
        return PathResult(found=True, path=[], description="Already there")
    if goal in blocked or (is_wall is not None and is_wall(goal)):
        return PathResult(found=False, path=[], description="Destination is occupied or blocked")

    return _search(
        start,
        grid_size,
        blocked,
        is_wall,
        is_goal=lambda pos: pos == goal,
        estimate=lambda pos: distance(pos, goal),
    )


def move_toward(
    mover_id: str,
    target_id: str,
    positions: Dict[str, GridPosition],
    grid_size: int,
    speed_feet: int,
    living_ids: Iterable[str],
    is_wall: Optional[Callable[[GridPosition], bool]] = None,
) -> NPCMovementResult:
    """
    Advance a combatant along the shortest path toward its target.

    The mover covers at most ``floor(speed_feet / 5)`` squares. The new cell
    is written into ``positions`` in place.
    """
    start = positions.get(mover_id)
    target = positions.get(target_id)
    if start is None:
        return NPCMovementResult(mover_id, None, None, moved=False, reason="Mover has no grid position")
    if target is None:
        return NPCMovementResult(mover_id, start, start, moved=False, reason="Target has no grid position")

    result = find_path_to_adjacent(
        start,
        target,
        grid_size,
        blocked=build_blocked_set(positions, living_ids, mover_id),
        is_wall=is_wall,
    )
    if not result.found:
        return NPCMovementResult(mover_id, start, start, moved=False, reason=result.description)
    if not result.path:
        return NPCMovementResult(mover_id, start, start, moved=False, reason=result.description)

    max_steps = speed_feet // FEET_PER_SQUARE
    path = result.path[:max_steps]
    if not path:
        return NPCMovementResult(mover_id, start, start, moved=False, reason="No movement available")

    destination = path[-1]
    positions[mover_id] = destination
    reason = "Reached target" if len(path) == result.steps else f"Stopped after {len(path) * FEET_PER_SQUARE} ft"
    return NPCMovementResult(mover_id, start, destination, moved=True, path=path, reason=reason)
