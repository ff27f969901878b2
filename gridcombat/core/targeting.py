"""
Range and area-of-effect validation.

Single-target abilities get a RangeCheck telling whether the target is
reachable and whether long range imposes disadvantage. Area abilities have no
in-range answer: the shape's cells are intersected with the position map and
every occupant is a target.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from gridcombat.core.geometry import (
    AOEShape,
    ConeShape,
    CubeShape,
    CylinderShape,
    GridPosition,
    LineShape,
    SphereShape,
    aoe_cells,
    feet_distance,
)
from gridcombat.models.abilities import (
    DEFAULT_MELEE_REACH,
    AbilityRange,
    AOEData,
    BothRange,
    MeleeRange,
    RangedRange,
    SelfRange,
    TouchRange,
)

DEFAULT_RANGED_SHORT = 30
DEFAULT_THROWN_SHORT = 20
DEFAULT_THROWN_LONG = 60
DEFAULT_LINE_WIDTH = 5


@dataclass
class RangeCheck:
    """Outcome of a single-target range check."""
    in_range: bool
    distance_feet: int
    disadvantage: bool = False
    reason: Optional[str] = None


@dataclass
class MovementCheck:
    allowed: bool
    distance_feet: int
    reason: Optional[str] = None


# =============================================================================
# SINGLE TARGET
# =============================================================================

def check_melee_range(
    attacker: GridPosition,
    target: GridPosition,
    reach: Optional[int] = None,
) -> RangeCheck:
    """In range iff the target is within reach (5 ft by default)."""
    dist = feet_distance(attacker, target)
    reach = reach if reach is not None else DEFAULT_MELEE_REACH
    if dist <= reach:
        return RangeCheck(in_range=True, distance_feet=dist)
    return RangeCheck(
        in_range=False,
        distance_feet=dist,
        reason=f"Target is {dist} ft away (melee reach: {reach} ft)",
    )


def check_ranged_range(
    attacker: GridPosition,
    target: GridPosition,
    short_range: int,
    long_range: int,
) -> RangeCheck:
    """Normal within short range, disadvantage out to long range, otherwise out of range."""
    dist = feet_distance(attacker, target)
    if dist <= short_range:
        return RangeCheck(in_range=True, distance_feet=dist)
    if dist <= long_range:
        return RangeCheck(
            in_range=True,
            distance_feet=dist,
            disadvantage=True,
            reason=f"Target is {dist} ft away (beyond normal range of {short_range} ft, disadvantage)",
        )
    return RangeCheck(
        in_range=False,
        distance_feet=dist,
        reason=f"Target is {dist} ft away (max range: {long_range} ft)",
    )


def validate_attack_range(
    attacker: GridPosition,
    target: GridPosition,
    range_: Optional[AbilityRange] = None,
) -> RangeCheck:
    """
    Check whether an ability reaches its target.

    Args:
        attacker: Attacker's cell
        target: Target's cell
        range_: The ability's range; None falls back to melee at 5 ft

    Returns:
        RangeCheck with distance in feet and any long-range disadvantage
    """
    if range_ is None:
        return check_melee_range(attacker, target, DEFAULT_MELEE_REACH)

    if isinstance(range_, SelfRange):
        return RangeCheck(in_range=True, distance_feet=0)

    if isinstance(range_, (TouchRange, MeleeRange)):
        return check_melee_range(attacker, target, range_.reach)

    if isinstance(range_, RangedRange):
        short = range_.short_range if range_.short_range is not None else DEFAULT_RANGED_SHORT
        long = range_.long_range if range_.long_range is not None else short
        return check_ranged_range(attacker, target, short, long)

    if isinstance(range_, BothRange):
        melee = check_melee_range(attacker, target, range_.reach)
        if melee.in_range:
            return melee
        return check_ranged_range(
            attacker,
            target,
            range_.short_range if range_.short_range is not None else DEFAULT_THROWN_SHORT,
            range_.long_range if range_.long_range is not None else DEFAULT_THROWN_LONG,
        )

    raise TypeError(f"Unknown ability range: {range_!r}")


def is_ranged_attack(range_: Optional[AbilityRange], distance_feet: Optional[int] = None) -> bool:
    """
    Whether an ability attacks at range for positional purposes.

    A thrown weapon is ranged once the target is beyond its reach.
    """
    if isinstance(range_, BothRange):
        return distance_feet is not None and distance_feet > range_.reach
    return isinstance(range_, RangedRange)


# =============================================================================
# AREA OF EFFECT
# =============================================================================

def build_aoe_shape(
    aoe: AOEData,
    caster_pos: GridPosition,
    aoe_origin: Optional[GridPosition] = None,
    aoe_direction: Optional[GridPosition] = None,
) -> AOEShape:
    """
    Turn an ability's area data into a concrete shape on the grid.

    Spheres, cubes and cylinders center on the chosen point (or the caster).
    Cones and lines always start at the caster and face ``aoe_direction``,
    defaulting to one square north of the origin.
    """
    origin = aoe_origin or caster_pos
    if aoe.shape == "sphere":
        return SphereShape(origin=origin, radius_feet=aoe.size)
    if aoe.shape == "cube":
        return CubeShape(origin=origin, radius_feet=aoe.size)
    if aoe.shape == "cylinder":
        return CylinderShape(origin=origin, radius_feet=aoe.size)

    direction = aoe_direction or GridPosition(origin.row - 1, origin.col)
    if aoe.shape == "cone":
        return ConeShape(origin=caster_pos, length_feet=aoe.size, direction=direction)
    if aoe.shape == "line":
        return LineShape(
            origin=caster_pos,
            length_feet=aoe.size,
            direction=direction,
            width_feet=aoe.width or DEFAULT_LINE_WIDTH,
        )
    raise ValueError(f"Unknown area shape: {aoe.shape}")


def get_aoe_targets(
    shape: AOEShape,
    positions: Dict[str, GridPosition],
    grid_size: int,
) -> List[str]:
    """Ids of every combatant standing in the shape, in position-map order."""
    covered = set(aoe_cells(shape, grid_size))
    return [cid for cid, pos in positions.items() if pos in covered]


# =============================================================================
# MOVEMENT
# =============================================================================

def validate_movement(from_pos: GridPosition, to_pos: GridPosition, speed_feet: int) -> MovementCheck:
    """Whether a straight move fits within a walking speed."""
    dist = feet_distance(from_pos, to_pos)
    if dist <= speed_feet:
        return MovementCheck(allowed=True, distance_feet=dist)
    return MovementCheck(
        allowed=False,
        distance_feet=dist,
        reason=f"{dist} ft exceeds movement speed of {speed_feet} ft",
    )
