"""
Positional and condition-based advantage for attack rolls.

Each rule contributes an independent tag. Tags then collapse to a single
roll mode: both kinds present cancel to a normal roll.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from gridcombat.core.geometry import GridPosition, feet_distance

# Conditions on the target that give the attacker advantage
ADVANTAGE_TARGET_CONDITIONS = ("restrained", "stunned", "paralyzed", "unconscious")

# Conditions on the attacker that give it disadvantage
DISADVANTAGE_ATTACKER_CONDITIONS = ("blinded", "frightened", "poisoned", "prone", "restrained")

CLOSE_QUARTERS_FEET = 5


class RollMode(str, Enum):
    """How many d20s an attack draws and which one it keeps."""
    NORMAL = "normal"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"


@dataclass(frozen=True)
class CombatModifier:
    """A single advantage or disadvantage source."""
    type: RollMode
    source: str

    def describe(self) -> str:
        return f"{self.type.value}: {self.source}"


def get_positional_modifiers(
    attacker_pos: GridPosition,
    target_pos: GridPosition,
    attack_type: str,
    target_conditions: Iterable[str],
    attacker_conditions: Iterable[str],
    positions: Dict[str, GridPosition],
    attacker_id: str,
    living_ids: Optional[Set[str]] = None,
) -> List[CombatModifier]:
    """
    Compute every advantage/disadvantage tag for one attack.

    Args:
        attacker_pos: Attacker's cell
        target_pos: Target's cell
        attack_type: "melee" or "ranged"
        target_conditions: Conditions on the target
        attacker_conditions: Conditions on the attacker
        positions: Map of combatant id -> cell
        attacker_id: Id of the attacker (ignored when scanning for adjacent threats)
        living_ids: If given, only these combatants count as adjacent threats

    Returns:
        List of CombatModifier tags, possibly empty
    """
    mods: List[CombatModifier] = []
    target_lower = {c.lower() for c in target_conditions}
    attacker_lower = {c.lower() for c in attacker_conditions}
    dist = feet_distance(attacker_pos, target_pos)

    if attack_type == "ranged":
        for cid, pos in positions.items():
            if cid == attacker_id:
                continue
            if living_ids is not None and cid not in living_ids:
                continue
            if feet_distance(attacker_pos, pos) <= CLOSE_QUARTERS_FEET:
                mods.append(CombatModifier(RollMode.DISADVANTAGE, "hostile within 5 ft (ranged)"))
                break

    for condition in ADVANTAGE_TARGET_CONDITIONS:
        if condition in target_lower:
            mods.append(CombatModifier(RollMode.ADVANTAGE, f"target is {condition}"))

    if "prone" in target_lower:
        if attack_type == "melee" and dist <= CLOSE_QUARTERS_FEET:
            mods.append(CombatModifier(RollMode.ADVANTAGE, "target is prone (melee)"))
        else:
            mods.append(CombatModifier(RollMode.DISADVANTAGE, "target is prone (ranged/distant)"))

    for condition in DISADVANTAGE_ATTACKER_CONDITIONS:
        if condition in attacker_lower:
            mods.append(CombatModifier(RollMode.DISADVANTAGE, f"attacker is {condition}"))

    return mods


def resolve_advantage(mods: Iterable[CombatModifier]) -> RollMode:
    """Collapse modifier tags into one roll mode."""
    kinds = {m.type for m in mods}
    has_advantage = RollMode.ADVANTAGE in kinds
    has_disadvantage = RollMode.DISADVANTAGE in kinds
    if has_advantage and has_disadvantage:
        return RollMode.NORMAL
    if has_advantage:
        return RollMode.ADVANTAGE
    if has_disadvantage:
        return RollMode.DISADVANTAGE
    return RollMode.NORMAL
