"""
Attack and damage resolution.

Handles core game mechanics:
- Weapon and spell attack rolls (natural 1 misses, natural 20 crits)
- Saving-throw spells (full damage on a failed save, half on a success)
- Area effects (damage rolled once and shared, saves rolled per target)
- NPC attacks
- Ability modifiers, proficiency bonus and spell save DCs

Impossible requests (no target, no damage data, unknown ability) come back
as a RollOutcome with ``impossible=True`` rather than raising.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging

from gridcombat.core.condition_effects import (
    CombatModifier,
    RollMode,
    get_positional_modifiers,
    resolve_advantage,
)
from gridcombat.core.dice import D20Result, roll_d20, roll_damage, roll_dice, roll_saving_throw
from gridcombat.core.geometry import GridPosition, feet_distance
from gridcombat.core.targeting import is_ranged_attack
from gridcombat.models.abilities import (
    Ability,
    ActionAbility,
    SpellAbility,
    WeaponAbility,
)
from gridcombat.models.combatants import NPC, Combatant, PlayerState

logger = logging.getLogger(__name__)

SIMPLE_WEAPONS = {
    "club", "dagger", "greatclub", "handaxe", "javelin", "light hammer",
    "mace", "quarterstaff", "sickle", "spear",
    "light crossbow", "dart", "shortbow", "sling",
}

MARTIAL_WEAPONS = {
    "battleaxe", "flail", "glaive", "greataxe", "greatsword", "halberd",
    "lance", "longsword", "maul", "morningstar", "pike", "rapier",
    "scimitar", "shortsword", "trident", "war pick", "warhammer", "whip",
    "blowgun", "hand crossbow", "heavy crossbow", "longbow", "net",
}

DEFAULT_SPELLCASTING_ABILITY = "intelligence"
DEFAULT_SAVE_ABILITY = "dexterity"
DEFAULT_AOE_DAMAGE = "1d6"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class DamageBreakdown:
    """One damage component as actually rolled."""
    label: str
    dice: str  # Post-crit expression, e.g. "2d8"
    rolls: List[int]
    flat_bonus: int
    subtotal: int
    damage_type: str

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))


@dataclass
class DamageSummary:
    breakdown: List[DamageBreakdown]
    total_damage: int
    is_crit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "breakdown": [b.to_dict() for b in self.breakdown],
            "total_damage": self.total_damage,
            "is_crit": self.is_crit,
        }


@dataclass
class RollOutcome:
    """Structured result of one resolved action."""
    check_type: str
    success: bool
    components: str = ""
    die_result: int = 0
    all_rolls: List[int] = field(default_factory=list)
    total_modifier: int = 0
    total: int = 0
    dc_or_ac: str = "N/A"
    notes: str = ""
    roll_mode: RollMode = RollMode.NORMAL
    critical_hit: bool = False
    critical_miss: bool = False
    impossible: bool = False
    no_check: bool = False
    damage: Optional[DamageSummary] = None

    @property
    def total_damage(self) -> int:
        """Damage to apply to the target (0 if nothing landed)."""
        return self.damage.total_damage if self.damage else 0

    def to_dict(self) -> Dict[str, Any]:
        data = dict(vars(self))
        data["roll_mode"] = self.roll_mode.value
        data["damage"] = self.damage.to_dict() if self.damage else None
        return data


@dataclass
class AOETargetResult:
    target_id: str
    target_name: str
    saved: bool
    save_roll: int
    save_total: int
    damage_taken: int

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))


@dataclass
class AOEResult:
    """Area effect: one shared damage roll, one save per target."""
    check_type: str
    spell_dc: int
    damage_roll: str
    damage_rolls: List[int]
    total_rolled: int
    damage_type: str
    targets: List[AOETargetResult]
    affected_cells: List[GridPosition]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_type": self.check_type,
            "spell_dc": self.spell_dc,
            "damage_roll": self.damage_roll,
            "damage_rolls": list(self.damage_rolls),
            "total_rolled": self.total_rolled,
            "damage_type": self.damage_type,
            "targets": [t.to_dict() for t in self.targets],
            "affected_cells": [c.to_dict() for c in self.affected_cells],
        }


# =============================================================================
# CORE MATH
# =============================================================================

def calculate_ability_modifier(score: int) -> int:
    """
    Calculate ability modifier from ability score.

    The modifier is (score - 10) // 2.
    Examples: 10 -> +0, 14 -> +2, 8 -> -1, 20 -> +5
    """
    return (score - 10) // 2


def calculate_proficiency_bonus(level: int) -> int:
    """
    Calculate proficiency bonus from character level.

    Level 1-4: +2
    Level 5-8: +3
    Level 9-12: +4
    Level 13-16: +5
    Level 17-20: +6
    """
    if level < 1:
        return 2
    return 2 + (level - 1) // 4


def calculate_spell_save_dc(ability_modifier: int, proficiency_bonus: int) -> int:
    """Spell save DC = 8 + spellcasting modifier + proficiency bonus."""
    return 8 + ability_modifier + proficiency_bonus


def format_modifier(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


def get_weapon_ability_modifier(weapon_stat: str, player: PlayerState) -> Tuple[int, str]:
    """Modifier and label for the ability a weapon attacks with."""
    str_mod = calculate_ability_modifier(player.ability_score("strength"))
    dex_mod = calculate_ability_modifier(player.ability_score("dexterity"))
    if weapon_stat == "dex":
        return dex_mod, "DEX"
    if weapon_stat == "finesse":
        return (str_mod, "STR") if str_mod >= dex_mod else (dex_mod, "DEX")
    if weapon_stat == "none":
        return 0, "NONE"
    return str_mod, "STR"


def is_weapon_proficient(weapon_name: str, proficiencies: Iterable[str]) -> bool:
    """
    Check weapon proficiency by exact name, by simple/martial category, or
    by substring so plural list entries ("longswords") still match.
    """
    weapon = weapon_name.lower().strip()
    profs = [p.lower().strip() for p in proficiencies if p and p.strip()]

    if weapon in profs:
        return True
    if "simple weapons" in profs and weapon in SIMPLE_WEAPONS:
        return True
    if "martial weapons" in profs and weapon in MARTIAL_WEAPONS:
        return True
    return any(prof in weapon or weapon in prof for prof in profs)


def _spellcasting_modifier(player: PlayerState, ability_name: Optional[str]) -> Tuple[int, str]:
    name = ability_name or player.spellcasting_ability or DEFAULT_SPELLCASTING_ABILITY
    return calculate_ability_modifier(player.ability_score(name)), name[:3].upper()


def _roll_attack(mode: RollMode, modifier: int, rng=None) -> D20Result:
    d20 = roll_d20(
        modifier=modifier,
        advantage=mode == RollMode.ADVANTAGE,
        disadvantage=mode == RollMode.DISADVANTAGE,
        rng=rng,
    )
    logger.debug("Attack roll %s (%s) %+d = %d", d20.rolls, mode.value, modifier, d20.total)
    return d20


def impossible(reason: str) -> RollOutcome:
    """Explicit result for an action that cannot be attempted."""
    return RollOutcome(check_type="IMPOSSIBLE", success=False, notes=reason, impossible=True)


def no_check(name: str, notes: str) -> RollOutcome:
    return RollOutcome(check_type=name, success=True, notes=notes, no_check=True)


# =============================================================================
# ADVANTAGE
# =============================================================================

def attack_roll_mode(
    attacker: Combatant,
    target: Combatant,
    attack_type: str,
    positions: Optional[Dict[str, GridPosition]] = None,
    living_ids: Optional[Set[str]] = None,
    extra_modifiers: Sequence[CombatModifier] = (),
) -> Tuple[RollMode, List[CombatModifier]]:
    """
    Gather every modifier for an attack and collapse them.

    Positional rules only apply when both combatants have a known cell.
    ``extra_modifiers`` carries range-derived tags such as long range.
    """
    mods = list(extra_modifiers)
    if positions:
        attacker_pos = positions.get(attacker.id)
        target_pos = positions.get(target.id)
        if attacker_pos is not None and target_pos is not None:
            mods.extend(get_positional_modifiers(
                attacker_pos,
                target_pos,
                attack_type,
                target.conditions,
                attacker.conditions,
                positions,
                attacker.id,
                living_ids,
            ))
    return resolve_advantage(mods), mods


def _attack_notes(d20: D20Result, hit: bool, mode: RollMode, mods: List[CombatModifier], noun: str) -> str:
    if d20.natural_20:
        parts = ["Natural 20, critical hit!"]
    elif d20.natural_1:
        parts = ["Natural 1, automatic miss"]
    else:
        parts = [f"{noun} hits" if hit else f"{noun} misses"]
    if mode != RollMode.NORMAL and len(d20.rolls) == 2:
        parts.append(f"{mode.value} (rolled {d20.rolls[0]}, {d20.rolls[1]})")
        parts.extend(m.describe() for m in mods)
    return ". ".join(parts)


def _is_hit(d20: D20Result, armor_class: int) -> bool:
    if d20.natural_1:
        return False
    if d20.natural_20:
        return True
    return d20.total >= armor_class


# =============================================================================
# PLAYER ATTACKS
# =============================================================================

def resolve_weapon_attack(
    player: PlayerState,
    ability: WeaponAbility,
    target: Combatant,
    positions: Optional[Dict[str, GridPosition]] = None,
    living_ids: Optional[Set[str]] = None,
    extra_modifiers: Sequence[CombatModifier] = (),
    rng=None,
) -> RollOutcome:
    """
    Resolve a weapon attack roll.

    Hits on d20 + ability mod + proficiency (if proficient) + weapon bonus
    >= target AC. Damage adds ability mod + weapon bonus once; a critical
    hit doubles the dice count only.
    """
    distance = None
    if positions and player.id in positions and target.id in positions:
        distance = feet_distance(positions[player.id], positions[target.id])
    attack_type = "ranged" if is_ranged_attack(ability.range, distance) else "melee"
    mode, mods = attack_roll_mode(player, target, attack_type, positions, living_ids, extra_modifiers)

    ability_mod, ability_label = get_weapon_ability_modifier(ability.weapon_stat, player)
    proficient = is_weapon_proficient(ability.name, player.weapon_proficiencies)
    prof_bonus = calculate_proficiency_bonus(player.level) if proficient else 0
    total_mod = ability_mod + prof_bonus + ability.weapon_bonus

    d20 = _roll_attack(mode, total_mod, rng)
    hit = _is_hit(d20, target.armor_class)

    parts = [f"{ability_label} {format_modifier(ability_mod)}"]
    if proficient:
        parts.append(f"Prof {format_modifier(prof_bonus)}")
    if ability.weapon_bonus:
        parts.append(f"Bonus {format_modifier(ability.weapon_bonus)}")

    damage = None
    if hit:
        flat_bonus = ability_mod + ability.weapon_bonus
        rolled = roll_damage(ability.damage_roll, modifier=flat_bonus, critical=d20.natural_20, rng=rng)
        breakdown = DamageBreakdown(
            label=ability.name,
            dice=rolled.dice_notation,
            rolls=rolled.rolls,
            flat_bonus=rolled.modifier,
            subtotal=rolled.total,
            damage_type=ability.damage_type,
        )
        damage = DamageSummary(breakdown=[breakdown], total_damage=max(0, rolled.total), is_crit=d20.natural_20)

    return RollOutcome(
        check_type=f"{ability.name} Attack",
        success=hit,
        components=f"{', '.join(parts)} = {format_modifier(total_mod)}",
        die_result=d20.base_roll,
        all_rolls=list(d20.rolls),
        total_modifier=total_mod,
        total=d20.total,
        dc_or_ac=str(target.armor_class),
        notes=_attack_notes(d20, hit, mode, mods, "Attack"),
        roll_mode=mode,
        critical_hit=d20.natural_20,
        critical_miss=d20.natural_1,
        damage=damage,
    )


def resolve_spell_attack(
    player: PlayerState,
    ability: SpellAbility,
    target: Combatant,
    positions: Optional[Dict[str, GridPosition]] = None,
    living_ids: Optional[Set[str]] = None,
    extra_modifiers: Sequence[CombatModifier] = (),
    rng=None,
) -> RollOutcome:
    """Resolve a melee or ranged spell attack (casters are always proficient)."""
    attack_type = "melee" if ability.attack_type == "melee" else "ranged"
    mode, mods = attack_roll_mode(player, target, attack_type, positions, living_ids, extra_modifiers)

    ability_mod, ability_label = _spellcasting_modifier(player, None)
    prof_bonus = calculate_proficiency_bonus(player.level)
    total_mod = ability_mod + prof_bonus

    d20 = _roll_attack(mode, total_mod, rng)
    hit = _is_hit(d20, target.armor_class)

    damage = None
    damage_expr = ability.damage_roll_at(player.level)
    if hit and damage_expr:
        rolled = roll_damage(damage_expr, critical=d20.natural_20, rng=rng)
        breakdown = DamageBreakdown(
            label=ability.name,
            dice=rolled.dice_notation,
            rolls=rolled.rolls,
            flat_bonus=rolled.modifier,
            subtotal=rolled.total,
            damage_type=ability.damage_type,
        )
        damage = DamageSummary(breakdown=[breakdown], total_damage=rolled.total, is_crit=d20.natural_20)

    return RollOutcome(
        check_type=f"{ability.name} Spell Attack",
        success=hit,
        components=f"{ability_label} {format_modifier(ability_mod)}, Prof {format_modifier(prof_bonus)} = {format_modifier(total_mod)}",
        die_result=d20.base_roll,
        all_rolls=list(d20.rolls),
        total_modifier=total_mod,
        total=d20.total,
        dc_or_ac=str(target.armor_class),
        notes=_attack_notes(d20, hit, mode, mods, "Spell attack"),
        roll_mode=mode,
        critical_hit=d20.natural_20,
        critical_miss=d20.natural_1,
        damage=damage,
    )


def resolve_spell_save(
    player: PlayerState,
    ability: SpellAbility,
    target: Combatant,
    rng=None,
) -> RollOutcome:
    """
    Resolve a saving-throw spell against one target.

    The target rolls d20 + its save bonus against the caster's DC. A failed
    save takes full damage, a successful one takes half (floored). There is
    no critical hit on a save.
    """
    ability_mod, ability_label = _spellcasting_modifier(player, ability.save_dc_ability)
    prof_bonus = calculate_proficiency_bonus(player.level)
    dc = calculate_spell_save_dc(ability_mod, prof_bonus)
    save_name = ability.save_ability or DEFAULT_SAVE_ABILITY

    save = roll_saving_throw(target.saving_throw_bonus, rng=rng)
    saved = save.total >= dc

    damage = None
    damage_expr = ability.damage_roll_at(player.level)
    if damage_expr:
        rolled = roll_dice(damage_expr, rng=rng)
        taken = rolled.total // 2 if saved else rolled.total
        breakdown = DamageBreakdown(
            label=ability.name if not saved else f"{ability.name} (half)",
            dice=damage_expr,
            rolls=rolled.rolls,
            flat_bonus=rolled.bonus,
            subtotal=taken,
            damage_type=ability.damage_type,
        )
        damage = DamageSummary(breakdown=[breakdown], total_damage=taken)

    verdict = "Target saves" if saved else "Target fails save"
    bonus = target.saving_throw_bonus
    return RollOutcome(
        check_type=f"{ability.name} ({save_name} save)",
        success=not saved,
        components=f"DC: 8 + {ability_label} {format_modifier(ability_mod)} + Prof {format_modifier(prof_bonus)} = {dc}",
        die_result=save.base_roll,
        all_rolls=list(save.rolls),
        total_modifier=bonus,
        total=save.total,
        dc_or_ac=f"DC {dc}",
        notes=f"{verdict} ({save_name} save: {save.base_roll}{format_modifier(bonus)}={save.total} vs DC {dc})",
        damage=damage,
    )


def resolve_auto_hit(player: PlayerState, ability: SpellAbility, target: Combatant, rng=None) -> RollOutcome:
    """Spells that hit without a roll, like Magic Missile."""
    damage = None
    damage_expr = ability.damage_roll_at(player.level)
    if damage_expr:
        rolled = roll_dice(damage_expr, rng=rng)
        damage = DamageSummary(
            breakdown=[DamageBreakdown(
                label=ability.name,
                dice=damage_expr,
                rolls=rolled.rolls,
                flat_bonus=rolled.bonus,
                subtotal=rolled.total,
                damage_type=ability.damage_type,
            )],
            total_damage=rolled.total,
        )
    return RollOutcome(
        check_type=ability.name,
        success=True,
        dc_or_ac=str(target.armor_class),
        notes=f"{ability.name} hits automatically",
        no_check=True,
        damage=damage,
    )


# =============================================================================
# NPC ATTACKS
# =============================================================================

def resolve_npc_attack(
    npc: NPC,
    target: Combatant,
    positions: Optional[Dict[str, GridPosition]] = None,
    living_ids: Optional[Set[str]] = None,
    rng=None,
) -> RollOutcome:
    """
    Resolve an NPC's melee attack using its fixed profile.

    Damage is the damage dice plus the NPC's damage bonus, never below 0.
    """
    mode, mods = attack_roll_mode(npc, target, "melee", positions, living_ids)
    d20 = _roll_attack(mode, npc.attack_bonus, rng)
    hit = _is_hit(d20, target.armor_class)

    damage = None
    if hit:
        rolled = roll_damage(npc.damage_dice, modifier=npc.damage_bonus, critical=d20.natural_20, rng=rng)
        total = max(0, rolled.total)
        damage = DamageSummary(
            breakdown=[DamageBreakdown(
                label=npc.name,
                dice=rolled.dice_notation,
                rolls=rolled.rolls,
                flat_bonus=rolled.modifier,
                subtotal=total,
                damage_type="weapon",
            )],
            total_damage=total,
            is_crit=d20.natural_20,
        )

    return RollOutcome(
        check_type=f"{npc.name} Attack",
        success=hit,
        components=f"Attack {format_modifier(npc.attack_bonus)}",
        die_result=d20.base_roll,
        all_rolls=list(d20.rolls),
        total_modifier=npc.attack_bonus,
        total=d20.total,
        dc_or_ac=str(target.armor_class),
        notes=_attack_notes(d20, hit, mode, mods, "Attack"),
        roll_mode=mode,
        critical_hit=d20.natural_20,
        critical_miss=d20.natural_1,
        damage=damage,
    )


# =============================================================================
# AREA EFFECTS
# =============================================================================

def resolve_aoe_action(
    player: PlayerState,
    ability: SpellAbility,
    targets: Sequence[Combatant],
    affected_cells: List[GridPosition],
    rng=None,
) -> AOEResult:
    """
    Resolve an area spell.

    Damage is rolled once and shared by value. Each target then rolls its
    own save against the same DC: a failed save takes the full total, a
    successful one takes half of it, floored.
    """
    ability_mod, _ = _spellcasting_modifier(player, ability.save_dc_ability)
    dc = calculate_spell_save_dc(ability_mod, calculate_proficiency_bonus(player.level))
    damage_expr = ability.damage_roll_at(player.level) or DEFAULT_AOE_DAMAGE
    rolled = roll_dice(damage_expr, rng=rng)
    half = rolled.total // 2

    results = []
    for target in targets:
        save = roll_saving_throw(target.saving_throw_bonus, rng=rng)
        saved = save.total >= dc
        results.append(AOETargetResult(
            target_id=target.id,
            target_name=target.name,
            saved=saved,
            save_roll=save.base_roll,
            save_total=save.total,
            damage_taken=half if saved else rolled.total,
        ))
    logger.debug("%s: rolled %d, DC %d, %d targets", ability.name, rolled.total, dc, len(results))

    return AOEResult(
        check_type=f"{ability.name} ({ability.save_ability or DEFAULT_SAVE_ABILITY} save)",
        spell_dc=dc,
        damage_roll=damage_expr,
        damage_rolls=rolled.rolls,
        total_rolled=rolled.total,
        damage_type=ability.damage_type,
        targets=results,
        affected_cells=affected_cells,
    )


# =============================================================================
# DISPATCH
# =============================================================================

def resolve_player_action(
    player: PlayerState,
    ability: Optional[Ability],
    target: Optional[Combatant],
    positions: Optional[Dict[str, GridPosition]] = None,
    living_ids: Optional[Set[str]] = None,
    extra_modifiers: Sequence[CombatModifier] = (),
    rng=None,
) -> RollOutcome:
    """
    Route a single-target player action to the right resolver.

    Area spells are resolved by ``resolve_aoe_action``; here they only
    acknowledge. Non-targeted actions succeed without a roll.
    """
    if ability is None:
        return impossible("Ability not found")

    if isinstance(ability, SpellAbility) and ability.aoe is not None:
        return no_check(ability.name, f"{ability.name}: area effect resolved separately")

    if not ability.requires_target:
        return no_check(ability.name, f"{ability.name} action taken")

    if target is None:
        return impossible("No target specified for targeted ability")

    if isinstance(ability, WeaponAbility):
        if not ability.damage_roll:
            return impossible(f'Weapon "{ability.name}" has no damage data')
        return resolve_weapon_attack(player, ability, target, positions, living_ids, extra_modifiers, rng)

    if isinstance(ability, SpellAbility):
        if ability.attack_type == "save":
            return resolve_spell_save(player, ability, target, rng)
        if ability.attack_type == "auto":
            return resolve_auto_hit(player, ability, target, rng)
        if ability.attack_type == "none":
            return no_check(ability.name, f"{ability.name} cast")
        return resolve_spell_attack(player, ability, target, positions, living_ids, extra_modifiers, rng)

    if isinstance(ability, ActionAbility):
        return no_check(ability.name, f"{ability.name} used")

    return impossible(f"Unsupported ability: {ability.name}")
