"""
One-time conversion of SRD reference text into structured combat data.

SRD entries describe ranges and areas as free text ("Self (15-foot cone)",
"ammunition (range 80/320)"). These parsers run once when abilities and
monsters are loaded; the resolution path only ever sees the structured
values they produce.
"""
import logging
import re
from typing import Any, Dict, Iterable, Optional

from gridcombat.core.dice import parse_dice_notation
from gridcombat.models.abilities import (
    DEFAULT_MELEE_REACH,
    AbilityRange,
    AOEData,
    BothRange,
    CantripAbility,
    MeleeRange,
    RangedRange,
    SelfRange,
    SpellAbility,
    TouchRange,
    WeaponAbility,
)
from gridcombat.models.combatants import NPC, Disposition, xp_for_challenge_rating

logger = logging.getLogger(__name__)

REACH_WEAPON_FEET = 10
FEET_PER_MILE = 5280
DEFAULT_LINE_WIDTH = 5

_WEAPON_RANGE_RE = re.compile(r"(thrown|ammunition)\s*\(range\s+(\d+)/(\d+)\)")
_FEET_RE = re.compile(r"^(\d+)\s*(?:feet|foot|ft)")
_MILE_RE = re.compile(r"^(\d+)\s*mile")
_AOE_RE = re.compile(r"(\d+)-foot(?:-radius)?\s+(sphere|cube|cone|line|cylinder)")


# =============================================================================
# RANGES
# =============================================================================

def parse_weapon_range(category: str, properties: Iterable[str]) -> AbilityRange:
    """
    Build a weapon's range from its SRD category and property list.

    Args:
        category: e.g. "Simple Melee Weapons", "Martial Ranged Weapons"
        properties: e.g. ["thrown (range 20/60)", "light"], ["reach"]

    Returns:
        BothRange for thrown melee weapons, MeleeRange or RangedRange otherwise
    """
    lower_category = (category or "").lower()
    is_melee = "melee" in lower_category
    is_ranged = "ranged" in lower_category

    has_reach = False
    has_thrown = False
    short_range = None
    long_range = None
    for prop in properties or ():
        lower = prop.lower().strip()
        if lower == "reach":
            has_reach = True
        match = _WEAPON_RANGE_RE.search(lower)
        if match:
            short_range = int(match.group(2))
            long_range = int(match.group(3))
            if match.group(1) == "thrown":
                has_thrown = True

    reach = REACH_WEAPON_FEET if has_reach else DEFAULT_MELEE_REACH
    if is_melee and has_thrown:
        return BothRange(reach=reach, short_range=short_range, long_range=long_range)
    if is_melee and not is_ranged:
        return MeleeRange(reach=reach)
    if is_ranged:
        return RangedRange(short_range=short_range, long_range=long_range)
    return MeleeRange(reach=DEFAULT_MELEE_REACH)


def parse_spell_range(range_text: str) -> AbilityRange:
    """Parse "30 feet", "Touch", "Self (15-foot cone)", "1 mile" and the like."""
    lower = (range_text or "").lower().strip()
    if lower == "self" or lower.startswith("self "):
        return SelfRange()
    if lower == "touch":
        return TouchRange(reach=DEFAULT_MELEE_REACH)

    match = _FEET_RE.match(lower)
    if match:
        return RangedRange(short_range=int(match.group(1)))
    match = _MILE_RE.match(lower)
    if match:
        return RangedRange(short_range=int(match.group(1)) * FEET_PER_MILE)

    # Sight, unlimited and similar
    return RangedRange()


# =============================================================================
# AREAS
# =============================================================================

def _aoe_from_match(match: "re.Match", origin: str) -> AOEData:
    shape = match.group(2)
    return AOEData(
        shape=shape,
        size=int(match.group(1)),
        origin=origin,
        width=DEFAULT_LINE_WIDTH if shape == "line" else None,
    )


def parse_aoe_from_range(range_text: str) -> Optional[AOEData]:
    """
    Area data embedded in a range string.

    "Self (15-foot cone)" starts at the caster; "150 feet (20-foot sphere)"
    is centered on a chosen point. Plain ranges return None.
    """
    lower = (range_text or "").lower().strip()
    paren = lower.find("(")
    if paren < 0:
        return None
    match = _AOE_RE.search(lower[paren:])
    if not match:
        return None
    origin = "self" if lower.startswith("self") else "target"
    return _aoe_from_match(match, origin)


def parse_aoe_from_description(description: str) -> Optional[AOEData]:
    """Area data found in spell prose, e.g. "a 20-foot-radius sphere of flame"."""
    match = _AOE_RE.search((description or "").lower())
    if not match:
        return None
    return _aoe_from_match(match, "target")


# =============================================================================
# RECORDS
# =============================================================================

def weapon_from_srd(data: Dict[str, Any]) -> WeaponAbility:
    """Build a weapon ability from an SRD equipment record."""
    properties = [
        p["name"] if isinstance(p, dict) else p
        for p in data.get("properties", [])
    ]
    lower_props = {p.lower() for p in properties}
    if "finesse" in lower_props:
        weapon_stat = "finesse"
    elif "ranged" in (data.get("category") or "").lower():
        weapon_stat = "dex"
    else:
        weapon_stat = "str"

    return WeaponAbility(
        id=data.get("id") or data.get("slug") or _slugify(data["name"]),
        name=data["name"],
        range=parse_weapon_range(data.get("category", ""), properties),
        damage_roll=data.get("damage_dice"),
        damage_type=data.get("damage_type", "piercing"),
        weapon_stat=weapon_stat,
        weapon_bonus=int(data.get("weapon_bonus", 0)),
    )


def spell_from_srd(data: Dict[str, Any]) -> SpellAbility:
    """
    Build a spell ability from an SRD spell record.

    The area comes from the range string first, then from the description.
    Cantrips (level 0) become CantripAbility.
    """
    range_text = data.get("range", "")
    aoe = parse_aoe_from_range(range_text) or parse_aoe_from_description(data.get("description", ""))
    level = int(data.get("level", 1))
    attack_type = data.get("attack_type")
    if attack_type is None:
        attack_type = "save" if data.get("save_ability") else "ranged"

    cls = CantripAbility if level == 0 else SpellAbility
    spell = cls(
        id=data.get("id") or data.get("slug") or _slugify(data["name"]),
        name=data["name"],
        requires_target=aoe is None and attack_type != "none",
        range=parse_spell_range(range_text),
        attack_type=attack_type,
        damage_roll=data.get("damage_dice"),
        damage_type=data.get("damage_type", "magical"),
        save_ability=data.get("save_ability"),
        aoe=aoe,
        spell_level=level,
    )
    logger.debug("Ingested spell %s: range=%s aoe=%s", spell.name, spell.range, spell.aoe)
    return spell


def npc_from_srd(data: Dict[str, Any], npc_id: Optional[str] = None) -> NPC:
    """
    Build an NPC from an SRD monster record.

    ``damage`` may carry a flat part ("1d6+2"); it is split into
    ``damage_dice`` and ``damage_bonus``.

    Raises:
        ValueError: If the damage notation is invalid
    """
    dice, bonus = parse_dice_notation(data.get("damage", "1d4"))
    xp = data.get("xp_value")
    if xp is None:
        xp = xp_for_challenge_rating(data.get("challenge_rating", 0))

    return NPC(
        id=npc_id or data.get("id") or _slugify(data["name"]),
        name=data["name"],
        current_hp=int(data["hit_points"]),
        max_hp=int(data["hit_points"]),
        armor_class=int(data["armor_class"]),
        speed=int(data.get("speed", 30)),
        saving_throw_bonus=int(data.get("saving_throw_bonus", 0)),
        disposition=Disposition(data.get("disposition", Disposition.HOSTILE.value)),
        attack_bonus=int(data.get("attack_bonus", 0)),
        damage_dice=dice,
        damage_bonus=bonus + int(data.get("damage_bonus", 0)),
        xp_value=int(xp),
        reach=int(data.get("reach", DEFAULT_MELEE_REACH)),
        notes=data.get("notes", ""),
    )


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
