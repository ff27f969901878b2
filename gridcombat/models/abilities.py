"""
Player abilities and their structured range data.

Abilities are a closed set of variants (weapon, cantrip, spell, racial, action).
The resolver dispatches on the variant class. The ``kind`` key only exists
in the serialized form.

Ranges are structured from the start. Free-text SRD range strings are
converted once by ``gridcombat.core.ingest``.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

DEFAULT_MELEE_REACH = 5


# =============================================================================
# RANGES
# =============================================================================

@dataclass(frozen=True)
class SelfRange:
    """Affects the user only; always in range."""


@dataclass(frozen=True)
class TouchRange:
    reach: int = DEFAULT_MELEE_REACH


@dataclass(frozen=True)
class MeleeRange:
    reach: int = DEFAULT_MELEE_REACH


@dataclass(frozen=True)
class RangedRange:
    short_range: Optional[int] = None  # 30 ft when unknown
    long_range: Optional[int] = None   # Same as short range when unknown


@dataclass(frozen=True)
class BothRange:
    """Thrown weapons: melee reach first, then short/long throwing range."""
    reach: int = DEFAULT_MELEE_REACH
    short_range: Optional[int] = None  # 20 ft when unknown
    long_range: Optional[int] = None   # 60 ft when unknown


AbilityRange = Union[SelfRange, TouchRange, MeleeRange, RangedRange, BothRange]

_RANGE_TYPES = {
    "self": SelfRange,
    "touch": TouchRange,
    "melee": MeleeRange,
    "ranged": RangedRange,
    "both": BothRange,
}


def range_to_dict(range_: Optional[AbilityRange]) -> Optional[Dict[str, Any]]:
    if range_ is None:
        return None
    for name, cls in _RANGE_TYPES.items():
        if type(range_) is cls:
            data = {"type": name}
            data.update({k: v for k, v in vars(range_).items() if v is not None})
            return data
    raise TypeError(f"Unknown range: {range_!r}")


def range_from_dict(data: Optional[Dict[str, Any]]) -> Optional[AbilityRange]:
    if not data:
        return None
    values = dict(data)
    cls = _RANGE_TYPES[values.pop("type")]
    return cls(**values)


# =============================================================================
# AREA DATA
# =============================================================================

AOE_SHAPES = ("sphere", "cube", "cone", "line", "cylinder")


@dataclass(frozen=True)
class AOEData:
    """
    Static area description of an ability.

    ``origin`` is "self" when the area starts at the caster (Burning Hands)
    and "target" when the caster picks a point (Fireball).
    """
    shape: str
    size: int
    origin: str = "target"
    width: Optional[int] = None  # Lines only

    def to_dict(self) -> Dict[str, Any]:
        data = {"shape": self.shape, "size": self.size, "origin": self.origin}
        if self.width is not None:
            data["width"] = self.width
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AOEData":
        return cls(
            shape=data["shape"],
            size=int(data["size"]),
            origin=data.get("origin", "target"),
            width=data.get("width"),
        )


# =============================================================================
# ABILITIES
# =============================================================================

@dataclass
class Ability:
    """Fields shared by every ability variant."""
    id: str
    name: str
    requires_target: bool = True
    range: Optional[AbilityRange] = None  # None means melee at 5 ft

    kind = "ability"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "kind": self.kind,
            "id": self.id,
            "name": self.name,
            "requires_target": self.requires_target,
            "range": range_to_dict(self.range),
        }
        for key, value in vars(self).items():
            if key in data:
                continue
            data[key] = value.to_dict() if isinstance(value, AOEData) else value
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Ability":
        values = dict(data)
        cls = _ABILITY_KINDS[values.pop("kind")]
        values["range"] = range_from_dict(values.get("range"))
        if values.get("aoe"):
            values["aoe"] = AOEData.from_dict(values["aoe"])
        if values.get("racial_scaling"):
            values["racial_scaling"] = {int(k): v for k, v in values["racial_scaling"].items()}
        return cls(**values)


@dataclass
class WeaponAbility(Ability):
    damage_roll: Optional[str] = None
    damage_type: str = "piercing"
    weapon_stat: str = "str"  # str, dex, finesse or none
    weapon_bonus: int = 0

    kind = "weapon"


@dataclass
class SpellAbility(Ability):
    attack_type: str = "ranged"  # ranged, melee, save, auto or none
    damage_roll: Optional[str] = None
    damage_type: str = "magical"
    save_ability: Optional[str] = None      # Ability the target saves with
    save_dc_ability: Optional[str] = None   # Overrides the caster's spellcasting ability
    aoe: Optional[AOEData] = None
    spell_level: int = 1

    kind = "spell"

    def damage_roll_at(self, level: int) -> Optional[str]:
        return self.damage_roll


@dataclass
class CantripAbility(SpellAbility):
    spell_level: int = 0

    kind = "cantrip"


@dataclass
class RacialAbility(SpellAbility):
    """
    Racial traits such as Breath Weapon.

    ``racial_scaling`` maps character level to a damage expression; the
    highest threshold at or below the character's level wins.
    """
    attack_type: str = "save"
    spell_level: int = 0
    racial_scaling: Optional[Dict[int, str]] = None

    kind = "racial"

    def damage_roll_at(self, level: int) -> Optional[str]:
        reached = [t for t in (self.racial_scaling or {}) if t <= level]
        if not reached:
            return self.damage_roll
        return self.racial_scaling[max(reached)]


@dataclass
class ActionAbility(Ability):
    """Non-attack actions such as Dodge, Dash or Disengage."""
    requires_target: bool = False
    description: str = ""

    kind = "action"


_ABILITY_KINDS = {
    "weapon": WeaponAbility,
    "spell": SpellAbility,
    "cantrip": CantripAbility,
    "racial": RacialAbility,
    "action": ActionAbility,
}


def abilities_from_dicts(items: List[Dict[str, Any]]) -> List[Ability]:
    return [Ability.from_dict(item) for item in items]


def find_ability(abilities: List[Ability], ability_id: str) -> Optional[Ability]:
    for ability in abilities:
        if ability.id == ability_id:
            return ability
    return None
