"""Combatant models: the player and NPCs."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from gridcombat.models.abilities import Ability, abilities_from_dicts, find_ability

PLAYER_ID = "player"

ABILITY_NAMES = (
    "strength", "dexterity", "constitution",
    "intelligence", "wisdom", "charisma",
)

# Challenge rating -> XP value
CR_TO_XP: Dict[str, int] = {
    "0": 10, "0.125": 25, "0.25": 50, "0.5": 100,
    "1": 200, "2": 450, "3": 700, "4": 1100, "5": 1800,
    "6": 2300, "7": 2900, "8": 3900, "9": 5000, "10": 5900,
    "11": 7200, "12": 8400, "13": 10000, "14": 11500, "15": 13000,
    "16": 15000, "17": 18000, "18": 20000, "19": 22000, "20": 25000,
    "21": 33000, "22": 41000, "23": 50000, "24": 62000, "25": 75000,
    "26": 90000, "27": 105000, "28": 120000, "29": 135000, "30": 155000,
}

_CR_FRACTIONS = {"1/8": "0.125", "1/4": "0.25", "1/2": "0.5"}


def xp_for_challenge_rating(cr: Any) -> int:
    """XP for a challenge rating given as 0.25, "1/4" or "4". Unknown ratings give 0."""
    key = str(cr).strip()
    key = _CR_FRACTIONS.get(key, key)
    try:
        number = float(key)
    except ValueError:
        return 0
    key = str(int(number)) if number.is_integer() else str(number)
    return CR_TO_XP.get(key, 0)


class Disposition(str, Enum):
    """NPC allegiance."""
    HOSTILE = "hostile"
    NEUTRAL = "neutral"
    FRIENDLY = "friendly"


@dataclass
class Combatant:
    """Fields shared by the player and NPCs."""
    id: str
    name: str
    current_hp: int
    max_hp: int
    armor_class: int
    speed: int = 30
    conditions: List[str] = field(default_factory=list)
    saving_throw_bonus: int = 0

    @property
    def is_alive(self) -> bool:
        return self.current_hp > 0

    def has_condition(self, condition: str) -> bool:
        wanted = condition.lower()
        return any(c.lower() == wanted for c in self.conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "current_hp": self.current_hp,
            "max_hp": self.max_hp,
            "armor_class": self.armor_class,
            "speed": self.speed,
            "conditions": list(self.conditions),
            "saving_throw_bonus": self.saving_throw_bonus,
        }


@dataclass
class PlayerState(Combatant):
    """The single player character taking part in an encounter."""
    level: int = 1
    stats: Dict[str, int] = field(default_factory=lambda: {name: 10 for name in ABILITY_NAMES})
    spellcasting_ability: Optional[str] = None
    weapon_proficiencies: List[str] = field(default_factory=list)
    abilities: List[Ability] = field(default_factory=list)
    experience: int = 0

    def get_ability(self, ability_id: str) -> Optional[Ability]:
        return find_ability(self.abilities, ability_id)

    def ability_score(self, ability: str) -> int:
        return self.stats.get(ability.lower(), 10)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "level": self.level,
            "stats": dict(self.stats),
            "spellcasting_ability": self.spellcasting_ability,
            "weapon_proficiencies": list(self.weapon_proficiencies),
            "abilities": [a.to_dict() for a in self.abilities],
            "experience": self.experience,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerState":
        values = dict(data)
        values.setdefault("id", PLAYER_ID)
        values["abilities"] = abilities_from_dicts(values.get("abilities", []))
        return cls(**values)


@dataclass
class NPC(Combatant):
    """A non-player combatant with a fixed attack profile."""
    disposition: Disposition = Disposition.HOSTILE
    attack_bonus: int = 0
    damage_dice: str = "1d6"
    damage_bonus: int = 0
    xp_value: int = 0
    reach: int = 5
    notes: str = ""

    def __post_init__(self):
        self.disposition = Disposition(self.disposition)

    @property
    def is_hostile(self) -> bool:
        return self.disposition == Disposition.HOSTILE

    @property
    def is_friendly(self) -> bool:
        return self.disposition == Disposition.FRIENDLY

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "disposition": self.disposition.value,
            "attack_bonus": self.attack_bonus,
            "damage_dice": self.damage_dice,
            "damage_bonus": self.damage_bonus,
            "xp_value": self.xp_value,
            "reach": self.reach,
            "notes": self.notes,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NPC":
        values = dict(data)
        cr = values.pop("challenge_rating", None)
        if cr is not None and not values.get("xp_value"):
            values["xp_value"] = xp_for_challenge_rating(cr)
        return cls(**values)
