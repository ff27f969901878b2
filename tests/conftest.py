"""
Grid Combat Engine - Test Configuration and Fixtures
Shared test utilities and fixtures for pytest.
"""
import random
from typing import Dict, List, Optional

import pytest

from gridcombat.core.combat_engine import CombatEngine, create_encounter
from gridcombat.core.geometry import GridPosition
from gridcombat.models.abilities import (
    ActionAbility,
    AOEData,
    CantripAbility,
    MeleeRange,
    RangedRange,
    SelfRange,
    SpellAbility,
    WeaponAbility,
)
from gridcombat.models.combatants import NPC, PlayerState


# ==================== Random Sources ====================

class ScriptedRandom(random.Random):
    """
    Random source that hands out queued ``randint`` values first.

    Once the queue is empty it falls back to a seeded generator, so a test
    only needs to script the rolls it asserts on.
    """

    def __init__(self, rolls=(), seed: int = 0):
        super().__init__(seed)
        self.rolls: List[int] = list(rolls)
        self.choice_weights: List[List[int]] = []

    def queue(self, *values: int) -> "ScriptedRandom":
        self.rolls.extend(values)
        return self

    def randint(self, a: int, b: int) -> int:
        if self.rolls:
            value = self.rolls.pop(0)
            assert a <= value <= b, f"scripted roll {value} outside {a}..{b}"
            return value
        return super().randint(a, b)

    def choices(self, population, weights=None, *, cum_weights=None, k=1):
        self.choice_weights.append(list(weights or []))
        return super().choices(population, weights=weights, cum_weights=cum_weights, k=k)


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


# ==================== Ability Fixtures ====================

@pytest.fixture
def longsword() -> WeaponAbility:
    return WeaponAbility(
        id="longsword",
        name="Longsword",
        range=MeleeRange(),
        damage_roll="1d8",
        damage_type="slashing",
        weapon_stat="str",
    )


@pytest.fixture
def longbow() -> WeaponAbility:
    return WeaponAbility(
        id="longbow",
        name="Longbow",
        range=RangedRange(short_range=150, long_range=600),
        damage_roll="1d8",
        weapon_stat="dex",
    )


@pytest.fixture
def fire_bolt() -> CantripAbility:
    return CantripAbility(
        id="fire-bolt",
        name="Fire Bolt",
        range=RangedRange(short_range=120),
        attack_type="ranged",
        damage_roll="1d10",
        damage_type="fire",
    )


@pytest.fixture
def sacred_flame() -> CantripAbility:
    return CantripAbility(
        id="sacred-flame",
        name="Sacred Flame",
        range=RangedRange(short_range=60),
        attack_type="save",
        save_ability="dexterity",
        damage_roll="1d8",
        damage_type="radiant",
    )


@pytest.fixture
def burning_hands() -> SpellAbility:
    return SpellAbility(
        id="burning-hands",
        name="Burning Hands",
        requires_target=False,
        range=SelfRange(),
        attack_type="save",
        save_ability="dexterity",
        damage_roll="3d6",
        damage_type="fire",
        aoe=AOEData(shape="cone", size=15, origin="self"),
    )


@pytest.fixture
def fireball() -> SpellAbility:
    return SpellAbility(
        id="fireball",
        name="Fireball",
        requires_target=False,
        range=RangedRange(short_range=150),
        attack_type="save",
        save_ability="dexterity",
        damage_roll="8d6",
        damage_type="fire",
        aoe=AOEData(shape="sphere", size=20, origin="target"),
        spell_level=3,
    )


# ==================== Combatant Fixtures ====================

@pytest.fixture
def player(longsword, longbow, fire_bolt, sacred_flame, burning_hands, fireball) -> PlayerState:
    """Level 1 fighter-mage: +6 with a longsword, spell save DC 13."""
    return PlayerState(
        id="player",
        name="Aria",
        current_hp=30,
        max_hp=30,
        armor_class=16,
        level=1,
        stats={
            "strength": 18,
            "dexterity": 14,
            "constitution": 14,
            "intelligence": 16,
            "wisdom": 10,
            "charisma": 8,
        },
        spellcasting_ability="intelligence",
        weapon_proficiencies=["simple weapons", "martial weapons"],
        abilities=[
            longsword,
            longbow,
            fire_bolt,
            sacred_flame,
            burning_hands,
            fireball,
            ActionAbility(id="dodge", name="Dodge", description="Attacks against you have disadvantage"),
        ],
    )


def make_goblin(npc_id: str = "goblin-1", **overrides) -> NPC:
    values = dict(
        id=npc_id,
        name="Goblin",
        current_hp=7,
        max_hp=7,
        armor_class=15,
        attack_bonus=4,
        damage_dice="1d6",
        damage_bonus=2,
        xp_value=50,
    )
    values.update(overrides)
    return NPC(**values)


@pytest.fixture
def goblin() -> NPC:
    return make_goblin()


@pytest.fixture
def make_engine(player):
    """Build an engine over a fresh encounter with explicit positions."""

    def _make(
        npcs: List[NPC],
        positions: Dict[str, tuple],
        rng: Optional[random.Random] = None,
        grid_size: int = 20,
        tile_data: Optional[List[int]] = None,
        combatant: Optional[PlayerState] = None,
    ) -> CombatEngine:
        state = create_encounter(
            combatant or player,
            npcs,
            grid_size=grid_size,
            positions={cid: GridPosition(*cell) for cid, cell in positions.items()},
            tile_data=tile_data,
        )
        return CombatEngine(state, rng=rng or ScriptedRandom())

    return _make
