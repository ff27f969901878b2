"""Tests for attack and damage resolution."""
import pytest

from gridcombat.core.condition_effects import CombatModifier, RollMode
from gridcombat.core.geometry import GridPosition
from gridcombat.core.rules_engine import (
    calculate_ability_modifier,
    calculate_proficiency_bonus,
    calculate_spell_save_dc,
    is_weapon_proficient,
    resolve_aoe_action,
    resolve_npc_attack,
    resolve_player_action,
    resolve_spell_attack,
    resolve_spell_save,
    resolve_weapon_attack,
)
from gridcombat.models.abilities import AOEData, BothRange, RacialAbility, SpellAbility, WeaponAbility
from tests.conftest import ScriptedRandom, make_goblin


class TestCoreMath:

    @pytest.mark.parametrize("score,expected", [(10, 0), (14, 2), (8, -1), (20, 5), (1, -5)])
    def test_ability_modifier(self, score, expected):
        assert calculate_ability_modifier(score) == expected

    @pytest.mark.parametrize("level,expected", [(1, 2), (4, 2), (5, 3), (9, 4), (13, 5), (17, 6), (20, 6)])
    def test_proficiency_bonus(self, level, expected):
        assert calculate_proficiency_bonus(level) == expected

    def test_spell_save_dc(self):
        assert calculate_spell_save_dc(3, 2) == 13

    def test_weapon_proficiency(self):
        assert is_weapon_proficient("Longsword", ["martial weapons"]) is True
        assert is_weapon_proficient("Dagger", ["simple weapons"]) is True
        assert is_weapon_proficient("Longsword", ["longswords"]) is True
        assert is_weapon_proficient("Longbow", ["simple weapons"]) is False


class TestWeaponAttack:
    """Player weapon attacks."""

    def test_plus_six_rolling_fifteen_hits_goblin(self, player, longsword, goblin):
        """+6 to hit with a 15 on the die beats AC 15."""
        outcome = resolve_weapon_attack(player, longsword, goblin, rng=ScriptedRandom([15, 5]))

        assert outcome.total_modifier == 6
        assert outcome.total == 21
        assert outcome.success is True
        assert outcome.dc_or_ac == "15"
        assert outcome.total_damage == 9  # 5 + STR 4
        assert outcome.damage.breakdown[0].damage_type == "slashing"

    def test_flat_part_in_weapon_dice(self, player, goblin):
        flametongue = WeaponAbility(id="flametongue", name="Flametongue", damage_roll="1d8+1", damage_type="slashing")

        outcome = resolve_weapon_attack(player, flametongue, goblin, rng=ScriptedRandom([15, 3]))

        assert outcome.total_damage == 8  # 3 + 1 + STR 4
        assert outcome.damage.breakdown[0].flat_bonus == 5

    def test_miss_rolls_no_damage(self, player, longsword, goblin):
        outcome = resolve_weapon_attack(player, longsword, goblin, rng=ScriptedRandom([8]))

        assert outcome.success is False
        assert outcome.damage is None
        assert outcome.total_damage == 0

    def test_natural_one_misses_any_ac(self, player, longsword):
        target = make_goblin(armor_class=1)

        outcome = resolve_weapon_attack(player, longsword, target, rng=ScriptedRandom([1]))

        assert outcome.success is False
        assert outcome.critical_miss is True
        assert "Natural 1" in outcome.notes

    def test_natural_twenty_hits_any_ac_and_doubles_dice(self, player, longsword):
        target = make_goblin(armor_class=30)

        outcome = resolve_weapon_attack(player, longsword, target, rng=ScriptedRandom([20, 3, 4]))

        assert outcome.success is True
        assert outcome.critical_hit is True
        assert outcome.damage.breakdown[0].dice == "2d8"
        assert outcome.total_damage == 11  # 3 + 4 + STR 4, modifier not doubled

    def test_not_proficient(self, player, longsword, goblin):
        player.weapon_proficiencies = []

        outcome = resolve_weapon_attack(player, longsword, goblin, rng=ScriptedRandom([10, 1]))

        assert outcome.total_modifier == 4
        assert outcome.success is False

    def test_finesse_uses_better_stat(self, player, goblin):
        rapier = WeaponAbility(id="rapier", name="Rapier", damage_roll="1d8", weapon_stat="finesse")
        player.stats["dexterity"] = 20

        outcome = resolve_weapon_attack(player, rapier, goblin, rng=ScriptedRandom([10, 1]))

        assert outcome.total_modifier == 7  # DEX 5 + prof 2

    def test_long_range_disadvantage(self, player, longbow, goblin):
        """Extra long-range tag forces two dice and the lower one."""
        extra = [CombatModifier(RollMode.DISADVANTAGE, "long range")]

        outcome = resolve_weapon_attack(player, longbow, goblin, extra_modifiers=extra,
                                        rng=ScriptedRandom([18, 6]))

        assert outcome.roll_mode == RollMode.DISADVANTAGE
        assert outcome.die_result == 6
        assert outcome.success is False

    def test_ranged_with_adjacent_enemy(self, player, longbow, goblin):
        positions = {"player": GridPosition(10, 10), goblin.id: GridPosition(10, 11)}

        outcome = resolve_weapon_attack(player, longbow, goblin, positions=positions,
                                        rng=ScriptedRandom([15, 3]))

        assert outcome.roll_mode == RollMode.DISADVANTAGE
        assert outcome.die_result == 3

    def test_thrown_beyond_reach_is_ranged(self, player, goblin):
        """A dagger thrown at a distant goblin suffers from a hostile at the elbow."""
        dagger = WeaponAbility(id="dagger", name="Dagger", range=BothRange(short_range=20, long_range=60),
                               damage_roll="1d4", weapon_stat="finesse")
        lurker = make_goblin("goblin-2")
        positions = {"player": GridPosition(10, 10), goblin.id: GridPosition(10, 13),
                     lurker.id: GridPosition(11, 10)}

        outcome = resolve_weapon_attack(player, dagger, goblin, positions=positions,
                                        rng=ScriptedRandom([15, 3]))

        assert outcome.roll_mode == RollMode.DISADVANTAGE
        assert outcome.die_result == 3

    def test_thrown_within_reach_is_melee(self, player, goblin):
        dagger = WeaponAbility(id="dagger", name="Dagger", range=BothRange(short_range=20, long_range=60),
                               damage_roll="1d4", weapon_stat="finesse")
        positions = {"player": GridPosition(10, 10), goblin.id: GridPosition(10, 11)}

        outcome = resolve_weapon_attack(player, dagger, goblin, positions=positions,
                                        rng=ScriptedRandom([15, 3]))

        assert outcome.roll_mode == RollMode.NORMAL
        assert outcome.die_result == 15


class TestSpells:

    def test_spell_attack(self, player, fire_bolt, goblin):
        outcome = resolve_spell_attack(player, fire_bolt, goblin, rng=ScriptedRandom([10, 6]))

        assert outcome.total_modifier == 5  # INT 3 + prof 2
        assert outcome.success is True
        assert outcome.total_damage == 6

    def test_single_target_save_failed(self, player, sacred_flame, goblin):
        outcome = resolve_spell_save(player, sacred_flame, goblin, rng=ScriptedRandom([5, 7]))

        assert outcome.dc_or_ac == "DC 13"
        assert outcome.success is True
        assert outcome.total_damage == 7

    def test_single_target_save_succeeded_halves(self, player, sacred_flame, goblin):
        """A successful save takes half, rounded down."""
        outcome = resolve_spell_save(player, sacred_flame, goblin, rng=ScriptedRandom([15, 7]))

        assert outcome.success is False
        assert outcome.total_damage == 3

    def test_auto_hit(self, player, goblin):
        missile = SpellAbility(id="magic-missile", name="Magic Missile", attack_type="auto", damage_roll="3d4")

        outcome = resolve_player_action(player, missile, goblin, rng=ScriptedRandom([1, 2, 3]))

        assert outcome.no_check is True
        assert outcome.total_damage == 6


    @pytest.mark.parametrize("level,rolls,expected", [
        (5, [5, 3, 4], 7),
        (6, [5, 1, 2, 3], 6),
        (11, [5, 1, 1, 1, 1], 4),
    ])
    def test_racial_damage_scales_with_level(self, player, goblin, level, rolls, expected):
        """The highest level threshold reached picks the damage dice."""
        breath = RacialAbility(id="breath-weapon", name="Breath Weapon", damage_roll="2d6",
                               racial_scaling={6: "3d6", 11: "4d6", 16: "5d6"})
        player.level = level

        outcome = resolve_player_action(player, breath, goblin, rng=ScriptedRandom(rolls))

        assert outcome.success is True
        assert outcome.total_damage == expected
        assert outcome.damage.breakdown[0].dice == {5: "2d6", 6: "3d6", 11: "4d6"}[level]

    def test_racial_area_damage_scales(self, player):
        breath = RacialAbility(id="breath-weapon", name="Breath Weapon", damage_roll="2d6",
                               racial_scaling={6: "3d6"}, aoe=AOEData("cone", 15, origin="self"))
        player.level = 7

        result = resolve_aoe_action(player, breath, [make_goblin()], [], rng=ScriptedRandom([2, 2, 2, 1]))

        assert result.damage_roll == "3d6"
        assert result.total_rolled == 6


class TestAreaDamage:

    def test_damage_rolled_once_saves_per_target(self, player, fireball):
        """One 8d6 roll shared by value; each goblin saves on its own."""
        goblins = [make_goblin("goblin-1"), make_goblin("goblin-2")]
        rng = ScriptedRandom([3] * 8 + [2, 19])

        result = resolve_aoe_action(player, fireball, goblins, [], rng=rng)

        assert result.total_rolled == 24
        assert result.spell_dc == 13
        assert [t.saved for t in result.targets] == [False, True]
        assert [t.damage_taken for t in result.targets] == [24, 12]
        assert rng.rolls == []

    def test_no_targets(self, player, fireball):
        result = resolve_aoe_action(player, fireball, [], [GridPosition(0, 0)], rng=ScriptedRandom())

        assert result.targets == []
        assert result.affected_cells == [GridPosition(0, 0)]


class TestNPCAttack:

    def test_hit(self, player, goblin):
        outcome = resolve_npc_attack(goblin, player, rng=ScriptedRandom([12, 3]))

        assert outcome.total == 16
        assert outcome.success is True
        assert outcome.total_damage == 5

    def test_critical(self, player, goblin):
        outcome = resolve_npc_attack(goblin, player, rng=ScriptedRandom([20, 6, 6]))

        assert outcome.critical_hit is True
        assert outcome.total_damage == 14

    def test_flat_part_in_damage_dice(self, player):
        thug = make_goblin(damage_dice="1d6+2", damage_bonus=0)

        outcome = resolve_npc_attack(thug, player, rng=ScriptedRandom([15, 4]))

        assert outcome.total_damage == 6
        assert outcome.damage.breakdown[0].dice == "1d6"
        assert outcome.damage.breakdown[0].flat_bonus == 2

    def test_damage_never_negative(self, player):
        weakling = make_goblin(damage_bonus=-5)

        outcome = resolve_npc_attack(weakling, player, rng=ScriptedRandom([19, 1]))

        assert outcome.success is True
        assert outcome.total_damage == 0


class TestDispatch:
    """Impossible and no-check outcomes."""

    def test_unknown_ability(self, player, goblin):
        outcome = resolve_player_action(player, None, goblin)

        assert outcome.impossible is True

    def test_missing_target(self, player, longsword):
        outcome = resolve_player_action(player, longsword, None)

        assert outcome.impossible is True
        assert "No target" in outcome.notes

    def test_weapon_without_damage(self, player, goblin):
        fists = WeaponAbility(id="fists", name="Fists")

        outcome = resolve_player_action(player, fists, goblin)

        assert outcome.impossible is True

    def test_non_targeted_action(self, player):
        dodge = player.get_ability("dodge")

        outcome = resolve_player_action(player, dodge, None)

        assert outcome.no_check is True
        assert outcome.success is True
