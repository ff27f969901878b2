"""Tests for the dice rolling system."""
import random

import pytest

from gridcombat.core.dice import (
    D20Result,
    double_dice,
    parse_dice_notation,
    roll_d20,
    roll_damage,
    roll_dice,
    roll_die,
)
from tests.conftest import ScriptedRandom


class TestRollDie:
    """Tests for basic die rolling."""

    def test_roll_d6_in_range(self):
        """d6 should always be between 1 and 6."""
        rng = random.Random(7)
        for _ in range(100):
            assert 1 <= roll_die(6, rng) <= 6

    def test_invalid_die_raises_error(self):
        """Rolling a d0 or negative should raise ValueError."""
        with pytest.raises(ValueError):
            roll_die(0)
        with pytest.raises(ValueError):
            roll_die(-1)

    def test_seeded_rolls_repeat(self):
        first = [roll_die(20, random.Random(42)) for _ in range(5)]
        second = [roll_die(20, random.Random(42)) for _ in range(5)]

        assert first == second


class TestD20Roll:
    """Tests for d20 rolls with advantage/disadvantage."""

    def test_roll_with_modifier(self):
        result = roll_d20(modifier=5, rng=ScriptedRandom([12]))

        assert isinstance(result, D20Result)
        assert result.total == 17

    def test_advantage_takes_higher(self):
        result = roll_d20(advantage=True, rng=ScriptedRandom([4, 17]))

        assert result.rolls == [4, 17]
        assert result.base_roll == 17

    def test_disadvantage_takes_lower(self):
        result = roll_d20(disadvantage=True, rng=ScriptedRandom([4, 17]))

        assert result.base_roll == 4

    def test_both_cancel_to_one_die(self):
        """Advantage and disadvantage together roll a single die."""
        result = roll_d20(advantage=True, disadvantage=True, rng=ScriptedRandom([9]))

        assert len(result.rolls) == 1
        assert result.advantage is False
        assert result.disadvantage is False

    def test_natural_flags(self):
        assert roll_d20(rng=ScriptedRandom([20])).natural_20 is True
        assert roll_d20(modifier=30, rng=ScriptedRandom([1])).natural_1 is True


class TestDiceExpressions:

    def test_roll_dice_sums(self):
        result = roll_dice("3d6", ScriptedRandom([1, 2, 6]))

        assert result.rolls == [1, 2, 6]
        assert result.total == 9

    def test_malformed_expression_rolls_nothing(self):
        result = roll_dice("a fistful")

        assert result.rolls == []
        assert result.total == 0

    def test_double_dice(self):
        assert double_dice("1d8") == "2d8"
        assert double_dice("8d6") == "16d6"
        assert double_dice("nonsense") == "nonsense"

    def test_parse_notation(self):
        assert parse_dice_notation("2d8+3") == ("2d8", 3)
        assert parse_dice_notation("d4-1") == ("1d4", -1)
        assert parse_dice_notation("1D6") == ("1d6", 0)

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            parse_dice_notation("")
        with pytest.raises(ValueError):
            parse_dice_notation("2x6")


class TestRollDamage:

    def test_modifier_added_once(self):
        result = roll_damage("1d8", modifier=3, rng=ScriptedRandom([5]))

        assert result.total == 8
        assert result.dice_notation == "1d8"

    def test_critical_doubles_dice_not_modifier(self):
        result = roll_damage("2d6", modifier=3, critical=True, rng=ScriptedRandom([1, 2, 3, 4]))

        assert result.dice_notation == "4d6"
        assert result.rolls == [1, 2, 3, 4]
        assert result.total == 13
        assert result.is_critical is True

    def test_flat_part_added(self):
        result = roll_damage("1d6+2", rng=ScriptedRandom([4]))

        assert result.total == 6
        assert result.modifier == 2
        assert result.dice_notation == "1d6"

    def test_critical_keeps_flat_part_single(self):
        result = roll_damage("1d8+1", modifier=3, critical=True, rng=ScriptedRandom([2, 5]))

        assert result.dice_notation == "2d8"
        assert result.total == 11


class TestFlatExpressions:

    def test_roll_dice_includes_flat_part(self):
        result = roll_dice("2d4-1", ScriptedRandom([3, 2]))

        assert result.rolls == [3, 2]
        assert result.bonus == -1
        assert result.total == 4

    def test_double_dice_keeps_flat_part(self):
        assert double_dice("1d6+2") == "2d6+2"
        assert double_dice("3d4-1") == "6d4-1"
