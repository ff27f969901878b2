"""Tests for range checks and area targeting."""
import pytest

from gridcombat.core.geometry import ConeShape, GridPosition, LineShape, SphereShape
from gridcombat.core.targeting import (
    build_aoe_shape,
    check_melee_range,
    get_aoe_targets,
    is_ranged_attack,
    validate_attack_range,
    validate_movement,
)
from gridcombat.models.abilities import (
    AOEData,
    BothRange,
    MeleeRange,
    RangedRange,
    SelfRange,
    TouchRange,
)

ORIGIN = GridPosition(10, 10)


class TestMeleeRange:

    def test_adjacent_in_reach(self):
        check = check_melee_range(ORIGIN, GridPosition(11, 11))

        assert check.in_range is True
        assert check.distance_feet == 5

    def test_two_squares_out_of_reach(self):
        check = check_melee_range(ORIGIN, GridPosition(12, 10))

        assert check.in_range is False
        assert "melee reach: 5 ft" in check.reason

    def test_reach_weapon(self):
        assert check_melee_range(ORIGIN, GridPosition(12, 10), reach=10).in_range is True


class TestValidateAttackRange:
    """Range checks per ability range variant."""

    def test_missing_range_is_melee(self):
        assert validate_attack_range(ORIGIN, GridPosition(11, 10), None).in_range is True
        assert validate_attack_range(ORIGIN, GridPosition(12, 10), None).in_range is False

    def test_self_always_in_range(self):
        check = validate_attack_range(ORIGIN, GridPosition(0, 0), SelfRange())

        assert check.in_range is True
        assert check.distance_feet == 0

    def test_touch(self):
        assert validate_attack_range(ORIGIN, GridPosition(9, 9), TouchRange()).in_range is True

    def test_ranged_short_long_and_beyond(self):
        """Short range is normal, long range gives disadvantage, beyond is out."""
        bow = RangedRange(short_range=30, long_range=60)

        short = validate_attack_range(ORIGIN, GridPosition(10, 16), bow)
        long = validate_attack_range(ORIGIN, GridPosition(10, 18), bow)
        beyond = validate_attack_range(ORIGIN, GridPosition(10, 23), bow)

        assert short.in_range and not short.disadvantage
        assert long.in_range and long.disadvantage
        assert long.distance_feet == 40
        assert beyond.distance_feet == 65
        assert not beyond.in_range
        assert "max range: 60 ft" in beyond.reason

    def test_ranged_defaults(self):
        """Unknown distances default to 30 ft with no long band."""
        spell = RangedRange()

        assert validate_attack_range(ORIGIN, GridPosition(10, 16), spell).in_range is True
        assert validate_attack_range(ORIGIN, GridPosition(10, 17), spell).in_range is False

    def test_long_defaults_to_short(self):
        check = validate_attack_range(ORIGIN, GridPosition(10, 17), RangedRange(short_range=30))

        assert check.in_range is False

    def test_thrown_prefers_melee(self):
        dagger = BothRange(short_range=20, long_range=60)

        adjacent = validate_attack_range(ORIGIN, GridPosition(11, 10), dagger)
        thrown = validate_attack_range(ORIGIN, GridPosition(10, 15), dagger)

        assert adjacent.in_range and not adjacent.disadvantage
        assert thrown.in_range and thrown.disadvantage

    def test_thrown_defaults(self):
        """Thrown weapons without numbers use 20/60."""
        javelin = BothRange()

        assert validate_attack_range(ORIGIN, GridPosition(10, 14), javelin).disadvantage is False
        assert validate_attack_range(ORIGIN, GridPosition(10, 19), javelin).disadvantage is True

    def test_only_ranged_variant_counts_as_ranged_attack(self):
        assert is_ranged_attack(RangedRange()) is True
        assert is_ranged_attack(BothRange()) is False
        assert is_ranged_attack(BothRange(), distance_feet=5) is False
        assert is_ranged_attack(BothRange(), distance_feet=15) is True
        assert is_ranged_attack(MeleeRange()) is False
        assert is_ranged_attack(None) is False


class TestAreaTargets:

    def test_build_sphere_at_chosen_point(self):
        shape = build_aoe_shape(AOEData("sphere", 20), ORIGIN, aoe_origin=GridPosition(3, 3))

        assert shape == SphereShape(GridPosition(3, 3), 20)

    def test_build_cone_from_caster_default_north(self):
        shape = build_aoe_shape(AOEData("cone", 15, origin="self"), ORIGIN)

        assert isinstance(shape, ConeShape)
        assert shape.origin == ORIGIN
        assert shape.direction == GridPosition(9, 10)

    def test_build_line_width(self):
        shape = build_aoe_shape(AOEData("line", 60, width=10), ORIGIN, aoe_direction=GridPosition(10, 11))

        assert isinstance(shape, LineShape)
        assert shape.width_feet == 10

    def test_unknown_shape(self):
        with pytest.raises(ValueError):
            build_aoe_shape(AOEData("donut", 10), ORIGIN)

    def test_targets_are_occupants(self):
        positions = {
            "player": ORIGIN,
            "goblin-1": GridPosition(9, 10),
            "goblin-2": GridPosition(8, 12),
            "wolf": GridPosition(11, 10),
        }
        shape = build_aoe_shape(AOEData("cone", 15, origin="self"), ORIGIN)

        assert get_aoe_targets(shape, positions, 20) == ["goblin-1", "goblin-2"]


class TestMovement:

    def test_within_speed(self):
        check = validate_movement(ORIGIN, GridPosition(10, 16), 30)

        assert check.allowed is True
        assert check.distance_feet == 30

    def test_beyond_speed(self):
        check = validate_movement(ORIGIN, GridPosition(10, 17), 30)

        assert check.allowed is False
        assert "exceeds movement speed" in check.reason
