"""
Dice rolling for the combat engine.

Handles:
- Single dice and "NdS" expressions with an optional flat part ("1d6+2")
- Advantage and disadvantage on d20 rolls
- Critical hits, which double the dice count of an expression
- Saving throws

Every function takes an optional ``rng`` (anything with ``randint``, such as
``random.Random``). When it is omitted the module-level ``random`` source is
used. Pass a seeded ``random.Random`` for reproducible encounters.
"""
import random
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

_NOTATION_RE = re.compile(r"^(\d*)d(\d+)(?:([+-])(\d+))?$", re.IGNORECASE)


@dataclass
class D20Result:
    """Result of a d20 roll, tracking advantage/disadvantage and criticals."""
    rolls: List[int]  # All dice rolled (2 if advantage/disadvantage)
    modifier: int
    total: int
    advantage: bool = False
    disadvantage: bool = False
    natural_20: bool = False
    natural_1: bool = False

    @property
    def base_roll(self) -> int:
        """The d20 value used (after advantage/disadvantage selection)."""
        if self.advantage and not self.disadvantage:
            return max(self.rolls)
        elif self.disadvantage and not self.advantage:
            return min(self.rolls)
        return self.rolls[0]


@dataclass
class DiceRoll:
    """Individual results of rolling a dice expression."""
    expression: str
    rolls: List[int] = field(default_factory=list)
    bonus: int = 0
    total: int = 0


@dataclass
class DamageResult:
    """Result of a damage roll."""
    rolls: List[int]  # Individual dice results
    modifier: int
    total: int
    dice_notation: str  # Expression actually rolled (doubled on a crit)
    is_critical: bool = False


def roll_die(sides: int, rng=None) -> int:
    """Roll a single die with the given number of sides."""
    if sides < 1:
        raise ValueError(f"Invalid die: d{sides}")
    return (rng or random).randint(1, sides)


def roll_d20(
    modifier: int = 0,
    advantage: bool = False,
    disadvantage: bool = False,
    rng=None,
) -> D20Result:
    """
    Roll a d20 with optional advantage/disadvantage.

    Args:
        modifier: Bonus to add to the roll (attack bonus, save bonus, etc.)
        advantage: If True, roll twice and take the higher
        disadvantage: If True, roll twice and take the lower
        rng: Random source; defaults to the ``random`` module

    Returns:
        D20Result with all roll information

    Note: If both advantage and disadvantage are True, they cancel out
          and a single die is rolled.
    """
    if advantage and disadvantage:
        advantage = False
        disadvantage = False

    if advantage or disadvantage:
        rolls = [roll_die(20, rng), roll_die(20, rng)]
    else:
        rolls = [roll_die(20, rng)]

    if advantage:
        base_roll = max(rolls)
    elif disadvantage:
        base_roll = min(rolls)
    else:
        base_roll = rolls[0]

    return D20Result(
        rolls=rolls,
        modifier=modifier,
        total=base_roll + modifier,
        advantage=advantage,
        disadvantage=disadvantage,
        natural_20=(base_roll == 20),
        natural_1=(base_roll == 1)
    )


def roll_saving_throw(modifier: int = 0, rng=None) -> D20Result:
    """Roll a saving throw (d20 + save bonus) for comparison against a DC."""
    return roll_d20(modifier=modifier, rng=rng)


def _split_notation(expression: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """(count, sides, flat) for "NdS", "NdS+B" or "dS-B"; None when unsupported."""
    if not expression:
        return None
    match = _NOTATION_RE.match(expression.lower().replace(" ", ""))
    if not match:
        return None
    count = int(match.group(1)) if match.group(1) else 1
    flat = int(match.group(4)) if match.group(4) else 0
    if match.group(3) == "-":
        flat = -flat
    return count, int(match.group(2)), flat


def roll_dice(expression: str, rng=None) -> DiceRoll:
    """
    Roll a dice expression (e.g. "2d6", "1d8", "1d6+2").

    The flat part is included in ``total``. Anything else rolls nothing and
    totals 0.
    """
    parts = _split_notation(expression)
    if parts is None:
        return DiceRoll(expression=expression or "")
    count, sides, flat = parts
    rolls = [roll_die(sides, rng) for _ in range(count)]
    return DiceRoll(expression=expression, rolls=rolls, bonus=flat, total=sum(rolls) + flat)


def double_dice(expression: str) -> str:
    """Double the dice count, keeping any flat part: "1d8" -> "2d8", "1d6+2" -> "2d6+2"."""
    parts = _split_notation(expression)
    if parts is None:
        return expression
    count, sides, flat = parts
    doubled = f"{count * 2}d{sides}"
    if flat:
        doubled += format(flat, "+d")
    return doubled


def parse_dice_notation(notation: str) -> Tuple[str, int]:
    """
    Split notation with an optional flat part into dice and bonus.

    Args:
        notation: Dice notation like "1d6", "2d8+3", "d4-1"

    Returns:
        ("NdS", flat_bonus). "d4-1" becomes ("1d4", -1).

    Raises:
        ValueError: If notation is invalid
    """
    if not notation:
        raise ValueError("Empty dice notation")

    parts = _split_notation(notation)
    if parts is None:
        raise ValueError(f"Invalid dice notation: {notation}")

    count, sides, flat = parts
    return f"{count}d{sides}", flat


def roll_damage(
    notation: str,
    modifier: int = 0,
    critical: bool = False,
    rng=None,
) -> DamageResult:
    """
    Roll damage dice, doubling the dice count on a critical hit.

    Args:
        notation: Dice expression like "1d8", "8d6" or "1d6+2"
        modifier: Flat bonus added once (never doubled)
        critical: If True, double the number of dice rolled
        rng: Random source; defaults to the ``random`` module

    Returns:
        DamageResult with all roll information. A flat part in the notation
        is folded into ``modifier``; ``dice_notation`` is dice only.

    Examples:
        roll_damage("1d8", modifier=3) -> rolls 1d8+3
        roll_damage("2d6", critical=True) -> rolls 4d6
        roll_damage("1d6+2", critical=True) -> rolls 2d6+2
    """
    parts = _split_notation(notation)
    if parts is None:
        return DamageResult(rolls=[], modifier=modifier, total=modifier,
                            dice_notation=notation or "", is_critical=critical)

    count, sides, flat = parts
    if critical:
        count *= 2
    rolls = [roll_die(sides, rng) for _ in range(count)]
    return DamageResult(
        rolls=rolls,
        modifier=modifier + flat,
        total=sum(rolls) + modifier + flat,
        dice_notation=f"{count}d{sides}",
        is_critical=critical
    )
