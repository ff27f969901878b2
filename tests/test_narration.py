"""Tests for template narration."""
import random

from gridcombat.core.combat_engine import TurnResult
from gridcombat.core.geometry import GridPosition
from gridcombat.core.movement import NPCMovementResult
from gridcombat.core.rules_engine import RollOutcome
from gridcombat.services.narration import COMBAT_NARRATION, FallbackNarrator

NAMES = {"player": "Aria", "goblin-1": "Goblin"}


def narrate(result):
    return FallbackNarrator(random.Random(3)).narrate(result, NAMES)


def filled(key, **values):
    return {template.format(**values) for template in COMBAT_NARRATION[key]}


class TestFallbackNarrator:

    def test_hit(self):
        result = TurnResult("player", "attack", target_id="goblin-1",
                            outcome=RollOutcome(check_type="Longsword Attack", success=True))

        assert narrate(result) in filled("hit", actor="Aria", target="Goblin")

    def test_kill(self):
        result = TurnResult("player", "attack", target_id="goblin-1", deaths=["goblin-1"],
                            outcome=RollOutcome(check_type="Longsword Attack", success=True))

        assert narrate(result) in filled("hit_kill", actor="Aria", target="Goblin")

    def test_critical_miss(self):
        result = TurnResult("goblin-1", "attack", target_id="player",
                            outcome=RollOutcome(check_type="Scimitar", success=False, critical_miss=True))

        assert narrate(result) in filled("miss_critical", actor="Goblin", target="Aria")

    def test_stuck(self):
        movement = NPCMovementResult("goblin-1", GridPosition(0, 0), GridPosition(0, 0), moved=False)
        result = TurnResult("goblin-1", "move", target_id="player", movement=movement)

        assert narrate(result) in filled("stuck", actor="Goblin", target="Aria")

    def test_player_defeat_appended(self):
        result = TurnResult("goblin-1", "attack", target_id="player", player_dead=True,
                            outcome=RollOutcome(check_type="Scimitar", success=True))

        text = narrate(result)

        assert text.endswith(COMBAT_NARRATION["player_defeated"][0].format(target="Aria"))

    def test_skip_uses_description(self):
        result = TurnResult("goblin-1", "skip", "Already defeated")

        assert narrate(result) == "Already defeated"

    def test_unknown_ids_fall_back_to_ids(self):
        result = TurnResult("orc-9", "attack", target_id="wolf-2",
                            outcome=RollOutcome(check_type="Greataxe", success=False))

        assert narrate(result) in filled("miss", actor="orc-9", target="wolf-2")
