"""
Template narration for turn results.

Narration reads a TurnResult and never touches encounter state. The
``FallbackNarrator`` picks from fixed templates and is what runs when no
richer narrator is plugged in.
"""
from typing import Dict, List, Optional, Protocol
import logging
import random

from gridcombat.core.combat_engine import TurnResult

logger = logging.getLogger(__name__)


# =============================================================================
# TEMPLATES
# =============================================================================

COMBAT_NARRATION: Dict[str, List[str]] = {
    "hit_kill": [
        "{actor} delivers a devastating blow to {target}, ending the fight decisively!",
        "With deadly precision, {actor} strikes true. {target} falls!",
        "{target} collapses under {actor}'s relentless assault.",
    ],
    "hit_critical": [
        "{actor} lands a critical strike on {target}! The blow is devastating!",
        "{actor} finds a weak point in {target}'s defenses. Critical hit!",
    ],
    "hit": [
        "{actor} lands a solid strike on {target}.",
        "The blow finds its mark, and {target} staggers from the impact.",
        "{actor} strikes {target} with a well-aimed attack.",
    ],
    "miss": [
        "{actor}'s attack goes wide, missing {target}.",
        "{target} narrowly avoids {actor}'s strike.",
        "{actor} swings but finds only air.",
    ],
    "miss_critical": [
        "{actor}'s attack goes wildly astray. A critical miss!",
        "{actor} overextends and the strike misses completely.",
    ],
    "aoe": [
        "{actor} unleashes {spell}, engulfing {count} foes!",
        "{spell} erupts from {actor}'s hands and sweeps across the battlefield.",
    ],
    "aoe_empty": [
        "{actor}'s {spell} bursts over empty ground.",
    ],
    "move": [
        "{actor} advances toward {target}.",
        "{actor} closes the distance to {target}.",
    ],
    "stuck": [
        "{actor} looks for a way through but cannot reach {target}.",
    ],
    "out_of_range": [
        "{target} is out of {actor}'s reach.",
    ],
    "player_defeated": [
        "{target} falls, and the battle is lost.",
    ],
    "victory": [
        "The last of the enemies falls. The fight is won.",
    ],
}

DEFAULT_NARRATION = "{actor} acts."


class Narrator(Protocol):
    def narrate(self, result: TurnResult, names: Optional[Dict[str, str]] = None) -> str:
        ...


class FallbackNarrator:
    """Template narrator with its own random source."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def narrate(self, result: TurnResult, names: Optional[Dict[str, str]] = None) -> str:
        """
        Describe one turn in a sentence or two.

        Args:
            result: The turn to describe
            names: Combatant id -> display name; ids are used when missing

        Returns:
            Narration text
        """
        names = names or {}
        actor = names.get(result.actor_id, result.actor_id)
        target = names.get(result.target_id, result.target_id) if result.target_id else "the enemy"
        lines = [self._line(result, actor, target)]

        if result.player_dead:
            lines.append(self._pick("player_defeated", actor=actor, target=names.get("player", "The hero")))
        elif result.encounter_over and result.deaths:
            lines.append(self._pick("victory", actor=actor, target=target))
        return " ".join(line for line in lines if line)

    def _line(self, result: TurnResult, actor: str, target: str) -> str:
        if result.action == "skip":
            return result.description
        if result.action == "impossible":
            return result.description
        if result.action == "out_of_range":
            return self._pick("out_of_range", actor=actor, target=target)
        if result.action == "move":
            moved = result.movement is not None and result.movement.moved
            return self._pick("move" if moved else "stuck", actor=actor, target=target)
        if result.action == "aoe":
            spell = result.aoe.check_type.split(" (")[0] if result.aoe else "a spell"
            key = "aoe" if result.target_ids else "aoe_empty"
            return self._pick(key, actor=actor, spell=spell, count=len(result.target_ids))
        if result.action == "action":
            return result.description

        outcome = result.outcome
        if outcome is None:
            return DEFAULT_NARRATION.format(actor=actor)
        if outcome.success:
            if result.deaths:
                key = "hit_kill"
            elif outcome.critical_hit:
                key = "hit_critical"
            else:
                key = "hit"
        else:
            key = "miss_critical" if outcome.critical_miss else "miss"
        return self._pick(key, actor=actor, target=target)

    def _pick(self, key: str, **values) -> str:
        templates = COMBAT_NARRATION.get(key)
        if not templates:
            logger.debug("No narration templates for %s", key)
            return DEFAULT_NARRATION.format(**values)
        return self.rng.choice(templates).format(**values)
