"""
Async orchestration around the combat engine.

The engine is synchronous and knows nothing about storage. This service
loads an encounter, drives the engine one combatant step at a time and
checkpoints the state after every step, so an interrupted resolution pass
resumes from the last finished combatant.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging
import random

from sqlalchemy.exc import SQLAlchemyError

from gridcombat.core.combat_engine import NPC_PHASES, CombatEngine, TurnResult, create_encounter
from gridcombat.core.combat_storage import EncounterStore
from gridcombat.core.errors import DatabaseError, EncounterNotFoundError
from gridcombat.core.geometry import GridPosition
from gridcombat.models.combatants import NPC, PlayerState
from gridcombat.models.encounter import EncounterState
from gridcombat.services.narration import FallbackNarrator, Narrator

logger = logging.getLogger(__name__)


@dataclass
class StepReport:
    """Turn results from one service call plus the resulting state."""
    state: EncounterState
    results: List[TurnResult] = field(default_factory=list)
    narration: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "encounter": self.state.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "narration": list(self.narration),
        }


class EncounterService:
    """
    Loads, steps and saves encounters.

    Every engine step is followed by ``store.save``. When a step ends the
    encounter, ``store.complete`` follows the save.
    """

    def __init__(
        self,
        store: EncounterStore,
        rng: Optional[random.Random] = None,
        narrator: Optional[Narrator] = None,
        settings=None,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.narrator = narrator or FallbackNarrator()
        self.settings = settings

    # ==================== Storage boundary ====================

    async def _load(self, encounter_id: str) -> EncounterState:
        try:
            state = await self.store.load(encounter_id)
        except SQLAlchemyError as e:
            logger.warning("Failed to load encounter %s: %s", encounter_id, e)
            raise DatabaseError(f"Failed to load encounter {encounter_id}") from e
        if state is None:
            raise EncounterNotFoundError(encounter_id)
        return state

    async def _save(self, state: EncounterState) -> None:
        try:
            await self.store.save(state)
        except SQLAlchemyError as e:
            logger.warning("Failed to save encounter %s: %s", state.id, e)
            raise DatabaseError(f"Failed to save encounter {state.id}") from e

    async def _complete(self, encounter_id: str) -> None:
        try:
            await self.store.complete(encounter_id)
        except SQLAlchemyError as e:
            logger.warning("Failed to complete encounter %s: %s", encounter_id, e)
            raise DatabaseError(f"Failed to complete encounter {encounter_id}") from e

    async def _checkpoint(self, engine: CombatEngine, result: TurnResult, report: StepReport) -> None:
        report.results.append(result)
        report.narration.append(self.narrator.narrate(result, self._names(engine.state)))
        await self._save(engine.state)
        if result.encounter_over:
            await self._complete(engine.state.id)

    def _engine(self, state: EncounterState) -> CombatEngine:
        return CombatEngine(state, rng=self.rng, settings=self.settings)

    @staticmethod
    def _names(state: EncounterState) -> Dict[str, str]:
        names = {npc.id: npc.name for npc in state.active_npcs}
        names[state.player.id] = state.player.name
        return names

    # ==================== Operations ====================

    async def create(
        self,
        player: PlayerState,
        npcs: Sequence[NPC],
        grid_size: Optional[int] = None,
        positions: Optional[Dict[str, GridPosition]] = None,
        tile_data: Optional[List[int]] = None,
        location: str = "",
    ) -> EncounterState:
        """Start a new encounter at round 1 and store it."""
        state = create_encounter(player, npcs, grid_size, positions, tile_data, location)
        self._engine(state)
        await self._save(state)
        logger.info("Created encounter %s with %d NPCs", state.id, len(npcs))
        return state

    async def get(self, encounter_id: str) -> EncounterState:
        return await self._load(encounter_id)

    async def player_turn(
        self,
        encounter_id: str,
        ability_id: str,
        target_id: Optional[str] = None,
        aoe_origin: Optional[GridPosition] = None,
        aoe_direction: Optional[GridPosition] = None,
    ) -> StepReport:
        engine = self._engine(await self._load(encounter_id))
        report = StepReport(engine.state)
        result = engine.take_player_turn(ability_id, target_id, aoe_origin, aoe_direction)
        await self._checkpoint(engine, result, report)
        return report

    async def move_player(self, encounter_id: str, destination: GridPosition) -> StepReport:
        engine = self._engine(await self._load(encounter_id))
        report = StepReport(engine.state)
        await self._checkpoint(engine, engine.move_player(destination), report)
        return report

    async def npc_turn(self, encounter_id: str) -> StepReport:
        """Resolve exactly one NPC slot."""
        engine = self._engine(await self._load(encounter_id))
        report = StepReport(engine.state)
        await self._checkpoint(engine, engine.run_next_npc_turn(), report)
        return report

    async def resolve_round(self, encounter_id: str) -> StepReport:
        """
        Resolve the remaining NPC slots of the round.

        The state is saved after each slot, so a failure part way leaves the
        store at the last finished NPC.
        """
        engine = self._engine(await self._load(encounter_id))
        report = StepReport(engine.state)
        while engine.state.is_active and engine.state.phase in NPC_PHASES:
            result = engine.run_next_npc_turn()
            await self._checkpoint(engine, result, report)
            if result.player_dead or result.encounter_over:
                break
        logger.debug("Encounter %s: resolved %d NPC turns", encounter_id, len(report.results))
        return report
