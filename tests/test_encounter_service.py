"""Tests for the encounter service checkpointing."""
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from gridcombat.core.combat_storage import InMemoryEncounterStore
from gridcombat.core.errors import DatabaseError, EncounterNotFoundError, NotYourTurnError
from gridcombat.core.geometry import GridPosition
from gridcombat.models.encounter import EncounterStatus, TurnPhase
from gridcombat.services.encounter_service import EncounterService
from tests.conftest import ScriptedRandom, make_goblin


def goblin_pair():
    return [make_goblin("goblin-1"), make_goblin("goblin-2")]


def positions(**cells):
    return {cid.replace("_", "-"): GridPosition(*cell) for cid, cell in cells.items()}


class TestCheckpointing:
    """One save per combatant step."""

    @pytest.mark.asyncio
    async def test_create_saves_once(self, player):
        store = InMemoryEncounterStore()
        service = EncounterService(store, rng=ScriptedRandom())

        state = await service.create(player, goblin_pair())

        assert store.save_count == 1
        assert state.id in store
        assert (await service.get(state.id)).turn_order == ["player", "goblin-1", "goblin-2"]

    @pytest.mark.asyncio
    async def test_each_npc_step_is_saved(self, player):
        store = InMemoryEncounterStore()
        service = EncounterService(store, rng=ScriptedRandom([1, 1]))
        state = await service.create(
            player, goblin_pair(),
            positions=positions(player=(10, 10), goblin_1=(9, 10), goblin_2=(11, 10)),
        )

        await service.player_turn(state.id, "dodge")
        assert store.save_count == 2

        report = await service.resolve_round(state.id)

        assert len(report.results) == 2
        assert len(report.narration) == 2
        assert store.save_count == 4
        assert report.state.phase == TurnPhase.ROUND_END

    @pytest.mark.asyncio
    async def test_single_npc_step(self, player):
        store = InMemoryEncounterStore()
        service = EncounterService(store, rng=ScriptedRandom([1]))
        state = await service.create(
            player, goblin_pair(),
            positions=positions(player=(10, 10), goblin_1=(9, 10), goblin_2=(0, 0)),
        )
        await service.player_turn(state.id, "dodge")

        report = await service.npc_turn(state.id)

        stored = await service.get(state.id)
        assert report.results[0].actor_id == "goblin-1"
        assert stored.current_turn_index == 2
        assert stored.phase == TurnPhase.HOSTILE_NPC_TURNS

    @pytest.mark.asyncio
    async def test_victory_completes_encounter(self, player):
        store = InMemoryEncounterStore()
        store.complete = AsyncMock(wraps=store.complete)
        service = EncounterService(store, rng=ScriptedRandom([15, 5]))
        state = await service.create(
            player, [make_goblin("goblin-1")],
            positions=positions(player=(10, 10), goblin_1=(9, 10)),
        )

        report = await service.player_turn(state.id, "longsword", "goblin-1")

        assert report.results[0].encounter_over is True
        store.complete.assert_awaited_once_with(state.id)
        stored = await service.get(state.id)
        assert stored.status == EncounterStatus.COMPLETED
        assert stored.player.experience == 50

    @pytest.mark.asyncio
    async def test_player_move_saved(self, player):
        store = InMemoryEncounterStore()
        service = EncounterService(store)
        state = await service.create(
            player, goblin_pair(),
            positions=positions(player=(10, 10), goblin_1=(0, 0), goblin_2=(0, 2)),
        )

        await service.move_player(state.id, GridPosition(12, 12))

        stored = await service.get(state.id)
        assert stored.positions["player"] == GridPosition(12, 12)
        assert stored.phase == TurnPhase.PLAYER_TURN

    @pytest.mark.asyncio
    async def test_resolve_round_on_player_turn_does_nothing(self, player):
        store = InMemoryEncounterStore()
        service = EncounterService(store)
        state = await service.create(player, goblin_pair())

        report = await service.resolve_round(state.id)

        assert report.results == []
        assert store.save_count == 1


class TestErrors:

    @pytest.mark.asyncio
    async def test_unknown_encounter(self):
        service = EncounterService(InMemoryEncounterStore())

        with pytest.raises(EncounterNotFoundError):
            await service.get("missing")

    @pytest.mark.asyncio
    async def test_storage_failure_becomes_database_error(self, player):
        store = InMemoryEncounterStore()
        store.save = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")))
        service = EncounterService(store)

        with pytest.raises(DatabaseError):
            await service.create(player, goblin_pair())

    @pytest.mark.asyncio
    async def test_turn_errors_propagate(self, player):
        service = EncounterService(InMemoryEncounterStore())
        state = await service.create(player, goblin_pair())

        with pytest.raises(NotYourTurnError):
            await service.npc_turn(state.id)
