"""
Repository pattern for encounter persistence.

``EncounterRepository`` works inside a caller's session. ``SQLEncounterStore``
adapts it to the ``EncounterStore`` port, committing each call as its own
unit of work so every checkpoint is durable on return.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from gridcombat.database.engine import session_scope
from gridcombat.database.models import EncounterRecord, utc_now
from gridcombat.models.encounter import EncounterState, EncounterStatus


class EncounterRepository:
    """Repository for EncounterRecord CRUD operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, encounter_id: str) -> Optional[EncounterRecord]:
        """Get an encounter record by ID."""
        result = await self.session.execute(
            select(EncounterRecord).where(EncounterRecord.id == encounter_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, state: EncounterState) -> EncounterRecord:
        """Insert the encounter or overwrite its stored state."""
        record = await self.get_by_id(state.id)
        if record is None:
            record = EncounterRecord(id=state.id)
            self.session.add(record)

        record.state = state.to_dict()
        record.status = state.status.value
        record.round_number = state.round
        record.phase = state.phase.value
        record.total_xp_awarded = state.total_xp_awarded
        record.updated_at = utc_now()

        await self.session.flush()
        return record

    async def mark_completed(self, encounter_id: str) -> Optional[EncounterRecord]:
        """Flag an encounter as finished."""
        record = await self.get_by_id(encounter_id)
        if not record:
            return None

        record.status = EncounterStatus.COMPLETED.value
        record.completed_at = utc_now()
        record.state = {**record.state, "status": EncounterStatus.COMPLETED.value}

        await self.session.flush()
        return record


class SQLEncounterStore:
    """EncounterStore backed by the ``encounters`` table."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory

    async def load(self, encounter_id: str) -> Optional[EncounterState]:
        async with session_scope(self.session_factory) as session:
            record = await EncounterRepository(session).get_by_id(encounter_id)
            if record is None:
                return None
            return EncounterState.from_dict(record.state)

    async def save(self, state: EncounterState) -> None:
        async with session_scope(self.session_factory) as session:
            await EncounterRepository(session).upsert(state)

    async def complete(self, encounter_id: str) -> None:
        async with session_scope(self.session_factory) as session:
            await EncounterRepository(session).mark_completed(encounter_id)
