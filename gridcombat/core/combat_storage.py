"""
Storage port for encounter state.

The coordinator never touches storage. Callers checkpoint the encounter
through an ``EncounterStore`` between steps: after the player's turn and
after every NPC slot.
"""
import copy
from typing import Dict, Optional, Protocol

from gridcombat.models.encounter import EncounterState, EncounterStatus


class EncounterStore(Protocol):
    """Async persistence for encounters."""

    async def load(self, encounter_id: str) -> Optional[EncounterState]:
        ...

    async def save(self, state: EncounterState) -> None:
        ...

    async def complete(self, encounter_id: str) -> None:
        ...


class InMemoryEncounterStore:
    """
    Store backed by a dict, for tests and single-process use.

    Saves keep a serialized snapshot, so later mutation of the live state
    does not leak into what was stored.
    """

    def __init__(self):
        self._encounters: Dict[str, dict] = {}
        self.save_count = 0

    async def load(self, encounter_id: str) -> Optional[EncounterState]:
        data = self._encounters.get(encounter_id)
        if data is None:
            return None
        return EncounterState.from_dict(copy.deepcopy(data))

    async def save(self, state: EncounterState) -> None:
        self._encounters[state.id] = state.to_dict()
        self.save_count += 1

    async def complete(self, encounter_id: str) -> None:
        data = self._encounters.get(encounter_id)
        if data is not None:
            data["status"] = EncounterStatus.COMPLETED.value

    def __contains__(self, encounter_id: str) -> bool:
        return encounter_id in self._encounters
