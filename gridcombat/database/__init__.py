"""Database package for stored encounters."""
from gridcombat.database.engine import (
    close_db,
    get_engine,
    get_session_factory,
    init_db,
)
from gridcombat.database.models import EncounterRecord
from gridcombat.database.repositories import EncounterRepository, SQLEncounterStore

__all__ = [
    "get_engine",
    "get_session_factory",
    "init_db",
    "close_db",
    "EncounterRecord",
    "EncounterRepository",
    "SQLEncounterStore",
]
