"""
Database models for stored encounters.

Uses SQLModel (SQLAlchemy + Pydantic). The full encounter is kept as a JSON
document alongside a few indexed summary columns.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlmodel import JSON, Column, Field, SQLModel


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class EncounterRecord(SQLModel, table=True):
    """
    Persistent encounter.

    ``state`` holds ``EncounterState.to_dict()``; the other columns mirror
    it for querying.
    """
    __tablename__ = "encounters"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    status: str = Field(default="active", index=True)
    round_number: int = Field(default=1)
    phase: str = Field(default="player_turn")
    total_xp_awarded: int = Field(default=0)

    state: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
