"""
Encounter API Routes.

Thin adapter over the encounter service:
- Create an encounter and read its state
- Move the player and take the player's action
- Advance one NPC turn, or the rest of the round
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator

from gridcombat.core.dice import parse_dice_notation
from gridcombat.core.geometry import GridPosition
from gridcombat.database.repositories import SQLEncounterStore
from gridcombat.models.abilities import abilities_from_dicts
from gridcombat.models.combatants import NPC, PLAYER_ID, PlayerState
from gridcombat.services.encounter_service import EncounterService

router = APIRouter()


def get_encounter_service() -> EncounterService:
    """Dependency for EncounterService."""
    return EncounterService(SQLEncounterStore())


# =============================================================================
# Request Models
# =============================================================================

class Position(BaseModel):
    row: int
    col: int

    def to_grid(self) -> GridPosition:
        return GridPosition(self.row, self.col)


class PlayerData(BaseModel):
    """The player's combat profile."""
    id: str = PLAYER_ID
    name: str
    current_hp: int
    max_hp: int
    armor_class: int
    speed: int = 30
    level: int = 1
    stats: Dict[str, int] = Field(default_factory=dict)
    spellcasting_ability: Optional[str] = None
    weapon_proficiencies: List[str] = Field(default_factory=list)
    abilities: List[Dict[str, Any]] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)
    saving_throw_bonus: int = 0
    experience: int = 0

    @field_validator("abilities")
    @classmethod
    def check_damage_rolls(cls, v):
        for item in v:
            if item.get("damage_roll"):
                parse_dice_notation(item["damage_roll"])
            for expression in (item.get("racial_scaling") or {}).values():
                parse_dice_notation(expression)
        return v

    def to_player(self) -> PlayerState:
        data = self.model_dump()
        data["abilities"] = abilities_from_dicts(data["abilities"])
        if not data["stats"]:
            data.pop("stats")
        return PlayerState(**data)


class NPCData(BaseModel):
    """An NPC's fixed attack profile."""
    id: str
    name: str
    current_hp: int
    max_hp: int
    armor_class: int
    speed: int = 30
    disposition: str = "hostile"
    attack_bonus: int = 0
    damage_dice: str = "1d6"
    damage_bonus: int = 0
    xp_value: int = 0
    challenge_rating: Optional[str] = None
    saving_throw_bonus: int = 0
    reach: int = 5
    conditions: List[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("damage_dice")
    @classmethod
    def check_damage_dice(cls, v):
        parse_dice_notation(v)
        return v

    def to_npc(self) -> NPC:
        data = self.model_dump(exclude_none=True)
        return NPC.from_dict(data)


class CreateEncounterRequest(BaseModel):
    """Request to start an encounter."""
    player: PlayerData
    npcs: List[NPCData]
    grid_size: Optional[int] = Field(default=None, ge=1)
    positions: Optional[Dict[str, Position]] = None
    tile_data: Optional[List[int]] = None
    location: str = ""


class PlayerTurnRequest(BaseModel):
    """Request to take the player's action."""
    ability_id: str
    target_id: Optional[str] = None
    aoe_origin: Optional[Position] = None
    aoe_direction: Optional[Position] = None


class MoveRequest(BaseModel):
    """Request to move the player."""
    destination: Position


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_encounter(
    request: CreateEncounterRequest,
    service: EncounterService = Depends(get_encounter_service),
):
    """Start a new encounter at round 1 with the player to act."""
    positions = None
    if request.positions:
        positions = {cid: pos.to_grid() for cid, pos in request.positions.items()}
    state = await service.create(
        request.player.to_player(),
        [npc.to_npc() for npc in request.npcs],
        grid_size=request.grid_size,
        positions=positions,
        tile_data=request.tile_data,
        location=request.location,
    )
    return {"encounter": state.to_dict()}


@router.get("/{encounter_id}")
async def get_encounter(
    encounter_id: str,
    service: EncounterService = Depends(get_encounter_service),
):
    """Current state of an encounter."""
    state = await service.get(encounter_id)
    return {"encounter": state.to_dict()}


@router.post("/{encounter_id}/move")
async def move_player(
    encounter_id: str,
    request: MoveRequest,
    service: EncounterService = Depends(get_encounter_service),
):
    report = await service.move_player(encounter_id, request.destination.to_grid())
    return report.to_dict()


@router.post("/{encounter_id}/player-turn")
async def player_turn(
    encounter_id: str,
    request: PlayerTurnRequest,
    service: EncounterService = Depends(get_encounter_service),
):
    """Resolve the player's action. Impossible actions come back with turn_consumed=false."""
    report = await service.player_turn(
        encounter_id,
        request.ability_id,
        target_id=request.target_id,
        aoe_origin=request.aoe_origin.to_grid() if request.aoe_origin else None,
        aoe_direction=request.aoe_direction.to_grid() if request.aoe_direction else None,
    )
    return report.to_dict()


@router.post("/{encounter_id}/npc-turn")
async def npc_turn(
    encounter_id: str,
    service: EncounterService = Depends(get_encounter_service),
):
    """Resolve the next NPC slot."""
    report = await service.npc_turn(encounter_id)
    return report.to_dict()


@router.post("/{encounter_id}/resolve-round")
async def resolve_round(
    encounter_id: str,
    service: EncounterService = Depends(get_encounter_service),
):
    """Resolve every remaining NPC slot in the round, saving after each."""
    report = await service.resolve_round(encounter_id)
    return report.to_dict()
