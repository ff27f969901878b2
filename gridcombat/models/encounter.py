"""
Encounter state owned by the turn coordinator.

Everything a resolution pass reads or writes lives on ``EncounterState``:
positions, turn order, the NPC roster, the deferred XP accumulator and the
defeated-NPC snapshots. Nothing is held in module-level globals.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from gridcombat.core.geometry import GridPosition
from gridcombat.models.combatants import NPC, Combatant, Disposition, PlayerState


class TurnPhase(str, Enum):
    """Where the encounter is inside the current round."""
    PLAYER_TURN = "player_turn"
    FRIENDLY_NPC_TURNS = "friendly_npc_turns"
    HOSTILE_NPC_TURNS = "hostile_npc_turns"
    ROUND_END = "round_end"
    ENCOUNTER_OVER = "encounter_over"
    PLAYER_DEFEATED = "player_defeated"


class EncounterStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class CombatStats:
    """Running totals for one combatant."""
    damage_dealt: int = 0
    damage_taken: int = 0
    hits: int = 0
    misses: int = 0
    critical_hits: int = 0
    kills: int = 0

    def to_dict(self) -> Dict[str, int]:
        return dict(vars(self))


@dataclass
class EncounterState:
    """Mutable combat session for one player against a roster of NPCs."""
    player: PlayerState
    active_npcs: List[NPC]
    positions: Dict[str, GridPosition] = field(default_factory=dict)
    grid_size: int = 20
    id: str = field(default_factory=lambda: str(uuid4()))
    status: EncounterStatus = EncounterStatus.ACTIVE
    turn_order: List[str] = field(default_factory=list)
    current_turn_index: int = 0
    round: int = 1
    phase: TurnPhase = TurnPhase.PLAYER_TURN
    total_xp_awarded: int = 0
    defeated_npcs: List[Dict[str, Any]] = field(default_factory=list)
    combat_stats: Dict[str, CombatStats] = field(default_factory=dict)
    final_stats: Optional[Dict[str, Any]] = None
    movement_used: int = 0  # Feet the player has moved this turn
    event_log: List[Dict[str, Any]] = field(default_factory=list)
    tile_data: Optional[List[int]] = None  # Flat row-major collision map: 0 open, 1 blocked
    location: str = ""

    # ==================== Lookups ====================

    @property
    def is_active(self) -> bool:
        return self.status == EncounterStatus.ACTIVE

    def get_npc(self, npc_id: str) -> Optional[NPC]:
        for npc in self.active_npcs:
            if npc.id == npc_id:
                return npc
        return None

    def get_combatant(self, combatant_id: str) -> Optional[Combatant]:
        if combatant_id == self.player.id:
            return self.player
        return self.get_npc(combatant_id)

    def living_npcs(self, disposition: Optional[Disposition] = None) -> List[NPC]:
        return [
            npc for npc in self.active_npcs
            if npc.is_alive and (disposition is None or npc.disposition == disposition)
        ]

    def hostiles_remaining(self) -> bool:
        return any(npc.is_alive for npc in self.active_npcs if npc.is_hostile)

    def living_ids(self) -> List[str]:
        ids = [self.player.id] if self.player.is_alive else []
        return ids + [npc.id for npc in self.active_npcs if npc.is_alive]

    def is_blocked_tile(self, pos: GridPosition) -> bool:
        """True when the collision map marks the cell as a wall or obstacle."""
        if not self.tile_data:
            return False
        index = pos.row * self.grid_size + pos.col
        return 0 <= index < len(self.tile_data) and self.tile_data[index] == 1

    def stats_for(self, combatant_id: str) -> CombatStats:
        return self.combat_stats.setdefault(combatant_id, CombatStats())

    @property
    def current_combatant_id(self) -> Optional[str]:
        if 0 <= self.current_turn_index < len(self.turn_order):
            return self.turn_order[self.current_turn_index]
        return None

    def add_event(
        self,
        event_type: str,
        description: str,
        combatant_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Append an entry to the encounter log."""
        event = {
            "event_type": event_type,
            "round": self.round,
            "combatant_id": combatant_id,
            "description": description,
            "data": data or {},
        }
        self.event_log.append(event)
        return event

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "grid_size": self.grid_size,
            "player": self.player.to_dict(),
            "active_npcs": [npc.to_dict() for npc in self.active_npcs],
            "positions": {cid: pos.to_dict() for cid, pos in self.positions.items()},
            "turn_order": list(self.turn_order),
            "current_turn_index": self.current_turn_index,
            "round": self.round,
            "phase": self.phase.value,
            "total_xp_awarded": self.total_xp_awarded,
            "defeated_npcs": list(self.defeated_npcs),
            "combat_stats": {cid: stats.to_dict() for cid, stats in self.combat_stats.items()},
            "movement_used": self.movement_used,
            "event_log": list(self.event_log),
            "final_stats": self.final_stats,
            "tile_data": self.tile_data,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncounterState":
        return cls(
            id=data["id"],
            status=EncounterStatus(data.get("status", "active")),
            grid_size=data.get("grid_size", 20),
            player=PlayerState.from_dict(data["player"]),
            active_npcs=[NPC.from_dict(npc) for npc in data.get("active_npcs", [])],
            positions={
                cid: GridPosition.from_dict(pos)
                for cid, pos in data.get("positions", {}).items()
            },
            turn_order=list(data.get("turn_order", [])),
            current_turn_index=data.get("current_turn_index", 0),
            round=data.get("round", 1),
            phase=TurnPhase(data.get("phase", TurnPhase.PLAYER_TURN.value)),
            total_xp_awarded=data.get("total_xp_awarded", 0),
            defeated_npcs=list(data.get("defeated_npcs", [])),
            combat_stats={
                cid: CombatStats(**stats)
                for cid, stats in data.get("combat_stats", {}).items()
            },
            movement_used=data.get("movement_used", 0),
            event_log=list(data.get("event_log", [])),
            final_stats=data.get("final_stats"),
            tile_data=data.get("tile_data"),
            location=data.get("location", ""),
        )
