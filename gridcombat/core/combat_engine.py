"""
Turn coordinator for grid encounters.

A round runs PLAYER_TURN, then the living friendly NPCs, then the living
hostile NPCs, then ROUND_END. Each public step method resolves exactly one
combatant's turn and returns a TurnResult, so a caller can checkpoint the
encounter between steps.

Ordering contract: NPC movement is written into the shared position map
immediately. NPCs later in ``turn_order`` see the new positions and any
kills from earlier in the same round.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from gridcombat.config import get_settings
from gridcombat.core.condition_effects import CombatModifier, RollMode
from gridcombat.core.errors import (
    CombatNotActiveError,
    NotYourTurnError,
    TargetInvalidError,
    ValidationError,
)
from gridcombat.core.geometry import (
    FEET_PER_SQUARE,
    GridPosition,
    aoe_cells,
    compute_initial_positions,
    require_in_bounds,
)
from gridcombat.core.movement import NPCMovementResult, build_blocked_set, find_path, move_toward
from gridcombat.core.rules_engine import (
    AOEResult,
    RollOutcome,
    impossible,
    resolve_aoe_action,
    resolve_npc_attack,
    resolve_player_action,
)
from gridcombat.core.targeting import (
    RangeCheck,
    build_aoe_shape,
    check_melee_range,
    get_aoe_targets,
    validate_attack_range,
    validate_movement,
)
from gridcombat.models.abilities import SpellAbility
from gridcombat.models.combatants import NPC, Disposition, PlayerState
from gridcombat.models.encounter import EncounterState, EncounterStatus, TurnPhase

logger = logging.getLogger(__name__)

NPC_PHASES = (TurnPhase.FRIENDLY_NPC_TURNS, TurnPhase.HOSTILE_NPC_TURNS)
HALTED_PHASES = (TurnPhase.ENCOUNTER_OVER, TurnPhase.PLAYER_DEFEATED)


@dataclass
class TurnResult:
    """Structured outcome of one combatant's step."""
    actor_id: str
    action: str  # attack, aoe, action, move, skip, impossible
    description: str = ""
    target_id: Optional[str] = None
    target_ids: List[str] = field(default_factory=list)
    outcome: Optional[RollOutcome] = None
    aoe: Optional[AOEResult] = None
    range_check: Optional[RangeCheck] = None
    movement: Optional[NPCMovementResult] = None
    damage_total: int = 0
    hp_after: Dict[str, int] = field(default_factory=dict)
    deaths: List[str] = field(default_factory=list)
    turn_consumed: bool = True
    round: int = 1
    turn_order: List[str] = field(default_factory=list)
    current_turn_index: int = 0
    phase: TurnPhase = TurnPhase.PLAYER_TURN
    round_complete: bool = False
    encounter_over: bool = False
    player_dead: bool = False

    @property
    def hit(self) -> bool:
        return bool(self.outcome and self.outcome.success and not self.outcome.no_check)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "action": self.action,
            "description": self.description,
            "target_id": self.target_id,
            "target_ids": list(self.target_ids),
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "aoe": self.aoe.to_dict() if self.aoe else None,
            "range_check": vars(self.range_check).copy() if self.range_check else None,
            "movement": self.movement.to_dict() if self.movement else None,
            "damage_total": self.damage_total,
            "hp_after": dict(self.hp_after),
            "deaths": list(self.deaths),
            "turn_consumed": self.turn_consumed,
            "round": self.round,
            "turn_order": list(self.turn_order),
            "current_turn_index": self.current_turn_index,
            "phase": self.phase.value,
            "round_complete": self.round_complete,
            "encounter_over": self.encounter_over,
            "player_dead": self.player_dead,
        }


# =============================================================================
# ENCOUNTER SETUP
# =============================================================================

def create_encounter(
    player: PlayerState,
    npcs: Sequence[NPC],
    grid_size: Optional[int] = None,
    positions: Optional[Dict[str, GridPosition]] = None,
    tile_data: Optional[List[int]] = None,
    location: str = "",
) -> EncounterState:
    """
    Build a fresh encounter.

    Combatants without an explicit position are placed automatically: the
    player at the center, NPCs along the top edge.

    Raises:
        InvalidPositionError: If an explicit position is off the grid
        ValidationError: On duplicate ids, shared cells or a malformed collision map
    """
    grid_size = grid_size or get_settings().GRID_SIZE
    ids = [player.id] + [npc.id for npc in npcs]
    if len(set(ids)) != len(ids):
        raise ValidationError("npcs", "Combatant ids must be unique")
    if tile_data is not None and len(tile_data) != grid_size * grid_size:
        raise ValidationError("tile_data", f"Collision map must have {grid_size * grid_size} cells", len(tile_data))

    placed = dict(positions or {})
    for cid, pos in placed.items():
        if cid not in ids:
            raise ValidationError("positions", f"Unknown combatant '{cid}'", cid)
        require_in_bounds(pos, grid_size)
    if len(set(placed.values())) != len(placed):
        raise ValidationError("positions", "Two combatants cannot share a cell")

    unplaced = [npc.id for npc in npcs if npc.id not in placed]
    defaults = compute_initial_positions(unplaced, grid_size, player_id=player.id)
    occupied = set(placed.values())
    for cid, pos in defaults.items():
        if cid in placed:
            continue
        if pos in occupied:
            pos = next(
                GridPosition(r, c)
                for r in range(grid_size) for c in range(grid_size)
                if GridPosition(r, c) not in occupied
            )
        placed[cid] = pos
        occupied.add(pos)

    state = EncounterState(
        player=player,
        active_npcs=list(npcs),
        positions=placed,
        grid_size=grid_size,
        tile_data=tile_data,
        location=location,
    )
    state.add_event("encounter_started", f"Encounter started with {len(npcs)} NPCs")
    return state


# =============================================================================
# COORDINATOR
# =============================================================================

class CombatEngine:
    """
    Drives one encounter turn by turn.

    Handles:
    - Turn order rebuilding at each round start
    - The player's action (single target, area, or no-check actions)
    - One NPC turn at a time: targeting, movement, attack
    - Kill bookkeeping, deferred XP and encounter termination
    """

    def __init__(self, state: EncounterState, rng: Optional[random.Random] = None, settings=None):
        """
        Args:
            state: Encounter to drive; mutated in place
            rng: Random source for every draw; pass a seeded instance for replays
            settings: Overrides ``get_settings()`` (targeting weights)
        """
        self.state = state
        self.rng = rng or random.Random()
        settings = settings or get_settings()
        self.player_target_weight = settings.HOSTILE_PLAYER_TARGET_WEIGHT
        self.ally_target_weight = settings.HOSTILE_ALLY_TARGET_WEIGHT

        if state.is_active and not state.turn_order:
            self.start_round()

    # =========================================================================
    # ROUND LIFECYCLE
    # =========================================================================

    def build_turn_order(self) -> List[str]:
        """Player, then living friendly NPCs, then living hostile NPCs."""
        friendly = [npc.id for npc in self.state.living_npcs(Disposition.FRIENDLY)]
        hostile = [npc.id for npc in self.state.living_npcs(Disposition.HOSTILE)]
        return [self.state.player.id] + friendly + hostile

    def start_round(self) -> None:
        """Rebuild the turn order and hand the turn to the player."""
        self._require_active()
        if self.state.phase == TurnPhase.ROUND_END:
            self.state.round += 1
        self.state.turn_order = self.build_turn_order()
        self.state.current_turn_index = 0
        self.state.movement_used = 0
        self.state.phase = TurnPhase.PLAYER_TURN
        self.state.add_event("round_started", f"Round {self.state.round} begins",
                             data={"turn_order": list(self.state.turn_order)})
        logger.info("Encounter %s: round %d, order %s",
                    self.state.id, self.state.round, self.state.turn_order)

    def _advance(self) -> bool:
        """Move to the next slot. Returns True when the round is complete."""
        self.state.current_turn_index += 1
        if self.state.current_turn_index >= len(self.state.turn_order):
            self.state.current_turn_index = len(self.state.turn_order)
            self.state.phase = TurnPhase.ROUND_END
            self.state.add_event("round_ended", f"Round {self.state.round} complete")
            return True
        npc = self.state.get_npc(self.state.turn_order[self.state.current_turn_index])
        if npc is not None and npc.is_friendly:
            self.state.phase = TurnPhase.FRIENDLY_NPC_TURNS
        else:
            self.state.phase = TurnPhase.HOSTILE_NPC_TURNS
        return False

    def _require_active(self) -> None:
        if not self.state.is_active or self.state.phase in HALTED_PHASES:
            raise CombatNotActiveError(self.state.id)

    # =========================================================================
    # PLAYER TURN
    # =========================================================================

    def move_player(self, destination: GridPosition) -> TurnResult:
        """
        Move the player's token during their turn.

        The player walks the shortest path around walls and living
        combatants; that path's length must fit in what is left of their
        speed this turn. Moving does not end the turn.
        """
        self._begin_player_step()
        require_in_bounds(destination, self.state.grid_size)
        player = self.state.player
        start = self.state.positions.get(player.id)
        if start is None:
            return self._finish(TurnResult(player.id, "impossible", "Player has no grid position",
                                           turn_consumed=False))

        remaining = max(0, player.speed - self.state.movement_used)
        straight = validate_movement(start, destination, remaining)
        if not straight.allowed:
            return self._finish(TurnResult(player.id, "impossible", straight.reason, turn_consumed=False))

        route = find_path(
            start,
            destination,
            self.state.grid_size,
            blocked=build_blocked_set(self.state.positions, self.state.living_ids(), player.id),
            is_wall=self.state.is_blocked_tile,
        )
        if not route.found:
            return self._finish(TurnResult(player.id, "impossible", route.description, turn_consumed=False))

        feet = route.steps * FEET_PER_SQUARE
        if feet > remaining:
            reason = f"Path of {feet} ft exceeds remaining movement of {remaining} ft"
            return self._finish(TurnResult(player.id, "impossible", reason, turn_consumed=False))

        self.state.positions[player.id] = destination
        self.state.movement_used += feet
        movement = NPCMovementResult(player.id, start, destination, moved=True, path=route.path,
                                     reason=f"Moved {feet} ft")
        return self._finish(TurnResult(player.id, "move", movement.reason, movement=movement,
                                       turn_consumed=False))

    def take_player_turn(
        self,
        ability_id: str,
        target_id: Optional[str] = None,
        aoe_origin: Optional[GridPosition] = None,
        aoe_direction: Optional[GridPosition] = None,
    ) -> TurnResult:
        """
        Resolve the player's action and pass the turn to the NPCs.

        Impossible or out-of-range actions are reported without using up
        the player's turn.

        Raises:
            CombatNotActiveError: If the encounter has ended
            NotYourTurnError: If NPC turns are still pending
        """
        self._begin_player_step()
        player = self.state.player
        ability = player.get_ability(ability_id)
        if ability is None:
            return self._reject(impossible(f"Ability '{ability_id}' not found"))

        if isinstance(ability, SpellAbility) and ability.aoe is not None:
            return self._player_aoe(ability, aoe_origin, aoe_direction)

        target = None
        range_check = None
        extra: List[CombatModifier] = []
        if ability.requires_target:
            target = self.state.get_combatant(target_id) if target_id else None
            if target is None or target.id == player.id:
                return self._reject(impossible(
                    "No target specified for targeted ability" if not target_id
                    else f"Target '{target_id}' is not in this encounter"
                ))
            if not target.is_alive:
                return self._reject(impossible(f"{target.name} is already defeated"))

            player_pos = self.state.positions.get(player.id)
            target_pos = self.state.positions.get(target.id)
            if player_pos is None or target_pos is None:
                return self._reject(impossible("Missing grid position for attacker or target"))

            range_check = validate_attack_range(player_pos, target_pos, ability.range)
            if not range_check.in_range:
                outcome = RollOutcome(check_type=f"{ability.name} Attack", success=False,
                                      notes=range_check.reason or "Target is out of range")
                return self._reject(outcome, action="out_of_range", range_check=range_check)
            if range_check.disadvantage:
                extra.append(CombatModifier(RollMode.DISADVANTAGE, "long range"))

        outcome = resolve_player_action(
            player, ability, target,
            positions=self.state.positions,
            living_ids=set(self.state.living_ids()),
            extra_modifiers=extra,
            rng=self.rng,
        )
        if outcome.impossible:
            return self._reject(outcome)

        result = TurnResult(player.id, "action" if outcome.no_check else "attack",
                            outcome.notes, target_id=target.id if target else None,
                            outcome=outcome, range_check=range_check)
        if target is not None and not outcome.no_check:
            self._record_attack(player.id, outcome)
        if target is not None and outcome.total_damage > 0:
            self._damage(result, target.id, outcome.total_damage, player.id)

        self.state.add_event("player_action", outcome.notes, player.id,
                             {"ability_id": ability.id, "target_id": result.target_id,
                              "damage": result.damage_total})
        return self._end_step(result)

    def _player_aoe(
        self,
        ability: SpellAbility,
        aoe_origin: Optional[GridPosition],
        aoe_direction: Optional[GridPosition],
    ) -> TurnResult:
        player = self.state.player
        caster_pos = self.state.positions.get(player.id)
        if caster_pos is None:
            return self._reject(impossible("Caster has no grid position"))
        if ability.aoe.origin == "self":
            aoe_origin = None
        if aoe_origin is not None:
            require_in_bounds(aoe_origin, self.state.grid_size)
            if ability.aoe.shape in ("sphere", "cube", "cylinder"):
                range_check = validate_attack_range(caster_pos, aoe_origin, ability.range)
                if not range_check.in_range:
                    outcome = RollOutcome(check_type=ability.name, success=False,
                                          notes=range_check.reason or "Point of origin is out of range")
                    return self._reject(outcome, action="out_of_range", range_check=range_check)

        shape = build_aoe_shape(ability.aoe, caster_pos, aoe_origin, aoe_direction)
        cells = aoe_cells(shape, self.state.grid_size)
        caught = get_aoe_targets(shape, self.state.positions, self.state.grid_size)
        targets = [
            npc for npc in (self.state.get_npc(cid) for cid in caught)
            if npc is not None and npc.is_alive
        ]

        aoe = resolve_aoe_action(player, ability, targets, cells, rng=self.rng)
        result = TurnResult(player.id, "aoe", aoe.check_type, aoe=aoe,
                            target_ids=[t.target_id for t in aoe.targets])
        for target_result in aoe.targets:
            if target_result.damage_taken > 0:
                self._damage(result, target_result.target_id, target_result.damage_taken, player.id)

        self.state.add_event("player_aoe", aoe.check_type, player.id,
                             {"targets": result.target_ids, "total_rolled": aoe.total_rolled})
        logger.debug("AOE %s caught %s (rolled %d)", ability.name, result.target_ids, aoe.total_rolled)
        return self._end_step(result)

    def _begin_player_step(self) -> None:
        self._require_active()
        if self.state.phase == TurnPhase.ROUND_END:
            self.start_round()
        if self.state.phase != TurnPhase.PLAYER_TURN:
            raise NotYourTurnError(self.state.current_combatant_id, self.state.phase.value)

    def _reject(self, outcome: RollOutcome, action: str = "impossible",
                range_check: Optional[RangeCheck] = None) -> TurnResult:
        logger.warning("Player action rejected in encounter %s: %s", self.state.id, outcome.notes)
        result = TurnResult(self.state.player.id, action, outcome.notes, outcome=outcome,
                            range_check=range_check, turn_consumed=False)
        return self._finish(result)

    # =========================================================================
    # NPC TURNS
    # =========================================================================

    def run_next_npc_turn(self) -> TurnResult:
        """
        Resolve the NPC whose slot is current, then advance.

        Raises:
            CombatNotActiveError: If the encounter has ended or the player is down
            NotYourTurnError: If it is the player's turn or the round is over
        """
        self._require_active()
        if self.state.phase not in NPC_PHASES:
            raise NotYourTurnError(self.state.current_combatant_id, self.state.phase.value)

        npc_id = self.state.turn_order[self.state.current_turn_index]
        npc = self.state.get_npc(npc_id)
        if npc is None or not npc.is_alive:
            return self._end_step(TurnResult(npc_id, "skip", "Already defeated"))
        if npc.disposition == Disposition.NEUTRAL:
            return self._end_step(TurnResult(npc_id, "skip", f"{npc.name} stays out of the fight"))

        target_id = self.choose_target(npc)
        if target_id is None:
            return self._end_step(TurnResult(npc_id, "skip", f"{npc.name} has no one to attack"))

        result = TurnResult(npc_id, "attack", target_id=target_id)
        npc_pos = self.state.positions.get(npc.id)
        target_pos = self.state.positions.get(target_id)
        if npc_pos is None or target_pos is None:
            result.action = "skip"
            result.description = "No grid position to act from"
            return self._end_step(result)

        if not check_melee_range(npc_pos, target_pos, npc.reach).in_range:
            result.movement = move_toward(
                npc.id, target_id,
                self.state.positions,
                self.state.grid_size,
                npc.speed,
                self.state.living_ids(),
                is_wall=self.state.is_blocked_tile,
            )
            npc_pos = self.state.positions[npc.id]

        result.range_check = check_melee_range(npc_pos, target_pos, npc.reach)
        if not result.range_check.in_range:
            result.action = "move"
            if result.movement and result.movement.moved:
                result.description = f"{npc.name} closes in"
            else:
                result.description = f"{npc.name} cannot reach its target"
            return self._end_step(result)

        target = self.state.get_combatant(target_id)
        outcome = resolve_npc_attack(
            npc, target,
            positions=self.state.positions,
            living_ids=set(self.state.living_ids()),
            rng=self.rng,
        )
        result.outcome = outcome
        result.description = outcome.notes
        self._record_attack(npc.id, outcome)
        if outcome.total_damage > 0:
            self._damage(result, target_id, outcome.total_damage, npc.id)

        self.state.add_event("npc_attack", outcome.notes, npc.id,
                             {"target_id": target_id, "damage": result.damage_total})
        return self._end_step(result)

    def run_npc_turns(self) -> List[TurnResult]:
        """Resolve NPC slots until the round ends, the encounter ends or the player falls."""
        results = []
        while self.state.is_active and self.state.phase in NPC_PHASES:
            result = self.run_next_npc_turn()
            results.append(result)
            if result.player_dead or result.encounter_over:
                break
        return results

    def choose_target(self, npc: NPC) -> Optional[str]:
        """
        Pick who an NPC attacks.

        Friendly NPCs choose uniformly among living hostiles. Hostile NPCs
        make a weighted choice between the player and living friendly NPCs.
        """
        if npc.is_friendly:
            hostiles = [h.id for h in self.state.living_npcs(Disposition.HOSTILE)]
            return self.rng.choice(hostiles) if hostiles else None

        candidates = []
        weights = []
        if self.state.player.is_alive:
            candidates.append(self.state.player.id)
            weights.append(self.player_target_weight)
        for ally in self.state.living_npcs(Disposition.FRIENDLY):
            candidates.append(ally.id)
            weights.append(self.ally_target_weight)
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]
        return self.rng.choices(candidates, weights=weights, k=1)[0]

    # =========================================================================
    # STATE MUTATION
    # =========================================================================

    def apply_damage(self, target_id: str, amount: int, attacker_id: Optional[str] = None) -> bool:
        """
        Apply a hit point change and handle a first kill.

        HP is clamped to [0, max_hp]. Returns True only on the step that takes
        the target from positive HP to 0; hitting a corpse again does nothing
        further.
        """
        target = self.state.get_combatant(target_id)
        if target is None:
            raise TargetInvalidError(target_id, "Unknown combatant")

        was_alive = target.is_alive
        before = target.current_hp
        target.current_hp = max(0, min(target.max_hp, target.current_hp - amount))
        dealt = max(0, before - target.current_hp)
        if dealt:
            self.state.stats_for(target_id).damage_taken += dealt
            if attacker_id:
                self.state.stats_for(attacker_id).damage_dealt += dealt

        killed = was_alive and not target.is_alive
        if killed and isinstance(target, NPC):
            self._on_npc_killed(target, attacker_id)
        return killed

    def _on_npc_killed(self, npc: NPC, attacker_id: Optional[str]) -> None:
        snapshot = npc.to_dict()
        snapshot["defeated_round"] = self.state.round
        snapshot["defeated_by"] = attacker_id
        self.state.defeated_npcs.append(snapshot)
        if attacker_id:
            self.state.stats_for(attacker_id).kills += 1
        if npc.is_hostile and npc.xp_value > 0:
            # Held until the encounter ends
            self.state.total_xp_awarded += npc.xp_value
        self.state.add_event("npc_defeated", f"{npc.name} is defeated", npc.id,
                             {"xp_value": npc.xp_value, "defeated_by": attacker_id})
        logger.info("%s defeated in encounter %s (pending XP %d)",
                    npc.name, self.state.id, self.state.total_xp_awarded)

    def update_conditions(
        self,
        combatant_id: str,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> List[str]:
        """Add and remove conditions on a combatant. Returns the new list."""
        combatant = self.state.get_combatant(combatant_id)
        if combatant is None:
            raise TargetInvalidError(combatant_id, "Unknown combatant")
        removing = {c.lower() for c in remove}
        conditions = [c for c in combatant.conditions if c.lower() not in removing]
        for condition in add:
            if condition.lower() not in {c.lower() for c in conditions}:
                conditions.append(condition.lower())
        combatant.conditions = conditions
        return conditions

    def end_encounter(self) -> Dict[str, Any]:
        """Flush deferred XP, snapshot final statistics and mark the encounter complete."""
        xp = self.state.total_xp_awarded
        self.state.player.experience += xp
        self.state.final_stats = {
            "rounds": self.state.round,
            "total_xp": xp,
            "defeated_npcs": [npc["id"] for npc in self.state.defeated_npcs],
            "combat_stats": {cid: stats.to_dict() for cid, stats in self.state.combat_stats.items()},
        }
        self.state.status = EncounterStatus.COMPLETED
        self.state.phase = TurnPhase.ENCOUNTER_OVER
        self.state.add_event("encounter_completed", f"Victory after {self.state.round} rounds",
                             data={"total_xp": xp})
        logger.info("Encounter %s complete after %d rounds, %d XP awarded",
                    self.state.id, self.state.round, xp)
        return self.state.final_stats

    def _record_attack(self, attacker_id: str, outcome: RollOutcome) -> None:
        stats = self.state.stats_for(attacker_id)
        if outcome.success:
            stats.hits += 1
        else:
            stats.misses += 1
        if outcome.critical_hit:
            stats.critical_hits += 1

    def _damage(self, result: TurnResult, target_id: str, amount: int, attacker_id: str) -> None:
        killed = self.apply_damage(target_id, amount, attacker_id)
        result.damage_total += amount
        result.hp_after[target_id] = self.state.get_combatant(target_id).current_hp
        if killed:
            result.deaths.append(target_id)
        if target_id == self.state.player.id and not self.state.player.is_alive:
            result.player_dead = True

    def _end_step(self, result: TurnResult) -> TurnResult:
        """Check for player death and victory, then advance to the next slot."""
        if result.player_dead:
            self.state.phase = TurnPhase.PLAYER_DEFEATED
            self.state.current_turn_index += 1
            self.state.add_event("player_defeated", f"{self.state.player.name} falls",
                                 self.state.player.id)
            logger.info("Player defeated in encounter %s, halting round %d",
                        self.state.id, self.state.round)
        elif not self.state.hostiles_remaining():
            self.state.current_turn_index += 1
            self.end_encounter()
            result.encounter_over = True
        else:
            result.round_complete = self._advance()
        return self._finish(result)

    def _finish(self, result: TurnResult) -> TurnResult:
        result.round = self.state.round
        result.turn_order = list(self.state.turn_order)
        result.current_turn_index = self.state.current_turn_index
        result.phase = self.state.phase
        result.encounter_over = result.encounter_over or not self.state.is_active
        return result
