"""Domain models for encounters, combatants and abilities."""
from gridcombat.models.abilities import (
    Ability,
    AbilityRange,
    ActionAbility,
    AOEData,
    BothRange,
    CantripAbility,
    MeleeRange,
    RacialAbility,
    RangedRange,
    SelfRange,
    SpellAbility,
    TouchRange,
    WeaponAbility,
)
from gridcombat.models.combatants import (
    NPC,
    PLAYER_ID,
    Combatant,
    Disposition,
    PlayerState,
    xp_for_challenge_rating,
)
from gridcombat.models.encounter import (
    CombatStats,
    EncounterState,
    EncounterStatus,
    TurnPhase,
)
