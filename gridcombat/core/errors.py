"""
Grid Combat Engine - Custom Error Types
Structured exceptions for caller errors, with recovery hints.

Resolver-level problems (an ability that does not exist, a target that
cannot be reached) are returned as result values, not raised. These
exceptions cover misuse of the engine: acting out of turn, acting on a
finished encounter, unknown encounters and out-of-bounds coordinates.
"""
from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the combat engine."""
    # General errors
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Combat errors
    COMBAT_NOT_ACTIVE = "COMBAT_NOT_ACTIVE"
    COMBAT_INVALID_ACTION = "COMBAT_INVALID_ACTION"
    COMBAT_NOT_YOUR_TURN = "COMBAT_NOT_YOUR_TURN"
    COMBAT_TARGET_INVALID = "COMBAT_TARGET_INVALID"

    # Grid errors
    GRID_INVALID_POSITION = "GRID_INVALID_POSITION"

    # Encounter errors
    ENCOUNTER_NOT_FOUND = "ENCOUNTER_NOT_FOUND"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"


class GameError(Exception):
    """
    Base exception for all engine errors.

    Provides structured error information with:
    - Error code for programmatic handling
    - Human-readable message
    - Additional context details
    - Recovery hints for the client
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        recovery_hint: Optional[str] = None,
        http_status: int = 500
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "recoverable": self.recoverable,
                "recovery_hint": self.recovery_hint
            }
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# =============================================================================
# Combat Errors
# =============================================================================

class CombatError(GameError):
    """Combat-related errors."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.COMBAT_INVALID_ACTION,
        message: str = "Invalid combat action",
        **kwargs
    ):
        kwargs.setdefault("http_status", 400)
        super().__init__(code=code, message=message, **kwargs)


class NotYourTurnError(CombatError):
    """Raised when a step is requested for a combatant whose turn it isn't."""

    def __init__(self, current_combatant: Optional[str] = None, phase: Optional[str] = None):
        details = {}
        if current_combatant:
            details["current_turn"] = current_combatant
        if phase:
            details["phase"] = phase
        super().__init__(
            code=ErrorCode.COMBAT_NOT_YOUR_TURN,
            message="It's not your turn",
            details=details,
            recovery_hint="Resolve the pending NPC turns first"
        )


class TargetInvalidError(CombatError):
    """Raised when an explicit target id is not part of the encounter."""

    def __init__(self, target_id: Optional[str] = None, reason: str = "Target is not valid"):
        details = {}
        if target_id:
            details["target_id"] = target_id
        super().__init__(
            code=ErrorCode.COMBAT_TARGET_INVALID,
            message=reason,
            details=details,
            recovery_hint="Select a combatant that is on the grid"
        )


class CombatNotActiveError(CombatError):
    """Raised when a combat step is attempted on a finished encounter."""

    def __init__(self, encounter_id: Optional[str] = None):
        details = {}
        if encounter_id:
            details["encounter_id"] = encounter_id
        super().__init__(
            code=ErrorCode.COMBAT_NOT_ACTIVE,
            message="Encounter is no longer active",
            details=details,
            recovery_hint="Start a new encounter to enter combat"
        )


# =============================================================================
# Grid Errors
# =============================================================================

class InvalidPositionError(GameError):
    """Raised when a grid coordinate falls outside the encounter grid."""

    def __init__(self, row: int, col: int, grid_size: int):
        super().__init__(
            code=ErrorCode.GRID_INVALID_POSITION,
            message=f"Position ({row}, {col}) is outside the {grid_size}x{grid_size} grid",
            details={"row": row, "col": col, "grid_size": grid_size},
            http_status=400,
            recovery_hint=f"Use coordinates between 0 and {grid_size - 1}"
        )


# =============================================================================
# Encounter Errors
# =============================================================================

class EncounterNotFoundError(GameError):
    """Raised when an encounter id is unknown to the store."""

    def __init__(self, encounter_id: Optional[str] = None):
        details = {}
        if encounter_id:
            details["encounter_id"] = encounter_id
        super().__init__(
            code=ErrorCode.ENCOUNTER_NOT_FOUND,
            message="Encounter not found",
            details=details,
            http_status=404,
            recovery_hint="Create a new encounter"
        )


# =============================================================================
# Database Errors
# =============================================================================

class DatabaseError(GameError):
    """Persistence failures surfaced at the service boundary."""

    def __init__(
        self,
        message: str = "Database error",
        **kwargs
    ):
        super().__init__(
            code=ErrorCode.DATABASE_ERROR,
            message=message,
            http_status=500,
            recoverable=True,
            recovery_hint="Please try again",
            **kwargs
        )


# =============================================================================
# Validation Error
# =============================================================================

class ValidationError(GameError):
    """Input validation errors."""

    def __init__(self, field: str, message: str, value: Any = None):
        details = {"field": field}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
            http_status=400,
            recovery_hint=f"Check the value for '{field}'"
        )
