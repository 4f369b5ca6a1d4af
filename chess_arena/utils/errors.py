"""Error codes, operation results and exception classes.

Expected business-rule rejections (wrong turn, illegal move, full
tournament, ...) travel as ``ActionResult`` values. Exceptions are reserved
for invariant violations that abort the current operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """How a transport should classify a failure."""

    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INVARIANT = "invariant"


class ErrorCode(str, Enum):
    """Standard error codes."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Not found
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    BRACKET_NOT_FOUND = "BRACKET_NOT_FOUND"

    # Match errors
    SAME_PLAYER = "SAME_PLAYER"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    NOT_A_PARTICIPANT = "NOT_A_PARTICIPANT"
    WRONG_TURN = "WRONG_TURN"
    ILLEGAL_MOVE = "ILLEGAL_MOVE"
    MATCH_IN_TOURNAMENT = "MATCH_IN_TOURNAMENT"

    # Tournament errors
    NOT_OPEN_FOR_REGISTRATION = "NOT_OPEN_FOR_REGISTRATION"
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    TOO_FEW_PARTICIPANTS = "TOO_FEW_PARTICIPANTS"
    INSUFFICIENT_PARTICIPANTS = "INSUFFICIENT_PARTICIPANTS"
    ALREADY_FINISHED = "ALREADY_FINISHED"
    MATCH_NOT_IN_TOURNAMENT = "MATCH_NOT_IN_TOURNAMENT"

    # Invariant violations
    SLOT_NOT_FOUND = "SLOT_NOT_FOUND"
    BRACKET_INVARIANT = "BRACKET_INVARIANT"

    @property
    def kind(self) -> ErrorKind:
        return _ERROR_KINDS.get(self, ErrorKind.REJECTED)


_ERROR_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.INTERNAL_ERROR: ErrorKind.INVARIANT,
    ErrorCode.UNAUTHORIZED: ErrorKind.UNAUTHORIZED,
    ErrorCode.FORBIDDEN: ErrorKind.FORBIDDEN,
    ErrorCode.MATCH_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.TOURNAMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.BRACKET_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.SLOT_NOT_FOUND: ErrorKind.INVARIANT,
    ErrorCode.BRACKET_INVARIANT: ErrorKind.INVARIANT,
}


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a logical operation.

    Attributes:
        success: Whether the operation was applied
        error_code: Failure code (None on success)
        message: Human-readable failure reason
        details: Extra failure context
        data: Operation payload on success (snapshot dict, id, ...)
    """

    success: bool
    error_code: ErrorCode | None = None
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> ActionResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> ActionResult:
        return cls(
            success=False,
            error_code=code,
            message=message,
            details=details or {},
        )

    @property
    def kind(self) -> ErrorKind | None:
        if self.error_code is None:
            return None
        return self.error_code.kind

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        if self.success:
            return {"success": True, "data": self.data}
        return {
            "success": False,
            "error": {
                "code": self.error_code.value if self.error_code else None,
                "message": self.message,
                "details": self.details,
            },
        }


class ArenaError(Exception):
    """Base exception for unrecoverable operation failures.

    Attributes:
        code: Error code for programmatic handling
        message: Diagnostic message
        details: Additional error details
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InsufficientParticipantsError(ArenaError):
    """Raised when a bracket is requested for fewer than two participants."""

    def __init__(self, count: int):
        super().__init__(
            code=ErrorCode.INSUFFICIENT_PARTICIPANTS,
            message=f"A bracket needs at least 2 participants, got {count}",
            details={"count": count},
        )


class BracketInvariantError(ArenaError):
    """Raised when a stored bracket does not have the expected shape."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.BRACKET_INVARIANT,
            message=message,
            details=details,
        )


class SlotNotFoundError(BracketInvariantError):
    """Raised when bracket coordinates point outside the bracket."""

    def __init__(self, round_number: int, match_number: int):
        super().__init__(
            message=f"No bracket slot at round {round_number}, match {match_number}",
            details={"round": round_number, "matchNumber": match_number},
        )
        self.code = ErrorCode.SLOT_NOT_FOUND.value
