"""
Exception hierarchy for Bracketeer.

Every error raised on purpose by the engine derives from BracketeerError.
The four families tell callers what went wrong and what to do about it:

- ValidationError: the request itself is malformed (bad score, unknown
  bracket type, too few entrants). Nothing was changed.
- PreconditionError: the request is well-formed but not allowed right now
  (match in the wrong state, venue already booked, bracket finished).
- NotFoundError: a referenced category, bracket or match does not exist.
- ConsistencyError: the stored bracket topology disagrees with itself.
  This is a bug, not a user error, and is logged as an operational issue.

Each class carries an HTTP status code so the web layer can map errors
without a lookup table of its own.
"""

from typing import Optional


class BracketeerError(Exception):
    """Base exception for all Bracketeer errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "detail": self.message,
            **({"context": self.details} if self.details else {}),
        }


# =============================================================================
# Validation errors
# =============================================================================

class ValidationError(BracketeerError):
    """Raised when input is rejected before any state change."""

    status_code = 400


class InvalidScoreError(ValidationError):
    """Raised when a score is malformed or has no determinable winner."""


class InsufficientEntrantsError(ValidationError):
    """Raised when a category has fewer than two eligible entrants."""


class UnknownBracketTypeError(ValidationError):
    """Raised for a bracket type with no registered format."""


class UnknownSeedingMethodError(ValidationError):
    """Raised for a seeding method that does not exist."""


class InvalidEntrantError(ValidationError):
    """Raised when an entrant is not one of the match's two entrants."""


class MissingReasonError(ValidationError):
    """Raised when an operation that requires a reason gets a blank one."""


class EntrantLockedError(ValidationError):
    """Raised when an entrant is modified after its bracket was generated."""


class UnknownPlayFormatError(ValidationError):
    """Raised for a play format other than singles, doubles or mixed doubles."""


# =============================================================================
# Precondition errors
# =============================================================================

class PreconditionError(BracketeerError):
    """Raised when an operation is not allowed in the current state."""

    status_code = 409


class InvalidTransitionError(PreconditionError):
    """Raised when a match lifecycle transition is not permitted."""

    def __init__(self, action: str, status: str, allowed: tuple[str, ...]):
        super().__init__(
            f"Cannot {action} a match with status '{status}' "
            f"(allowed from: {', '.join(allowed)})",
            {"action": action, "status": status, "allowed": list(allowed)},
        )
        self.action = action
        self.status = status


class SchedulingConflictError(PreconditionError):
    """Raised when a venue is already booked for the requested slot."""


class BracketCompleteError(PreconditionError):
    """Raised when a result is recorded against a finished bracket."""


class BracketExistsError(PreconditionError):
    """Raised when a category already has a generated bracket."""


class MatchNotReadyError(PreconditionError):
    """Raised when a match is missing an entrant it needs."""


class ReplayExistsError(PreconditionError):
    """Raised when a cancelled match's node already has a live match."""


# =============================================================================
# Not found errors
# =============================================================================

class NotFoundError(BracketeerError):
    """Raised when a referenced record does not exist."""

    status_code = 404


class CategoryNotFoundError(NotFoundError):
    """Raised when a category id is unknown."""


class BracketNotFoundError(NotFoundError):
    """Raised when a bracket id is unknown."""


class MatchNotFoundError(NotFoundError):
    """Raised when a match id is unknown."""


# =============================================================================
# Consistency errors
# =============================================================================

class ConsistencyError(BracketeerError):
    """Raised when persisted state contradicts itself."""

    status_code = 500


class TopologyError(ConsistencyError):
    """
    Raised when the bracket node graph cannot absorb a result.

    Examples: a node referenced by a link does not exist, a target slot
    already holds a different entrant, or a node is resolved twice.
    """
