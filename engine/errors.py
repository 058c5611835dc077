"""
engine/errors.py
================

Named failures raised by the live-scoring engine.

Every error carries a machine-readable ``kind`` (the class name) and a human
message so the HTTP layer can render it without inspecting the type.
Errors are raised before any field of the aggregate is mutated.
"""


class ScoringError(Exception):
    """Base class for all live-scoring failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


# Validation ------------------------------------------------------------------

class ValidationError(ScoringError):
    """Request rejected before touching the aggregate."""


class InvalidDelivery(ValidationError):
    """Malformed delivery payload or a delivery inconsistent with the state."""


# State -----------------------------------------------------------------------

class MatchNotFound(ScoringError):
    pass


class MatchNotActive(ScoringError):
    """Match is completed, abandoned, or otherwise not accepting deliveries."""


class InningsNotActive(ScoringError):
    """Current innings is finished and the next one has not been started."""


class InningsInProgress(ScoringError):
    """The next innings was requested before the current one finished."""


class NoActiveBatter(ScoringError):
    """A batting slot is empty, e.g. after a wicket before the new batter."""


class BowlerNotAvailable(ScoringError):
    """Bowler breaks the no-consecutive-over rule or the per-bowler cap."""


class OverInProgress(ScoringError):
    """A bowler change was requested before the current over finished."""


# Concurrency -----------------------------------------------------------------

class ConcurrentUpdateConflict(ScoringError):
    """Another writer saved the match between our read and our write."""
