"""
Error taxonomy for the coaching session.

Every error here is fatal to the single operation that raised it, never to
the session: the HTTP layer maps each one to a status code and the session
stays usable.
"""
from typing import Optional


class CoachError(Exception):
    """Base class for all session-level errors."""
    status_code: int = 500


class InvalidRequestError(CoachError):
    """A snapshot is missing a field required before any network call."""
    status_code = 400


class TransportError(CoachError):
    """An external AI call failed or returned a non-success response."""
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class EvaluationParseError(CoachError):
    """The evaluator answered, but not with the expected structure."""
    status_code = 422

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class UnsupportedCapabilityError(CoachError):
    """Speech recognition is not available in this environment."""
    status_code = 501


class RequestInFlightError(CoachError):
    """A request of the same type is still waiting for its response."""
    status_code = 409


class SessionClosedError(CoachError):
    """The session was torn down."""
    status_code = 410
