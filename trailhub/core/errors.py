"""
Error Types.

Every failure a user action can run into is one of these. Nothing here is
fatal to the process: each error is scoped to the single attempted operation.
"""

from typing import Optional


class TrailHubError(Exception):
    """Base class for all TrailHub errors."""


class ValidationError(TrailHubError, ValueError):
    """Input rejected on the client before any remote call was made."""


class NotAuthenticatedError(TrailHubError):
    """The action needs a signed-in identity and there is none."""

    def __init__(self, message: str = "You need to sign in first."):
        super().__init__(message)


class ToggleInProgressError(TrailHubError):
    """A favorite toggle for the same trail is still waiting on the store."""

    def __init__(self, trail_id: str):
        self.trail_id = trail_id
        super().__init__(f"A favorite change for trail '{trail_id}' is already in progress.")


class BackendError(TrailHubError, RuntimeError):
    """
    A remote call failed (network, store rejection, auth rejection).

    Attributes:
        status_code (Optional[int]): HTTP status returned by the backend, if any.
        code (Optional[str]): Backend-specific error code (e.g. PostgREST "23505").
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        self.status_code = status_code
        self.code = code
        super().__init__(message)
