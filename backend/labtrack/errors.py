"""Error taxonomy shared by the workflow core and the HTTP boundary.

Each error carries the HTTP status it maps to; ``labtrack.main`` registers
a single handler for ``LabTrackError``.
"""

from __future__ import annotations


class LabTrackError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error_name(), "message": self.message}

    @classmethod
    def error_name(cls) -> str:
        """Name of the nearest public error class; subclasses report their base."""
        for klass in cls.__mro__:
            if klass in PUBLIC_ERRORS:
                return klass.__name__
        return LabTrackError.__name__


class ValidationError(LabTrackError):
    """Malformed input, wrong requester or invalid target."""

    status_code = 400


class AuthenticationError(LabTrackError):
    status_code = 401


class PermissionDeniedError(LabTrackError):
    """Role not authorized for the action."""

    status_code = 403


class NotFoundError(LabTrackError):
    status_code = 404


class ConflictError(LabTrackError):
    """Non-pending request reviewed again, or a lost race on the same row."""

    status_code = 409


class DatabaseError(LabTrackError):
    """Transaction or infrastructure failure."""

    status_code = 500


# Error names that may appear in response bodies
PUBLIC_ERRORS = frozenset({
    ValidationError,
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    ConflictError,
    DatabaseError,
})
