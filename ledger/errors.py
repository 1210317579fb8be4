"""
Ledger Error Taxonomy

Every rejected request raises exactly one of these. Each carries a stable
``code`` so the calling API layer can translate it into a user-facing message
without string matching.

IMPORTANT: All validation happens before any write is attempted.
If one of these is raised, nothing was persisted.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger operations."""

    code: str = "unknown"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to the failure shape returned to callers."""
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentError(LedgerError):
    """Missing or malformed field, bad amount, bad date, unknown enum value."""

    code = "invalid-argument"


class NotFoundError(LedgerError):
    """Referenced account, transaction or schedule does not exist."""

    code = "not-found"


class PermissionDeniedError(LedgerError):
    """The entity belongs to a different owner."""

    code = "permission-denied"


class AlreadyExistsError(LedgerError):
    """Duplicate active account name for the same owner."""

    code = "already-exists"


class FailedPreconditionError(LedgerError):
    """Referenced account is inactive."""

    code = "failed-precondition"


class InternalError(LedgerError):
    """The persistence port failed. The batch was not applied."""

    code = "internal"
