"""Shared error types for majordomo.

Execution and simulation failures are reported as data (results, warnings)
and never raised through the loops. These types cover the boundaries where
a caller has to be told no.
"""


class MajordomoError(Exception):
    """Base error for majordomo."""


class UnknownToolError(MajordomoError):
    """Requested tool has no registered capability."""


class ParamValidationError(MajordomoError):
    """Parameter bag failed validation at the boundary."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class StorageError(MajordomoError):
    """Row store read/write failed."""


class ProviderCallError(MajordomoError):
    """LLM/embedding provider call failed (network/auth/model/etc.)."""


class InvalidStateError(MajordomoError):
    """Lifecycle transition is not allowed from the current state."""


class NotFoundError(MajordomoError):
    """Entity id does not exist."""
