"""Error taxonomy for the practice and progress services.

Only ContentUnavailable is meant to reach the user. Store faults are
absorbed by the services: reads fall back to defaults, writes are logged.
"""


class RevisionError(Exception):
    """Base class for errors raised by this package."""


class ContentUnavailable(RevisionError):
    """Static lesson or question content could not be fetched or parsed."""

    def __init__(self, resource: str, reason: str = ""):
        self.resource = resource
        self.reason = reason
        message = f"Content unavailable: {resource}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class StoreWriteFailed(RevisionError):
    """A write to the progress store failed."""


class StoreReadFailed(RevisionError):
    """A read from the progress store failed."""


class ValidationError(RevisionError):
    """Malformed user input, rejected before it reaches the store."""
