"""
Error taxonomy for the streak / reminder core.

Flask error handlers in app.py map these onto JSON responses.
"""

from __future__ import annotations


class StreakAppError(Exception):
    """Base class for all application errors."""

    status_code = 500


class NotAuthenticated(StreakAppError):
    """No valid user context. Not retried."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class PersistenceFailure(StreakAppError):
    """A read or write against the store failed."""

    status_code = 503


class InvalidSlot(StreakAppError):
    """Unknown notification slot. Raised before any data is read."""

    status_code = 400

    def __init__(self, slot):
        self.slot = slot
        super().__init__(f"Invalid notification slot: {slot!r}")


class TransportBatchFailure(StreakAppError):
    """A push batch could not be handed to the delivery service."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)
