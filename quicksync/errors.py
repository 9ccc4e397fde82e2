"""Exception taxonomy shared by backends, tree engines, and transfers.

Fetch and operation failures are ``BackendError``. Provider capability gaps
and local validation failures are kept distinct so callers can report them
without treating them as backend failures.
"""

from __future__ import annotations


class QuickSyncError(Exception):
    """Base class for all quicksync errors."""


class BackendError(QuickSyncError):
    """A backend call (listing, transfer, file operation) failed."""


class NotConnectedError(BackendError):
    """A remote call was issued without an active session."""

    def __init__(self, message: str = "No active FTP connection") -> None:
        super().__init__(message)


class CapabilityError(QuickSyncError):
    """The operation is not supported by the current provider."""


class MissingIdentifierError(QuickSyncError):
    """A cloud entry has no backend identifier to address it by."""


__all__ = [
    "QuickSyncError",
    "BackendError",
    "NotConnectedError",
    "CapabilityError",
    "MissingIdentifierError",
]
