"""Datatypes crossing the backend boundary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Entry:
    """One local (or path-addressed) directory entry."""

    name: str
    path: str
    is_dir: bool
    size: int | None = None


@dataclass(frozen=True)
class RemoteEntry:
    """One FTP or cloud listing row.

    ``id`` is the opaque cloud identifier; FTP entries leave it unset and are
    addressed by ``name`` relative to the server working directory.
    """

    name: str
    is_dir: bool
    size: int | None = None
    modified: str | None = None
    permissions: str | None = None
    id: str | None = None


class TransferStatus(str, Enum):
    """Status reported by pushed progress events."""

    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    ERROR = "error"

    @classmethod
    def parse(cls, raw: str | TransferStatus) -> TransferStatus:
        """Map backend status strings onto the three record states.

        Backends report intermediate states such as ``downloading`` or
        ``uploading``; anything that is not ``complete`` or ``error`` counts as
        in progress.
        """
        if isinstance(raw, cls):
            return raw
        value = str(raw).strip().lower()
        if value == cls.COMPLETE.value:
            return cls.COMPLETE
        if value == cls.ERROR.value:
            return cls.ERROR
        return cls.IN_PROGRESS


@dataclass(frozen=True)
class TransferProgress:
    """Pushed progress notification for one transfer."""

    transfer_id: str
    filename: str
    progress: int
    total: int
    status: str


def sort_directories_first(entries):
    """Sort directories before files, then by case-insensitive name."""
    return sorted(entries, key=lambda entry: (not entry.is_dir, entry.name.lower()))


__all__ = [
    "Entry",
    "RemoteEntry",
    "TransferStatus",
    "TransferProgress",
    "sort_directories_first",
]
