"""Live transfer records and the append-only transfer log."""

from __future__ import annotations

from dataclasses import dataclass

from ..backend.types import TransferProgress, TransferStatus


@dataclass(frozen=True)
class TransferRecord:
    """Latest known state of one in-flight or just-finished transfer."""

    transfer_id: str
    filename: str
    bytes_done: int
    bytes_total: int
    status: TransferStatus

    @classmethod
    def from_event(cls, event: TransferProgress) -> TransferRecord:
        return cls(
            transfer_id=event.transfer_id,
            filename=event.filename,
            bytes_done=max(0, int(event.progress)),
            bytes_total=max(0, int(event.total)),
            status=TransferStatus.parse(event.status),
        )

    @property
    def fraction(self) -> float:
        """Completed share in ``[0.0, 1.0]``; unknown totals report 0 until complete."""
        if self.status is TransferStatus.COMPLETE:
            return 1.0
        if self.bytes_total <= 0:
            return 0.0
        return min(1.0, self.bytes_done / self.bytes_total)


@dataclass(frozen=True)
class LogEntry:
    message: str
    ok: bool = True


class TransferLog:
    """Ordered, append-only log of per-file outcomes.

    Unbounded by default, which suits a session-scoped UI. ``max_entries``
    keeps only the newest entries.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        self.max_entries = max_entries
        self._entries: list[LogEntry] = []

    def append(self, message: str, *, ok: bool = True) -> LogEntry:
        entry = LogEntry(message=message, ok=ok)
        self._entries.append(entry)
        if self.max_entries is not None:
            overflow = len(self._entries) - max(1, self.max_entries)
            if overflow > 0:
                del self._entries[:overflow]
        return entry

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def messages(self) -> list[str]:
        return [entry.message for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "TransferRecord",
    "LogEntry",
    "TransferLog",
]
