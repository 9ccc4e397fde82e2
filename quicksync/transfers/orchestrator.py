"""Routing of dropped/requested files to backend transfers, plus live progress.

A batch (one drop gesture or one multi-select download) runs strictly one
file at a time in the given order. Every file produces exactly one log line
whatever its outcome, and the batch ends with a single refresh of the
affected pane(s). Separate batches are not coordinated with each other.

Pushed progress events are folded into ``transfers`` independently of any
batch. Completed and failed records are dropped after ``removal_delay``
seconds.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import posixpath
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..backend.cloud import GoogleDriveClient
from ..backend.ftp import FtpSession
from ..backend.local import LocalFileSystem
from ..backend.types import RemoteEntry, TransferProgress, TransferStatus
from ..connection import CloudConnection, FtpConnection
from ..errors import BackendError, CapabilityError
from .records import LogEntry, TransferLog, TransferRecord

logger = logging.getLogger(__name__)

COMPLETED_RECORD_TTL = 5.0
FINISHED_STATUSES = frozenset({TransferStatus.COMPLETE, TransferStatus.ERROR})


class PaneRole(Enum):
    LOCAL = "local"
    REMOTE = "remote"


class TransferDirection(Enum):
    LOCAL_COPY = "local-copy"
    UPLOAD = "upload"


@dataclass(frozen=True)
class DropContext:
    """Where a batch lands and which remote connection (if any) is active.

    ``remote_path`` is the FTP working directory and ``cloud_folder_id`` the
    current cloud folder (``None`` for the drive root).
    """

    target: PaneRole
    local_dir: str | None = None
    ftp: FtpConnection | None = None
    cloud: CloudConnection | None = None
    remote_path: str | None = None
    cloud_folder_id: str | None = None
    download_dir: str | None = None

    @property
    def remote_active(self) -> bool:
        return self.ftp is not None or self.cloud is not None


BatchCallback = Callable[[frozenset[PaneRole]], object]


class TransferOrchestrator:
    """Sequential batch dispatch and progress-event reconciliation."""

    def __init__(
        self,
        local: LocalFileSystem,
        ftp_session: FtpSession,
        cloud_client: GoogleDriveClient | None = None,
        *,
        log: TransferLog | None = None,
        removal_delay: float = COMPLETED_RECORD_TTL,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        on_batch_complete: BatchCallback | None = None,
        on_transfer_complete: Callable[[TransferRecord], None] | None = None,
    ) -> None:
        self.local = local
        self.ftp_session = ftp_session
        self.cloud_client = cloud_client
        self.log = log if log is not None else TransferLog()
        self.removal_delay = removal_delay
        self.transfers: dict[str, TransferRecord] = {}
        self._sleep = sleep
        self._on_batch_complete = on_batch_complete
        self._on_transfer_complete = on_transfer_complete
        self._removals: set[asyncio.Task] = set()

    # -- routing --------------------------------------------------------

    @staticmethod
    def direction_for(context: DropContext) -> TransferDirection:
        """Drops on the remote pane upload while connected; everything else copies locally."""
        if context.target is PaneRole.REMOTE and context.remote_active:
            return TransferDirection.UPLOAD
        return TransferDirection.LOCAL_COPY

    async def dispatch_drop(self, files: Sequence[str], context: DropContext) -> list[LogEntry]:
        """Copy or upload ``files`` one after another, in drop order."""
        if not files:
            return []
        direction = self.direction_for(context)
        logger.debug("Dispatching %d dropped file(s) as %s", len(files), direction.value)

        outcomes: list[LogEntry] = []
        for source in files:
            if direction is TransferDirection.UPLOAD:
                outcomes.append(await self._transfer(lambda source=source: self._upload(source, context), "Upload"))
            else:
                outcomes.append(await self._transfer(lambda source=source: self._copy(source, context), "Copy"))

        affected = PaneRole.REMOTE if direction is TransferDirection.UPLOAD else PaneRole.LOCAL
        await self._finish_batch(frozenset({affected}))
        return outcomes

    async def request_download(self, entries: Sequence[RemoteEntry], context: DropContext) -> list[LogEntry]:
        """Download remote entries (files or folders) sequentially into the download dir."""
        if not entries:
            return []
        destination = self._download_dir(context)
        outcomes: list[LogEntry] = []
        for entry in entries:
            outcomes.append(
                await self._transfer(lambda entry=entry: self._download(entry, destination, context), "Download")
            )
        await self._finish_batch(frozenset({PaneRole.LOCAL}))
        return outcomes

    async def _transfer(self, call: Callable[[], Awaitable[str]], label: str) -> LogEntry:
        try:
            message = await call()
        except CapabilityError as exc:
            return self.log.append(f"{label} not supported: {exc}", ok=False)
        except BackendError as exc:
            logger.warning("%s failed: %s", label, exc)
            return self.log.append(f"{label} error: {exc}", ok=False)
        return self.log.append(message)

    async def _copy(self, source: str, context: DropContext) -> str:
        if not source:
            raise BackendError("no path available")
        if not context.local_dir:
            raise BackendError(f"No local destination for {Path(source).name}")
        return await self.local.copy_to_local(source, context.local_dir)

    async def _upload(self, source: str, context: DropContext) -> str:
        if not source:
            raise BackendError("no path available")
        name = Path(source).name
        if context.ftp is not None:
            target = posixpath.join(context.remote_path, name) if context.remote_path else name
            return await self.ftp_session.upload_file(source, target)
        if context.cloud is None:
            raise BackendError("No active remote connection")
        if self.cloud_client is None:
            raise CapabilityError("No cloud client configured")
        return await self.cloud_client.upload_file(context.cloud, source, context.cloud_folder_id)

    async def _download(self, entry: RemoteEntry, destination: Path, context: DropContext) -> str:
        await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)
        local_path = str(destination / entry.name)
        if context.ftp is not None:
            source = posixpath.join(context.remote_path, entry.name) if context.remote_path else entry.name
            if entry.is_dir:
                return await self.ftp_session.download_folder(source, local_path)
            return await self.ftp_session.download_file(source, local_path)
        if context.cloud is not None:
            if self.cloud_client is None:
                raise CapabilityError("No cloud client configured")
            if not entry.id:
                raise BackendError(f"{entry.name} has no cloud identifier")
            if entry.is_dir:
                raise CapabilityError("folder download is not supported for this provider")
            return await self.cloud_client.download_file(context.cloud, entry.id, local_path, entry.name)
        raise BackendError("No active remote connection")

    def _download_dir(self, context: DropContext) -> Path:
        if context.download_dir:
            return Path(context.download_dir)
        return self.local.home() / "Downloads"

    async def _finish_batch(self, panes: frozenset[PaneRole]) -> None:
        if self._on_batch_complete is None:
            return
        result = self._on_batch_complete(panes)
        if inspect.isawaitable(result):
            await result

    # -- progress -------------------------------------------------------

    def on_progress_event(self, event: TransferProgress) -> TransferRecord:
        """Merge one pushed event; unknown ids simply start a fresh record."""
        record = TransferRecord.from_event(event)
        self.transfers[record.transfer_id] = record
        if record.status is TransferStatus.COMPLETE and self._on_transfer_complete is not None:
            self._on_transfer_complete(record)
        if record.status in FINISHED_STATUSES:
            task = asyncio.ensure_future(self._expire(record.transfer_id))
            self._removals.add(task)
            task.add_done_callback(self._removals.discard)
        return record

    async def _expire(self, transfer_id: str) -> None:
        await self._sleep(self.removal_delay)
        record = self.transfers.get(transfer_id)
        if record is not None and record.status in FINISHED_STATUSES:
            del self.transfers[transfer_id]

    def active_transfers(self) -> list[TransferRecord]:
        return list(self.transfers.values())

    async def settle(self) -> None:
        """Wait for all scheduled record removals."""
        while self._removals:
            await asyncio.gather(*list(self._removals))


__all__ = [
    "PaneRole",
    "TransferDirection",
    "DropContext",
    "TransferOrchestrator",
    "COMPLETED_RECORD_TTL",
]
