"""Remote listing engines for FTP servers and cloud drives.

Unlike the local tree, a remote pane keeps no multi-level cache: only the
current directory's entries plus its navigation address. Listing a new
folder replaces the whole visible entry set. FTP addresses folders by path
and trusts the server's reported working directory; cloud drives address
folders by identifier and keep a client-side breadcrumb stack. The two
navigation mechanisms are intentionally separate subclasses.
"""

from __future__ import annotations

import itertools
import logging
import posixpath
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..backend.cloud import GoogleDriveClient
from ..backend.ftp import FtpSession
from ..backend.types import RemoteEntry
from ..connection import CloudConnection
from ..errors import BackendError, CapabilityError, MissingIdentifierError
from ..tree_model.filtering import filter_nodes
from .navigation import CloudNavigationStack

logger = logging.getLogger(__name__)


class OperationStatus(Enum):
    OK = "ok"
    FAILED = "failed"
    UNSUPPORTED = "unsupported"
    INVALID = "invalid"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one per-entry operation, ready for the transfer log."""

    status: OperationStatus
    message: str

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.OK


class RemoteTreeStateEngine(ABC):
    """Depth-1 remote listing with latest-request-wins reconciliation."""

    def __init__(self, *, on_change: Callable[[], None] | None = None) -> None:
        self._on_change = on_change
        self.entries: tuple[RemoteEntry, ...] = ()
        self.error: str | None = None
        self.loading = False
        self._tokens = itertools.count(1)
        self._listing_token = 0

    # -- navigation (provider specific) ---------------------------------

    @property
    @abstractmethod
    def display_path(self) -> str:
        ...

    @abstractmethod
    async def refresh(self) -> None:
        ...

    @abstractmethod
    async def navigate_into(self, entry: RemoteEntry) -> None:
        ...

    @abstractmethod
    async def go_up(self) -> None:
        ...

    # -- per-entry operations (provider specific) -----------------------

    @abstractmethod
    async def rename(self, entry: RemoteEntry, new_name: str) -> OperationResult:
        ...

    @abstractmethod
    async def delete(self, entry: RemoteEntry) -> OperationResult:
        ...

    @abstractmethod
    async def copy_as(self, entry: RemoteEntry, new_name: str) -> OperationResult:
        ...

    @abstractmethod
    async def download(self, entry: RemoteEntry, local_dir: str) -> OperationResult:
        ...

    @abstractmethod
    async def download_folder(self, entry: RemoteEntry, local_dir: str) -> OperationResult:
        ...

    # -- shared ---------------------------------------------------------

    def filter(self, query: str) -> list[RemoteEntry]:
        return filter_nodes(self.entries, query)

    @property
    def is_empty(self) -> bool:
        return not self.loading and self.error is None and not self.entries

    async def _apply_listing(self, fetch: Callable[[], Awaitable[Sequence[RemoteEntry]]]) -> bool:
        """Run ``fetch`` and install its entries unless a newer listing started.

        Returns ``True`` when the listing was applied. On failure the previous
        entries stay visible and ``error`` carries the message.
        """
        token = next(self._tokens)
        self._listing_token = token
        self.loading = True
        self.error = None
        self._notify()
        try:
            entries = await fetch()
        except BackendError as exc:
            if token != self._listing_token:
                return False
            logger.warning("Remote listing failed: %s", exc)
            self.error = str(exc)
            self.loading = False
            self._notify()
            return False

        if token != self._listing_token:
            logger.debug("Dropping stale remote listing")
            return False
        self.entries = tuple(entries)
        self.loading = False
        self._notify()
        return True

    async def _operation(self, call: Callable[[], Awaitable[str]]) -> OperationResult:
        """Run one backend operation, then re-list the current folder.

        Validation and capability failures are reported without touching the
        backend and without re-listing.
        """
        try:
            message = await call()
        except MissingIdentifierError as exc:
            return OperationResult(OperationStatus.INVALID, str(exc))
        except CapabilityError as exc:
            return OperationResult(OperationStatus.UNSUPPORTED, str(exc))
        except BackendError as exc:
            logger.warning("Remote operation failed: %s", exc)
            result = OperationResult(OperationStatus.FAILED, str(exc))
        else:
            result = OperationResult(OperationStatus.OK, message)
        await self.refresh()
        return result

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()


class FtpTreeEngine(RemoteTreeStateEngine):
    """FTP listing whose current path is whatever the server reports."""

    def __init__(self, session: FtpSession, *, on_change: Callable[[], None] | None = None) -> None:
        super().__init__(on_change=on_change)
        self.session = session
        self.path = "/"

    @property
    def display_path(self) -> str:
        return self.path

    def remote_path(self, entry: RemoteEntry) -> str:
        return posixpath.join(self.path, entry.name)

    async def _load(self, target: str | None) -> None:
        resolved_path = self.path

        async def fetch() -> Sequence[RemoteEntry]:
            nonlocal resolved_path
            entries = await self.session.list_remote_directory(target)
            resolved_path = await self.session.get_remote_working_directory()
            return entries

        if await self._apply_listing(fetch):
            self.path = resolved_path

    async def refresh(self) -> None:
        await self._load(None)

    async def navigate_into(self, entry: RemoteEntry) -> None:
        if not entry.is_dir:
            return
        await self._load(entry.name)

    async def go_up(self) -> None:
        await self._load("..")

    async def rename(self, entry: RemoteEntry, new_name: str) -> OperationResult:
        source = self.remote_path(entry)
        target = posixpath.join(self.path, new_name)
        return await self._operation(lambda: self.session.rename(source, target))

    async def delete(self, entry: RemoteEntry) -> OperationResult:
        target = self.remote_path(entry)
        if entry.is_dir:
            return await self._operation(lambda: self.session.delete_dir(target))
        return await self._operation(lambda: self.session.delete_file(target))

    async def copy_as(self, entry: RemoteEntry, new_name: str) -> OperationResult:
        """Copy a file server-side by downloading to a temp dir and re-uploading."""
        source = self.remote_path(entry)
        target = posixpath.join(self.path, new_name)

        async def call() -> str:
            if entry.is_dir:
                raise CapabilityError("Copying folders is not supported over FTP")
            with tempfile.TemporaryDirectory(prefix="quicksync-") as tmp:
                staged = str(Path(tmp) / entry.name)
                await self.session.download_file(source, staged)
                await self.session.upload_file(staged, target)
            return f"Copied {entry.name} to {new_name}"

        return await self._operation(call)

    async def download(self, entry: RemoteEntry, local_dir: str) -> OperationResult:
        source = self.remote_path(entry)
        local_path = str(Path(local_dir) / entry.name)
        return await self._operation(lambda: self.session.download_file(source, local_path))

    async def download_folder(self, entry: RemoteEntry, local_dir: str) -> OperationResult:
        source = self.remote_path(entry)
        local_path = str(Path(local_dir) / entry.name)
        return await self._operation(lambda: self.session.download_folder(source, local_path))

    async def create_dir(self, name: str) -> OperationResult:
        target = posixpath.join(self.path, name)
        return await self._operation(lambda: self.session.create_dir(target))


class CloudTreeEngine(RemoteTreeStateEngine):
    """Cloud-drive listing addressed by folder identifiers and a breadcrumb stack."""

    def __init__(
        self,
        client: GoogleDriveClient,
        connection: CloudConnection,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(on_change=on_change)
        self.client = client
        self.connection = connection
        self.stack = CloudNavigationStack()

    @property
    def display_path(self) -> str:
        return self.stack.display_path()

    @property
    def folder_id(self) -> str | None:
        return self.stack.folder_id

    async def _load(self, target: CloudNavigationStack | None = None) -> None:
        """List ``target``'s folder and adopt it as the current stack on success."""
        target = target or self.stack
        folder_id = target.folder_id
        if await self._apply_listing(lambda: self.client.list_directory(self.connection, folder_id)):
            self.stack = target

    async def refresh(self) -> None:
        await self._load()

    async def navigate_into(self, entry: RemoteEntry) -> None:
        if not entry.is_dir:
            return
        if not entry.id:
            self.error = f"Cannot open {entry.name}: no cloud identifier"
            self._notify()
            return
        target = self.stack.copy()
        target.push(entry.id, entry.name)
        await self._load(target)

    async def go_up(self) -> None:
        """Leave the current folder; a no-op at the drive root."""
        if self.stack.at_root:
            return
        target = self.stack.copy()
        target.pop()
        await self._load(target)

    def _require_id(self, entry: RemoteEntry) -> str:
        if not entry.id:
            raise MissingIdentifierError(f"{entry.name} has no cloud identifier")
        return entry.id

    def _unsupported(self, operation: str) -> CapabilityError:
        return CapabilityError(f"{operation} is not supported for this provider ({self.connection.provider})")

    def _require_capability(self, operation: str) -> None:
        if not self.client.supports(self.connection, operation):
            raise self._unsupported(operation)

    async def rename(self, entry: RemoteEntry, new_name: str) -> OperationResult:
        async def call() -> str:
            self._require_id(entry)
            raise self._unsupported("rename")

        return await self._operation(call)

    async def delete(self, entry: RemoteEntry) -> OperationResult:
        async def call() -> str:
            file_id = self._require_id(entry)
            self._require_capability("delete")
            return await self.client.delete(self.connection, file_id)

        return await self._operation(call)

    async def copy_as(self, entry: RemoteEntry, new_name: str) -> OperationResult:
        async def call() -> str:
            self._require_id(entry)
            raise self._unsupported("copy")

        return await self._operation(call)

    async def download(self, entry: RemoteEntry, local_dir: str) -> OperationResult:
        async def call() -> str:
            file_id = self._require_id(entry)
            if entry.is_dir:
                raise CapabilityError("Use folder download for folders")
            self._require_capability("download")
            local_path = str(Path(local_dir) / entry.name)
            return await self.client.download_file(self.connection, file_id, local_path, entry.name)

        return await self._operation(call)

    async def download_folder(self, entry: RemoteEntry, local_dir: str) -> OperationResult:
        async def call() -> str:
            self._require_id(entry)
            raise self._unsupported("folder download")

        return await self._operation(call)


__all__ = [
    "OperationStatus",
    "OperationResult",
    "RemoteTreeStateEngine",
    "FtpTreeEngine",
    "CloudTreeEngine",
]
