"""Dual-pane composition: local tree, remote listing and transfer wiring.

``PaneComposition`` is the single owner of the runtime collaborators. It
builds the ``DropContext`` for each batch from current state, refreshes the
affected panes once per finished batch, and bumps ``refresh_token`` (then
refreshes both panes) whenever a pushed progress event reports completion.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence

from ..backend.cloud import GoogleDriveClient
from ..backend.events import EventChannel
from ..backend.ftp import FtpSession
from ..backend.local import LocalFileSystem
from ..backend.types import RemoteEntry
from ..connection import CloudConnection, ConnectionManager, ConnectionState, FtpConnection
from ..errors import QuickSyncError
from ..icons import IconResolutionCache
from ..remote_tree import CloudTreeEngine, FtpTreeEngine, RemoteTreeStateEngine
from ..transfers import DropContext, LogEntry, PaneRole, TransferLog, TransferOrchestrator, TransferRecord
from ..tree_model import TreeStateEngine
from .config import ConfigStore

logger = logging.getLogger(__name__)

BOTH_PANES = frozenset({PaneRole.LOCAL, PaneRole.REMOTE})


class PaneComposition:
    """Wires both panes to the backends and the transfer orchestrator."""

    def __init__(
        self,
        *,
        local: LocalFileSystem | None = None,
        ftp_session: FtpSession | None = None,
        cloud_client: GoogleDriveClient | None = None,
        events: EventChannel | None = None,
        config_store: ConfigStore | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.events = events if events is not None else EventChannel()
        self.local = local if local is not None else LocalFileSystem()
        self.ftp_session = ftp_session if ftp_session is not None else FtpSession(self.events)
        self.cloud_client = cloud_client
        self.config_store = config_store
        self.connections = ConnectionManager(self.ftp_session)
        self.local_tree = TreeStateEngine(self.local.list_directory, on_change=on_change)
        self.remote_tree: RemoteTreeStateEngine | None = None
        self.icons = IconResolutionCache(self.local.get_file_icon, on_resolved=lambda _ext: self._notify())
        self.log = TransferLog()
        self.orchestrator = TransferOrchestrator(
            self.local,
            self.ftp_session,
            self.cloud_client,
            log=self.log,
            sleep=sleep,
            on_batch_complete=self.refresh_panes,
            on_transfer_complete=self._on_transfer_complete,
        )
        self.drop_target = PaneRole.LOCAL
        self.refresh_token = 0
        self._on_change = on_change
        self._unsubscribers: list[Callable[[], None]] = []
        self._refreshes: set[asyncio.Task] = set()

    # -- lifecycle ------------------------------------------------------

    async def start(self) -> None:
        """Load config, root the local pane at home and subscribe to pushed events."""
        if self.config_store is None:
            self.config_store = ConfigStore.load()
        if not self._unsubscribers:
            self._unsubscribers = [
                self.events.subscribe_progress(self.orchestrator.on_progress_event),
                self.events.subscribe_drops(self._on_native_drop),
            ]
        home = await self.local.get_home_directory()
        await self.local_tree.set_root(home)

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.settle()
        if self.connections.is_connected:
            await self.disconnect()
        if self.cloud_client is not None:
            await self.cloud_client.aclose()

    async def settle(self) -> None:
        """Wait for event handlers, scheduled refreshes and record removals."""
        await self.events.settle()
        while self._refreshes:
            await asyncio.gather(*list(self._refreshes))
        await self.orchestrator.settle()

    # -- connections ----------------------------------------------------

    async def connect(self, connection_id: str) -> ConnectionState:
        """Connect a saved connection and open its remote pane on success."""
        store = self._store()
        descriptor = store.config.find_connection(connection_id)
        if descriptor is None:
            raise QuickSyncError(f"Unknown connection: {connection_id}")

        self.remote_tree = None
        state = await self.connections.connect(descriptor)
        self._notify()
        if state is not ConnectionState.CONNECTED:
            return state

        if isinstance(descriptor, FtpConnection):
            self.remote_tree = FtpTreeEngine(self.ftp_session, on_change=self._on_change)
        else:
            self.remote_tree = CloudTreeEngine(self._cloud(), descriptor, on_change=self._on_change)
        await self.remote_tree.refresh()
        return state

    async def disconnect(self) -> ConnectionState:
        self.remote_tree = None
        state = await self.connections.disconnect()
        self._notify()
        return state

    def _cloud(self) -> GoogleDriveClient:
        if self.cloud_client is None:
            self.cloud_client = GoogleDriveClient(self.events)
            self.orchestrator.cloud_client = self.cloud_client
        return self.cloud_client

    def _store(self) -> ConfigStore:
        if self.config_store is None:
            self.config_store = ConfigStore.load()
        return self.config_store

    # -- transfers ------------------------------------------------------

    def set_drop_target(self, pane: PaneRole) -> None:
        """Remember the hovered pane so native drops land there."""
        self.drop_target = pane

    def drop_context(self, pane: PaneRole) -> DropContext:
        remote = self.remote_tree
        cloud: CloudConnection | None = self.connections.active_cloud
        return DropContext(
            target=pane,
            local_dir=self.local_tree.root_path,
            ftp=self.connections.active_ftp,
            cloud=cloud,
            remote_path=remote.path if isinstance(remote, FtpTreeEngine) else None,
            cloud_folder_id=remote.folder_id if isinstance(remote, CloudTreeEngine) else None,
            download_dir=self._store().config.last_download_dir,
        )

    async def drop(self, files: Sequence[str], pane: PaneRole | None = None) -> list[LogEntry]:
        target = pane if pane is not None else self.drop_target
        return await self.orchestrator.dispatch_drop(files, self.drop_context(target))

    async def download(self, entries: Sequence[RemoteEntry]) -> list[LogEntry]:
        return await self.orchestrator.request_download(entries, self.drop_context(PaneRole.LOCAL))

    async def _on_native_drop(self, paths: list[str]) -> None:
        await self.drop(paths)

    # -- refresh --------------------------------------------------------

    async def refresh_panes(self, panes: Iterable[PaneRole]) -> None:
        panes = frozenset(panes)
        if PaneRole.LOCAL in panes:
            await self.local_tree.refresh()
        if PaneRole.REMOTE in panes and self.remote_tree is not None:
            await self.remote_tree.refresh()

    def _on_transfer_complete(self, record: TransferRecord) -> None:
        self.refresh_token += 1
        logger.debug("Transfer %s complete (refresh %d)", record.transfer_id, self.refresh_token)
        task = asyncio.ensure_future(self.refresh_panes(BOTH_PANES))
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = [
    "PaneComposition",
    "BOTH_PANES",
]
