"""Dual-pane wiring: drop routing, cross-pane refresh, connection switching."""

from __future__ import annotations

import posixpath
import tempfile
import unittest
from pathlib import Path

from quicksync.backend.local import LocalFileSystem
from quicksync.backend.types import RemoteEntry, TransferProgress
from quicksync.connection import ConnectionState, FtpConnection
from quicksync.errors import QuickSyncError
from quicksync.remote_tree import FtpTreeEngine
from quicksync.runtime.config import AppConfig, ConfigStore
from quicksync.runtime.panes import PaneComposition
from quicksync.transfers import PaneRole


class FakeFtpSession:
    def __init__(self) -> None:
        self.connected = False
        self.uploads: list[str] = []
        self.listings = 0

    async def connect(self, connection: FtpConnection) -> str:
        self.connected = True
        return f"Connected to {connection.host}"

    async def disconnect(self) -> str:
        self.connected = False
        return "Disconnected plain session"

    async def list_remote_directory(self, path: str | None = None) -> list[RemoteEntry]:
        self.listings += 1
        return [RemoteEntry(name=posixpath.basename(name), is_dir=False, size=1) for name in self.uploads]

    async def get_remote_working_directory(self) -> str:
        return "/srv"

    async def upload_file(self, local_path: str, remote_name: str) -> str:
        self.uploads.append(remote_name)
        return f"Uploaded {remote_name}"


FTP = FtpConnection(id="f1", name="box", host="ftp.example.com", username="me")


async def _no_sleep(delay: float) -> None:
    return None


class PaneCompositionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.home = Path(self._tmp.name)
        (self.home / "docs").mkdir()
        self.source = self.home / "docs" / "report.txt"
        self.source.write_text("quarterly", encoding="utf-8")

        self.session = FakeFtpSession()
        self.panes = PaneComposition(
            local=LocalFileSystem(home=self.home),
            ftp_session=self.session,
            config_store=ConfigStore(AppConfig(ftp_connections=(FTP,))),
            sleep=_no_sleep,
        )
        await self.panes.start()

    async def asyncTearDown(self) -> None:
        await self.panes.close()
        self._tmp.cleanup()

    async def test_start_roots_local_pane_at_home(self) -> None:
        self.assertEqual(self.panes.local_tree.root_path, str(self.home))
        self.assertEqual([node.name for node in self.panes.local_tree.nodes], ["docs"])
        self.assertIsNone(self.panes.remote_tree)

    async def test_connect_opens_remote_pane_at_server_path(self) -> None:
        state = await self.panes.connect("f1")

        self.assertIs(state, ConnectionState.CONNECTED)
        self.assertIsInstance(self.panes.remote_tree, FtpTreeEngine)
        self.assertEqual(self.panes.remote_tree.display_path, "/srv")

        await self.panes.disconnect()
        self.assertIsNone(self.panes.remote_tree)
        self.assertFalse(self.session.connected)

    async def test_unknown_connection_id_raises(self) -> None:
        with self.assertRaises(QuickSyncError):
            await self.panes.connect("nope")

    async def test_drop_on_remote_pane_uploads_and_refreshes_remote_listing(self) -> None:
        await self.panes.connect("f1")
        self.panes.set_drop_target(PaneRole.REMOTE)

        await self.panes.drop([str(self.source)])

        self.assertEqual(self.session.uploads, ["/srv/report.txt"])
        self.assertEqual([entry.name for entry in self.panes.remote_tree.entries], ["report.txt"])
        self.assertEqual(self.panes.log.messages, ["Uploaded /srv/report.txt"])

    async def test_native_drop_event_lands_in_hovered_pane(self) -> None:
        self.panes.set_drop_target(PaneRole.LOCAL)
        self.panes.events.publish_drop([str(self.source)])
        await self.panes.settle()

        self.assertEqual(self.panes.log.messages, [f"Copied report.txt to {self.home}"])
        self.assertIn("report.txt", [node.name for node in self.panes.local_tree.nodes])

    async def test_complete_progress_bumps_refresh_token_and_refreshes_both_panes(self) -> None:
        await self.panes.connect("f1")
        listings_before = self.session.listings

        self.panes.events.publish_progress(TransferProgress("ul-1", "x", 3, 3, "complete"))
        await self.panes.settle()

        self.assertEqual(self.panes.refresh_token, 1)
        self.assertEqual(self.session.listings, listings_before + 1)
        self.assertNotIn("ul-1", self.panes.orchestrator.transfers)

    async def test_drop_context_reflects_active_ftp_state(self) -> None:
        await self.panes.connect("f1")
        context = self.panes.drop_context(PaneRole.LOCAL)
        self.assertEqual(context.remote_path, "/srv")
        self.assertEqual(context.ftp, FTP)
        self.assertIsNone(context.download_dir)


if __name__ == "__main__":
    unittest.main()
