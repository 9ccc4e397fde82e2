"""Transfer batch routing, per-file logging, and progress record lifecycle."""

from __future__ import annotations

import asyncio
import tempfile
import unittest
from pathlib import Path

from quicksync.backend.types import RemoteEntry, TransferProgress
from quicksync.connection import CloudConnection, FtpConnection
from quicksync.errors import BackendError
from quicksync.transfers import DropContext, PaneRole, TransferLog, TransferOrchestrator
from quicksync.transfers.records import TransferRecord


class FakeLocal:
    def __init__(self, home: str = "/home/me") -> None:
        self._home = Path(home)
        self.copies: list[tuple[str, str]] = []
        self.failing: set[str] = set()

    def home(self) -> Path:
        return self._home

    async def copy_to_local(self, source: str, dest_dir: str) -> str:
        self.copies.append((source, dest_dir))
        if source in self.failing:
            raise BackendError(f"Source does not exist: {source}")
        return f"Copied {Path(source).name} to {dest_dir}"


class FakeFtp:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload_file(self, local_path: str, remote_name: str) -> str:
        self.calls.append(("upload", local_path, remote_name))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        if local_path in self.failing:
            raise BackendError(f"Upload failed: 553 {remote_name}")
        return f"Uploaded {remote_name}"

    async def download_file(self, remote_name: str, local_path: str) -> str:
        self.calls.append(("download", remote_name, local_path))
        return f"Downloaded {remote_name}"

    async def download_folder(self, remote_dir: str, local_dir: str) -> str:
        self.calls.append(("download_folder", remote_dir, local_dir))
        return f"Downloaded folder '{Path(remote_dir).name}' (0 bytes)"


class FakeCloud:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def upload_file(self, connection: CloudConnection, local_path: str, parent_id: str | None = None) -> str:
        self.calls.append(("upload", local_path, parent_id))
        return f"Successfully uploaded {Path(local_path).name}"


FTP = FtpConnection(id="f1", name="box", host="ftp.example.com", username="me")
CLOUD = CloudConnection(id="c1", provider="google", account_name="me@example.com", access_token="tok")


class DispatchDropTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.local = FakeLocal()
        self.ftp = FakeFtp()
        self.cloud = FakeCloud()
        self.refreshes: list[frozenset[PaneRole]] = []
        self.orchestrator = TransferOrchestrator(
            self.local,
            self.ftp,
            self.cloud,
            on_batch_complete=self.refreshes.append,
        )

    async def test_failed_file_is_logged_and_batch_continues_in_order(self) -> None:
        self.ftp.failing.add("/src/b.txt")
        context = DropContext(target=PaneRole.REMOTE, local_dir="/home/me", ftp=FTP, remote_path="/pub")

        outcomes = await self.orchestrator.dispatch_drop(["/src/a.txt", "/src/b.txt", "/src/c.txt"], context)

        self.assertEqual(
            self.orchestrator.log.messages,
            ["Uploaded /pub/a.txt", "Upload error: Upload failed: 553 /pub/b.txt", "Uploaded /pub/c.txt"],
        )
        self.assertEqual([entry.ok for entry in outcomes], [True, False, True])
        self.assertEqual([call[2] for call in self.ftp.calls], ["/pub/a.txt", "/pub/b.txt", "/pub/c.txt"])
        self.assertEqual(self.ftp.max_in_flight, 1)
        self.assertEqual(self.refreshes, [frozenset({PaneRole.REMOTE})])

    async def test_ftp_upload_targets_displayed_folder_not_server_cwd(self) -> None:
        context = DropContext(target=PaneRole.REMOTE, ftp=FTP, remote_path="/")
        await self.orchestrator.dispatch_drop(["/src/up.txt"], context)

        self.assertEqual(self.ftp.calls, [("upload", "/src/up.txt", "/up.txt")])

    async def test_ftp_upload_without_known_path_uses_bare_name(self) -> None:
        context = DropContext(target=PaneRole.REMOTE, ftp=FTP)
        await self.orchestrator.dispatch_drop(["/src/up.txt"], context)

        self.assertEqual(self.ftp.calls, [("upload", "/src/up.txt", "up.txt")])

    async def test_without_connection_every_drop_is_a_local_copy(self) -> None:
        context = DropContext(target=PaneRole.REMOTE, local_dir="/home/me/work")

        await self.orchestrator.dispatch_drop(["/tmp/x.bin", "/tmp/y.bin"], context)

        self.assertEqual(self.local.copies, [("/tmp/x.bin", "/home/me/work"), ("/tmp/y.bin", "/home/me/work")])
        self.assertEqual(self.ftp.calls, [])
        self.assertEqual(self.cloud.calls, [])
        self.assertEqual(self.refreshes, [frozenset({PaneRole.LOCAL})])

    async def test_drop_on_local_pane_copies_even_while_connected(self) -> None:
        context = DropContext(target=PaneRole.LOCAL, local_dir="/home/me", ftp=FTP)
        await self.orchestrator.dispatch_drop(["/tmp/x.bin"], context)

        self.assertEqual(self.local.copies, [("/tmp/x.bin", "/home/me")])
        self.assertEqual(self.ftp.calls, [])

    async def test_cloud_upload_targets_current_folder(self) -> None:
        context = DropContext(target=PaneRole.REMOTE, cloud=CLOUD, cloud_folder_id="f-photos")
        await self.orchestrator.dispatch_drop(["/tmp/pic.jpg"], context)

        self.assertEqual(self.cloud.calls, [("upload", "/tmp/pic.jpg", "f-photos")])
        self.assertEqual(self.orchestrator.log.messages, ["Successfully uploaded pic.jpg"])

    async def test_local_copy_failure_is_logged(self) -> None:
        self.local.failing.add("/tmp/gone")
        context = DropContext(target=PaneRole.LOCAL, local_dir="/home/me")
        await self.orchestrator.dispatch_drop(["/tmp/gone"], context)

        entry = self.orchestrator.log.entries[0]
        self.assertFalse(entry.ok)
        self.assertEqual(entry.message, "Copy error: Source does not exist: /tmp/gone")

    async def test_empty_batch_does_nothing(self) -> None:
        outcomes = await self.orchestrator.dispatch_drop([], DropContext(target=PaneRole.LOCAL, local_dir="/"))
        self.assertEqual(outcomes, [])
        self.assertEqual(self.refreshes, [])

    async def test_awaitable_batch_callback_is_awaited(self) -> None:
        refreshed = asyncio.Event()

        async def refresh(panes: frozenset[PaneRole]) -> None:
            refreshed.set()

        orchestrator = TransferOrchestrator(self.local, self.ftp, on_batch_complete=refresh)
        await orchestrator.dispatch_drop(["/tmp/a"], DropContext(target=PaneRole.LOCAL, local_dir="/home/me"))
        self.assertTrue(refreshed.is_set())


class RequestDownloadTests(unittest.IsolatedAsyncioTestCase):
    async def test_ftp_downloads_go_to_configured_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            ftp = FakeFtp()
            refreshes: list[frozenset[PaneRole]] = []
            orchestrator = TransferOrchestrator(FakeLocal(), ftp, on_batch_complete=refreshes.append)
            context = DropContext(target=PaneRole.LOCAL, ftp=FTP, remote_path="/pub", download_dir=tmp)

            await orchestrator.request_download(
                [RemoteEntry(name="a.txt", is_dir=False), RemoteEntry(name="docs", is_dir=True)],
                context,
            )

            self.assertEqual(
                ftp.calls,
                [
                    ("download", "/pub/a.txt", str(Path(tmp) / "a.txt")),
                    ("download_folder", "/pub/docs", str(Path(tmp) / "docs")),
                ],
            )
            self.assertEqual(refreshes, [frozenset({PaneRole.LOCAL})])

    async def test_default_destination_is_home_downloads(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            ftp = FakeFtp()
            orchestrator = TransferOrchestrator(FakeLocal(tmp), ftp)
            await orchestrator.request_download(
                [RemoteEntry(name="a.txt", is_dir=False)],
                DropContext(target=PaneRole.LOCAL, ftp=FTP),
            )
            self.assertEqual(ftp.calls, [("download", "a.txt", str(Path(tmp) / "Downloads" / "a.txt"))])
            self.assertTrue((Path(tmp) / "Downloads").is_dir())

    async def test_download_without_connection_is_logged_as_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            orchestrator = TransferOrchestrator(FakeLocal(), FakeFtp())
            outcomes = await orchestrator.request_download(
                [RemoteEntry(name="a.txt", is_dir=False)],
                DropContext(target=PaneRole.LOCAL, download_dir=tmp),
            )
            self.assertEqual(outcomes[0].message, "Download error: No active remote connection")


class ProgressRecordTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.sleeps: list[float] = []
        self.completed: list[str] = []

        async def fake_sleep(delay: float) -> None:
            self.sleeps.append(delay)

        self.orchestrator = TransferOrchestrator(
            FakeLocal(),
            FakeFtp(),
            sleep=fake_sleep,
            on_transfer_complete=lambda record: self.completed.append(record.transfer_id),
        )

    async def test_progress_events_create_and_update_records(self) -> None:
        self.orchestrator.on_progress_event(TransferProgress("dl-1", "a.bin", 10, 100, "downloading"))
        self.orchestrator.on_progress_event(TransferProgress("dl-1", "a.bin", 60, 100, "downloading"))

        record = self.orchestrator.transfers["dl-1"]
        self.assertEqual(record.bytes_done, 60)
        self.assertEqual(record.status.value, "in-progress")
        self.assertAlmostEqual(record.fraction, 0.6)
        self.assertEqual(self.completed, [])

    async def test_complete_record_is_removed_after_delay(self) -> None:
        self.orchestrator.on_progress_event(TransferProgress("dl-1", "a.bin", 100, 100, "complete"))
        self.assertIn("dl-1", self.orchestrator.transfers)
        self.assertEqual(self.completed, ["dl-1"])

        await self.orchestrator.settle()
        self.assertEqual(self.sleeps, [5.0])
        self.assertNotIn("dl-1", self.orchestrator.transfers)

    async def test_failed_record_is_removed_after_delay_without_completion_callback(self) -> None:
        self.orchestrator.on_progress_event(TransferProgress("dl-3", "d.bin", 4, 16, "downloading"))
        self.orchestrator.on_progress_event(TransferProgress("dl-3", "d.bin", 4, 16, "error"))
        self.assertEqual(self.orchestrator.transfers["dl-3"].status.value, "error")

        await self.orchestrator.settle()
        self.assertEqual(self.sleeps, [5.0])
        self.assertNotIn("dl-3", self.orchestrator.transfers)
        self.assertEqual(self.completed, [])

    async def test_late_event_after_removal_recreates_record(self) -> None:
        self.orchestrator.on_progress_event(TransferProgress("ul-1", "b.bin", 5, 5, "complete"))
        await self.orchestrator.settle()

        self.orchestrator.on_progress_event(TransferProgress("ul-1", "b.bin", 5, 5, "uploading"))
        self.assertIn("ul-1", self.orchestrator.transfers)

    async def test_record_reused_before_removal_survives(self) -> None:
        gate = asyncio.Event()

        async def held_sleep(delay: float) -> None:
            await gate.wait()

        orchestrator = TransferOrchestrator(FakeLocal(), FakeFtp(), sleep=held_sleep)
        orchestrator.on_progress_event(TransferProgress("dl-2", "c.bin", 1, 1, "complete"))
        await asyncio.sleep(0)
        orchestrator.on_progress_event(TransferProgress("dl-2", "c.bin", 0, 9, "downloading"))

        gate.set()
        await orchestrator.settle()
        self.assertIn("dl-2", orchestrator.transfers)

    async def test_unknown_ids_and_interleaved_transfers_are_independent(self) -> None:
        self.orchestrator.on_progress_event(TransferProgress("b", "b.bin", 1, 10, "uploading"))
        self.orchestrator.on_progress_event(TransferProgress("a", "a.bin", 3, 10, "downloading"))
        self.orchestrator.on_progress_event(TransferProgress("b", "b.bin", 10, 10, "error"))

        self.assertEqual(self.orchestrator.transfers["a"].bytes_done, 3)
        self.assertEqual(self.orchestrator.transfers["b"].status.value, "error")


class TransferLogTests(unittest.TestCase):
    def test_log_is_append_only_and_optionally_capped(self) -> None:
        log = TransferLog(max_entries=2)
        log.append("one")
        log.append("two", ok=False)
        log.append("three")

        self.assertEqual(log.messages, ["two", "three"])
        self.assertEqual(len(log), 2)

    def test_record_fraction_handles_unknown_totals(self) -> None:
        record = TransferRecord.from_event(TransferProgress("x", "x", 50, 0, "downloading"))
        self.assertEqual(record.fraction, 0.0)


if __name__ == "__main__":
    unittest.main()
