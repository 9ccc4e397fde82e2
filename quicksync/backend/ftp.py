"""FTP/FTPS session backend.

``ftplib`` is blocking, so every command runs in a worker thread while a
session-wide ``asyncio.Lock`` keeps commands on the single control
connection strictly one at a time. Progress callbacks fire on the worker
thread and are marshalled back onto the event loop before publishing.
"""

from __future__ import annotations

import asyncio
import ftplib
import logging
import posixpath
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from ..errors import BackendError, NotConnectedError
from .events import EventChannel
from .local import remove_partial_file
from .types import RemoteEntry, TransferProgress, sort_directories_first

if TYPE_CHECKING:
    from ..connection import FtpConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

BLOCK_SIZE = 16384


def parse_list_line(line: str) -> RemoteEntry | None:
    """Parse one Unix-style ``LIST`` line.

    ``drwxr-xr-x   2 user group  4096 Jan  1 12:00 dirname``. Names may
    contain spaces. ``.``/``..`` and lines with fewer than nine fields yield
    ``None``.
    """
    parts = line.split(None, 8)
    if len(parts) < 9:
        return None

    perms = parts[0]
    name = parts[8]
    if name in {".", ".."}:
        return None
    try:
        size = int(parts[4])
    except ValueError:
        size = 0
    is_dir = perms.startswith("d")
    return RemoteEntry(
        name=name,
        is_dir=is_dir,
        size=None if is_dir else size,
        modified=f"{parts[5]} {parts[6]} {parts[7]}",
        permissions=perms,
    )


def _list_current(ftp: ftplib.FTP) -> list[RemoteEntry]:
    lines: list[str] = []
    ftp.retrlines("LIST", lines.append)
    entries = [entry for entry in (parse_list_line(line) for line in lines) if entry is not None]
    return sort_directories_first(entries)


def _default_ftp_factory(secure: bool) -> ftplib.FTP:
    return ftplib.FTP_TLS() if secure else ftplib.FTP()


class FtpSession:
    """One FTP or FTPS control connection plus transfer helpers."""

    def __init__(
        self,
        events: EventChannel | None = None,
        *,
        ftp_factory: Callable[[bool], ftplib.FTP] = _default_ftp_factory,
        timeout: float = 30.0,
    ) -> None:
        self._events = events
        self._ftp_factory = ftp_factory
        self._timeout = timeout
        self._ftp: ftplib.FTP | None = None
        self._secure = False
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._ftp is not None

    # -- connection -----------------------------------------------------

    async def connect(self, connection: FtpConnection) -> str:
        """Open and log in a session, replacing any open one."""
        async with self._lock:
            if self._ftp is not None:
                await asyncio.to_thread(self._quit, self._ftp)
                self._ftp = None

            ftp = self._ftp_factory(connection.secure)

            def _impl() -> None:
                ftp.connect(connection.host, connection.port, timeout=self._timeout)
                ftp.login(connection.username, connection.password or "")
                if connection.secure:
                    ftp.prot_p()
                ftp.set_pasv(True)

            try:
                await asyncio.to_thread(_impl)
            except ftplib.all_errors as exc:
                prefix = "Secure login failed" if connection.secure else "Connection failed"
                raise BackendError(f"{prefix}: {exc}") from exc

            self._ftp = ftp
            self._secure = connection.secure

        logger.info("FTP session open to %s:%s (secure=%s)", connection.host, connection.port, connection.secure)
        if connection.secure:
            return f"Securely connected to {connection.host}"
        return f"Connected to {connection.host}"

    async def disconnect(self) -> str:
        async with self._lock:
            if self._ftp is None:
                raise BackendError("No active connection")
            ftp, self._ftp = self._ftp, None
            await asyncio.to_thread(self._quit, ftp)
        return "Disconnected secure session" if self._secure else "Disconnected plain session"

    @staticmethod
    def _quit(ftp: ftplib.FTP) -> None:
        try:
            ftp.quit()
        except ftplib.all_errors:
            ftp.close()

    # -- helpers --------------------------------------------------------

    async def _run(self, label: str, func: Callable[[ftplib.FTP], T]) -> T:
        async with self._lock:
            ftp = self._ftp
            if ftp is None:
                raise NotConnectedError()
            try:
                return await asyncio.to_thread(func, ftp)
            except ftplib.all_errors as exc:
                raise BackendError(f"{label} failed: {exc}") from exc

    def _progress_publisher(self, loop: asyncio.AbstractEventLoop) -> Callable[[TransferProgress], None]:
        def publish(event: TransferProgress) -> None:
            if self._events is not None:
                loop.call_soon_threadsafe(self._events.publish_progress, event)

        return publish

    # -- listing --------------------------------------------------------

    async def list_remote_directory(self, path: str | None = None) -> list[RemoteEntry]:
        """Change into ``path`` (relative or absolute, when given) and list it."""

        def _impl(ftp: ftplib.FTP) -> list[RemoteEntry]:
            if path is None:
                return _list_current(ftp)
            orig_cwd = ftp.pwd()
            ftp.cwd(path)
            try:
                return _list_current(ftp)
            except ftplib.all_errors:
                # Step back so the server stays in the folder the pane still shows.
                try:
                    ftp.cwd(orig_cwd)
                except ftplib.all_errors:
                    logger.warning("Could not restore FTP working directory %s", orig_cwd)
                raise

        return await self._run("LIST", _impl)

    async def get_remote_working_directory(self) -> str:
        return await self._run("PWD", lambda ftp: ftp.pwd())

    # -- transfers ------------------------------------------------------

    async def download_file(self, remote_name: str, local_path: str) -> str:
        transfer_id = f"dl-{uuid.uuid4()}"
        publish = self._progress_publisher(asyncio.get_running_loop())

        def _impl(ftp: ftplib.FTP) -> None:
            ftp.voidcmd("TYPE I")
            try:
                total = int(ftp.size(remote_name) or 0)
            except ftplib.all_errors:
                total = 0

            downloaded = 0
            try:
                with open(local_path, "wb") as handle:

                    def on_block(block: bytes) -> None:
                        nonlocal downloaded
                        handle.write(block)
                        downloaded += len(block)
                        if total > 0:
                            publish(TransferProgress(transfer_id, remote_name, downloaded, total, "downloading"))

                    ftp.retrbinary(f"RETR {remote_name}", on_block, blocksize=BLOCK_SIZE)
            except ftplib.all_errors:
                publish(TransferProgress(transfer_id, remote_name, downloaded, total, "error"))
                remove_partial_file(local_path)
                raise

            publish(TransferProgress(transfer_id, remote_name, downloaded, total, "complete"))

        await self._run("Download", _impl)
        logger.info("Downloaded %s to %s", remote_name, local_path)
        return f"Downloaded {remote_name}"

    async def upload_file(self, local_path: str, remote_name: str) -> str:
        source = Path(local_path)
        try:
            total = source.stat().st_size
        except OSError as exc:
            raise BackendError(f"Read failed: {exc}") from exc
        transfer_id = f"ul-{uuid.uuid4()}"
        publish = self._progress_publisher(asyncio.get_running_loop())

        def _impl(ftp: ftplib.FTP) -> None:
            sent = 0

            def on_block(block: bytes) -> None:
                nonlocal sent
                sent += len(block)
                publish(TransferProgress(transfer_id, remote_name, sent, total, "uploading"))

            try:
                with source.open("rb") as handle:
                    ftp.storbinary(f"STOR {remote_name}", handle, blocksize=BLOCK_SIZE, callback=on_block)
            except ftplib.all_errors:
                publish(TransferProgress(transfer_id, remote_name, sent, total, "error"))
                raise
            publish(TransferProgress(transfer_id, remote_name, total, total, "complete"))

        await self._run("Upload", _impl)
        logger.info("Uploaded %s as %s", local_path, remote_name)
        return f"Uploaded {remote_name}"

    async def download_folder(self, remote_dir: str, local_dir: str) -> str:
        """Recursively download ``remote_dir`` into ``local_dir``.

        The server working directory is restored afterwards, also on failure.
        """

        def _impl(ftp: ftplib.FTP) -> int:
            orig_cwd = ftp.pwd()
            if remote_dir.startswith("/"):
                absolute_remote = remote_dir
            else:
                absolute_remote = posixpath.join(orig_cwd, remote_dir)
            try:
                return _download_tree(ftp, absolute_remote, Path(local_dir))
            finally:
                try:
                    ftp.cwd(orig_cwd)
                except ftplib.all_errors:
                    logger.warning("Could not restore FTP working directory %s", orig_cwd)

        total_bytes = await self._run("Folder download", _impl)
        return f"Downloaded folder '{remote_dir}' ({total_bytes} bytes)"

    # -- file operations ------------------------------------------------

    async def delete_file(self, path: str) -> str:
        await self._run("Delete", lambda ftp: ftp.delete(path))
        return f"Deleted file: {path}"

    async def delete_dir(self, path: str) -> str:
        await self._run("Delete (directory must be empty)", lambda ftp: ftp.rmd(path))
        return f"Deleted directory: {path}"

    async def rename(self, old_path: str, new_path: str) -> str:
        await self._run("Rename", lambda ftp: ftp.rename(old_path, new_path))
        return f"Renamed {old_path} to {new_path}"

    async def create_dir(self, path: str) -> str:
        await self._run("Mkdir", lambda ftp: ftp.mkd(path))
        return f"Created directory: {path}"


def _download_tree(ftp: ftplib.FTP, remote_dir: str, local_dir: Path) -> int:
    local_dir.mkdir(parents=True, exist_ok=True)
    ftp.cwd(remote_dir)
    total_bytes = 0
    for entry in _list_current(ftp):
        entry_local_path = local_dir / entry.name
        if entry.is_dir:
            total_bytes += _download_tree(ftp, posixpath.join(remote_dir, entry.name), entry_local_path)
            ftp.cwd(remote_dir)
            continue
        with entry_local_path.open("wb") as handle:
            ftp.retrbinary(f"RETR {entry.name}", handle.write, blocksize=BLOCK_SIZE)
        total_bytes += entry_local_path.stat().st_size
    return total_bytes


__all__ = [
    "FtpSession",
    "parse_list_line",
]
