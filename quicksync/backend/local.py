"""Local file-system backend: listing, local copy, home directory, icons."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
import shutil
from pathlib import Path

from ..errors import BackendError
from .types import Entry, sort_directories_first

logger = logging.getLogger(__name__)


def scan_directory(directory: Path) -> list[Entry]:
    """List ``directory`` with directories first, then case-insensitive name order.

    Raises ``BackendError`` when the path is missing, is not a directory, or
    cannot be read.
    """
    if not directory.exists():
        raise BackendError(f"Path does not exist: {directory}")
    if not directory.is_dir():
        raise BackendError(f"Not a directory: {directory}")

    entries: list[Entry] = []
    try:
        with os.scandir(directory) as children:
            for child in children:
                try:
                    is_dir = child.is_dir()
                except OSError:
                    is_dir = False

                size: int | None = None
                if not is_dir:
                    try:
                        size = int(child.stat().st_size)
                    except OSError:
                        size = 0

                entries.append(Entry(name=child.name, path=child.path, is_dir=is_dir, size=size))
    except OSError as exc:
        raise BackendError(f"Failed to read directory: {exc}") from exc

    return sort_directories_first(entries)


def copy_path(source: Path, dest_dir: Path) -> Path:
    """Copy a file or a whole folder into ``dest_dir`` and return the new path."""
    if not source.exists():
        raise BackendError(f"Source does not exist: {source}")
    if not dest_dir.is_dir():
        raise BackendError(f"Destination is not a directory: {dest_dir}")
    target = dest_dir / source.name
    try:
        if source.is_dir():
            shutil.copytree(source, target, dirs_exist_ok=True)
        else:
            shutil.copy2(source, target)
    except (OSError, shutil.Error) as exc:
        raise BackendError(f"Copy failed: {exc}") from exc
    return target


def remove_partial_file(path: str | Path) -> None:
    """Delete what an interrupted download left behind, if anything."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial download %s: %s", path, exc)


def icon_name_for_extension(ext: str) -> str:
    """Resolve a freedesktop-style icon name for a file extension.

    ``"txt"`` and ``".txt"`` are equivalent. Unknown or empty extensions are
    lookup failures.
    """
    stripped = ext.strip()
    if not stripped or stripped == ".":
        raise BackendError("Empty extension")
    ext_with_dot = stripped if stripped.startswith(".") else f".{stripped}"
    mime_type, _encoding = mimetypes.guess_type(f"file{ext_with_dot.lower()}", strict=False)
    if mime_type is None:
        raise BackendError(f"Failed to get icon for {ext_with_dot}")
    return mime_type.replace("/", "-")


class LocalFileSystem:
    """Async facade over blocking local file-system calls."""

    def __init__(self, home: Path | None = None) -> None:
        self._home = home

    def home(self) -> Path:
        return self._home if self._home is not None else Path.home()

    async def get_home_directory(self) -> str:
        return str(self.home())

    async def list_directory(self, path: str) -> list[Entry]:
        """List ``path``; an empty path lists the home directory."""
        directory = Path(path) if path else self.home()
        logger.debug("Listing local directory %s", directory)
        return await asyncio.to_thread(scan_directory, directory)

    async def copy_to_local(self, source_path: str, dest_dir: str) -> str:
        target = await asyncio.to_thread(copy_path, Path(source_path), Path(dest_dir))
        return f"Copied {Path(source_path).name} to {target.parent}"

    async def get_file_icon(self, ext: str) -> str:
        return icon_name_for_extension(ext)


__all__ = [
    "LocalFileSystem",
    "scan_directory",
    "copy_path",
    "remove_partial_file",
    "icon_name_for_extension",
]
