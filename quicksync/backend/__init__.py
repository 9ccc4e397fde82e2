"""Backend boundary: local file system, FTP sessions, cloud drives, pushed events.

Engines and the transfer orchestrator only depend on the async call shapes
defined here; everything protocol-specific stays inside this package.
"""

from __future__ import annotations

from .cloud import GoogleDriveClient
from .events import EventChannel
from .ftp import FtpSession, parse_list_line
from .local import LocalFileSystem
from .types import Entry, RemoteEntry, TransferProgress, TransferStatus

__all__ = [
    "Entry",
    "RemoteEntry",
    "TransferProgress",
    "TransferStatus",
    "EventChannel",
    "LocalFileSystem",
    "FtpSession",
    "parse_list_line",
    "GoogleDriveClient",
]
