"""Transfer dispatch, live progress records and the per-file outcome log."""

from __future__ import annotations

from .orchestrator import COMPLETED_RECORD_TTL, DropContext, PaneRole, TransferDirection, TransferOrchestrator
from .records import LogEntry, TransferLog, TransferRecord

__all__ = [
    "TransferOrchestrator",
    "TransferDirection",
    "DropContext",
    "PaneRole",
    "COMPLETED_RECORD_TTL",
    "TransferRecord",
    "TransferLog",
    "LogEntry",
]
