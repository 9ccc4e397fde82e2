"""Remote (FTP and cloud) listing engines and breadcrumb navigation."""

from __future__ import annotations

from .engine import (
    CloudTreeEngine,
    FtpTreeEngine,
    OperationResult,
    OperationStatus,
    RemoteTreeStateEngine,
)
from .navigation import ROOT_CRUMB, CloudCrumb, CloudNavigationStack

__all__ = [
    "RemoteTreeStateEngine",
    "FtpTreeEngine",
    "CloudTreeEngine",
    "OperationResult",
    "OperationStatus",
    "CloudCrumb",
    "CloudNavigationStack",
    "ROOT_CRUMB",
]
