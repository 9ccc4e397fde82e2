"""Connection descriptors and the explicit connection-state machine.

Descriptors are immutable inputs supplied by the config layer. The manager
moves between ``DISCONNECTED``, ``CONNECTING``, ``CONNECTED`` and ``ERROR``
only as the outcome of ``connect``/``disconnect`` calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .backend.cloud import SUPPORTED_PROVIDERS
from .backend.ftp import FtpSession
from .errors import BackendError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FtpConnection:
    id: str
    name: str
    host: str
    username: str
    port: int = 21
    password: str | None = None
    secure: bool = False

    @property
    def label(self) -> str:
        return self.name or f"{self.host}:{self.port}"


@dataclass(frozen=True)
class CloudConnection:
    id: str
    provider: str
    account_name: str
    access_token: str
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str | None = None

    @property
    def label(self) -> str:
        return f"{self.provider}: {self.account_name}"


ConnectionDescriptor = FtpConnection | CloudConnection


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConnectionManager:
    """Owns the active remote descriptor and its lifecycle state."""

    def __init__(self, ftp_session: FtpSession) -> None:
        self.ftp_session = ftp_session
        self.state = ConnectionState.DISCONNECTED
        self.active: ConnectionDescriptor | None = None
        self.message = "Not Connected"

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def active_ftp(self) -> FtpConnection | None:
        if self.is_connected and isinstance(self.active, FtpConnection):
            return self.active
        return None

    @property
    def active_cloud(self) -> CloudConnection | None:
        if self.is_connected and isinstance(self.active, CloudConnection):
            return self.active
        return None

    async def connect(self, descriptor: ConnectionDescriptor) -> ConnectionState:
        """Connect to ``descriptor``, replacing any current connection.

        Failures land in ``ERROR`` with the failure text in ``message``; they
        are never raised to the caller.
        """
        if self.state is ConnectionState.CONNECTED:
            await self.disconnect()

        self.active = descriptor
        self.state = ConnectionState.CONNECTING
        self.message = "Connecting…"
        try:
            if isinstance(descriptor, FtpConnection):
                self.message = await self.ftp_session.connect(descriptor)
            else:
                self.message = self._validate_cloud(descriptor)
        except BackendError as exc:
            logger.warning("Connection to %s failed: %s", descriptor.label, exc)
            self.state = ConnectionState.ERROR
            self.message = f"Error: {exc}"
            return self.state

        self.state = ConnectionState.CONNECTED
        logger.info("Connected: %s", descriptor.label)
        return self.state

    async def disconnect(self) -> ConnectionState:
        if isinstance(self.active, FtpConnection) and self.ftp_session.connected:
            try:
                self.message = await self.ftp_session.disconnect()
            except BackendError as exc:
                logger.warning("Disconnect failed: %s", exc)
                self.message = f"Error: {exc}"
        else:
            self.message = "Disconnected"
        self.state = ConnectionState.DISCONNECTED
        self.active = None
        return self.state

    @staticmethod
    def _validate_cloud(descriptor: CloudConnection) -> str:
        if descriptor.provider not in SUPPORTED_PROVIDERS:
            raise BackendError(f"Unsupported provider: {descriptor.provider}")
        if not descriptor.access_token.strip():
            raise BackendError(f"No access token for {descriptor.account_name}")
        return f"Connected to {descriptor.label}"


__all__ = [
    "FtpConnection",
    "CloudConnection",
    "ConnectionDescriptor",
    "ConnectionState",
    "ConnectionManager",
]
