"""Persistent JSON config: saved connections, theme, last download dir, layout.

The whole config is loaded once at startup and written back in full after
every change. Malformed or missing config falls back to defaults; malformed
connection entries are dropped one by one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path

from platformdirs import user_config_dir

from ..connection import CloudConnection, FtpConnection

logger = logging.getLogger(__name__)

APP_NAME = "quicksync"
CONFIG_FILENAME = "connections.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

SIDEBAR_WIDTH_RANGE = (160, 500)
LEFT_RATIO_RANGE = (20.0, 80.0)
QUEUE_HEIGHT_RANGE = (80, 500)


@dataclass(frozen=True)
class LayoutSizes:
    sidebar_width: int = 240
    left_ratio: float = 50.0
    queue_height: int = 180


@dataclass(frozen=True)
class AppConfig:
    ftp_connections: tuple[FtpConnection, ...] = ()
    cloud_connections: tuple[CloudConnection, ...] = ()
    theme: str | None = None
    last_download_dir: str | None = None
    layout: LayoutSizes = field(default_factory=LayoutSizes)

    def find_connection(self, connection_id: str) -> FtpConnection | CloudConnection | None:
        for connection in (*self.ftp_connections, *self.cloud_connections):
            if connection.id == connection_id:
                return connection
        return None


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _number(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _parse_ftp(raw: object) -> FtpConnection | None:
    """Build one FTP descriptor, or ``None`` when required fields are missing."""
    if not isinstance(raw, dict):
        return None
    conn_id, host, username = raw.get("id"), raw.get("host"), raw.get("username")
    if not all(isinstance(value, str) and value for value in (conn_id, host, username)):
        return None
    port = raw.get("port", 21)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        return None
    name = raw.get("name")
    password = raw.get("password")
    return FtpConnection(
        id=conn_id,
        name=name if isinstance(name, str) else "",
        host=host,
        username=username,
        port=port,
        password=password if isinstance(password, str) else None,
        secure=raw.get("secure") is True,
    )


def _parse_cloud(raw: object) -> CloudConnection | None:
    if not isinstance(raw, dict):
        return None
    required = [raw.get(key) for key in ("id", "provider", "account_name", "access_token")]
    if not all(isinstance(value, str) and value for value in required):
        return None
    conn_id, provider, account_name, access_token = required
    refresh_token = raw.get("refresh_token")
    return CloudConnection(
        id=conn_id,
        provider=provider,
        account_name=account_name,
        access_token=access_token,
        client_id=str(raw.get("client_id") or ""),
        client_secret=str(raw.get("client_secret") or ""),
        refresh_token=refresh_token if isinstance(refresh_token, str) else None,
    )


def _parse_layout(raw: object) -> LayoutSizes:
    defaults = LayoutSizes()
    if not isinstance(raw, dict):
        return defaults
    return LayoutSizes(
        sidebar_width=int(_clamp(_number(raw.get("sidebar_width"), defaults.sidebar_width), SIDEBAR_WIDTH_RANGE)),
        left_ratio=_clamp(_number(raw.get("left_ratio"), defaults.left_ratio), LEFT_RATIO_RANGE),
        queue_height=int(_clamp(_number(raw.get("queue_height"), defaults.queue_height), QUEUE_HEIGHT_RANGE)),
    )


def _parse_list(raw: object, parse) -> tuple:
    if not isinstance(raw, list):
        return ()
    parsed = (parse(item) for item in raw)
    return tuple(item for item in parsed if item is not None)


def config_from_dict(data: dict[str, object]) -> AppConfig:
    """Decode a JSON object into ``AppConfig``, dropping anything malformed."""
    return AppConfig(
        ftp_connections=_parse_list(data.get("ftp_connections"), _parse_ftp),
        cloud_connections=_parse_list(data.get("cloud_connections"), _parse_cloud),
        theme=_optional_str(data.get("theme")),
        last_download_dir=_optional_str(data.get("last_download_dir")),
        layout=_parse_layout(data.get("layout")),
    )


def config_to_dict(config: AppConfig) -> dict[str, object]:
    return {
        "ftp_connections": [asdict(conn) for conn in config.ftp_connections],
        "cloud_connections": [asdict(conn) for conn in config.cloud_connections],
        "theme": config.theme,
        "last_download_dir": config.last_download_dir,
        "layout": asdict(config.layout),
    }


def load_config() -> AppConfig:
    """Load the persisted config.

    Returns defaults when the file is missing, unreadable, malformed, or does
    not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return AppConfig()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, exc)
        return AppConfig()
    if not isinstance(data, dict):
        return AppConfig()
    return config_from_dict(data)


def save_config(config: AppConfig) -> bool:
    """Persist the full config as pretty-printed JSON.

    Write failures are logged and reported as ``False``; they never raise.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(config_to_dict(config), indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Failed to save config to %s: %s", CONFIG_PATH, exc)
        return False
    return True


def _upsert(items: tuple, item) -> tuple:
    if any(existing.id == item.id for existing in items):
        return tuple(item if existing.id == item.id else existing for existing in items)
    return (*items, item)


def _remove(items: tuple, item_id: str) -> tuple:
    return tuple(existing for existing in items if existing.id != item_id)


class ConfigStore:
    """In-memory config with save-on-change."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config if config is not None else AppConfig()
        self.last_save_ok = True

    @classmethod
    def load(cls) -> ConfigStore:
        return cls(load_config())

    def _commit(self, config: AppConfig) -> AppConfig:
        self.config = config
        self.last_save_ok = save_config(config)
        return config

    def upsert_ftp_connection(self, connection: FtpConnection) -> AppConfig:
        return self._commit(replace(self.config, ftp_connections=_upsert(self.config.ftp_connections, connection)))

    def remove_ftp_connection(self, connection_id: str) -> AppConfig:
        return self._commit(replace(self.config, ftp_connections=_remove(self.config.ftp_connections, connection_id)))

    def upsert_cloud_connection(self, connection: CloudConnection) -> AppConfig:
        return self._commit(
            replace(self.config, cloud_connections=_upsert(self.config.cloud_connections, connection))
        )

    def remove_cloud_connection(self, connection_id: str) -> AppConfig:
        return self._commit(
            replace(self.config, cloud_connections=_remove(self.config.cloud_connections, connection_id))
        )

    def set_last_download_dir(self, path: str | Path | None) -> AppConfig:
        value = _optional_str(str(path)) if path is not None else None
        return self._commit(replace(self.config, last_download_dir=value))

    def set_theme(self, theme: str | None) -> AppConfig:
        return self._commit(replace(self.config, theme=_optional_str(theme)))

    def _resize(self, **changes) -> AppConfig:
        return self._commit(replace(self.config, layout=replace(self.config.layout, **changes)))

    def resize_sidebar(self, delta: int) -> AppConfig:
        width = int(_clamp(self.config.layout.sidebar_width + delta, SIDEBAR_WIDTH_RANGE))
        return self._resize(sidebar_width=width)

    def resize_left_ratio(self, delta_percent: float) -> AppConfig:
        ratio = _clamp(self.config.layout.left_ratio + delta_percent, LEFT_RATIO_RANGE)
        return self._resize(left_ratio=round(ratio, 2))

    def resize_queue(self, delta: int) -> AppConfig:
        height = int(_clamp(self.config.layout.queue_height + delta, QUEUE_HEIGHT_RANGE))
        return self._resize(queue_height=height)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "AppConfig",
    "LayoutSizes",
    "ConfigStore",
    "load_config",
    "save_config",
    "config_from_dict",
    "config_to_dict",
]
