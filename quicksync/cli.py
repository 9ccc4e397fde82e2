"""Command-line front door for quicksync.

Roots a lazy tree over the local file system, optionally expands named
top-level directories, and prints the visible rows. ``--connections``
lists the saved FTP and cloud connections instead, and ``--authorize``
runs the browser OAuth flow and saves the resulting cloud connection.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

from .backend.local import LocalFileSystem
from .connection import CloudConnection
from .errors import QuickSyncError
from .oauth import PROVIDERS, start_oauth_flow
from .runtime.config import AppConfig, ConfigStore, load_config
from .tree_model import TreeRow, TreeStateEngine

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def format_size(size: int | None) -> str:
    """Human-readable byte count, empty for directories."""
    if size is None:
        return ""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return ""


def format_row(row: TreeRow) -> str:
    node = row.node
    indent = "  " * row.depth
    if node.is_dir:
        marker = "v " if node.expanded else "> "
        return f"{indent}{marker}{node.name}/"
    size = format_size(node.size)
    return f"{indent}  {node.name}" + (f"  ({size})" if size else "")


def format_connections(config: AppConfig) -> list[str]:
    lines: list[str] = []
    for ftp in config.ftp_connections:
        scheme = "ftps" if ftp.secure else "ftp"
        lines.append(f"{ftp.id}\t{scheme}://{ftp.username}@{ftp.host}:{ftp.port}\t{ftp.label}")
    for cloud in config.cloud_connections:
        lines.append(f"{cloud.id}\t{cloud.provider}\t{cloud.label}")
    if not lines:
        lines.append("No saved connections.")
    return lines


async def render_tree(path: Path | None, expand: list[str], query: str) -> list[str]:
    """Load ``path`` (default: home), expand named top-level dirs, return printable rows."""
    local = LocalFileSystem()
    engine = TreeStateEngine(local.list_directory)
    root = str(path) if path is not None else await local.get_home_directory()
    await engine.set_root(root)
    if engine.error is not None:
        raise SystemExit(engine.error)

    for name in expand:
        node = next((node for node in engine.nodes if node.name == name and node.is_dir), None)
        if node is None:
            raise SystemExit(f"No directory named {name!r} under {root}")
        await engine.toggle(node.path_or_id)
        if engine.error is not None:
            raise SystemExit(engine.error)

    rows = engine.visible_rows(query)
    if not rows:
        return ["(empty)"]
    return [format_row(row) for row in rows]


async def authorize_cloud(provider: str, client_id: str, client_secret: str, account_name: str) -> CloudConnection:
    """Authorize in the browser and save the new connection to the config."""
    try:
        tokens = await start_oauth_flow(provider, client_id, client_secret)
    except QuickSyncError as exc:
        raise SystemExit(str(exc)) from exc

    connection = tokens.to_connection(
        f"{provider}-{uuid.uuid4().hex[:8]}",
        provider,
        account_name,
        client_id,
        client_secret,
    )
    store = ConfigStore.load()
    store.upsert_cloud_connection(connection)
    if not store.last_save_ok:
        raise SystemExit("Authorized, but the connection could not be saved")
    return connection


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and print a tree listing or the saved connections."""
    parser = argparse.ArgumentParser(description="Browse local folders lazily and list saved remote connections.")
    parser.add_argument("path", nargs="?", default=None, help="Directory to list. Defaults to the home directory.")
    parser.add_argument(
        "--expand",
        action="append",
        default=[],
        metavar="NAME",
        help="Expand a top-level directory by name (repeatable).",
    )
    parser.add_argument("--filter", default="", metavar="QUERY", help="Case-insensitive name filter for the top level.")
    parser.add_argument("--connections", action="store_true", help="List saved connections and exit.")
    parser.add_argument(
        "--authorize",
        choices=sorted(PROVIDERS),
        metavar="PROVIDER",
        help="Authorize a cloud account in the browser and save it.",
    )
    parser.add_argument("--client-id", default="", help="OAuth client id for --authorize.")
    parser.add_argument("--client-secret", default="", help="OAuth client secret for --authorize.")
    parser.add_argument("--account", default="", help="Account label for --authorize.")
    parser.add_argument("--log-level", default="WARNING", type=str.upper, choices=LOG_LEVELS)
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.authorize:
        if not args.client_id or not args.client_secret:
            parser.error("--authorize needs --client-id and --client-secret")
        account = args.account or args.authorize
        connection = asyncio.run(authorize_cloud(args.authorize, args.client_id, args.client_secret, account))
        lines = [f"Saved {connection.label} as {connection.id}"]
    elif args.connections:
        lines = format_connections(load_config())
    else:
        path = Path(args.path).expanduser() if args.path else None
        lines = asyncio.run(render_tree(path, args.expand, args.filter))
    sys.stdout.write("\n".join(lines) + "\n")

