"""Cloud-drive backend (Google Drive v3 over ``httpx``).

Folders are addressed by opaque file identifiers, never by path. Only the
``google`` provider is implemented; every call for another provider raises
``CapabilityError`` instead of attempting an emulation.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from ..errors import BackendError, CapabilityError
from .events import EventChannel
from .local import remove_partial_file
from .types import RemoteEntry, TransferProgress

if TYPE_CHECKING:
    from ..connection import CloudConnection

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ROOT_FOLDER_ID = "root"
LIST_PAGE_SIZE = 1000

SUPPORTED_PROVIDERS = frozenset({"google"})
DRIVE_CAPABILITIES = frozenset({"list", "download", "upload", "delete"})


class GoogleDriveClient:
    """Thin async client for the Drive calls the remote pane needs."""

    def __init__(
        self,
        events: EventChannel | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._events = events
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def supports(connection: CloudConnection, operation: str) -> bool:
        """Return whether ``operation`` is available for the connection's provider."""
        return connection.provider in SUPPORTED_PROVIDERS and operation in DRIVE_CAPABILITIES

    @staticmethod
    def _require_provider(connection: CloudConnection) -> None:
        if connection.provider not in SUPPORTED_PROVIDERS:
            raise CapabilityError("Only Google Drive is implemented at this time.")

    @staticmethod
    def _auth_headers(connection: CloudConnection) -> dict[str, str]:
        return {"Authorization": f"Bearer {connection.access_token.strip()}"}

    async def list_directory(self, connection: CloudConnection, folder_id: str | None = None) -> list[RemoteEntry]:
        """List the non-trashed children of ``folder_id`` (the drive root when unset).

        Every result page is fetched, so large folders come back whole.
        """
        self._require_provider(connection)
        parent_id = folder_id or ROOT_FOLDER_ID
        params = {
            "q": f"'{parent_id}' in parents and trashed = false",
            "fields": "nextPageToken,files(id,name,mimeType,size,modifiedTime)",
            "orderBy": "folder,name",
            "pageSize": str(LIST_PAGE_SIZE),
        }
        files: list[dict] = []
        while True:
            page_files, page_token = await self._list_page(connection, params)
            files.extend(page_files)
            if not page_token:
                break
            params["pageToken"] = page_token

        entries: list[RemoteEntry] = []
        for item in files:
            raw_size = item.get("size")
            try:
                size = int(raw_size) if raw_size is not None else None
            except (TypeError, ValueError):
                size = None
            entries.append(
                RemoteEntry(
                    name=item["name"],
                    is_dir=item.get("mimeType") == FOLDER_MIME_TYPE,
                    size=size,
                    modified=item.get("modifiedTime"),
                    id=item.get("id"),
                )
            )
        return entries

    async def _list_page(self, connection: CloudConnection, params: dict[str, str]) -> tuple[list[dict], str | None]:
        try:
            response = await self._client.get(
                f"{DRIVE_API_URL}/files",
                params=params,
                headers=self._auth_headers(connection),
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"Network request failed: {exc}") from exc
        if not response.is_success:
            raise BackendError(f"Google Drive API Error: {response.text}")

        try:
            page = response.json()
            files = list(page["files"])
        except (ValueError, KeyError, TypeError) as exc:
            raise BackendError(f"Failed to parse Google Drive response: {exc}") from exc
        return files, page.get("nextPageToken")

    async def download_file(
        self,
        connection: CloudConnection,
        file_id: str,
        local_path: str,
        filename: str | None = None,
    ) -> str:
        """Stream one file to ``local_path`` publishing progress events."""
        self._require_provider(connection)
        transfer_id = f"cdl-{uuid.uuid4()}"
        display_name = filename or Path(local_path).name
        url = f"{DRIVE_API_URL}/files/{file_id}"
        total = 0
        downloaded = 0
        try:
            async with self._client.stream(
                "GET",
                url,
                params={"alt": "media"},
                headers=self._auth_headers(connection),
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise BackendError(f"Download API Error: {response.text}")
                total = int(response.headers.get("Content-Length", 0) or 0)
                with open(local_path, "wb") as handle:
                    async for chunk in response.aiter_bytes():
                        handle.write(chunk)
                        downloaded += len(chunk)
                        self._publish(TransferProgress(transfer_id, display_name, downloaded, total, "downloading"))
        except httpx.HTTPError as exc:
            self._abandon(transfer_id, display_name, downloaded, total, local_path)
            raise BackendError(f"Failed to initiate download: {exc}") from exc
        except OSError as exc:
            self._abandon(transfer_id, display_name, downloaded, total, local_path)
            raise BackendError(f"Failed to write to local file: {exc}") from exc

        self._publish(TransferProgress(transfer_id, display_name, downloaded, max(total, downloaded), "complete"))
        logger.info("Downloaded cloud file %s to %s", file_id, local_path)
        return f"Successfully downloaded file to {local_path}"

    async def upload_file(self, connection: CloudConnection, local_path: str, parent_id: str | None = None) -> str:
        """Multipart-upload ``local_path`` into ``parent_id`` (the drive root when unset)."""
        self._require_provider(connection)
        source = Path(local_path)
        try:
            payload = source.read_bytes()
        except OSError as exc:
            raise BackendError(f"Failed to open local file: {exc}") from exc

        metadata = {"name": source.name, "parents": [parent_id or ROOT_FOLDER_ID]}
        files = {
            "metadata": (None, json.dumps(metadata), "application/json"),
            "file": (source.name, payload),
        }
        try:
            response = await self._client.post(
                DRIVE_UPLOAD_URL,
                params={"uploadType": "multipart"},
                headers=self._auth_headers(connection),
                files=files,
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"Upload request failed: {exc}") from exc
        if not response.is_success:
            raise BackendError(f"Upload API Error: {response.text}")

        self._publish(TransferProgress(f"cul-{uuid.uuid4()}", source.name, len(payload), len(payload), "complete"))
        return f"Successfully uploaded {source.name}"

    async def delete(self, connection: CloudConnection, file_id: str) -> str:
        self._require_provider(connection)
        try:
            response = await self._client.delete(
                f"{DRIVE_API_URL}/files/{file_id}",
                headers=self._auth_headers(connection),
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"Delete request failed: {exc}") from exc
        if not response.is_success:
            raise BackendError(f"Delete API Error: {response.text}")
        return f"Deleted {file_id}"

    def _abandon(self, transfer_id: str, filename: str, done: int, total: int, local_path: str) -> None:
        self._publish(TransferProgress(transfer_id, filename, done, total, "error"))
        remove_partial_file(local_path)

    def _publish(self, event: TransferProgress) -> None:
        if self._events is not None:
            self._events.publish_progress(event)


__all__ = [
    "GoogleDriveClient",
    "DRIVE_CAPABILITIES",
    "FOLDER_MIME_TYPE",
    "ROOT_FOLDER_ID",
    "SUPPORTED_PROVIDERS",
]
