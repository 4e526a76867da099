"""Google Drive storage provider (Drive v3 REST API over httpx).

Error mapping
-------------
- HTTP 401 -> ``CredentialError`` (the caller refreshes once and retries)
- any other HTTP error status -> ``TransportError`` with ``status_code``
- connection / timeout failures -> ``TransportError``
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import httpx

from codexforge.core.errors import CredentialError, TransportError
from codexforge.models.build import StoredObject
from codexforge.models.entry import StorageProtocol

logger = logging.getLogger(__name__)

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
DRIVE_FILE_URL = "https://drive.google.com/file/d/{file_id}"


def drive_file_url(file_id: str) -> str:
    return DRIVE_FILE_URL.format(file_id=file_id)


def multipart_related(
    metadata: dict[str, Any], data: bytes, mime_type: str
) -> tuple[bytes, str]:
    """Build a ``multipart/related`` body: JSON metadata part + media part.

    Returns ``(body, content_type_header)``.
    """
    boundary = f"codexforge-{uuid.uuid4().hex}"
    body = b"".join(
        [
            f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode(),
            json.dumps(metadata).encode("utf-8"),
            f"\r\n--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode(),
            bytes(data),
            f"\r\n--{boundary}--".encode(),
        ]
    )
    return body, f"multipart/related; boundary={boundary}"


class DriveStorage:
    """Stores artifacts and entries as Google Drive files.

    Parameters
    ----------
    client:
        Shared ``httpx.AsyncClient``.  If omitted, one is created and owned
        by this instance (closed by :meth:`aclose`).
    api_base / upload_base:
        Drive endpoints, overridable for testing or proxies.
    timeout:
        Request timeout in seconds for an owned client.
    """

    protocol = StorageProtocol.GDRIVE
    requires_credentials = True

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        api_base: str = DRIVE_API_BASE,
        upload_base: str = DRIVE_UPLOAD_BASE,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._api_base = api_base.rstrip("/")
        self._upload_base = upload_base.rstrip("/")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> DriveStorage:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(
        self, method: str, url: str, token: str | None, **kwargs: Any
    ) -> httpx.Response:
        if not token:
            raise CredentialError("Google Drive requires a bearer token")
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"[Drive] {method} {url} failed: {exc}", cause=exc) from exc
        if response.status_code == 401:
            raise CredentialError(f"[Drive] 401: {response.text}")
        if response.is_error:
            raise TransportError(
                f"[Drive] {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _stored(response: httpx.Response) -> StoredObject:
        try:
            payload = response.json()
            file_id = payload["id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TransportError(
                f"[Drive] Unexpected response body: {response.text[:200]}", cause=exc
            ) from exc
        location = drive_file_url(file_id)
        return StoredObject(
            id=file_id,
            url=payload.get("webViewLink") or location,
            location=location,
        )

    # ------------------------------------------------------------------
    # BlobStorage
    # ------------------------------------------------------------------

    async def upload(
        self, data: bytes, filename: str, mime_type: str, token: str | None
    ) -> StoredObject:
        body, content_type = multipart_related(
            {"name": filename, "mimeType": mime_type}, data, mime_type
        )
        response = await self._request(
            "POST",
            f"{self._upload_base}/files",
            token,
            params={"uploadType": "multipart", "fields": "id,webViewLink"},
            headers={"Content-Type": content_type},
            content=body,
        )
        stored = self._stored(response)
        logger.info("Uploaded %s to Drive as %s (%d bytes)", filename, stored.id, len(data))
        return stored

    async def exists(self, object_id: str, token: str | None) -> dict[str, Any]:
        response = await self._request(
            "GET",
            f"{self._api_base}/files/{object_id}",
            token,
            params={"fields": "id,name,mimeType,trashed"},
        )
        metadata = response.json()
        if metadata.get("trashed"):
            raise TransportError(f"[Drive] File {object_id} is trashed", status_code=410)
        return metadata

    async def update(
        self, object_id: str, data: bytes, token: str | None = None
    ) -> StoredObject:
        response = await self._request(
            "PATCH",
            f"{self._upload_base}/files/{object_id}",
            token,
            params={"uploadType": "media", "fields": "id,webViewLink"},
            content=bytes(data),
        )
        stored = self._stored(response)
        logger.info("Updated Drive file %s (%d bytes)", stored.id, len(data))
        return stored
