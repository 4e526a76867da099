"""Local directory storage provider.

Layout: {base_path}/{object_id}/{filename}, with the object's metadata in
{base_path}/{object_id}/meta.json.  Object ids are random, so the same
object can be updated in place (the self-reference rewrite needs that).
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Any

from codexforge.core.errors import TransportError
from codexforge.core.integrity import integrity_proof
from codexforge.models.build import StoredObject
from codexforge.models.entry import StorageProtocol

logger = logging.getLogger(__name__)

_META_FILE = "meta.json"


class LocalStorage:
    """Stores objects as plain files under *base_path*.

    Parameters
    ----------
    base_path:
        Root directory for stored objects.  Created if missing.
    """

    protocol = StorageProtocol.LOCAL
    requires_credentials = False

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def _object_dir(self, object_id: str) -> Path:
        if not object_id or "/" in object_id or "\\" in object_id or object_id in (".", ".."):
            raise TransportError(f"Invalid object id: {object_id!r}", status_code=400)
        return self._base / object_id

    def _read_meta(self, object_id: str) -> dict[str, Any]:
        meta_path = self._object_dir(object_id) / _META_FILE
        if not meta_path.exists():
            raise TransportError(f"Object not found: {object_id}", status_code=404)
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise TransportError(f"Unreadable metadata for {object_id}", cause=exc) from exc

    def _write(self, object_id: str, filename: str, mime_type: str, data: bytes) -> StoredObject:
        name = Path(filename).name
        if not name or name == _META_FILE:
            raise TransportError(f"Invalid filename: {filename!r}", status_code=400)
        target_dir = self._object_dir(object_id)
        target = target_dir / name
        meta = {
            "id": object_id,
            "name": name,
            "mimeType": mime_type,
            "size": len(data),
            "integrity_proof": integrity_proof(data),
        }
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            (target_dir / _META_FILE).write_text(json.dumps(meta), encoding="utf-8")
        except OSError as exc:
            raise TransportError(f"Cannot write {target}: {exc}", cause=exc) from exc
        uri = target.resolve().as_uri()
        logger.debug("LocalStorage: wrote %s (%d bytes)", target, len(data))
        return StoredObject(id=object_id, url=uri, location=uri)

    async def upload(
        self, data: bytes, filename: str, mime_type: str, token: str | None = None
    ) -> StoredObject:
        object_id = uuid.uuid4().hex
        return await asyncio.to_thread(self._write, object_id, filename, mime_type, bytes(data))

    async def exists(self, object_id: str, token: str | None = None) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_meta, object_id)

    async def update(
        self, object_id: str, data: bytes, token: str | None = None
    ) -> StoredObject:
        meta = await asyncio.to_thread(self._read_meta, object_id)
        return await asyncio.to_thread(
            self._write, object_id, meta["name"], meta["mimeType"], bytes(data)
        )

    def read(self, object_id: str) -> bytes:
        """Return the stored bytes of *object_id*."""
        meta = self._read_meta(object_id)
        return (self._object_dir(object_id) / meta["name"]).read_bytes()
