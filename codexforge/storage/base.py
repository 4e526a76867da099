"""Blob storage protocol shared by every storage provider."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from codexforge.models.build import StoredObject
from codexforge.models.entry import StorageProtocol


@runtime_checkable
class BlobStorage(Protocol):
    """Protocol that every artifact / entry storage provider implements.

    Attributes
    ----------
    protocol : StorageProtocol
        Value written into ``storage.protocol`` for artifacts kept here.
    requires_credentials : bool
        Whether calls need a bearer token (and the refresh-once policy).
    """

    protocol: StorageProtocol
    requires_credentials: bool

    async def upload(
        self, data: bytes, filename: str, mime_type: str, token: str | None
    ) -> StoredObject:
        """Store *data* as a new object and return its reference."""
        ...

    async def exists(self, object_id: str, token: str | None) -> dict[str, Any]:
        """Return object metadata, raising if the object is gone."""
        ...

    async def update(
        self, object_id: str, data: bytes, token: str | None = None
    ) -> StoredObject:
        """Replace the content of an existing object."""
        ...
