"""Unit tests for local and Google Drive storage providers."""

from __future__ import annotations

import json

import httpx
import pytest

from codexforge.core.errors import CredentialError, TransportError
from codexforge.core.integrity import integrity_proof
from codexforge.models.entry import StorageProtocol
from codexforge.storage import BlobStorage, DriveStorage, LocalStorage
from codexforge.storage.drive import drive_file_url, multipart_related


class TestLocalStorage:
    def test_satisfies_protocol(self, local_storage):
        assert isinstance(local_storage, BlobStorage)
        assert local_storage.protocol is StorageProtocol.LOCAL
        assert not local_storage.requires_credentials

    @pytest.mark.asyncio
    async def test_upload_and_read(self, local_storage):
        stored = await local_storage.upload(b"Hello", "hello.txt", "text/plain")
        assert stored.location.startswith("file://")
        assert stored.location.endswith("/hello.txt")
        assert local_storage.read(stored.id) == b"Hello"
        meta = await local_storage.exists(stored.id)
        assert meta["integrity_proof"] == integrity_proof(b"Hello")
        assert meta["mimeType"] == "text/plain"

    @pytest.mark.asyncio
    async def test_update_in_place(self, local_storage):
        stored = await local_storage.upload(b"v1", "entry.json", "application/json")
        updated = await local_storage.update(stored.id, b"v2")
        assert updated.id == stored.id
        assert updated.location == stored.location
        assert local_storage.read(stored.id) == b"v2"

    @pytest.mark.asyncio
    async def test_missing_object(self, local_storage):
        with pytest.raises(TransportError) as info:
            await local_storage.exists("nope")
        assert info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, local_storage):
        with pytest.raises(TransportError):
            await local_storage.update("../outside", b"x")

    @pytest.mark.asyncio
    async def test_filename_reduced_to_basename(self, local_storage):
        stored = await local_storage.upload(b"x", "../../evil.txt", "text/plain")
        assert (local_storage.base_path / stored.id / "evil.txt").exists()


class TestMultipart:
    def test_body_layout(self):
        body, content_type = multipart_related({"name": "a.txt"}, b"DATA", "text/plain")
        boundary = content_type.split("boundary=", 1)[1]
        assert content_type.startswith("multipart/related; ")
        assert body.startswith(f"--{boundary}\r\n".encode())
        assert body.endswith(f"\r\n--{boundary}--".encode())
        assert b'{"name": "a.txt"}' in body
        assert b"Content-Type: text/plain\r\n\r\nDATA\r\n" in body


class TestDriveStorage:
    @pytest.mark.asyncio
    async def test_upload(self, drive_storage, fake_drive):
        stored = await drive_storage.upload(b"Hello", "hello.txt", "text/plain", "good-token")
        assert stored.id == "file1"
        assert stored.location == drive_file_url("file1")
        assert stored.url.endswith("/view")
        assert fake_drive.content_of("hello.txt") == b"Hello"
        request = fake_drive.requests[-1]
        assert request.url.params["uploadType"] == "multipart"
        assert request.headers["Authorization"] == "Bearer good-token"

    @pytest.mark.asyncio
    async def test_unauthorized_is_credential_error(self, drive_storage):
        with pytest.raises(CredentialError):
            await drive_storage.upload(b"x", "x.txt", "text/plain", "bad-token")

    @pytest.mark.asyncio
    async def test_missing_token(self, drive_storage, fake_drive):
        with pytest.raises(CredentialError):
            await drive_storage.upload(b"x", "x.txt", "text/plain", None)
        assert fake_drive.requests == []

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self, drive_storage, fake_drive):
        fake_drive.fail_names = (".txt",)
        with pytest.raises(TransportError) as info:
            await drive_storage.upload(b"x", "x.txt", "text/plain", "good-token")
        assert info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_update_and_exists(self, drive_storage, fake_drive):
        stored = await drive_storage.upload(b"v1", "e.json", "application/json", "good-token")
        await drive_storage.update(stored.id, b"v2", "good-token")
        assert fake_drive.content_of("e.json") == b"v2"
        meta = await drive_storage.exists(stored.id, "good-token")
        assert meta["name"] == "e.json"

    @pytest.mark.asyncio
    async def test_trashed_file(self, drive_storage, fake_drive):
        stored = await drive_storage.upload(b"v1", "e.json", "application/json", "good-token")
        fake_drive.files[stored.id]["trashed"] = True
        with pytest.raises(TransportError) as info:
            await drive_storage.exists(stored.id, "good-token")
        assert info.value.status_code == 410

    @pytest.mark.asyncio
    async def test_update_unknown_file(self, drive_storage):
        with pytest.raises(TransportError) as info:
            await drive_storage.update("missing", b"x", "good-token")
        assert info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        storage = DriveStorage(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(TransportError):
            await storage.upload(b"x", "x.txt", "text/plain", "good-token")

    @pytest.mark.asyncio
    async def test_unexpected_body(self):
        def handler(request):
            return httpx.Response(200, content=json.dumps({"no": "id"}).encode())

        storage = DriveStorage(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(TransportError):
            await storage.upload(b"x", "x.txt", "text/plain", "good-token")

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        storage = DriveStorage()
        async with storage:
            pass
        assert storage._client.is_closed
