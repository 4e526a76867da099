"""Shared test fixtures for Codex Forge."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from codexforge.core.credentials import InMemoryCredentialStore
from codexforge.core.integrity import integrity_proof
from codexforge.core.signer import EntrySigner, sign_entry
from codexforge.models.entry import Anchor, CodexEntry, Identity, Storage, StorageProtocol
from codexforge.storage.drive import DriveStorage
from codexforge.storage.local import LocalStorage


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def hello_bytes() -> bytes:
    """The five-byte artifact used by the end-to-end scenarios."""
    return b"Hello"


@pytest.fixture
def signer() -> EntrySigner:
    """Provide a signer with ephemeral keys."""
    return EntrySigner()


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    """Provide a credential store holding a token the fake Drive accepts."""
    return InMemoryCredentialStore("good-token")


@pytest.fixture
def local_storage(tmp_dir: Path) -> LocalStorage:
    """Provide a LocalStorage rooted in a temp directory."""
    return LocalStorage(tmp_dir / "objects")


# ---------------------------------------------------------------------------
# Entry factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_entry() -> Callable[..., CodexEntry]:
    """Factory fixture: build an unsigned CodexEntry with sensible defaults."""

    def _factory(data: bytes = b"Hello", **overrides: Any) -> CodexEntry:
        defaults: dict[str, Any] = {
            "storage": Storage(
                protocol=StorageProtocol.LOCAL,
                location="hello.txt",
                integrity_proof=integrity_proof(data),
            ),
            "identity": Identity(
                org="Codex Forge",
                process="File-Upload-Hashed",
                artifact="hello.txt",
                subject="AI Summary: Hello...",
            ),
            "anchor": Anchor(chain="mock:local", tx="dGVzdC10eA"),
        }
        defaults.update(overrides)
        return CodexEntry(**defaults)

    return _factory


@pytest.fixture
def signed_entry(make_entry: Callable[..., CodexEntry], signer: EntrySigner) -> CodexEntry:
    """Convenience: a ready-made entry with one signature."""
    return sign_entry(make_entry(), signer)


# ---------------------------------------------------------------------------
# Fake Google Drive (httpx.MockTransport)
# ---------------------------------------------------------------------------


def _split_multipart(body: bytes, content_type: str) -> tuple[dict[str, Any], bytes]:
    boundary = content_type.split("boundary=", 1)[1].encode()
    parts = body.split(b"--" + boundary)
    sections = []
    for part in parts[1:-1]:
        _, _, payload = part.partition(b"\r\n\r\n")
        sections.append(payload[:-2])  # trailing CRLF before the next boundary
    metadata, media = sections
    return json.loads(metadata), media


class FakeDrive:
    """In-memory stand-in for the Drive v3 files API.

    Parameters
    ----------
    valid_tokens:
        Bearer tokens that are accepted; anything else gets a 401.
    fail_names:
        Filename suffixes whose uploads fail with ``fail_status``.
    """

    def __init__(
        self,
        valid_tokens: set[str] | None = None,
        *,
        fail_names: tuple[str, ...] = (),
        fail_status: int = 500,
    ) -> None:
        self.valid_tokens = set(valid_tokens or {"good-token"})
        self.fail_names = fail_names
        self.fail_status = fail_status
        self.files: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.unauthorized = 0

    def add_token(self, token: str) -> None:
        self.valid_tokens.add(token)

    def _link(self, file_id: str) -> str:
        return f"https://drive.google.com/file/d/{file_id}/view"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        auth = request.headers.get("Authorization", "")
        if auth.removeprefix("Bearer ") not in self.valid_tokens:
            self.unauthorized += 1
            return httpx.Response(401, json={"error": "invalid_token"})

        path = request.url.path
        if request.method == "POST" and path == "/upload/drive/v3/files":
            metadata, media = _split_multipart(request.content, request.headers["Content-Type"])
            if metadata["name"].endswith(self.fail_names):
                return httpx.Response(self.fail_status, json={"error": "backend"})
            file_id = f"file{len(self.files) + 1}"
            self.files[file_id] = {**metadata, "content": media, "trashed": False}
            return httpx.Response(200, json={"id": file_id, "webViewLink": self._link(file_id)})

        file_id = path.rsplit("/", 1)[-1]
        stored = self.files.get(file_id)
        if stored is None:
            return httpx.Response(404, json={"error": "notFound"})
        if request.method == "PATCH":
            stored["content"] = request.content
            return httpx.Response(200, json={"id": file_id, "webViewLink": self._link(file_id)})
        if request.method == "GET":
            return httpx.Response(
                200,
                json={
                    "id": file_id,
                    "name": stored["name"],
                    "mimeType": stored["mimeType"],
                    "trashed": stored["trashed"],
                },
            )
        return httpx.Response(405)

    def content_of(self, name: str) -> bytes:
        for stored in self.files.values():
            if stored["name"] == name:
                return stored["content"]
        raise KeyError(name)


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def drive_storage(fake_drive: FakeDrive) -> DriveStorage:
    """DriveStorage talking to the fake Drive through a mock transport."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_drive.handler))
    return DriveStorage(client)
