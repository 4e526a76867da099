"""Credential store and the single-retry refresh wrapper.

The bearer token is the only state shared between concurrent entry runs.
Stores guarantee that a reader sees either the old or the new token, never
a partially written one.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from codexforge.core.errors import CredentialError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Refresher = Callable[[], Awaitable[str | None]]


@runtime_checkable
class CredentialStore(Protocol):
    """Async store for the current bearer token."""

    async def get(self) -> str | None:
        """Return the current token, or ``None`` if there is none."""
        ...

    async def set(self, token: str) -> None:
        """Replace the current token."""
        ...

    async def remove(self) -> None:
        """Forget the current token."""
        ...


class InMemoryCredentialStore:
    """Process-local credential store."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token
        self._lock = asyncio.Lock()

    async def get(self) -> str | None:
        async with self._lock:
            return self._token

    async def set(self, token: str) -> None:
        if not token:
            raise CredentialError("Refusing to store an empty token")
        async with self._lock:
            self._token = token

    async def remove(self) -> None:
        async with self._lock:
            self._token = None


class FileCredentialStore:
    """Credential store persisted as a small JSON file.

    Writes go to a temp file that is atomically renamed over the target, so
    other processes reading the file never observe a torn token.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> str | None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            raise CredentialError(f"Unreadable credential file {self._path}", cause=exc) from exc
        token = data.get("token") if isinstance(data, dict) else None
        return token or None

    def _write(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".token-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"token": token}, fh)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def get(self) -> str | None:
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def set(self, token: str) -> None:
        if not token:
            raise CredentialError("Refusing to store an empty token")
        async with self._lock:
            await asyncio.to_thread(self._write, token)

    async def remove(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._path.unlink, missing_ok=True)


async def with_credential_refresh(
    op: Callable[[str], Awaitable[T]],
    store: CredentialStore,
    refresher: Refresher | None = None,
    *,
    token: str | None = None,
) -> T:
    """Run ``op(token)``, refreshing the credential at most once.

    On ``CredentialError`` the current token is removed, *refresher* is
    asked for a new one, the new token is stored and *op* is retried exactly
    once.  A second ``CredentialError`` (or no refresher / no new token)
    propagates to the caller.
    """
    if token is None:
        token = await store.get()
    if not token:
        raise CredentialError("No credential available")
    try:
        return await op(token)
    except CredentialError as first:
        logger.info("Credential rejected; refreshing once and retrying")
        await store.remove()
        if refresher is None:
            raise
        new_token = await refresher()
        if not new_token:
            raise CredentialError("Credential refresh returned no token", cause=first) from first
        await store.set(new_token)
        return await op(new_token)
