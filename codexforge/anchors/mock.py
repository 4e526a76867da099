"""Offline, deterministic anchor for tests and unauthenticated runs."""

from __future__ import annotations

from codexforge.anchors.base import AnchorRequest
from codexforge.core.integrity import b64url_encode, digest
from codexforge.models.entry import Anchor

MOCK_CHAIN = "mock:local"


class MockAnchor:
    """Derives a pseudo transaction id from the entry id and integrity proof.

    ``tx = base64url(sha256(entry_id + integrity_proof))``.  No network, no
    timestamp, always succeeds.
    """

    name = "mock"
    requires_credentials = False

    async def create(self, request: AnchorRequest, credentials: str | None = None) -> Anchor:
        seed = (request.entry_id + request.integrity_proof).encode("utf-8")
        return Anchor(chain=MOCK_CHAIN, tx=b64url_encode(digest(seed)), hash_alg="sha-256")
