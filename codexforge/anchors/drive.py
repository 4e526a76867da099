"""Google Drive anchor: a timestamped anchor descriptor stored on Drive.

The descriptor ``{codexId, timestamp, integrity_proof}`` is uploaded as
``<entry id>.anchor.json``; the Drive file id becomes ``anchor.tx`` and its
view link ``anchor.url``.  Drive's own file metadata (creation time,
revision history) is what makes the anchor externally checkable.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from codexforge.anchors.base import AnchorRequest
from codexforge.core.errors import AnchorError, TransportError
from codexforge.models.entry import Anchor
from codexforge.storage.drive import DriveStorage

logger = logging.getLogger(__name__)

DRIVE_CHAIN = "google:drive"


def _utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DriveAnchor:
    """Anchors integrity proofs by uploading a descriptor to Google Drive.

    Parameters
    ----------
    storage:
        Drive storage used for the descriptor upload.
    """

    name = "google"
    requires_credentials = True

    def __init__(self, storage: DriveStorage) -> None:
        self._storage = storage

    async def create(self, request: AnchorRequest, credentials: str | None) -> Anchor:
        timestamp = _utc_timestamp()
        descriptor = {
            "codexId": request.entry_id,
            "timestamp": timestamp,
            "integrity_proof": request.integrity_proof,
        }
        try:
            stored = await self._storage.upload(
                json.dumps(descriptor).encode("utf-8"),
                f"{request.entry_id}.anchor.json",
                "application/json",
                credentials,
            )
        except TransportError as exc:
            raise AnchorError(f"[Google Anchor] {exc}", cause=exc) from exc
        logger.info("Anchored %s on %s as %s", request.entry_id, DRIVE_CHAIN, stored.id)
        return Anchor(
            chain=DRIVE_CHAIN,
            tx=stored.id,
            url=stored.url,
            hash_alg="sha-256",
            timestamp=timestamp,
        )
