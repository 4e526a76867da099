"""Anchor providers and the provider lookup used by the entry builder."""

from __future__ import annotations

from codexforge.anchors.base import AnchorProvider, AnchorRequest
from codexforge.anchors.drive import DriveAnchor
from codexforge.anchors.mock import MockAnchor
from codexforge.models.build import AnchorKind
from codexforge.storage.drive import DriveStorage


def get_anchor_provider(
    kind: AnchorKind | str, *, drive: DriveStorage | None = None
) -> AnchorProvider:
    """Return the provider for *kind*.

    ``google`` needs a ``DriveStorage`` to upload the anchor descriptor.
    """
    kind = AnchorKind(kind)
    if kind is AnchorKind.MOCK:
        return MockAnchor()
    if drive is None:
        raise ValueError("Google anchoring requires a DriveStorage instance")
    return DriveAnchor(drive)


__all__ = [
    "AnchorProvider",
    "AnchorRequest",
    "DriveAnchor",
    "MockAnchor",
    "get_anchor_provider",
]
