"""Anchor provider protocol.

An anchor binds an entry's integrity token to an external, timestamped
proof.  Providers receive only the entry skeleton they need (id and
integrity proof), never the full entry.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from codexforge.models.entry import Anchor


class AnchorRequest(BaseModel):
    """The part of an entry an anchor commits to."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    integrity_proof: str


@runtime_checkable
class AnchorProvider(Protocol):
    """Protocol that every anchor provider implements.

    Attributes
    ----------
    name : str
        Short provider name (``"mock"``, ``"google"``).
    requires_credentials : bool
        Whether :meth:`create` needs a bearer token.
    """

    name: str
    requires_credentials: bool

    async def create(self, request: AnchorRequest, credentials: str | None) -> Anchor:
        """Create the anchor for *request*.

        Raises ``CredentialError`` when *credentials* are rejected and
        ``AnchorError`` for any other failure.
        """
        ...
