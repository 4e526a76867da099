"""Reassembly of artifacts delivered as indexed chunks.

Chunks may arrive in any order.  They are kept in an explicit buffer keyed
by their declared index and only joined once the buffer is contiguous from
index 0, so arrival order never influences the digest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from codexforge.core.errors import ChunkGapError, IntegrityError

logger = logging.getLogger(__name__)


class ChunkAssembler:
    """Ordered buffer for one chunked artifact.

    Parameters
    ----------
    total_chunks:
        Declared number of chunks, if the sender announced one.  When set,
        assembly also fails if any index ``>= total_chunks`` is missing.
    """

    def __init__(self, total_chunks: int | None = None) -> None:
        if total_chunks is not None and total_chunks < 0:
            raise IntegrityError(f"total_chunks must be >= 0, got {total_chunks}")
        self._total = total_chunks
        self._chunks: dict[int, bytes] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def total_chunks(self) -> int | None:
        return self._total

    def add(self, index: int, chunk: bytes | bytearray | memoryview | Iterable[int]) -> None:
        """Store *chunk* at *index*.

        A chunk may be re-delivered with identical bytes; conflicting bytes
        for an index already held are an integrity error.
        """
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise IntegrityError(f"Chunk index must be a non-negative int, got {index!r}")
        if self._total is not None and index >= self._total:
            raise IntegrityError(
                f"Chunk index {index} out of range for {self._total} chunks"
            )
        if isinstance(chunk, (int, str)):
            raise IntegrityError(f"Chunk {index} is not byte data")
        try:
            data = bytes(chunk)
        except (TypeError, ValueError) as exc:
            raise IntegrityError(f"Chunk {index} is not byte data", cause=exc) from exc

        existing = self._chunks.get(index)
        if existing is not None and existing != data:
            raise IntegrityError(f"Conflicting data re-delivered for chunk {index}")
        self._chunks[index] = data

    def missing(self) -> list[int]:
        """Indices not yet received, up to the declared or highest index."""
        if self._total is not None:
            expected = self._total
        elif self._chunks:
            expected = max(self._chunks) + 1
        else:
            expected = 0
        return [i for i in range(expected) if i not in self._chunks]

    def assemble(self) -> bytes:
        """Join all chunks in index order.

        Raises ``ChunkGapError`` if any index is missing.
        """
        gaps = self.missing()
        if gaps:
            raise ChunkGapError(f"Missing chunk index(es): {gaps}")
        data = b"".join(self._chunks[i] for i in sorted(self._chunks))
        logger.debug("Assembled %d chunk(s) into %d bytes", len(self._chunks), len(data))
        return data


def assemble_chunks(
    chunks: Mapping[int, bytes], total_chunks: int | None = None
) -> bytes:
    """Reassemble an ``{index: bytes}`` mapping into one byte string."""
    assembler = ChunkAssembler(total_chunks)
    for index, chunk in chunks.items():
        assembler.add(index, chunk)
    return assembler.assemble()
