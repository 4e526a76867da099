"""End-to-end scenarios: build, self-reference and archive a five-byte artifact.

These tests exercise the EntryBuilder, signer, validator, storage providers
and archive packager working together.
"""

from __future__ import annotations

import io
import json
import zipfile

import pytest

from codexforge.core.archive import ENTRY_MEMBER, pack, unpack
from codexforge.core.builder import EntryBuilder
from codexforge.core.canonical import canonical_view, canonicalize
from codexforge.core.signer import rewrite_location, verify_entry, verify_signature
from codexforge.core.validator import validate
from codexforge.models.build import BuildRequest


class TestScenarioA:
    """Five-byte artifact, mock anchor, local storage protocol."""

    @pytest.mark.asyncio
    async def test_entry(self, hello_bytes):
        result = await EntryBuilder().create_entry(
            BuildRequest(filename="hello.txt", data=hello_bytes)
        )
        entry = result.entry
        assert len(hello_bytes) == 5
        assert entry.storage.integrity_proof.startswith("ni:///sha-256;")
        assert entry.anchor.chain == "mock:local"
        assert len(entry.signatures) == 1
        assert validate(entry).valid
        assert validate(json.loads(entry.to_json())).valid


class TestScenarioB:
    """Self-reference with a new location resets trust."""

    @pytest.mark.asyncio
    async def test_rewrite_resigns(self, hello_bytes, signer):
        original = (
            await EntryBuilder().create_entry(BuildRequest(filename="hello.txt", data=hello_bytes))
        ).entry
        old_signature = original.signatures[0]

        rewritten = rewrite_location(original, "https://example.org/entries/hello", signer)

        assert len(rewritten.signatures) == 1
        assert rewritten.signatures[0] != old_signature
        new_form = canonicalize(canonical_view(rewritten))
        assert verify_signature(new_form, rewritten.signatures[0])
        assert not verify_signature(new_form, old_signature)
        assert validate(rewritten).valid

    @pytest.mark.asyncio
    async def test_builder_self_reference(self, hello_bytes, local_storage):
        result = await EntryBuilder(storage=local_storage).create_entry(
            BuildRequest(filename="hello.txt", data=hello_bytes, self_reference=True)
        )
        entry = result.entry
        assert entry.storage.location == result.entry_info.location
        assert len(entry.signatures) == 1
        assert verify_entry(entry) == [True]


class TestScenarioC:
    """Archive packaging of scenario A's entry."""

    @pytest.mark.asyncio
    async def test_archive(self, hello_bytes):
        entry = (
            await EntryBuilder().create_entry(BuildRequest(filename="hello.txt", data=hello_bytes))
        ).entry
        container = pack(hello_bytes, "hello.txt", entry, "correct horse")

        unpacked = unpack(container, "correct horse")
        assert "location" not in unpacked.entry["storage"]
        assert unpacked.artifact == hello_bytes

        with zipfile.ZipFile(io.BytesIO(container)) as zf:
            comment = json.loads(zf.comment.decode("utf-8"))
            assert ENTRY_MEMBER in zf.namelist()
        assert comment["storage"]["location"] == entry.storage.location
        assert comment == entry.to_document()
