"""Unit tests for encrypted archive packing."""

from __future__ import annotations

import io
import json
import zipfile

import pyzipper
import pytest

from codexforge.core.archive import ENTRY_MEMBER, MAX_COMMENT_BYTES, pack, redact, unpack
from codexforge.core.errors import PackagingError
from codexforge.core.signer import sign_entry
from codexforge.models.entry import Anchor


@pytest.fixture
def anchored_entry(make_entry, signer):
    anchor = Anchor(
        chain="google:drive", tx="file9", url="https://drive.google.com/file/d/file9/view"
    )
    entry = make_entry(anchor=anchor)
    return sign_entry(entry, signer)


class TestPack:
    def test_members_and_storage(self, anchored_entry):
        container = pack(b"Hello", "hello.txt", anchored_entry, "s3cret")
        with zipfile.ZipFile(io.BytesIO(container)) as zf:
            infos = zf.infolist()
            assert [i.filename for i in infos] == ["hello.txt", ENTRY_MEMBER]
            assert all(i.flag_bits & 0x1 for i in infos)  # encrypted
            assert all(i.compress_type == 99 for i in infos)  # WinZip AES marker

    def test_stored_without_compression(self, anchored_entry):
        container = pack(b"Hello" * 100, "hello.txt", anchored_entry, "s3cret")
        with zipfile.ZipFile(io.BytesIO(container)) as zf:
            info = zf.getinfo("hello.txt")
        # AES-256 adds a 16-byte salt, 2-byte verifier and 10-byte MAC
        assert info.compress_size == info.file_size + 28

    def test_internal_entry_is_redacted_and_indented(self, anchored_entry):
        container = pack(b"Hello", "hello.txt", anchored_entry, "s3cret")
        with pyzipper.AESZipFile(io.BytesIO(container)) as zf:
            zf.setpassword(b"s3cret")
            text = zf.read(ENTRY_MEMBER).decode("utf-8")
        inner = json.loads(text)
        assert text.startswith('{\n  "id"')
        assert "location" not in inner["storage"]
        assert "tx" not in inner["anchor"]
        assert "url" not in inner["anchor"]
        assert inner["storage"]["integrity_proof"] == anchored_entry.storage.integrity_proof
        assert len(inner["signatures"]) == 1

    def test_comment_is_full_compact_entry(self, anchored_entry):
        container = pack(b"Hello", "hello.txt", anchored_entry, "s3cret")
        with zipfile.ZipFile(io.BytesIO(container)) as zf:
            comment = zf.comment.decode("utf-8")
        expected = json.dumps(
            anchored_entry.to_document(), separators=(",", ":"), ensure_ascii=False
        )
        assert comment == expected

    def test_accepts_plain_document(self, anchored_entry):
        container = pack(b"Hello", "hello.txt", anchored_entry.to_document(), "s3cret")
        assert unpack(container, "s3cret").comment_entry["id"] == anchored_entry.id

    @pytest.mark.parametrize(
        ("artifact", "name", "entry", "password"),
        [
            ("Hello", "hello.txt", {}, "pw"),
            (b"Hello", "", {}, "pw"),
            (b"Hello", None, {}, "pw"),
            (b"Hello", ENTRY_MEMBER, {}, "pw"),
            (b"Hello", "hello.txt", ["not", "an", "object"], "pw"),
            (b"Hello", "hello.txt", {}, ""),
        ],
    )
    def test_precondition_failures(self, artifact, name, entry, password):
        with pytest.raises(PackagingError):
            pack(artifact, name, entry, password)

    def test_comment_limit(self):
        with pytest.raises(PackagingError, match="65535"):
            pack(b"x", "x.bin", {"blob": "a" * MAX_COMMENT_BYTES}, "pw")


class TestUnpack:
    def test_round_trip(self, anchored_entry):
        container = pack(b"\x00\x01binary", "blob.bin", anchored_entry, "s3cret")
        unpacked = unpack(container, "s3cret")
        assert unpacked.artifact_name == "blob.bin"
        assert unpacked.artifact == b"\x00\x01binary"
        assert unpacked.entry == redact(anchored_entry.to_document())
        assert unpacked.comment_entry == anchored_entry.to_document()

    def test_wrong_password(self, anchored_entry):
        container = pack(b"Hello", "hello.txt", anchored_entry, "s3cret")
        with pytest.raises(PackagingError):
            unpack(container, "wrong")

    @pytest.mark.parametrize("container", [b"definitely not a zip", b""])
    def test_not_a_zip(self, container):
        with pytest.raises(PackagingError, match="not a valid archive"):
            unpack(container, "pw")


class TestRedact:
    def test_leaves_input_untouched(self):
        doc = {"storage": {"location": "x", "protocol": "local"}, "anchor": {"tx": "t", "chain": "mock:local"}}
        assert redact(doc) == {"storage": {"protocol": "local"}, "anchor": {"chain": "mock:local"}}
        assert doc["storage"]["location"] == "x"
