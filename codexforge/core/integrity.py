"""Content digests and named-information integrity tokens (RFC 6920).

An integrity token looks like ``ni:///sha-256;<base64url-no-padding>``.  It
names its own algorithm, so a verifier never has to guess how the digest
was produced.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re

from codexforge.core.errors import IntegrityError

NI_PREFIX = "ni:///"
DEFAULT_HASH_ALG = "sha-256"

# RFC 6920 algorithm name -> (hashlib name, digest length in bytes)
HASH_ALGORITHMS: dict[str, tuple[str, int]] = {
    "sha-256": ("sha256", 32),
    "sha-384": ("sha384", 48),
    "sha-512": ("sha512", 64),
}

_B64URL_BODY = re.compile(r"^[A-Za-z0-9_-]*$")


def b64url_encode(data: bytes) -> str:
    """Base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Inverse of :func:`b64url_encode`; accepts missing padding."""
    if not _B64URL_BODY.match(text):
        raise ValueError("not a base64url string")
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def encoded_length(alg: str) -> int:
    """Length of the unpadded base64url body for *alg*'s digest."""
    _, size = HASH_ALGORITHMS[alg]
    return (size * 4 + 2) // 3


def digest(data: bytes, alg: str = DEFAULT_HASH_ALG) -> bytes:
    """Return the raw digest of *data*.  Any length is valid, including 0."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise IntegrityError(
            f"Cannot digest {type(data).__name__}; expected bytes"
        )
    if alg not in HASH_ALGORITHMS:
        raise IntegrityError(f"Unsupported hash algorithm: {alg}")
    hash_name, _ = HASH_ALGORITHMS[alg]
    return hashlib.new(hash_name, bytes(data)).digest()


def encode_integrity(raw_digest: bytes, alg: str = DEFAULT_HASH_ALG) -> str:
    """Encode a raw digest as an ``ni:///`` integrity token.

    The digest length must match *alg* exactly; nothing is truncated or
    padded.
    """
    if alg not in HASH_ALGORITHMS:
        raise IntegrityError(f"Unsupported hash algorithm: {alg}")
    _, size = HASH_ALGORITHMS[alg]
    if len(raw_digest) != size:
        raise IntegrityError(
            f"{alg} digest must be {size} bytes, got {len(raw_digest)}"
        )
    return f"{NI_PREFIX}{alg};{b64url_encode(bytes(raw_digest))}"


def decode_integrity(token: str) -> tuple[str, bytes]:
    """Split an integrity token into ``(alg, raw_digest)``."""
    if not isinstance(token, str) or not token.startswith(NI_PREFIX):
        raise IntegrityError(f"Not a named-information URI: {token!r}")
    alg, sep, body = token[len(NI_PREFIX):].partition(";")
    if not sep:
        raise IntegrityError(f"Integrity token has no algorithm: {token!r}")
    if alg not in HASH_ALGORITHMS:
        raise IntegrityError(f"Unsupported hash algorithm: {alg}")
    if len(body) != encoded_length(alg):
        raise IntegrityError(
            f"{alg} digest body must be {encoded_length(alg)} chars, got {len(body)}"
        )
    try:
        raw = b64url_decode(body)
    except (ValueError, binascii.Error) as exc:
        raise IntegrityError(f"Malformed digest body in {token!r}", cause=exc) from exc
    if b64url_encode(raw) != body:
        raise IntegrityError(f"Non-canonical digest body in {token!r}")
    return alg, raw


def decode_alg(token: str) -> str:
    """Return the algorithm named by an integrity token."""
    alg, _ = decode_integrity(token)
    return alg


def integrity_proof(data: bytes, alg: str = DEFAULT_HASH_ALG) -> str:
    """Digest *data* and encode the result as an integrity token."""
    return encode_integrity(digest(data, alg), alg)


def verify_integrity(data: bytes, token: str) -> bool:
    """Check that *token* is the integrity proof of exactly *data*."""
    alg, expected = decode_integrity(token)
    return hmac.compare_digest(digest(data, alg), expected)
