"""ES256 signing of canonical entries.

Wire format
-----------
Signatures use the WebCrypto conventions so that entries produced here and
by a browser verify interchangeably:

- ``alg``: ``"ES256"`` (ECDSA over P-256 with SHA-256)
- ``signature``: raw ``r || s`` (64 bytes), base64url without padding
- ``kid``: ``"jwk:" + base64url(JSON public-key JWK)``, so the verification
  key is recovered from the signature object alone

Covering convention
-------------------
Every signature covers ``canonicalize(entry without "signatures")``.
Multiple signatures are independent co-signatures over the same unsigned
skeleton, not a chain.

Key handling
------------
With no durable key, :class:`EntrySigner` generates a fresh ephemeral key
pair for every signature.  A durable PEM key can be supplied instead.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from pydantic import ValidationError as ModelValidationError

from codexforge.core.canonical import CanonicalBytes, canonical_view, canonicalize
from codexforge.core.errors import SignatureError
from codexforge.core.integrity import b64url_decode, b64url_encode
from codexforge.models.entry import CodexEntry, Signature

logger = logging.getLogger(__name__)

SIGNATURE_ALG = "ES256"
KID_PREFIX = "jwk:"
_COORD_SIZE = 32  # P-256 coordinate / scalar length in bytes


# ---------------------------------------------------------------------------
# Key identifiers
# ---------------------------------------------------------------------------


def _public_jwk(public_key: ec.EllipticCurvePublicKey) -> dict[str, object]:
    numbers = public_key.public_numbers()
    return {
        "crv": "P-256",
        "ext": True,
        "key_ops": ["verify"],
        "kty": "EC",
        "x": b64url_encode(numbers.x.to_bytes(_COORD_SIZE, "big")),
        "y": b64url_encode(numbers.y.to_bytes(_COORD_SIZE, "big")),
    }


def kid_for_public_key(public_key: ec.EllipticCurvePublicKey) -> str:
    """Embed *public_key* as a ``jwk:`` key identifier."""
    jwk_json = json.dumps(_public_jwk(public_key), separators=(",", ":"))
    return KID_PREFIX + b64url_encode(jwk_json.encode("utf-8"))


def public_key_from_kid(kid: str) -> ec.EllipticCurvePublicKey:
    """Recover the verification key embedded in a ``jwk:`` key identifier."""
    if not isinstance(kid, str) or not kid.startswith(KID_PREFIX):
        raise SignatureError(f"Unsupported key identifier: {kid!r:.40}")
    try:
        jwk = json.loads(b64url_decode(kid[len(KID_PREFIX):]))
        if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
            raise ValueError(f"expected an EC P-256 JWK, got {jwk.get('kty')}/{jwk.get('crv')}")
        x = int.from_bytes(b64url_decode(jwk["x"]), "big")
        y = int.from_bytes(b64url_decode(jwk["y"]), "big")
        return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise SignatureError(f"Malformed key identifier: {exc}", cause=exc) from exc


def key_fingerprint(kid: str) -> str:
    """Short fingerprint of a key identifier (first 16 hex chars of SHA-256)."""
    if not kid:
        return ""
    return hashlib.sha256(kid.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------


class EntrySigner:
    """Produces detached ES256 signatures over canonical bytes.

    Parameters
    ----------
    private_key:
        Durable P-256 private key.  When ``None`` every call to
        :meth:`sign` uses a newly generated ephemeral key.
    """

    alg = SIGNATURE_ALG

    def __init__(self, private_key: ec.EllipticCurvePrivateKey | None = None) -> None:
        if private_key is not None and not isinstance(private_key.curve, ec.SECP256R1):
            raise SignatureError(
                f"ES256 requires a P-256 key, got {private_key.curve.name}"
            )
        self._private_key = private_key

    @classmethod
    def from_pem(cls, pem: bytes, password: bytes | None = None) -> EntrySigner:
        try:
            key = serialization.load_pem_private_key(pem, password=password)
        except (ValueError, TypeError) as exc:
            raise SignatureError(f"Cannot load signing key: {exc}", cause=exc) from exc
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise SignatureError("Signing key is not an elliptic-curve key")
        return cls(key)

    @classmethod
    def from_file(cls, path: Path, password: bytes | None = None) -> EntrySigner:
        return cls.from_pem(Path(path).read_bytes(), password=password)

    @property
    def ephemeral(self) -> bool:
        return self._private_key is None

    def sign(self, canonical: CanonicalBytes) -> Signature:
        """Sign *canonical* and return a detached signature object.

        Fails closed if *canonical* did not come from ``canonicalize``.
        """
        if not isinstance(canonical, CanonicalBytes):
            raise SignatureError(
                f"Refusing to sign non-canonical input ({type(canonical).__name__})"
            )
        key = self._private_key or ec.generate_private_key(ec.SECP256R1())
        try:
            der = key.sign(bytes(canonical), ec.ECDSA(hashes.SHA256()))
        except (ValueError, TypeError) as exc:
            raise SignatureError(f"ECDSA signing failed: {exc}", cause=exc) from exc
        r, s = decode_dss_signature(der)
        raw = r.to_bytes(_COORD_SIZE, "big") + s.to_bytes(_COORD_SIZE, "big")
        kid = kid_for_public_key(key.public_key())
        logger.debug(
            "Signed %d canonical bytes with %s key %s",
            len(canonical),
            "ephemeral" if self.ephemeral else "durable",
            key_fingerprint(kid),
        )
        return Signature(alg=self.alg, kid=kid, signature=b64url_encode(raw))


def verify_signature(canonical: bytes, signature: Signature) -> bool:
    """Verify *signature* over *canonical* using the key embedded in its kid.

    Returns ``False`` for any mismatch or malformed input; never raises.
    """
    if signature.alg != SIGNATURE_ALG:
        return False
    try:
        public_key = public_key_from_kid(signature.kid)
        raw = b64url_decode(signature.signature)
        if len(raw) != 2 * _COORD_SIZE:
            return False
        der = encode_dss_signature(
            int.from_bytes(raw[:_COORD_SIZE], "big"),
            int.from_bytes(raw[_COORD_SIZE:], "big"),
        )
        public_key.verify(der, bytes(canonical), ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, SignatureError, ValueError) as exc:
        logger.debug("Signature %s rejected: %s", key_fingerprint(signature.kid), exc)
        return False


# ---------------------------------------------------------------------------
# Entry-level helpers
# ---------------------------------------------------------------------------


def sign_entry(entry: CodexEntry, signer: EntrySigner) -> CodexEntry:
    """Return a copy of *entry* with one more signature appended."""
    canonical = canonicalize(canonical_view(entry))
    return entry.with_signature(signer.sign(canonical))


def reset_signatures(entry: CodexEntry) -> CodexEntry:
    return entry.without_signatures()


def rewrite_location(
    entry: CodexEntry, location: str, signer: EntrySigner
) -> CodexEntry:
    """Point ``storage.location`` at *location* and re-sign from scratch.

    Any rewrite invalidates every earlier signature, so all of them are
    discarded before the single new one is added.
    """
    rewritten = reset_signatures(entry.with_location(location))
    return sign_entry(rewritten, signer)


def verify_entry(entry: CodexEntry | Mapping[str, Any]) -> list[bool]:
    """Verify every signature on *entry*, in order.

    Pass the document as loaded from disk to verify exactly what was
    stored: a model drops unknown nested keys, a mapping keeps them, so
    content added after signing fails verification.  A malformed
    signature object verifies as ``False``.
    """
    canonical = canonicalize(canonical_view(entry))
    if isinstance(entry, CodexEntry):
        return [verify_signature(canonical, sig) for sig in entry.signatures]

    raw_signatures = entry.get("signatures") or []
    if not isinstance(raw_signatures, list):
        raise SignatureError("signatures must be a list")
    results: list[bool] = []
    for raw in raw_signatures:
        try:
            signature = Signature.model_validate(raw)
        except ModelValidationError as exc:
            logger.debug("Malformed signature object rejected: %s", exc)
            results.append(False)
            continue
        results.append(verify_signature(canonical, signature))
    return results
