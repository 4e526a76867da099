"""Canonical JSON serialization (RFC 8785 style) for hashing and signing.

The canonical form is the exact byte string a Codex signature covers, so it
must match what a JavaScript verifier computes with a key-sorting
``JSON.stringify``:

- object keys sorted by UTF-16 code units
- arrays keep their order
- no whitespace, raw UTF-8 output (non-ASCII is not ``\\u`` escaped)
- numbers printed with the ECMAScript ``Number.prototype.toString`` rule
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from codexforge.core.errors import CanonicalizationError


class CanonicalBytes(bytes):
    """Bytes produced by :func:`canonicalize`.

    The signer only accepts this type, so raw or pretty-printed JSON can
    never be signed by accident.
    """


def _format_float(value: float) -> str:
    """Format a finite float the way ECMAScript ``Number#toString`` does."""
    if math.isnan(value) or math.isinf(value):
        raise CanonicalizationError(f"{value!r} has no JSON representation")
    if value == 0:
        return "0"  # covers -0.0

    sign = "-" if value < 0 else ""
    mantissa, _, exponent = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    # value == 0.<digits> * 10**n
    n = len(int_part) + int(exponent or 0)
    stripped = digits.lstrip("0")
    n -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k = len(digits)

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        text = digits[0]
        if k > 1:
            text += "." + digits[1:]
        text += f"e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _utf16_key(key: str) -> bytes:
    return key.encode("utf-16-be", "surrogatepass")


def _serialize(value: Any, out: list[str]) -> None:
    if value is None:
        out.append("null")
    elif value is True:
        out.append("true")
    elif value is False:
        out.append("false")
    elif isinstance(value, int):
        out.append(str(value))
    elif isinstance(value, float):
        out.append(_format_float(value))
    elif isinstance(value, str):
        out.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, BaseModel):
        _serialize(value.model_dump(mode="json", exclude_none=True), out)
    elif isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Object keys must be strings, got {type(key).__name__}"
                )
        out.append("{")
        for i, key in enumerate(sorted(value, key=_utf16_key)):
            if i:
                out.append(",")
            out.append(json.dumps(key, ensure_ascii=False))
            out.append(":")
            _serialize(value[key], out)
        out.append("}")
    elif isinstance(value, (list, tuple)):
        out.append("[")
        for i, item in enumerate(value):
            if i:
                out.append(",")
            _serialize(item, out)
        out.append("]")
    else:
        raise CanonicalizationError(
            f"{type(value).__name__} is not a JSON value"
        )


def canonicalize(value: Any) -> CanonicalBytes:
    """Return the canonical UTF-8 JSON bytes of *value*.

    Structurally equal values produce byte-identical output regardless of
    key insertion order.
    """
    out: list[str] = []
    _serialize(value, out)
    try:
        return CanonicalBytes("".join(out).encode("utf-8"))
    except UnicodeEncodeError as exc:
        raise CanonicalizationError(
            "Value contains unpaired surrogates", cause=exc
        ) from exc


def canonical_view(entry: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    """Return the part of an entry a signature covers.

    Every signature covers the entry with ``signatures`` removed entirely,
    so co-signatures are independent of each other.
    """
    if isinstance(entry, BaseModel):
        doc = entry.model_dump(mode="json", exclude_none=True)
    else:
        doc = dict(entry)
    doc.pop("signatures", None)
    return doc
