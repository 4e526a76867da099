"""Unit tests for canonical JSON serialization."""

from __future__ import annotations

import pytest

from codexforge.core.canonical import CanonicalBytes, canonical_view, canonicalize
from codexforge.core.errors import CanonicalizationError


class TestCanonicalize:
    """Structurally equal values must serialize to identical bytes."""

    def test_key_order_independent(self):
        a = {"b": 1, "a": {"y": [1, 2], "x": None}}
        b = {"a": {"x": None, "y": [1, 2]}, "b": 1}
        assert canonicalize(a) == canonicalize(b)

    def test_no_whitespace_and_sorted(self):
        assert canonicalize({"b": True, "a": "x"}) == b'{"a":"x","b":true}'

    def test_returns_canonical_bytes(self):
        assert isinstance(canonicalize({}), CanonicalBytes)

    def test_array_order_preserved(self):
        assert canonicalize([3, 1, 2]) == b"[3,1,2]"

    def test_non_ascii_is_raw_utf8(self):
        assert canonicalize({"k": "café"}) == '{"k":"café"}'.encode("utf-8")

    def test_control_characters_escaped(self):
        assert canonicalize("a\nb\u0001") == b'"a\\nb\\u0001"'

    def test_keys_sorted_by_utf16_code_units(self):
        # U+1F600 is a surrogate pair (D83D DE00) and sorts before U+FB33
        value = {
            "\u20ac": 1,
            "\r": 2,
            "\ufb33": 3,
            "1": 4,
            "\U0001f600": 5,
            "\u0080": 6,
            "\u00f6": 7,
        }
        text = canonicalize(value).decode("utf-8")
        order = [text.index(f'"{k}"') for k in ["\\r", "1", "\u0080", "\u00f6", "\u20ac", "\U0001f600", "\ufb33"]]
        assert order == sorted(order)

    def test_tuple_serialized_as_array(self):
        assert canonicalize((1, "a")) == b'[1,"a"]'

    def test_pydantic_model_excludes_none(self, make_entry):
        entry = make_entry()
        assert b"previous_id" not in canonicalize(entry)
        assert canonicalize(entry) == canonicalize(entry.to_document())


class TestNumbers:
    """Numbers follow the ECMAScript Number#toString rule."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0, "0"),
            (-7, "-7"),
            (1.0, "1"),
            (-0.0, "0"),
            (0.1, "0.1"),
            (123.456, "123.456"),
            (1e20, "100000000000000000000"),
            (1e21, "1e+21"),
            (1.5e-7, "1.5e-7"),
            (0.000001, "0.000001"),
            (2**60, str(2**60)),
        ],
    )
    def test_number_formatting(self, value, expected):
        assert canonicalize(value) == expected.encode()

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(CanonicalizationError):
            canonicalize(value)


class TestRejections:
    def test_non_string_keys_rejected(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({1: "a"})

    def test_unsupported_type_rejected(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({"when": object()})

    def test_bytes_rejected(self):
        with pytest.raises(CanonicalizationError):
            canonicalize(b"raw")

    def test_lone_surrogate_rejected(self):
        with pytest.raises(CanonicalizationError):
            canonicalize("\ud800")


class TestCanonicalView:
    def test_signatures_removed(self, signed_entry):
        view = canonical_view(signed_entry)
        assert "signatures" not in view
        assert view["id"] == signed_entry.id

    def test_mapping_input_not_mutated(self):
        doc = {"id": "x", "signatures": [{"alg": "ES256"}]}
        view = canonical_view(doc)
        assert "signatures" in doc
        assert view == {"id": "x"}
