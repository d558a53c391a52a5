"""Tests for digests and canonical serialization."""

import hashlib
import hmac

import pytest

from santa_gifts.errors import ConfigurationError
from santa_gifts.hashing import canonicalize, hash_leaf, hash_pair, hmac_sha256_hex, sha256_hex


class TestDigests:
    def test_sha256_hex_is_lowercase_64_chars(self) -> None:
        digest = sha256_hex("abc")
        assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        assert len(digest) == 64

    def test_sha256_accepts_bytes(self) -> None:
        assert sha256_hex(b"abc") == sha256_hex("abc")

    def test_hmac_uses_salt_as_key(self) -> None:
        expected = hmac.new(b"salt", b"blockhash", hashlib.sha256).hexdigest()
        assert hmac_sha256_hex("blockhash", "salt") == expected
        assert hmac_sha256_hex("salt", "blockhash") != expected

    def test_hash_pair_is_order_sensitive(self) -> None:
        a, b = "a" * 64, "b" * 64
        assert hash_pair(a, b) == sha256_hex(a + b)
        assert hash_pair(a, b) != hash_pair(b, a)


class TestCanonicalize:
    def test_sorted_keys_no_whitespace(self) -> None:
        assert canonicalize({"b": 1, "a": "x"}) == '{"a":"x","b":1}'

    def test_field_order_does_not_matter(self) -> None:
        one = {"day": 1, "type": "t", "params": {"z": 1, "a": 2}, "notes": "n"}
        two = {"notes": "n", "params": {"a": 2, "z": 1}, "type": "t", "day": 1}
        assert canonicalize(one) == canonicalize(two)
        assert hash_leaf(one, "salt") == hash_leaf(two, "salt")

    def test_hash_field_is_stripped(self) -> None:
        record = {"day": 3, "notes": "n"}
        assert canonicalize({**record, "hash": "deadbeef"}) == canonicalize(record)

    def test_non_ascii_kept_literal(self) -> None:
        assert canonicalize({"hint": "Père Noël 🎅"}) == '{"hint":"Père Noël 🎅"}'

    def test_floats_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            canonicalize({"params": {"allocation_percent": 40.0}})

    def test_leaf_is_canonical_json_plus_salt(self) -> None:
        record = {"b": 2, "a": 1}
        assert hash_leaf(record, "s1") == sha256_hex('{"a":1,"b":2}s1')

    def test_different_salt_different_leaf(self) -> None:
        record = {"day": 1}
        assert hash_leaf(record, "s1") != hash_leaf(record, "s2")
