from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Mapping

from .errors import ConfigurationError

# Field added on top of a stored round after commitment; never hashed.
HASH_FIELD = "hash"


def _as_bytes(data: str | bytes) -> bytes:
    if isinstance(data, bytes):
        return data
    return data.encode("utf-8")


def sha256_hex(data: str | bytes) -> str:
    return hashlib.sha256(_as_bytes(data)).hexdigest()


def hmac_sha256_hex(message: str | bytes, key: str | bytes) -> str:
    """Keyed digest used for seed derivation only, never for commitments."""
    return hmac.new(_as_bytes(key), _as_bytes(message), hashlib.sha256).hexdigest()


def _reject_floats(value: Any, path: str) -> None:
    # Float rendering differs between serializers; committed data is integer-only.
    if isinstance(value, float):
        raise ConfigurationError(f"Float value at {path} cannot be canonicalized")
    if isinstance(value, Mapping):
        for k, v in value.items():
            _reject_floats(v, f"{path}.{k}")
    elif isinstance(value, (list, tuple)):
        for i, v in enumerate(value):
            _reject_floats(v, f"{path}[{i}]")


def canonicalize(record: Mapping[str, Any]) -> str:
    """
    Serialize a record deterministically: keys sorted at every depth,
    no whitespace, non-ASCII kept literal. A top-level "hash" field is
    stripped so a round's own hash is never part of what gets hashed.
    """
    body = {k: v for k, v in record.items() if k != HASH_FIELD}
    _reject_floats(body, "$")
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def hash_leaf(record: Mapping[str, Any], salt: str) -> str:
    return sha256_hex(canonicalize(record) + salt)


def hash_pair(left: str, right: str) -> str:
    # Nodes are concatenated as hex text, not raw digest bytes.
    return sha256_hex(left + right)
