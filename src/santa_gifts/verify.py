from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from .errors import AuditMismatch, ConfigurationError, IncompleteDisclosureError
from .evaluator import evaluate
from .hashing import hash_leaf
from .merkle import verify_proof
from .models import ExecutionResult, HolderSnapshot, RoundSpec, TransactionRecord, parse_amount
from .reveal import Disclosure


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    root_matches: bool
    leaf_matches: bool
    proof_valid: bool
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "root_matches": self.root_matches,
            "leaf_matches": self.leaf_matches,
            "proof_valid": self.proof_valid,
            "details": self.details,
        }


def verify_disclosure(
    disclosure: Union[Disclosure, Mapping[str, Any]],
    published_root: str,
) -> VerificationResult:
    """
    Check one revealed round against the published root using only that
    round's gift, salt, leaf and proof. A mismatch is a result, not an
    exception; only a structurally incomplete disclosure raises.
    """
    d = disclosure if isinstance(disclosure, Disclosure) else Disclosure.from_dict(disclosure)

    missing = [
        name
        for name in ("gift", "salt", "leaf", "proof", "root")
        if getattr(d, name) is None or getattr(d, name) == ""
    ]
    if isinstance(d.day, bool) or not isinstance(d.day, int) or d.day < 1:
        missing.insert(0, "day")
    if missing:
        raise IncompleteDisclosureError(
            f"Incomplete reveal data, verification not possible (missing {missing})"
        )
    if not isinstance(d.gift, Mapping) or not isinstance(d.proof, list):
        raise IncompleteDisclosureError("Reveal gift must be an object and proof a list")
    if not all(isinstance(v, str) for v in (d.salt, d.leaf, d.root, *d.proof)):
        raise IncompleteDisclosureError("Reveal salt, leaf, root and proof entries must be strings")

    root_matches = d.root == published_root
    try:
        leaf_matches = hash_leaf(d.gift, d.salt) == d.leaf
    except ConfigurationError:
        # Not canonicalizable (e.g. a float slipped in), so it cannot be what was committed.
        leaf_matches = False
    proof_valid = verify_proof(d.leaf, d.proof, d.root, d.day - 1)
    valid = root_matches and leaf_matches and proof_valid

    if valid:
        details = "All checks passed: this gift was committed before the season started."
    else:
        problems = []
        if not root_matches:
            problems.append("Root does not match commitment.")
        if not leaf_matches:
            problems.append("Leaf hash does not match gift+salt.")
        if not proof_valid:
            problems.append("Merkle proof is invalid.")
        details = " ".join(problems)

    return VerificationResult(
        valid=valid,
        root_matches=root_matches,
        leaf_matches=leaf_matches,
        proof_valid=proof_valid,
        details=details,
    )


def build_execution_audit(
    result: ExecutionResult,
    spec: RoundSpec,
    salt: str,
    blockhash: str,
    pool_amount: int,
    holders: list[HolderSnapshot],
    transactions: list[TransactionRecord],
    excluded_wallets: list[str],
    metadata: Mapping[str, Any] | None = None,
) -> Dict[str, Any]:
    """Everything required to re-run a day's evaluation, plus its result."""
    return {
        "metadata": dict(metadata or {}),
        "inputs": {
            "gift": spec.to_dict(),
            "salt": salt,
            "blockhash": blockhash,
            "pool_amount": str(pool_amount),
            "excluded_wallets": sorted(excluded_wallets),
            "holders": [h.to_dict() for h in holders],
            "transactions": [t.to_dict() for t in transactions],
        },
        "result": result.to_dict(),
    }


def verify_execution_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    inputs = audit["inputs"]
    spec = RoundSpec.from_dict(inputs["gift"])
    expected = ExecutionResult.from_dict(audit["result"])

    recomputed = evaluate(
        spec,
        [TransactionRecord.from_dict(t) for t in inputs.get("transactions", [])],
        [HolderSnapshot.from_dict(h) for h in inputs.get("holders", [])],
        parse_amount(inputs["pool_amount"], "pool_amount"),
        inputs["blockhash"],
        salt=inputs.get("salt", ""),
        excluded_wallets=inputs.get("excluded_wallets", []),
    )

    if recomputed.winners != expected.winners:
        raise AuditMismatch(
            f"Winner mismatch: audit has {len(expected.winners)} winners, "
            f"recomputed {len(recomputed.winners)} (or amounts differ)"
        )
    if recomputed.allocated != expected.allocated:
        raise AuditMismatch(
            f"Allocation mismatch: audit={expected.allocated} recomputed={recomputed.allocated}"
        )
    if recomputed.token_airdrops != expected.token_airdrops:
        raise AuditMismatch("Hourly token airdrop mismatch")
    if recomputed.token_allocated != expected.token_allocated:
        raise AuditMismatch(
            f"Token allocation mismatch: audit={expected.token_allocated} recomputed={recomputed.token_allocated}"
        )

    return {
        "ok": True,
        "day": recomputed.day,
        "type": recomputed.type,
        "seed": recomputed.seed,
        "winner_count": len(recomputed.winners),
        "total_distributed": recomputed.total_distributed,
        "remainder": recomputed.remainder,
        "token_airdrops": len(recomputed.token_airdrops),
        "token_remainder": recomputed.token_remainder,
    }
