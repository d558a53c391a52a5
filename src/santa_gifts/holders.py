"""Token account data -> ranked holder snapshots for a round."""

from __future__ import annotations

import base64
import binascii
import logging
import struct
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

import base58

from .models import HolderSnapshot
from .rpc import RpcClient

log = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"


def parse_owner_and_amount(account_data: bytes) -> Optional[Tuple[str, int]]:
    """
    Token account layout (classic and Token-2022 share these offsets):
    Mint(0-32) | Owner(32-64) | Amount(64-72, u64 little endian)
    """
    if len(account_data) < 72:
        return None
    owner = base58.b58encode(account_data[32:64]).decode("ascii")
    amount = struct.unpack("<Q", account_data[64:72])[0]
    return owner, amount


def aggregate_balances(b64_items: Iterable[str]) -> Dict[str, int]:
    """Sum balances per owner; one owner may hold several token accounts."""
    balances: Dict[str, int] = defaultdict(int)
    skipped = 0
    for b64_str in b64_items:
        try:
            raw = base64.b64decode(b64_str, validate=True)
        except (binascii.Error, ValueError):
            skipped += 1
            continue

        parsed = parse_owner_and_amount(raw)
        if not parsed:
            skipped += 1
            continue

        owner, amount = parsed
        if amount > 0:
            balances[owner] += int(amount)

    if skipped:
        log.warning("Skipped %d undecodable token accounts", skipped)
    return dict(balances)


def rank_holders(
    owner_to_balance: Dict[str, int],
    excluded: Set[str] | frozenset = frozenset(),
) -> List[HolderSnapshot]:
    """Rank 1 is the largest balance; equal balances rank by wallet."""
    ordered = sorted(
        ((w, b) for w, b in owner_to_balance.items() if w not in excluded and b > 0),
        key=lambda wb: (-wb[1], wb[0]),
    )
    return [HolderSnapshot(wallet=w, balance=b, rank=i) for i, (w, b) in enumerate(ordered, start=1)]


def snapshot_holders(
    rpc: RpcClient,
    mint: str,
    excluded: Set[str] | frozenset = frozenset(),
) -> List[HolderSnapshot]:
    log.info("Scanning classic SPL Token program...")
    classic_b64 = rpc.get_program_accounts_base64(
        program_id=TOKEN_PROGRAM_ID, mint=mint, classic_token_program=True,
    )
    log.info("Scanning Token-2022 program...")
    t22_b64 = rpc.get_program_accounts_base64(
        program_id=TOKEN_2022_PROGRAM_ID, mint=mint, classic_token_program=False,
    )
    log.info("Accounts fetched  : %d", len(classic_b64) + len(t22_b64))

    balances = aggregate_balances(classic_b64 + t22_b64)
    holders = rank_holders(balances, excluded)
    log.info("Unique owners     : %d (%d after exclusions)", len(balances), len(holders))
    return holders


def load_excluded_wallets(path: str | None) -> Set[str]:
    """One wallet per line; blank lines and # comments ignored."""
    if not path:
        return set()
    out: Set[str] = set()
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            w = line.strip()
            if not w or w.startswith("#"):
                continue
            out.add(w)
    return out
