from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from santa_gifts.commitment import CommitmentBundle, build_commitment
from santa_gifts.models import HolderSnapshot, RoundSpec, TransactionRecord

NGO_WALLET = "NGoWa11et1111111111111111111111111111111111"


def sample_gift_dicts(rounds: int = 24) -> List[Dict[str, Any]]:
    """A varied calendar: NGO every 7th day, top buyers every 5th, random every 3rd."""
    gifts: List[Dict[str, Any]] = []
    for day in range(1, rounds + 1):
        if day % 7 == 0:
            rule, params = "full_donation_to_ngo", {"ngo_wallet": NGO_WALLET, "percent": 100}
        elif day % 5 == 0:
            rule, params = "top_buyers_airdrop", {"top_n": 10, "allocation_percent": 40}
        elif day % 3 == 0:
            rule, params = "deterministic_random", {
                "winner_count": 20,
                "allocation_percent": 40,
                "min_balance": "1000",
            }
        else:
            rule, params = "proportional_holders", {"allocation_percent": 40, "min_balance": "100"}
        gifts.append(
            {
                "day": day,
                "type": rule,
                "hint": f"Hint {day}",
                "sub_hint": f"Sub hint {day}",
                "params": params,
                "distribution_source": "treasury_daily_fees",
                "notes": f"Day {day} gift - {rule}",
            }
        )
    return gifts


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def buy(wallet: str, amount: int, when: datetime, sig: str = "") -> TransactionRecord:
    return TransactionRecord(
        signature=sig or f"sig-{wallet}-{when.isoformat()}",
        block_time=when,
        from_wallet="PoolWa11et",
        to_wallet=wallet,
        amount=amount,
        kind="buy",
    )


def sell(wallet: str, amount: int, when: datetime) -> TransactionRecord:
    return TransactionRecord(
        signature=f"sig-sell-{wallet}-{when.isoformat()}",
        block_time=when,
        from_wallet=wallet,
        to_wallet="PoolWa11et",
        amount=amount,
        kind="sell",
    )


@pytest.fixture
def gift_dicts() -> List[Dict[str, Any]]:
    return sample_gift_dicts()


@pytest.fixture
def salts() -> Dict[int, str]:
    return {day: f"{day:02d}" + "ab" * 31 for day in range(1, 25)}


@pytest.fixture
def bundle(gift_dicts: List[Dict[str, Any]], salts: Dict[int, str]) -> CommitmentBundle:
    return build_commitment(
        gift_dicts,
        salts,
        season="test-season",
        timestamp=utc(2025, 11, 30, 12, 0, 0),
    )


@pytest.fixture
def holders() -> List[HolderSnapshot]:
    balances = [1_000_000, 500_000, 250_000, 125_000, 62_500, 31_250, 15_625, 7_812, 3_906, 1_953]
    return [
        HolderSnapshot(wallet=f"Holder{i:02d}", balance=b, rank=i + 1)
        for i, b in enumerate(balances)
    ]


def spec_of(rule: str, params: Dict[str, Any], day: int = 1) -> RoundSpec:
    return RoundSpec.from_dict({"day": day, "type": rule, "params": params})
