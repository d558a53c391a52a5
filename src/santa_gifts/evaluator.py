"""
Distribution rules.

``evaluate`` is a pure function of its inputs: the same spec, transactions,
holders, pool amount, blockhash and salt always give the same winners and
amounts. All arithmetic is integer floor division; whatever truncation
leaves over is reported as ``ExecutionResult.remainder`` and is not
redistributed. The evaluator has no notion of "already ran": running a day
at most once is the caller's job.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigurationError
from .models import (
    DETERMINISTIC_RANDOM,
    FULL_DONATION_TO_NGO,
    LAST_SECOND_HOUR,
    MOST_ACTIVE_TRADER,
    NGO_DONATION,
    PARAMS_BY_TYPE,
    PROPORTIONAL_HOLDERS,
    TOP_BUYERS_AIRDROP,
    DeterministicRandomParams,
    ExecutionResult,
    HolderSnapshot,
    LastSecondHourParams,
    MostActiveTraderParams,
    NgoDonationParams,
    ProportionalHoldersParams,
    RoundSpec,
    TokenAirdrop,
    TokenAirdropParams,
    TopBuyersParams,
    TransactionRecord,
    Winner,
)
from .project_constants import HOURS_PER_DAY
from .randomness import derive_seed, seeded_select, seeded_shuffle

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Context:
    spec: RoundSpec
    transactions: Tuple[TransactionRecord, ...]
    holders: Tuple[HolderSnapshot, ...]
    pool_amount: int
    blockhash: str
    salt: str
    excluded: FrozenSet[str]

    def seed(self, suffix: str = "") -> str:
        if not self.blockhash:
            raise ConfigurationError(f"Day {self.spec.day}: a blockhash is required for seeded selection")
        if not self.salt:
            raise ConfigurationError(f"Day {self.spec.day}: missing salt for seeded selection")
        return derive_seed(self.blockhash, self.salt + suffix)


@dataclass(frozen=True)
class _Outcome:
    winners: Tuple[Winner, ...]
    allocated: int
    seed: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _short(wallet: str) -> str:
    return f"{wallet[:8]}..."


def allocation(pool_amount: int, percent: int) -> int:
    return pool_amount * percent // 100


def eligible_holders(
    holders: Iterable[HolderSnapshot],
    min_balance: int,
    excluded: FrozenSet[str],
) -> List[HolderSnapshot]:
    """Positive balances at or above ``min_balance``, one entry per wallet, sorted by wallet."""
    balances: Dict[str, int] = defaultdict(int)
    for h in holders:
        if h.wallet in excluded:
            continue
        balances[h.wallet] += h.balance

    eligible = [
        HolderSnapshot(wallet=w, balance=b)
        for w, b in balances.items()
        if b > 0 and b >= min_balance
    ]
    # Deterministic ordering (input order must not change any selection)
    eligible.sort(key=lambda h: h.wallet)
    return eligible


def split_weighted(amount: int, weights: Sequence[int]) -> List[int]:
    total = sum(weights)
    if total <= 0:
        return [0 for _ in weights]
    return [w * amount // total for w in weights]


def split_equal(amount: int, count: int) -> List[int]:
    if count <= 0:
        return []
    return [amount // count] * count


def _actor(tx: TransactionRecord) -> str:
    if tx.kind == "buy":
        return tx.buyer
    return tx.from_wallet


def _empty(allocated: int, reason: str, **metadata: Any) -> _Outcome:
    return _Outcome(winners=(), allocated=allocated, metadata={"reason": reason, **metadata})


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _proportional_holders(ctx: _Context) -> _Outcome:
    params: ProportionalHoldersParams = ctx.spec.params  # type: ignore[assignment]
    allocated = allocation(ctx.pool_amount, params.allocation_percent)

    eligible = eligible_holders(ctx.holders, params.min_balance, ctx.excluded)
    log.info(
        "Day %d: %d eligible holders (filtered %d below %d)",
        ctx.spec.day, len(eligible), len(ctx.holders) - len(eligible), params.min_balance,
    )
    total_balance = sum(h.balance for h in eligible)
    if not eligible or total_balance == 0:
        log.warning("Day %d: no eligible holders", ctx.spec.day)
        return _empty(allocated, "no_eligible_holders")

    # Multiply before dividing so each holder loses at most one unit.
    numerator = ctx.pool_amount * params.allocation_percent
    denominator = 100 * total_balance
    winners = tuple(
        Winner(
            wallet=h.wallet,
            amount=h.balance * numerator // denominator,
            balance=h.balance,
            reason="proportional_balance",
        )
        for h in eligible
    )
    return _Outcome(
        winners=winners,
        allocated=allocated,
        metadata={"eligible_count": len(eligible), "total_balance": str(total_balance)},
    )


def _deterministic_random(ctx: _Context) -> _Outcome:
    params: DeterministicRandomParams = ctx.spec.params  # type: ignore[assignment]
    allocated = allocation(ctx.pool_amount, params.allocation_percent)
    seed = ctx.seed()

    eligible = eligible_holders(ctx.holders, params.min_balance, ctx.excluded)
    log.info("Day %d: %d eligible holders for random draw", ctx.spec.day, len(eligible))
    if not eligible:
        log.warning("Day %d: no eligible holders", ctx.spec.day)
        return _empty(allocated, "no_eligible_holders")

    selected = seeded_select(eligible, seed, params.winner_count)
    log.info("Day %d: seed %s... selected %d winners", ctx.spec.day, seed[:16], len(selected))

    if params.split == "proportional":
        amounts = split_weighted(allocated, [h.balance for h in selected])
    else:
        amounts = split_equal(allocated, len(selected))

    winners = tuple(
        Winner(wallet=h.wallet, amount=amt, balance=h.balance, reason="random_selection")
        for h, amt in zip(selected, amounts)
    )
    return _Outcome(
        winners=winners,
        allocated=allocated,
        seed=seed,
        metadata={"eligible_count": len(eligible), "winner_count": len(selected)},
    )


def _top_buyers(ctx: _Context) -> _Outcome:
    params: TopBuyersParams = ctx.spec.params  # type: ignore[assignment]
    allocated = allocation(ctx.pool_amount, params.allocation_percent)

    volumes: Dict[str, int] = defaultdict(int)
    for tx in ctx.transactions:
        if tx.kind != "buy" or tx.buyer in ctx.excluded:
            continue
        volumes[tx.buyer] += tx.amount

    # Volume descending, ties broken by wallet so the cutoff is deterministic.
    ranked = sorted(((w, v) for w, v in volumes.items() if v > 0), key=lambda wv: (-wv[1], wv[0]))
    top = ranked[: params.top_n]
    log.info("Day %d: %d unique buyers, rewarding top %d", ctx.spec.day, len(ranked), len(top))
    if not top:
        log.warning("Day %d: no buyers", ctx.spec.day)
        return _empty(allocated, "no_buyers")

    if params.weighting == "equal":
        amounts = split_equal(allocated, len(top))
    else:
        amounts = split_weighted(allocated, [v for _, v in top])

    winners = tuple(
        Winner(wallet=w, amount=amt, reason=f"top_buyer_rank_{rank}_volume_{v}")
        for rank, ((w, v), amt) in enumerate(zip(top, amounts), start=1)
    )
    return _Outcome(
        winners=winners,
        allocated=allocated,
        metadata={
            "unique_buyers": len(ranked),
            "total_volume": str(sum(v for _, v in top)),
        },
    )


def _ngo_donation(ctx: _Context) -> _Outcome:
    params: NgoDonationParams = ctx.spec.params  # type: ignore[assignment]
    amount = allocation(ctx.pool_amount, params.percent)
    log.info("Day %d: donating %d (%d%%) to %s", ctx.spec.day, amount, params.percent, _short(params.ngo_wallet))
    if amount == 0:
        return _empty(0, "empty_pool")
    return _Outcome(
        winners=(Winner(wallet=params.ngo_wallet, amount=amount, reason="full_donation"),),
        allocated=amount,
        metadata={"ngo_wallet": params.ngo_wallet, "percent": params.percent},
    )


def _in_final_window(ts: datetime, window_minutes: int) -> bool:
    minute_of_day = ts.hour * 60 + ts.minute
    return minute_of_day >= HOURS_PER_DAY * 60 - window_minutes


def _end_of_day(ts: datetime) -> datetime:
    return ts.replace(hour=23, minute=59, second=59, microsecond=999999)


def _last_second_hour(ctx: _Context) -> _Outcome:
    params: LastSecondHourParams = ctx.spec.params  # type: ignore[assignment]
    allocated = allocation(ctx.pool_amount, params.allocation_percent)
    seed = ctx.seed() if params.selection == "seeded" else None

    # Smallest distance to 23:59:59.999999 per wallet
    closest: Dict[str, timedelta] = {}
    for tx in ctx.transactions:
        if not _in_final_window(tx.block_time, params.window_minutes):
            continue
        wallet = _actor(tx)
        if wallet in ctx.excluded:
            continue
        distance = _end_of_day(tx.block_time) - tx.block_time
        if wallet not in closest or distance < closest[wallet]:
            closest[wallet] = distance

    log.info(
        "Day %d: %d wallets traded in the final %d minutes",
        ctx.spec.day, len(closest), params.window_minutes,
    )
    if not closest:
        log.warning("Day %d: no transactions in the final window", ctx.spec.day)
        return _empty(allocated, "no_last_hour_transactions")

    if seed is not None:
        selected = seeded_select(sorted(closest), seed, params.winner_count)
    else:
        selected = sorted(closest, key=lambda w: (closest[w], w))[: params.winner_count]

    amounts = split_equal(allocated, len(selected))
    winners = tuple(
        Winner(
            wallet=w,
            amount=amt,
            reason=f"last_second_{closest[w].total_seconds():.3f}s_before_midnight",
        )
        for w, amt in zip(selected, amounts)
    )
    return _Outcome(
        winners=winners,
        allocated=allocated,
        seed=seed,
        metadata={"eligible_count": len(closest), "winner_count": len(selected)},
    )


def _most_active_trader(ctx: _Context) -> _Outcome:
    params: MostActiveTraderParams = ctx.spec.params  # type: ignore[assignment]
    allocated = allocation(ctx.pool_amount, params.allocation_percent)

    counts: Dict[str, int] = defaultdict(int)
    for tx in ctx.transactions:
        wallet = _actor(tx)
        if wallet in ctx.excluded:
            continue
        counts[wallet] += 1

    ranked = sorted(
        ((w, c) for w, c in counts.items() if c >= params.min_trades),
        key=lambda wc: (-wc[1], wc[0]),
    )
    if not ranked:
        log.warning("Day %d: no wallet with at least %d trades", ctx.spec.day, params.min_trades)
        return _empty(allocated, "no_eligible_traders", min_trades=params.min_trades)

    wallet, tx_count = ranked[0]
    log.info("Day %d: most active trader %s with %d transactions", ctx.spec.day, _short(wallet), tx_count)
    return _Outcome(
        winners=(Winner(wallet=wallet, amount=allocated, reason=f"most_active_trader_{tx_count}_transactions"),),
        allocated=allocated,
        metadata={
            "eligible_count": len(ranked),
            "top_traders": [{"wallet": w, "tx_count": c} for w, c in ranked[:10]],
        },
    )


RULES: Dict[str, Callable[[_Context], _Outcome]] = {
    PROPORTIONAL_HOLDERS: _proportional_holders,
    DETERMINISTIC_RANDOM: _deterministic_random,
    TOP_BUYERS_AIRDROP: _top_buyers,
    FULL_DONATION_TO_NGO: _ngo_donation,
    NGO_DONATION: _ngo_donation,
    LAST_SECOND_HOUR: _last_second_hour,
    MOST_ACTIVE_TRADER: _most_active_trader,
}


# ---------------------------------------------------------------------------
# Hourly token airdrop
# ---------------------------------------------------------------------------


def hourly_token_airdrops(
    airdrop: TokenAirdropParams,
    transactions: Sequence[TransactionRecord],
    blockhash: str,
    salt: str,
    excluded: FrozenSet[str] = frozenset(),
) -> Tuple[TokenAirdrop, ...]:
    """
    One seeded winner per UTC hour among that hour's buyers, earliest hours
    first, until ``winners`` hours are paid. Empty hours are skipped.
    """
    if not airdrop.enabled:
        return ()
    if not blockhash or not salt:
        raise ConfigurationError("Hourly token airdrop needs both a blockhash and a salt")

    per_winner = airdrop.amount_per_winner
    buyers_by_hour: Dict[int, set] = defaultdict(set)
    for tx in transactions:
        if tx.kind == "buy" and tx.buyer not in excluded:
            buyers_by_hour[tx.block_time.hour].add(tx.buyer)

    drops: List[TokenAirdrop] = []
    for hour in range(HOURS_PER_DAY):
        if len(drops) >= airdrop.winners:
            break
        buyers = sorted(buyers_by_hour.get(hour, ()))
        if not buyers:
            log.debug("Hour %02d: no buyers, skipping airdrop", hour)
            continue
        seed = derive_seed(blockhash, f"{salt}{hour}")
        winner = seeded_shuffle(buyers, seed)[0]
        log.debug("Hour %02d: %s wins %d tokens (%d buyers)", hour, _short(winner), per_winner, len(buyers))
        drops.append(TokenAirdrop(wallet=winner, amount=per_winner, hour=hour))
    return tuple(drops)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def evaluate(
    spec: RoundSpec,
    transactions: Sequence[TransactionRecord],
    holders: Sequence[HolderSnapshot],
    pool_amount: int,
    blockhash: str,
    salt: str = "",
    excluded_wallets: Iterable[str] = (),
) -> ExecutionResult:
    rule = RULES.get(spec.type)
    if rule is None:
        raise ConfigurationError(f"Unknown gift type: {spec.type}")
    if not isinstance(spec.params, PARAMS_BY_TYPE[spec.type]):
        raise ConfigurationError(
            f"Day {spec.day}: params {type(spec.params).__name__} do not match gift type {spec.type}"
        )
    if isinstance(pool_amount, bool) or not isinstance(pool_amount, int) or pool_amount < 0:
        raise ConfigurationError(f"Day {spec.day}: pool amount must be a non-negative integer")

    ctx = _Context(
        spec=spec,
        transactions=tuple(transactions),
        holders=tuple(holders),
        pool_amount=pool_amount,
        blockhash=blockhash,
        salt=salt,
        excluded=frozenset(excluded_wallets),
    )
    log.info("Executing gift day %d (%s), pool %d", spec.day, spec.type, pool_amount)
    outcome = rule(ctx)

    airdrops: Tuple[TokenAirdrop, ...] = ()
    token_allocated = 0
    if spec.params.token_airdrop is not None:
        airdrops = hourly_token_airdrops(
            spec.params.token_airdrop, ctx.transactions, blockhash, salt, ctx.excluded,
        )
        if spec.params.token_airdrop.enabled:
            token_allocated = spec.params.token_airdrop.total_amount

    result = ExecutionResult(
        day=spec.day,
        type=spec.type,
        winners=outcome.winners,
        allocated=outcome.allocated,
        token_airdrops=airdrops,
        seed=outcome.seed,
        metadata=outcome.metadata,
        token_allocated=token_allocated,
    )
    log.info(
        "Day %d: %d winners, distributed %d of %d (remainder %d), %d token airdrops (token remainder %d)",
        spec.day, len(result.winners), result.total_distributed, result.allocated,
        result.remainder, len(result.token_airdrops), result.token_remainder,
    )
    return result
