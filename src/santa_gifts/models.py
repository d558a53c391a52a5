"""Round specs, execution inputs and execution results.

Every amount and balance is an int in memory and a decimal string in JSON.
Round params are a tagged variant keyed by the round ``type``; each variant
validates its own schema when a spec is loaded, so an invalid calendar can
never be committed.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type

from .errors import ConfigurationError
from .hashing import HASH_FIELD
from .project_constants import ADVENT_DAYS, DEFAULT_DISTRIBUTION_SOURCE, HOURLY_RANDOM, HOURS_PER_DAY

PROPORTIONAL_HOLDERS = "proportional_holders"
DETERMINISTIC_RANDOM = "deterministic_random"
TOP_BUYERS_AIRDROP = "top_buyers_airdrop"
FULL_DONATION_TO_NGO = "full_donation_to_ngo"
NGO_DONATION = "ngo_donation"
LAST_SECOND_HOUR = "last_second_hour"
MOST_ACTIVE_TRADER = "most_active_trader"

TX_KINDS = ("buy", "sell", "transfer")


def parse_amount(value: Any, what: str) -> int:
    """Accept a non-negative int or its decimal-string form."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ConfigurationError(f"{what} must be an integer or decimal string, got {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ConfigurationError(f"{what} must be an integer or decimal string, got {value!r}")
    if amount < 0:
        raise ConfigurationError(f"{what} must be non-negative, got {amount}")
    return amount


def parse_utc(value: Any, what: str) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ConfigurationError(f"{what} is not an ISO-8601 timestamp: {value!r}") from e
    else:
        raise ConfigurationError(f"{what} must be an ISO-8601 timestamp, got {value!r}")
    return as_utc(dt)


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Round params (one variant per rule type)
# ---------------------------------------------------------------------------


class _Params:
    """Reads one params blob and records every problem against its day."""

    def __init__(self, raw: Any, day: int, rule: str, known: Tuple[str, ...]) -> None:
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Day {day} ({rule}): params must be an object")
        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ConfigurationError(f"Day {day} ({rule}): unknown params {unknown}")
        self.raw = raw
        self.day = day
        self.rule = rule

    def _fail(self, msg: str) -> ConfigurationError:
        return ConfigurationError(f"Day {self.day} ({self.rule}): {msg}")

    def integer(
        self,
        key: str,
        default: Optional[int] = None,
        minimum: int = 0,
        maximum: Optional[int] = None,
    ) -> int:
        if key not in self.raw:
            if default is None:
                raise self._fail(f"missing required param '{key}'")
            return default
        value = self.raw[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._fail(f"param '{key}' must be an integer, got {value!r}")
        if value < minimum or (maximum is not None and value > maximum):
            raise self._fail(f"param '{key}'={value} out of range")
        return value

    def amount(self, key: str, default: Optional[int] = None) -> int:
        if key not in self.raw:
            if default is None:
                raise self._fail(f"missing required param '{key}'")
            return default
        try:
            return parse_amount(self.raw[key], f"param '{key}'")
        except ConfigurationError as e:
            raise self._fail(str(e)) from e

    def choice(self, key: str, options: Tuple[str, ...]) -> str:
        value = self.raw.get(key, options[0])
        if value not in options:
            raise self._fail(f"param '{key}' must be one of {list(options)}, got {value!r}")
        return value

    def text(self, key: str) -> str:
        value = self.raw.get(key)
        if not isinstance(value, str) or not value.strip():
            raise self._fail(f"missing required param '{key}'")
        return value

    def token_airdrop(self) -> Optional["TokenAirdropParams"]:
        if "token_airdrop" not in self.raw or self.raw["token_airdrop"] is None:
            return None
        return TokenAirdropParams.from_dict(self.raw["token_airdrop"], self.day)


@dataclass(frozen=True)
class TokenAirdropParams:
    """Secondary hourly token lottery layered on top of any round."""

    enabled: bool
    total_amount: int
    winners: int = HOURS_PER_DAY
    distribution: str = HOURLY_RANDOM

    @classmethod
    def from_dict(cls, raw: Any, day: int) -> "TokenAirdropParams":
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Day {day}: token_airdrop must be an object")
        unknown = sorted(set(raw) - {"enabled", "total_amount", "winners", "distribution"})
        if unknown:
            raise ConfigurationError(f"Day {day}: unknown token_airdrop params {unknown}")
        enabled = raw.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ConfigurationError(f"Day {day}: token_airdrop.enabled must be a boolean")
        if "total_amount" not in raw:
            raise ConfigurationError(f"Day {day}: token_airdrop.total_amount is required")
        # One winner per UTC hour at most
        winners = raw.get("winners", HOURS_PER_DAY)
        if isinstance(winners, bool) or not isinstance(winners, int) or not 1 <= winners <= HOURS_PER_DAY:
            raise ConfigurationError(
                f"Day {day}: token_airdrop.winners must be an integer in 1..{HOURS_PER_DAY}, got {winners!r}"
            )
        distribution = raw.get("distribution", HOURLY_RANDOM)
        if distribution != HOURLY_RANDOM:
            raise ConfigurationError(
                f"Day {day}: token_airdrop.distribution must be {HOURLY_RANDOM!r}, got {distribution!r}"
            )
        return cls(
            enabled=enabled,
            total_amount=parse_amount(raw["total_amount"], f"Day {day}: token_airdrop.total_amount"),
            winners=winners,
            distribution=distribution,
        )

    @property
    def amount_per_winner(self) -> int:
        return self.total_amount // self.winners

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "total_amount": str(self.total_amount),
            "winners": self.winners,
            "distribution": self.distribution,
        }


@dataclass(frozen=True)
class RuleParams:
    token_airdrop: Optional[TokenAirdropParams] = field(default=None, kw_only=True)

    # Fields serialized as decimal strings
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "RuleParams":
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.name == "token_airdrop":
                if value is not None:
                    out["token_airdrop"] = value.to_dict()
                continue
            out[f.name] = str(value) if f.name in self.AMOUNT_FIELDS else value
        return out


@dataclass(frozen=True)
class ProportionalHoldersParams(RuleParams):
    allocation_percent: int
    min_balance: int = 0

    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("min_balance",)

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "ProportionalHoldersParams":
        p = _Params(raw, day, rule, ("allocation_percent", "min_balance", "token_airdrop"))
        return cls(
            allocation_percent=p.integer("allocation_percent", maximum=100),
            min_balance=p.amount("min_balance", default=0),
            token_airdrop=p.token_airdrop(),
        )


@dataclass(frozen=True)
class DeterministicRandomParams(RuleParams):
    winner_count: int
    allocation_percent: int
    min_balance: int = 0
    split: str = "equal"

    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("min_balance",)
    SPLITS: ClassVar[Tuple[str, ...]] = ("equal", "proportional")

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "DeterministicRandomParams":
        p = _Params(
            raw, day, rule,
            ("winner_count", "allocation_percent", "min_balance", "split", "token_airdrop"),
        )
        return cls(
            winner_count=p.integer("winner_count", minimum=1),
            allocation_percent=p.integer("allocation_percent", maximum=100),
            min_balance=p.amount("min_balance", default=0),
            split=p.choice("split", cls.SPLITS),
            token_airdrop=p.token_airdrop(),
        )


@dataclass(frozen=True)
class TopBuyersParams(RuleParams):
    top_n: int
    allocation_percent: int
    weighting: str = "volume"

    WEIGHTINGS: ClassVar[Tuple[str, ...]] = ("volume", "equal")

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "TopBuyersParams":
        p = _Params(raw, day, rule, ("top_n", "allocation_percent", "weighting", "token_airdrop"))
        return cls(
            top_n=p.integer("top_n", minimum=1),
            allocation_percent=p.integer("allocation_percent", maximum=100),
            weighting=p.choice("weighting", cls.WEIGHTINGS),
            token_airdrop=p.token_airdrop(),
        )


@dataclass(frozen=True)
class NgoDonationParams(RuleParams):
    ngo_wallet: str
    percent: int = 100

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "NgoDonationParams":
        p = _Params(raw, day, rule, ("ngo_wallet", "percent", "token_airdrop"))
        return cls(
            ngo_wallet=p.text("ngo_wallet"),
            percent=p.integer("percent", default=100, maximum=100),
            token_airdrop=p.token_airdrop(),
        )


@dataclass(frozen=True)
class LastSecondHourParams(RuleParams):
    winner_count: int
    allocation_percent: int
    window_minutes: int = 15
    selection: str = "seeded"

    SELECTIONS: ClassVar[Tuple[str, ...]] = ("seeded", "closest")

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "LastSecondHourParams":
        p = _Params(
            raw, day, rule,
            ("winner_count", "allocation_percent", "window_minutes", "selection", "token_airdrop"),
        )
        return cls(
            winner_count=p.integer("winner_count", minimum=1),
            allocation_percent=p.integer("allocation_percent", maximum=100),
            window_minutes=p.integer("window_minutes", default=15, minimum=1, maximum=60),
            selection=p.choice("selection", cls.SELECTIONS),
            token_airdrop=p.token_airdrop(),
        )


@dataclass(frozen=True)
class MostActiveTraderParams(RuleParams):
    allocation_percent: int = 100
    min_trades: int = 1

    @classmethod
    def from_dict(cls, raw: Any, day: int, rule: str) -> "MostActiveTraderParams":
        p = _Params(raw, day, rule, ("allocation_percent", "min_trades", "token_airdrop"))
        return cls(
            allocation_percent=p.integer("allocation_percent", default=100, maximum=100),
            min_trades=p.integer("min_trades", default=1, minimum=1),
            token_airdrop=p.token_airdrop(),
        )


PARAMS_BY_TYPE: Dict[str, Type[RuleParams]] = {
    PROPORTIONAL_HOLDERS: ProportionalHoldersParams,
    DETERMINISTIC_RANDOM: DeterministicRandomParams,
    TOP_BUYERS_AIRDROP: TopBuyersParams,
    FULL_DONATION_TO_NGO: NgoDonationParams,
    NGO_DONATION: NgoDonationParams,
    LAST_SECOND_HOUR: LastSecondHourParams,
    MOST_ACTIVE_TRADER: MostActiveTraderParams,
}


def parse_params(rule: str, raw: Any, day: int) -> RuleParams:
    cls = PARAMS_BY_TYPE.get(rule)
    if cls is None:
        raise ConfigurationError(f"Day {day}: unknown gift type {rule!r}")
    return cls.from_dict(raw, day, rule)


# ---------------------------------------------------------------------------
# Round spec
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoundSpec:
    day: int
    type: str
    params: RuleParams
    hint: str = ""
    sub_hint: str = ""
    distribution_source: str = DEFAULT_DISTRIBUTION_SOURCE
    notes: str = ""

    FIELDS: ClassVar[Tuple[str, ...]] = (
        "day", "type", "hint", "sub_hint", "params", "distribution_source", "notes",
    )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], rounds: int = ADVENT_DAYS) -> "RoundSpec":
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Gift spec must be an object, got {type(raw).__name__}")
        day = raw.get("day")
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= rounds:
            raise ConfigurationError(f"Invalid gift day: {day!r} (expected 1..{rounds})")
        unknown = sorted(set(raw) - set(cls.FIELDS) - {HASH_FIELD})
        if unknown:
            raise ConfigurationError(f"Day {day}: unknown gift fields {unknown}")
        rule = raw.get("type")
        if not isinstance(rule, str) or not rule:
            raise ConfigurationError(f"Gift for day {day} missing type")
        if "params" not in raw:
            raise ConfigurationError(f"Gift for day {day} missing params")

        texts: Dict[str, str] = {}
        for key in ("hint", "sub_hint", "notes", "distribution_source"):
            value = raw.get(key)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(f"Day {day}: {key} must be a string")
            texts[key] = value or ""
        texts["distribution_source"] = texts["distribution_source"] or DEFAULT_DISTRIBUTION_SOURCE

        return cls(
            day=day,
            type=rule,
            params=parse_params(rule, raw["params"], day),
            **texts,
        )

    def to_dict(self) -> Dict[str, Any]:
        """The exact record that gets committed and later disclosed."""
        return {
            "day": self.day,
            "type": self.type,
            "hint": self.hint,
            "sub_hint": self.sub_hint,
            "params": self.params.to_dict(),
            "distribution_source": self.distribution_source,
            "notes": self.notes,
        }


def load_round_specs(path: str, rounds: int = ADVENT_DAYS) -> List[RoundSpec]:
    """
    Supports:
    1) a JSON list of gift specs
    2) {"gifts": [...]} as written by earlier tooling
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, Mapping):
        data = data.get("gifts")
    if not isinstance(data, list):
        raise ConfigurationError(f"{path}: expected a list of gift specs")
    return [RoundSpec.from_dict(item, rounds=rounds) for item in data]


# ---------------------------------------------------------------------------
# Execution inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HolderSnapshot:
    wallet: str
    balance: int
    rank: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "HolderSnapshot":
        rank = raw.get("rank")
        return cls(
            wallet=str(raw["wallet"]),
            balance=parse_amount(raw["balance"], f"balance of {raw.get('wallet')}"),
            rank=int(rank) if rank is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"wallet": self.wallet, "balance": str(self.balance), "rank": self.rank}


@dataclass(frozen=True)
class TransactionRecord:
    signature: str
    block_time: datetime
    from_wallet: str
    amount: int
    kind: str
    to_wallet: Optional[str] = None
    slot: Optional[int] = None
    fee: int = 0
    network_fee: int = 0
    creator_fee: int = 0

    def __post_init__(self) -> None:
        # Hour and minute rules read block_time directly, so it must be UTC.
        if not isinstance(self.block_time, datetime):
            raise ConfigurationError(f"Transaction {self.signature}: block_time must be a datetime")
        object.__setattr__(self, "block_time", as_utc(self.block_time))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TransactionRecord":
        sig = str(raw.get("signature", ""))
        kind = raw.get("kind")
        if kind not in TX_KINDS:
            raise ConfigurationError(f"Transaction {sig}: unknown kind {kind!r}")
        slot = raw.get("slot")
        return cls(
            signature=sig,
            block_time=parse_utc(raw.get("block_time"), f"Transaction {sig} block_time"),
            from_wallet=str(raw["from_wallet"]),
            to_wallet=raw.get("to_wallet") or None,
            amount=parse_amount(raw["amount"], f"Transaction {sig} amount"),
            kind=kind,
            slot=int(slot) if slot is not None else None,
            fee=parse_amount(raw.get("fee") or 0, f"Transaction {sig} fee"),
            network_fee=parse_amount(raw.get("network_fee") or 0, f"Transaction {sig} network_fee"),
            creator_fee=parse_amount(raw.get("creator_fee") or 0, f"Transaction {sig} creator_fee"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "slot": self.slot,
            "block_time": self.block_time.isoformat().replace("+00:00", "Z"),
            "from_wallet": self.from_wallet,
            "to_wallet": self.to_wallet,
            "amount": str(self.amount),
            "kind": self.kind,
            "fee": str(self.fee),
            "network_fee": str(self.network_fee),
            "creator_fee": str(self.creator_fee),
        }

    @property
    def buyer(self) -> str:
        # A buy moves tokens to the buyer.
        return self.to_wallet or self.from_wallet


def load_holders(path: str) -> List[HolderSnapshot]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, Mapping):
        data = data.get("holders", [])
    return [HolderSnapshot.from_dict(item) for item in data]


def load_transactions(path: str) -> List[TransactionRecord]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, Mapping):
        data = data.get("transactions", [])
    return [TransactionRecord.from_dict(item) for item in data]


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Winner:
    wallet: str
    amount: int
    balance: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet": self.wallet,
            "amount": str(self.amount),
            "balance": str(self.balance) if self.balance is not None else None,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Winner":
        balance = raw.get("balance")
        return cls(
            wallet=raw["wallet"],
            amount=parse_amount(raw["amount"], "winner amount"),
            balance=parse_amount(balance, "winner balance") if balance is not None else None,
            reason=raw.get("reason"),
        )


@dataclass(frozen=True)
class TokenAirdrop:
    wallet: str
    amount: int
    hour: int

    def to_dict(self) -> Dict[str, Any]:
        return {"wallet": self.wallet, "amount": str(self.amount), "hour": self.hour}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TokenAirdrop":
        return cls(
            wallet=raw["wallet"],
            amount=parse_amount(raw["amount"], "airdrop amount"),
            hour=int(raw["hour"]),
        )


@dataclass(frozen=True)
class ExecutionResult:
    day: int
    type: str
    winners: Tuple[Winner, ...]
    allocated: int
    token_airdrops: Tuple[TokenAirdrop, ...] = ()
    seed: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    token_allocated: int = 0

    @property
    def total_distributed(self) -> int:
        return sum(w.amount for w in self.winners)

    @property
    def remainder(self) -> int:
        """Part of the allocation lost to floor division (or not paid out at all)."""
        return self.allocated - self.total_distributed

    @property
    def token_distributed(self) -> int:
        return sum(a.amount for a in self.token_airdrops)

    @property
    def token_remainder(self) -> int:
        """Airdrop tokens not paid out: per-winner truncation plus hours without buyers."""
        return self.token_allocated - self.token_distributed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "type": self.type,
            "winners": [w.to_dict() for w in self.winners],
            "total_distributed": str(self.total_distributed),
            "allocated": str(self.allocated),
            "remainder": str(self.remainder),
            "token_airdrops": [a.to_dict() for a in self.token_airdrops],
            "token_allocated": str(self.token_allocated),
            "token_distributed": str(self.token_distributed),
            "token_remainder": str(self.token_remainder),
            "seed": self.seed,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ExecutionResult":
        return cls(
            day=int(raw["day"]),
            type=raw["type"],
            winners=tuple(Winner.from_dict(w) for w in raw.get("winners", [])),
            allocated=parse_amount(raw["allocated"], "allocated"),
            token_airdrops=tuple(TokenAirdrop.from_dict(a) for a in raw.get("token_airdrops", [])),
            seed=raw.get("seed"),
            metadata=raw.get("metadata") or {},
            token_allocated=parse_amount(raw.get("token_allocated", 0), "token_allocated"),
        )
