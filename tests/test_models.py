"""Tests for round spec parsing and params schemas."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import NGO_WALLET, utc
from santa_gifts.errors import ConfigurationError
from santa_gifts.models import (
    DeterministicRandomParams,
    ExecutionResult,
    RoundSpec,
    TokenAirdrop,
    TransactionRecord,
    Winner,
    load_round_specs,
    parse_amount,
)


def _gift(**overrides):
    gift = {
        "day": 4,
        "type": "deterministic_random",
        "hint": "Lucky draw",
        "sub_hint": "Twenty winners",
        "params": {"winner_count": 20, "allocation_percent": 40, "min_balance": "1000"},
        "distribution_source": "treasury_daily_fees",
        "notes": "Day 4",
    }
    gift.update(overrides)
    return gift


class TestRoundSpec:
    def test_parses_typed_params(self) -> None:
        spec = RoundSpec.from_dict(_gift())
        assert isinstance(spec.params, DeterministicRandomParams)
        assert spec.params.min_balance == 1000
        assert spec.params.split == "equal"

    def test_to_dict_is_fully_explicit(self) -> None:
        data = RoundSpec.from_dict(_gift()).to_dict()
        assert data["params"] == {
            "winner_count": 20,
            "allocation_percent": 40,
            "min_balance": "1000",
            "split": "equal",
        }
        assert set(data) == {"day", "type", "hint", "sub_hint", "params", "distribution_source", "notes"}

    def test_round_trip(self) -> None:
        spec = RoundSpec.from_dict(_gift())
        assert RoundSpec.from_dict(spec.to_dict()) == spec

    def test_stored_hash_field_ignored(self) -> None:
        assert RoundSpec.from_dict(_gift(hash="abc")) == RoundSpec.from_dict(_gift())

    def test_token_airdrop_only_serialized_when_set(self) -> None:
        plain = RoundSpec.from_dict(_gift()).to_dict()
        assert "token_airdrop" not in plain["params"]
        with_drop = RoundSpec.from_dict(
            _gift(params={
                "winner_count": 1,
                "allocation_percent": 40,
                "token_airdrop": {"enabled": True, "total_amount": 2400},
            })
        ).to_dict()
        assert with_drop["params"]["token_airdrop"] == {
            "enabled": True,
            "total_amount": "2400",
            "winners": 24,
            "distribution": "hourly_random",
        }

    def test_token_airdrop_accepts_winners_and_distribution(self) -> None:
        params = {
            "allocation_percent": 100,
            "min_balance": 0,
            "token_airdrop": {
                "enabled": True,
                "total_amount": 120000,
                "winners": 24,
                "distribution": "hourly_random",
            },
        }
        spec = RoundSpec.from_dict(_gift(day=1, type="proportional_holders", params=params))
        assert spec.params.token_airdrop.winners == 24
        assert spec.params.token_airdrop.amount_per_winner == 5000

    @pytest.mark.parametrize(
        "extra",
        [{"winners": 0}, {"winners": 25}, {"winners": "24"}, {"distribution": "daily"}],
    )
    def test_token_airdrop_rejects_bad_options(self, extra) -> None:
        drop = {"enabled": True, "total_amount": 2400, **extra}
        params = {"winner_count": 1, "allocation_percent": 40, "token_airdrop": drop}
        with pytest.raises(ConfigurationError):
            RoundSpec.from_dict(_gift(params=params))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"day": 0},
            {"day": 25},
            {"day": "3"},
            {"type": "mystery"},
            {"type": ""},
            {"params": {"allocation_percent": 40}},
            {"params": {"winner_count": 0, "allocation_percent": 40}},
            {"params": {"winner_count": 5, "allocation_percent": 101}},
            {"params": {"winner_count": 5, "allocation_percent": 40.5}},
            {"params": {"winner_count": 5, "allocation_percent": 40, "split": "random"}},
            {"params": {"winner_count": 5, "allocation_percent": 40, "bonus": 1}},
            {"params": {"winner_count": 5, "allocation_percent": 40, "min_balance": "-5"}},
            {"params": "not-an-object"},
            {"notes": 42},
            {"salt": "leaked"},
        ],
    )
    def test_invalid_specs_rejected(self, overrides) -> None:
        with pytest.raises(ConfigurationError):
            RoundSpec.from_dict(_gift(**overrides))

    def test_missing_params_rejected(self) -> None:
        gift = _gift()
        del gift["params"]
        with pytest.raises(ConfigurationError):
            RoundSpec.from_dict(gift)

    def test_ngo_wallet_required(self) -> None:
        with pytest.raises(ConfigurationError):
            RoundSpec.from_dict(_gift(type="full_donation_to_ngo", params={"percent": 100}))
        spec = RoundSpec.from_dict(_gift(type="ngo_donation", params={"ngo_wallet": NGO_WALLET}))
        assert spec.params.percent == 100

    def test_rounds_limit(self) -> None:
        RoundSpec.from_dict(_gift(day=3), rounds=3)
        with pytest.raises(ConfigurationError):
            RoundSpec.from_dict(_gift(day=4), rounds=3)

    def test_load_round_specs(self, tmp_path, gift_dicts) -> None:
        path = tmp_path / "gifts.json"
        path.write_text(json.dumps({"gifts": gift_dicts}), encoding="utf-8")
        specs = load_round_specs(str(path))
        assert [s.day for s in specs] == list(range(1, 25))


class TestAmounts:
    @pytest.mark.parametrize("value,expected", [(5, 5), ("5", 5), (" 12 ", 12), (10**30, 10**30)])
    def test_parse_amount(self, value, expected) -> None:
        assert parse_amount(value, "x") == expected

    @pytest.mark.parametrize("value", [-1, "-1", 1.5, True, "1e3", "١٢", None])
    def test_parse_amount_rejects(self, value) -> None:
        with pytest.raises(ConfigurationError):
            parse_amount(value, "x")


class TestTransactionRecord:
    def test_from_dict_parses_utc(self) -> None:
        tx = TransactionRecord.from_dict(
            {
                "signature": "sig",
                "slot": 1,
                "block_time": "2025-12-05T23:59:59Z",
                "from_wallet": "pool",
                "to_wallet": "buyer",
                "amount": "1000000000",
                "kind": "buy",
            }
        )
        assert tx.block_time == utc(2025, 12, 5, 23, 59, 59)
        assert tx.buyer == "buyer"
        assert TransactionRecord.from_dict(tx.to_dict()) == tx

    def test_unknown_kind(self) -> None:
        with pytest.raises(ConfigurationError):
            TransactionRecord.from_dict(
                {"signature": "s", "block_time": "2025-12-05T00:00:00Z", "from_wallet": "a", "amount": 1, "kind": "mint"}
            )


class TestExecutionResult:
    def test_totals_and_round_trip(self) -> None:
        result = ExecutionResult(
            day=2,
            type="proportional_holders",
            winners=(Winner("a", 3, balance=1, reason="r"), Winner("b", 6)),
            allocated=10,
            token_airdrops=(TokenAirdrop("c", 100, 4),),
            metadata={"eligible_count": 2},
        )
        assert result.total_distributed == 9
        assert result.remainder == 1
        data = result.to_dict()
        assert data["total_distributed"] == "9"
        assert data["remainder"] == "1"
        assert ExecutionResult.from_dict(json.loads(json.dumps(data))) == result


class TestTransactionTimes:
    def test_aware_times_converted_to_utc(self) -> None:
        cet = timezone(timedelta(hours=1))
        tx = TransactionRecord("s", datetime(2025, 12, 6, 0, 50, tzinfo=cet), "pool", 1, "buy", to_wallet="a")
        assert tx.block_time == utc(2025, 12, 5, 23, 50)
        assert tx.block_time.tzinfo is timezone.utc

    def test_naive_times_taken_as_utc(self) -> None:
        tx = TransactionRecord("s", datetime(2025, 12, 5, 23, 50), "pool", 1, "buy")
        assert tx.block_time == utc(2025, 12, 5, 23, 50)

    def test_block_time_must_be_datetime(self) -> None:
        with pytest.raises(ConfigurationError):
            TransactionRecord("s", "2025-12-05T23:50:00Z", "pool", 1, "buy")
