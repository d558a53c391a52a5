import base64
import struct

import base58

from santa_gifts.holders import aggregate_balances, load_excluded_wallets, parse_owner_and_amount, rank_holders

MINT = bytes(range(32))


def _owner(n: int) -> bytes:
    return bytes([n]) * 32


def _account(owner: bytes, amount: int, extra: int = 93) -> str:
    raw = MINT + owner + struct.pack("<Q", amount) + b"\x00" * extra
    return base64.b64encode(raw).decode("ascii")


def _wallet(owner: bytes) -> str:
    return base58.b58encode(owner).decode("ascii")


class TestParse:
    def test_owner_and_amount(self) -> None:
        raw = base64.b64decode(_account(_owner(7), 123456))
        assert parse_owner_and_amount(raw) == (_wallet(_owner(7)), 123456)

    def test_short_data(self) -> None:
        assert parse_owner_and_amount(b"\x00" * 71) is None


class TestAggregate:
    def test_sums_accounts_per_owner(self) -> None:
        items = [_account(_owner(1), 100), _account(_owner(1), 50), _account(_owner(2), 10)]
        assert aggregate_balances(items) == {_wallet(_owner(1)): 150, _wallet(_owner(2)): 10}

    def test_zero_balances_dropped(self) -> None:
        assert aggregate_balances([_account(_owner(3), 0)]) == {}

    def test_undecodable_skipped(self) -> None:
        items = ["***not base64***", base64.b64encode(b"short").decode(), _account(_owner(4), 9)]
        assert aggregate_balances(items) == {_wallet(_owner(4)): 9}


class TestRank:
    def test_order_and_ranks(self) -> None:
        holders = rank_holders({"b": 10, "a": 10, "c": 50, "d": 0})
        assert [(h.wallet, h.rank) for h in holders] == [("c", 1), ("a", 2), ("b", 3)]

    def test_excluded(self) -> None:
        holders = rank_holders({"dev": 1000, "a": 5}, excluded={"dev"})
        assert [h.wallet for h in holders] == ["a"]
        assert holders[0].rank == 1


class TestExcludedFile:
    def test_load(self, tmp_path) -> None:
        path = tmp_path / "excluded.txt"
        path.write_text("# team\nDevWallet\n\n  AirdropWallet  \n", encoding="utf-8")
        assert load_excluded_wallets(str(path)) == {"DevWallet", "AirdropWallet"}

    def test_no_path(self) -> None:
        assert load_excluded_wallets(None) == set()
