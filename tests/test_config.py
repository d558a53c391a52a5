from datetime import date

import pytest

from santa_gifts import config
from santa_gifts.config import Settings
from santa_gifts.errors import ConfigurationError

ENV_VARS = (
    "RPC_URL",
    "HELIUS_API_KEY",
    "SEASON_START",
    "EXCLUDED_WALLETS",
    "DEV_WALLET",
    "AIRDROP_WALLET",
    "GIFTS_SEASON",
    "ALLOW_FUTURE_REVEALS",
    "MERKLE_ROOT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: False)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings.from_env()
        assert s.rpc_url is None
        assert s.season == "2025-season-1"
        assert s.season_start == date(2025, 12, 1)
        assert s.excluded_wallets == frozenset()
        assert s.allow_future_reveals is False
        with pytest.raises(ConfigurationError):
            s.require_rpc_url()

    def test_helius_key_builds_url(self, monkeypatch) -> None:
        monkeypatch.setenv("HELIUS_API_KEY", "k123")
        assert Settings.from_env().require_rpc_url() == "https://mainnet.helius-rpc.com/?api-key=k123"

    def test_override_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("RPC_URL", "https://env.example")
        assert Settings.from_env().rpc_url == "https://env.example"
        assert Settings.from_env(rpc_url_override="https://cli.example").rpc_url == "https://cli.example"

    def test_exclusions_and_flags(self, monkeypatch) -> None:
        monkeypatch.setenv("EXCLUDED_WALLETS", "A, B,,")
        monkeypatch.setenv("DEV_WALLET", "Dev")
        monkeypatch.setenv("AIRDROP_WALLET", "Drop")
        monkeypatch.setenv("ALLOW_FUTURE_REVEALS", "TRUE")
        monkeypatch.setenv("SEASON_START", "2026-12-01")
        monkeypatch.setenv("GIFTS_SEASON", "2026-season-2")
        s = Settings.from_env()
        assert s.excluded_wallets == {"A", "B", "Dev", "Drop"}
        assert s.allow_future_reveals is True
        assert s.season_start == date(2026, 12, 1)
        assert s.season == "2026-season-2"

    def test_allow_future_needs_literal_true(self, monkeypatch) -> None:
        monkeypatch.setenv("ALLOW_FUTURE_REVEALS", "1")
        assert Settings.from_env().allow_future_reveals is False

    def test_bad_season_start(self, monkeypatch) -> None:
        monkeypatch.setenv("SEASON_START", "December 1st")
        with pytest.raises(ConfigurationError):
            Settings.from_env()
