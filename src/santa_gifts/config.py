from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .project_constants import DEFAULT_SEASON, DEFAULT_SEASON_START


def _split_wallets(raw: str) -> FrozenSet[str]:
    return frozenset(w.strip() for w in raw.split(",") if w.strip())


@dataclass(frozen=True)
class Settings:
    rpc_url: Optional[str] = None
    season: str = DEFAULT_SEASON
    season_start: date = date.fromisoformat(DEFAULT_SEASON_START)
    excluded_wallets: FrozenSet[str] = field(default_factory=frozenset)
    allow_future_reveals: bool = False
    merkle_root: Optional[str] = None

    @staticmethod
    def from_env(rpc_url_override: str | None = None) -> "Settings":
        load_dotenv()

        # If user provides --rpc-url, trust it.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip() or None
        if not rpc_url:
            helius_key = os.getenv("HELIUS_API_KEY", "").strip()
            if helius_key:
                rpc_url = f"https://mainnet.helius-rpc.com/?api-key={helius_key}"

        raw_start = os.getenv("SEASON_START", "").strip() or DEFAULT_SEASON_START
        try:
            season_start = date.fromisoformat(raw_start)
        except ValueError as e:
            raise ConfigurationError(f"SEASON_START must be YYYY-MM-DD, got {raw_start!r}") from e

        # Dev and airdrop wallets never receive gifts or airdrops.
        excluded = set(_split_wallets(os.getenv("EXCLUDED_WALLETS", "")))
        for name in ("DEV_WALLET", "AIRDROP_WALLET"):
            wallet = os.getenv(name, "").strip()
            if wallet:
                excluded.add(wallet)

        return Settings(
            rpc_url=rpc_url,
            season=os.getenv("GIFTS_SEASON", "").strip() or DEFAULT_SEASON,
            season_start=season_start,
            excluded_wallets=frozenset(excluded),
            allow_future_reveals=os.getenv("ALLOW_FUTURE_REVEALS", "").strip().lower() == "true",
            merkle_root=os.getenv("MERKLE_ROOT", "").strip() or None,
        )

    def require_rpc_url(self) -> str:
        if not self.rpc_url:
            raise ConfigurationError(
                "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
            )
        return self.rpc_url
