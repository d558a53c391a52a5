from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

log = logging.getLogger(__name__)


class RpcClient:
    """Minimal Solana JSON-RPC client: blockhash source and token account scans."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)
        self._next_id = 1

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        self._next_id += 1
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error in {method}: {data['error']}")
        return data.get("result")

    def get_blockhash_for_slot(self, slot: int) -> str:
        result = self._call(
            "getBlock",
            [
                slot,
                {
                    "encoding": "json",
                    "transactionDetails": "none",
                    "rewards": False,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result or "blockhash" not in result:
            raise RuntimeError(f"Slot {slot}: getBlock returned no blockhash.")
        log.debug("Slot %d blockhash %s", slot, result["blockhash"])
        return result["blockhash"]

    def get_latest_blockhash(self, commitment: str = "finalized") -> str:
        result = self._call("getLatestBlockhash", [{"commitment": commitment}])
        try:
            return result["value"]["blockhash"]
        except (KeyError, TypeError):
            raise RuntimeError(f"getLatestBlockhash returned no blockhash: {result!r}")

    def get_program_accounts_base64(
        self,
        program_id: str,
        mint: str,
        classic_token_program: bool,
    ) -> List[str]:
        """
        Returns base64 account data for every token account of ``mint``.
        Classic SPL Token accounts are exactly 165 bytes; Token-2022 accounts
        vary with extensions so no size filter is applied there.
        """
        filters: List[Dict[str, Any]] = [{"memcmp": {"offset": 0, "bytes": mint}}]
        if classic_token_program:
            filters.append({"dataSize": 165})

        results = self._call(
            "getProgramAccounts",
            [program_id, {"encoding": "base64", "filters": filters}],
        ) or []
        # item['account']['data'] is [base64_str, "base64"]
        return [item["account"]["data"][0] for item in results]


def load_blockhash_from_feed_file(path: str, slot_hint: Optional[int] = None) -> str:
    """
    Supports:
    1) Raw blockhash string in file
    2) JSON object containing:
       - {"blockhash": "..."}
       - {"result": {"blockhash": "..."}}
       - {"slot": 123, "blockhash": "..."}   (checked against slot_hint)
       - {"blocks": {"123": {"blockhash": "..."}}}  (needs slot_hint)
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read().strip()

    if raw and raw[0] != "{":
        return raw

    try:
        j = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Block feed file is not valid JSON or raw string: {e}") from e

    if isinstance(j, dict):
        if isinstance(j.get("blockhash"), str):
            if slot_hint is not None and "slot" in j and int(j["slot"]) != int(slot_hint):
                raise RuntimeError(
                    f"Block feed slot mismatch: file slot={j['slot']} vs expected slot={slot_hint}"
                )
            return j["blockhash"]

        result = j.get("result")
        if isinstance(result, dict) and isinstance(result.get("blockhash"), str):
            return result["blockhash"]

        blocks = j.get("blocks")
        if slot_hint is not None and isinstance(blocks, dict):
            block_obj = blocks.get(str(int(slot_hint)))
            if isinstance(block_obj, dict) and isinstance(block_obj.get("blockhash"), str):
                return block_obj["blockhash"]

    raise RuntimeError(
        "Could not find a blockhash in block feed file. "
        "Expected raw string or JSON with blockhash/result.blockhash/(blocks[slot].blockhash)."
    )
