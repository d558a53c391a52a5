from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Tuple

from .commitment import CommitmentBundle, RoundArtifact, build_commitment, generate_salts
from .config import Settings
from .errors import ConfigurationError, IncompleteDisclosureError
from .evaluator import evaluate
from .holders import load_excluded_wallets, snapshot_holders
from .models import RoundSpec, load_holders, load_round_specs, load_transactions, parse_amount
from .project_constants import ADVENT_DAYS, LAMPORTS_PER_SOL
from .reveal import disclose, season_day, utc_today
from .rpc import RpcClient, load_blockhash_from_feed_file
from .verify import build_execution_audit, verify_disclosure, verify_execution_audit


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: str, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _to_sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.6f}"


def _load_bundle(path: str) -> CommitmentBundle:
    return CommitmentBundle.from_private_dict(_read_json(path))


def _round(bundle: CommitmentBundle, day: int) -> Tuple[RoundSpec, RoundArtifact]:
    try:
        return bundle.spec_for(day), bundle.artifact_for(day)
    except KeyError as e:
        raise ConfigurationError(f"Day {day} is not in the committed calendar") from e


def _read_salts(path: str) -> Dict[int, str]:
    raw = _read_json(path)
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Salts file must be a JSON object of day -> salt: {path}")
    try:
        return {int(day): salt for day, salt in raw.items()}
    except ValueError as e:
        raise ConfigurationError(f"Salts file keys must be day numbers: {e}") from e


def _excluded(settings: Settings, path: str | None) -> frozenset:
    return settings.excluded_wallets | frozenset(load_excluded_wallets(path))


def cmd_salts(args: argparse.Namespace) -> int:
    salts = generate_salts(args.rounds)
    _write_json(args.out, {str(day): salt for day, salt in salts.items()})
    print(f"🧂 Wrote {len(salts)} salts: {args.out} (keep private until each reveal)")
    return 0


def cmd_commit(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    log = logging.getLogger("commit")

    specs = load_round_specs(args.gifts, rounds=args.rounds)
    if args.salts:
        salts = _read_salts(args.salts)
    else:
        log.info("No salts file given, generating fresh salts")
        salts = generate_salts(args.rounds)

    bundle = build_commitment(specs, salts, season=args.season or settings.season, rounds=args.rounds)
    _write_json(args.out_public, bundle.commitment.to_dict())
    _write_json(args.out_private, bundle.private_dict())

    print("========================================")
    print("🎁 GIFT LIST COMMITMENT")
    print("========================================")
    print(f"Season        : {bundle.commitment.season}")
    print(f"Gifts         : {len(bundle.artifacts)}")
    print(f"Timestamp     : {bundle.commitment.timestamp}")
    print(f"Merkle root   : {bundle.root}")
    print("----------------------------------------")
    print(f"📢 Publish    : {args.out_public}")
    print(f"🔒 Keep secret: {args.out_private}")
    return 0


def cmd_reveal(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    bundle = _load_bundle(args.private)
    today = date.fromisoformat(args.today) if args.today else utc_today()
    day = args.day
    if day is None:
        day = season_day(today, settings.season_start, rounds=len(bundle.artifacts))
        if day is None:
            raise ConfigurationError(f"{today.isoformat()} is outside the season; pass --day.")
    spec, artifact = _round(bundle, day)

    disclosure = disclose(
        spec,
        artifact,
        bundle.root,
        today=today,
        season_start=settings.season_start,
        allow_future=args.allow_future or settings.allow_future_reveals,
    )
    payload = disclosure.to_dict()
    if args.out:
        _write_json(args.out, payload)
        print(f"🧾 Wrote reveal: {args.out}")
    else:
        print(json.dumps(payload, indent=2))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    root = args.root or settings.merkle_root
    if not root:
        raise ConfigurationError("Published root required: pass --root or set MERKLE_ROOT.")

    result = verify_disclosure(_read_json(args.reveal), root)
    print("✅ REVEAL VERIFIED" if result.valid else "❌ REVEAL REJECTED")
    print(f"Root matches  : {result.root_matches}")
    print(f"Leaf matches  : {result.leaf_matches}")
    print(f"Proof valid   : {result.proof_valid}")
    print(f"Details       : {result.details}")
    return 0 if result.valid else 1


def cmd_snapshot(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    excluded = _excluded(settings, args.excluded_file)

    with RpcClient(settings.require_rpc_url(), timeout_s=args.timeout) as rpc:
        holders = snapshot_holders(rpc, args.mint, excluded)

    _write_json(args.out, {"mint": args.mint, "holders": [h.to_dict() for h in holders]})
    print(f"🧾 Wrote {len(holders)} holders: {args.out}")
    return 0


def _resolve_blockhash(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    if args.blockhash:
        return {"blockhash": args.blockhash, "source": "cli"}
    if args.block_feed_file:
        return {
            "blockhash": load_blockhash_from_feed_file(args.block_feed_file, slot_hint=args.slot),
            "source": f"file:{args.block_feed_file}",
        }
    if args.latest_blockhash:
        with RpcClient(settings.require_rpc_url(), timeout_s=args.timeout) as rpc:
            return {"blockhash": rpc.get_latest_blockhash(), "source": "rpc:getLatestBlockhash"}
    if args.slot is None:
        raise ConfigurationError("Need --slot, --latest-blockhash, --block-feed-file or --blockhash for the seed.")
    with RpcClient(settings.require_rpc_url(), timeout_s=args.timeout) as rpc:
        return {"blockhash": rpc.get_blockhash_for_slot(args.slot), "source": "rpc:getBlock"}


def cmd_execute(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    log = logging.getLogger("execute")

    bundle = _load_bundle(args.private)
    spec, artifact = _round(bundle, args.day)
    salt = artifact.salt
    holders = load_holders(args.holders) if args.holders else []
    transactions = load_transactions(args.transactions) if args.transactions else []
    pool_amount = parse_amount(args.pool, "--pool")
    excluded = _excluded(settings, args.excluded_file)

    seed_info = _resolve_blockhash(args, settings)
    log.info("Seed (blockhash): %s", seed_info["blockhash"])
    log.info("Seed source      : %s", seed_info["source"])

    result = evaluate(
        spec, transactions, holders, pool_amount, seed_info["blockhash"],
        salt=salt, excluded_wallets=excluded,
    )

    audit = build_execution_audit(
        result, spec, salt, seed_info["blockhash"], pool_amount, holders, transactions,
        sorted(excluded),
        metadata={
            "tool": "santa-gifts",
            "version": "1.0.0",
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "season": bundle.commitment.season,
            "root": bundle.root,
            "target_slot": args.slot,
            "seed_source": seed_info["source"],
        },
    )
    _write_json(args.out, audit)

    print("========================================")
    print(f"🎁 DAY {spec.day} GIFT: {spec.type}")
    print("========================================")
    print(f"Blockhash     : {seed_info['blockhash']}")
    print(f"Pool          : {_to_sol(pool_amount)} SOL")
    print(f"Allocated     : {_to_sol(result.allocated)} SOL")
    print(f"Distributed   : {_to_sol(result.total_distributed)} SOL")
    print(f"Remainder     : {result.remainder} lamports")
    print("----------------------------------------")
    for w in result.winners[:10]:
        print(f"🏆 {w.wallet}  {_to_sol(w.amount)} SOL")
    if len(result.winners) > 10:
        print(f"   ... ({len(result.winners) - 10} more winners)")
    if result.token_airdrops:
        print(f"🪂 Hourly token airdrops: {len(result.token_airdrops)}")
        print(f"   Token remainder: {result.token_remainder}")
    print("----------------------------------------")
    print(f"🧾 Wrote audit: {args.out}")
    return 0


def cmd_verify_execution(args: argparse.Namespace) -> int:
    result = verify_execution_audit(args.audit)
    print("✅ EXECUTION AUDIT VERIFIED")
    print(f"Day           : {result['day']} ({result['type']})")
    print(f"Winners       : {result['winner_count']}")
    print(f"Distributed   : {_to_sol(result['total_distributed'])} SOL")
    print(f"Remainder     : {result['remainder']} lamports")
    if result["seed"]:
        print(f"Seed          : {result['seed']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="santa-gifts",
        description="Commit-reveal advent gift calendar with deterministic payouts.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("salts", help="Generate one random salt per day.")
    s.add_argument("--rounds", type=int, default=ADVENT_DAYS)
    s.add_argument("--out", default="salts.json")
    s.set_defaults(func=cmd_salts)

    c = sub.add_parser("commit", help="Commit the gift list and write root + private proofs.")
    c.add_argument("--gifts", required=True, help="Gift specs JSON.")
    c.add_argument("--salts", default=None, help="Salts JSON ({day: salt}); generated if omitted.")
    c.add_argument("--season", default=None, help="Season tag (else GIFTS_SEASON).")
    c.add_argument("--rounds", type=int, default=ADVENT_DAYS)
    c.add_argument("--out-public", default="gifts-hash.json")
    c.add_argument("--out-private", default="private-merkle-data.json")
    c.set_defaults(func=cmd_commit)

    r = sub.add_parser("reveal", help="Produce the disclosure allowed for a day right now.")
    r.add_argument("--private", required=True, help="Private commitment JSON.")
    r.add_argument("--day", type=int, default=None, help="Round day (else today's day of the season).")
    r.add_argument("--today", default=None, help="Override current UTC date (YYYY-MM-DD).")
    r.add_argument("--allow-future", action="store_true", help="Testing only: reveal everything.")
    r.add_argument("--out", default=None)
    r.set_defaults(func=cmd_reveal)

    v = sub.add_parser("verify", help="Verify a day reveal against the published root.")
    v.add_argument("--reveal", required=True, help="Path to a day reveal JSON.")
    v.add_argument("--root", default=None, help="Published root (else MERKLE_ROOT).")
    v.set_defaults(func=cmd_verify)

    sn = sub.add_parser("snapshot", help="Snapshot token holders via RPC.")
    sn.add_argument("--mint", required=True)
    sn.add_argument("--excluded-file", default=None)
    sn.add_argument("--out", default="holders.json")
    sn.set_defaults(func=cmd_snapshot)

    e = sub.add_parser("execute", help="Evaluate a day's gift and write an audit JSON.")
    e.add_argument("--private", required=True, help="Private commitment JSON.")
    e.add_argument("--day", required=True, type=int)
    e.add_argument("--pool", required=True, help="Pool amount in lamports.")
    e.add_argument("--holders", default=None, help="Holder snapshot JSON.")
    e.add_argument("--transactions", default=None, help="Day transactions JSON.")
    e.add_argument("--excluded-file", default=None)
    e.add_argument("--slot", type=int, default=None, help="Finalized slot whose blockhash seeds the draw.")
    e.add_argument("--block-feed-file", default=None, help="Source the blockhash from a file.")
    e.add_argument("--blockhash", default=None, help="Use this blockhash directly.")
    e.add_argument("--latest-blockhash", action="store_true", help="Use the latest finalized blockhash from RPC.")
    e.add_argument("--out", default="execution.json")
    e.set_defaults(func=cmd_execute)

    ve = sub.add_parser("verify-execution", help="Re-run an execution audit deterministically.")
    ve.add_argument("--audit", required=True)
    ve.set_defaults(func=cmd_verify_execution)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except (ConfigurationError, IncompleteDisclosureError) as e:
        raise SystemExit(f"Configuration error: {e}")
    except RuntimeError as e:
        raise SystemExit(str(e))
    raise SystemExit(code)
