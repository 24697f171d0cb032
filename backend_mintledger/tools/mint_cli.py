"""
Operator CLI for the mint cache and the transfer verifier.

    python -m backend_mintledger.tools.mint_cli sync
    python -m backend_mintledger.tools.mint_cli history <TOKEN_ADDRESS> [--no-sync] [--json]
    python -m backend_mintledger.tools.mint_cli verify <SIGNATURE> --sender S --recipient R --mint M --amount N

Reads SOLANA_RPC_URL / HELIUS_API_KEY / DATABASE_URL from env or .env.
Exit codes: 0 ok, 1 failure or invalid transfer, 2 bad input.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from backend_mintledger.config import get_settings
from backend_mintledger.config.env import mask_api_key
from backend_mintledger.sync.service import build_clients, build_synchronizer
from backend_mintledger.verification.validation import (
    validate_signature,
    validate_token_address,
    validate_wallet_address,
)
from backend_mintledger.verification.verifier import TransferVerifier


def _print_startup(command: str) -> None:
    s = get_settings()
    print(f"[mintledger] {command} | network={s.network} | feed={s.mint_authority} | rpc={mask_api_key(s.rpc_url)[:60]}")


async def _cmd_sync(args: argparse.Namespace) -> int:
    async with build_synchronizer() as synchronizer:
        report = await synchronizer.sync()
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if not report.dropped else 1


async def _cmd_history(args: argparse.Namespace) -> int:
    token = validate_token_address(args.token)
    async with build_synchronizer() as synchronizer:
        if args.no_sync:
            history = await synchronizer.read(token)
        else:
            history = await synchronizer.sync_and_read(token)
    if args.json:
        print(json.dumps(history.to_dict(), indent=2))
        return 0
    for tx in history.transactions:
        print(f"{tx.timestamp}  {tx.wallet_address}  {tx.amount}  {tx.signature}")
    print(f"transactions: {len(history.transactions)} | total minted: {history.total_minted}")
    if history.report is not None and history.report.degraded:
        print(f"[mintledger] WARNING: sync failed, served cached data ({history.report.error})")
    return 0


async def _cmd_verify(args: argparse.Namespace) -> int:
    signature = validate_signature(args.signature)
    sender = validate_wallet_address(args.sender)
    recipient = validate_wallet_address(args.recipient, require_on_curve=False)
    mint = validate_token_address(args.mint)
    settings = get_settings()
    rpc, helius = build_clients(settings)
    try:
        verifier = TransferVerifier(rpc, default_max_age_sec=settings.verify_max_age_sec)
        result = await verifier.verify(signature, sender, recipient, mint, args.amount, args.max_age)
    finally:
        await helius.aclose()
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.valid else 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mint_cli", description="MintLedger operator tools")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("sync", help="Run one incremental sync pass of the mint log")

    hist = sub.add_parser("history", help="Show filtered mint history for a token")
    hist.add_argument("token", help="Token mint address")
    hist.add_argument("--no-sync", action="store_true", help="Read the cache without syncing")
    hist.add_argument("--json", action="store_true", help="Print JSON")

    ver = sub.add_parser("verify", help="Verify an SPL token transfer transaction")
    ver.add_argument("signature")
    ver.add_argument("--sender", required=True, help="Expected owner of the source token account")
    ver.add_argument("--recipient", required=True, help="Expected owner of the destination token account")
    ver.add_argument("--mint", required=True, help="Expected token mint")
    ver.add_argument("--amount", required=True, type=int, help="Expected amount in base units")
    ver.add_argument("--max-age", type=int, default=None, help="Maximum transaction age in seconds")
    return ap


_COMMANDS = {"sync": _cmd_sync, "history": _cmd_history, "verify": _cmd_verify}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _print_startup(args.command)
    try:
        return asyncio.run(_COMMANDS[args.command](args))
    except ValueError as e:
        print("[mintledger] ERROR:", e, file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
