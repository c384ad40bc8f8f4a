from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from .bids import below_median, suggest_bid
from .config import Settings
from .errors import SignerDeclined
from .instructions import Instruction
from .interfaces import SignedTransaction
from .ledger import RpcLedgerReader
from .lottery import is_winner
from .orchestrator import Orchestrator
from .phase import issuance_predates_auction, lottery_decided
from .project_constants import FAIR_LAUNCH_LOTTERY_SIZE, LAMPORTS_PER_SOL
from .rpc import RpcClient, RpcSubmitter


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


class NoWallet:
    """Signer for read-only sessions."""

    async def sign(self, instruction: Instruction) -> SignedTransaction:
        raise SignerDeclined("No wallet is connected.")


def to_sol(lamports: Optional[int]) -> str:
    if lamports is None:
        return "-"
    return f"◎ {lamports / LAMPORTS_PER_SOL:g}"


def to_utc(ts: Optional[int]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


async def _status(settings: Settings, participant: str, timeout: float) -> int:
    rpc = RpcClient(settings.rpc_url, timeout_s=timeout, commitment=settings.commitment)
    try:
        orchestrator = Orchestrator(
            reader=RpcLedgerReader(rpc),
            signer=NoWallet(),
            submitter=RpcSubmitter(rpc),
            fair_launch_id=settings.fair_launch_id,
            candy_machine_id=settings.candy_machine_id,
        )
        view = await orchestrator.refresh(participant)
    finally:
        await rpc.close()

    phase = view.phase
    auction = view.auction
    ticket = view.ticket

    print("========================================")
    print("FAIR LAUNCH STATUS")
    print("========================================")
    print(f"Phase         : {phase.name}")
    print(f"Balance       : {to_sol(view.balance)}")
    if auction is not None:
        print(f"Price range   : {to_sol(auction.price_range_start)} - {to_sol(auction.price_range_end)}")
        print(f"Tick size     : {to_sol(auction.tick_size)}")
        print(f"Fee           : {to_sol(auction.fee)}")
        print(f"Median        : {to_sol(auction.current_median)}")
        print(f"Tickets sold  : {auction.number_tickets_sold}")
        print(f"Treasury      : {to_sol(auction.treasury)}")
        print(f"Pricing opens : {to_utc(auction.phase_one_start)}")
        print(f"Pricing closes: {to_utc(auction.phase_one_end)}")
        print(f"Grace closes  : {to_utc(auction.phase_two_end)}")
        print(f"Suggested bid : {to_sol(suggest_bid(auction, phase))}")
    if view.issuance is not None:
        print(f"Mint goes live: {to_utc(view.issuance.go_live_date)}")
        print(f"Mint active   : {view.issuance.is_active}")
    print("----------------------------------------")
    if ticket is None:
        print("You haven't entered this raffle.")
    else:
        print(f"Your bid      : {to_sol(ticket.amount)}")
        print(f"Ticket state  : {ticket.state.value}")
        print(f"Sequence      : {ticket.seq if ticket.seq is not None else '-'}")
        if lottery_decided(phase):
            print(f"Winner        : {view.winner}")
        if below_median(auction, ticket):
            print("Your bid is below the median and is not eligible for the raffle.")
    if issuance_predates_auction(auction, view.issuance):
        print("WARNING: the candy machine goes live before the fair launch closes.")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url,
        fair_launch_override=args.fair_launch,
        candy_machine_override=args.candy_machine,
    )
    return asyncio.run(_status(settings, args.participant, args.timeout))


def load_blob_file(path: str) -> bytes:
    """
    Supports:
    1) Raw account bytes
    2) JSON from getAccountInfo: {"result": {"value": {"data": ["<b64>", "base64"]}}}
       or just {"data": ["<b64>", "base64"]}
    """
    with open(path, "rb") as f:
        raw = f.read()
    if not raw.lstrip().startswith(b"{"):
        return raw

    j = json.loads(raw)
    value = j.get("result", {}).get("value", j) if isinstance(j, dict) else None
    if isinstance(value, dict) and isinstance(value.get("data"), list):
        return base64.b64decode(value["data"][0])
    raise RuntimeError("Could not find account data in blob file.")


def cmd_winner(args: argparse.Namespace) -> int:
    blob = load_blob_file(args.blob_file)
    won = is_winner(blob, args.seq, header_size=args.header_size)
    print(f"Sequence {args.seq}: {'WINNER' if won else 'not drawn'}")
    return 0 if won else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fair-launch",
        description="Inspect a fair launch auction and its lottery.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("status", help="Show phase, ticket and lottery result.")
    s.add_argument("--participant", required=True, help="Wallet address.")
    s.add_argument("--fair-launch", default=None, help="Fair launch account (else env).")
    s.add_argument("--candy-machine", default=None, help="Candy machine account (else env).")
    s.set_defaults(func=cmd_status)

    w = sub.add_parser("winner", help="Check a sequence number against a lottery blob.")
    w.add_argument("--seq", required=True, type=int, help="Ticket sequence number.")
    w.add_argument("--blob-file", required=True, help="Lottery account dump.")
    w.add_argument(
        "--header-size",
        type=int,
        default=FAIR_LAUNCH_LOTTERY_SIZE,
        help="Bytes preceding the bitset.",
    )
    w.set_defaults(func=cmd_winner)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
