from __future__ import annotations

import base64
import hashlib
import struct
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import base58

from .project_constants import DISCRIMINATOR_SIZE
from .state import AuctionState, Gatekeeper, IssuanceState, Ticket, TicketState

# Ticket: discriminator | fair launch(32) | buyer(32) | amount u64 | state u8 | bump u8 | seq u64
TICKET_SIZE = DISCRIMINATOR_SIZE + 32 + 32 + 8 + 1 + 1 + 8
TICKET_FAIR_LAUNCH_OFFSET = DISCRIMINATOR_SIZE
TICKET_BUYER_OFFSET = DISCRIMINATOR_SIZE + 32

# Lottery bitmap: discriminator | fair launch(32) | ...
LOTTERY_FAIR_LAUNCH_OFFSET = DISCRIMINATOR_SIZE

# On-chain ticket state enum; "no sequence" means seq not yet assigned.
_TICKET_STATES = {
    0: TicketState.UNPUNCHED,
    1: TicketState.UNPUNCHED,
    2: TicketState.PUNCHED,
    3: TicketState.WITHDRAWN,
}


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:8]


TICKET_DISCRIMINATOR = account_discriminator("FairLaunchTicket")
LOTTERY_DISCRIMINATOR = account_discriminator("FairLaunchLotteryBitmap")


class Reader:
    """Sequential Borsh reader over an account's bytes."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = data
        self.offset = offset

    def _unpack(self, fmt: str):
        size = struct.calcsize(fmt)
        if self.offset + size > len(self.data):
            raise ValueError(
                f"Account data truncated at offset {self.offset} (need {size} bytes)"
            )
        (value,) = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += size
        return value

    def u8(self) -> int:
        return self._unpack("<B")

    def u16(self) -> int:
        return self._unpack("<H")

    def u64(self) -> int:
        return self._unpack("<Q")

    def i64(self) -> int:
        return self._unpack("<q")

    def u32(self) -> int:
        return self._unpack("<I")

    def flag(self) -> bool:
        return self.u8() != 0

    def raw(self, size: int) -> bytes:
        if self.offset + size > len(self.data):
            raise ValueError(f"Account data truncated at offset {self.offset}")
        out = self.data[self.offset : self.offset + size]
        self.offset += size
        return out

    def pubkey(self) -> str:
        return base58.b58encode(self.raw(32)).decode("ascii")

    def string(self) -> str:
        length = self.u32()
        return self.raw(length).decode("utf-8")

    def option(self, read):
        return read() if self.flag() else None


@dataclass(frozen=True)
class FairLaunchAccount:
    auction: AuctionState
    treasury_address: str
    phase_three_started: bool


def decode_ticket(data: bytes) -> Ticket:
    if len(data) < TICKET_SIZE:
        raise ValueError(f"Ticket account is {len(data)} bytes, expected {TICKET_SIZE}")
    r = Reader(data, TICKET_BUYER_OFFSET + 32)
    amount = r.u64()
    raw_state = r.u8()
    r.u8()  # bump
    seq = r.u64()
    if raw_state not in _TICKET_STATES:
        raise ValueError(f"Unknown ticket state {raw_state}")
    return Ticket(
        amount=amount,
        state=_TICKET_STATES[raw_state],
        seq=None if raw_state == 0 else seq,
    )


def decode_fair_launch(data: bytes) -> FairLaunchAccount:
    r = Reader(data, DISCRIMINATOR_SIZE)
    token_mint = r.pubkey()
    treasury = r.pubkey()
    r.option(r.pubkey)  # treasury mint
    r.pubkey()  # authority
    r.raw(3)  # bump, treasury bump, token mint bump

    r.string()  # uuid
    price_range_start = r.u64()
    price_range_end = r.u64()
    phase_one_start = r.i64()
    phase_one_end = r.i64()
    phase_two_end = r.i64()
    r.i64()  # lottery duration
    tick_size = r.u64()
    r.u64()  # number of tokens
    fee = r.u64()
    if r.flag():  # anti-rug setting
        r.u16()
        r.u64()
        r.i64()

    r.u64()  # tickets not yet sequenced
    number_tickets_sold = r.u64()
    r.raw(8 * 4)  # dropped, punched, burned for refunds, preminted
    phase_three_started = r.flag()
    r.option(r.u64)  # treasury snapshot
    r.u64()  # current eligible holders
    current_median = r.u64()

    auction = AuctionState(
        phase_one_start=phase_one_start,
        phase_one_end=phase_one_end,
        phase_two_end=phase_two_end,
        price_range_start=price_range_start,
        price_range_end=price_range_end,
        tick_size=tick_size,
        fee=fee,
        current_median=current_median or None,
        number_tickets_sold=number_tickets_sold,
        token_mint=token_mint,
    )
    return FairLaunchAccount(auction, treasury, phase_three_started)


def decode_candy_machine(data: bytes) -> IssuanceState:
    r = Reader(data, DISCRIMINATOR_SIZE)
    r.pubkey()  # authority
    r.pubkey()  # wallet
    r.option(r.pubkey)  # token mint
    items_redeemed = r.u64()

    r.string()  # uuid
    r.u64()  # price
    r.string()  # symbol
    r.u16()  # seller fee basis points
    r.u64()  # max supply
    r.raw(2)  # is mutable, retain authority
    go_live_date = r.option(r.i64)
    if r.flag():  # end settings
        r.u8()
        r.u64()
    for _ in range(r.u32()):  # creators
        r.raw(32 + 1 + 1)
    if r.flag():  # hidden settings
        r.string()
        r.string()
        r.raw(32)
    if r.flag():  # whitelist mint settings
        r.u8()
        r.raw(32)
        r.flag()
        r.option(r.u64)
    items_available = r.u64()
    gatekeeper = None
    if r.flag():
        gatekeeper = Gatekeeper(gatekeeper_network=r.pubkey(), expire_on_use=r.flag())

    return IssuanceState(
        go_live_date=go_live_date,
        is_active=go_live_date is not None and items_redeemed < items_available,
        gatekeeper=gatekeeper,
        items_available=items_available,
        items_redeemed=items_redeemed,
    )


def parse_token_amount(account_data: bytes) -> Optional[Tuple[str, int]]:
    """
    SPL token account layout: Mint(0-32) | Owner(32-64) | Amount(64-72).
    Returns (mint, amount) or None for short data.
    """
    if len(account_data) < 72:
        return None
    mint = base58.b58encode(account_data[0:32]).decode("ascii")
    amount = struct.unpack("<Q", account_data[64:72])[0]
    return mint, amount


def sum_token_balance(b64_items: Iterable[str], mint: str) -> int:
    total = 0
    for b64_str in b64_items:
        parsed = parse_token_amount(base64.b64decode(b64_str))
        if parsed is None:
            continue
        account_mint, amount = parsed
        if account_mint == mint:
            total += int(amount)
    return total
