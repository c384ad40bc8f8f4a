from __future__ import annotations

import dataclasses
import struct
from typing import Dict, List, Optional

import base58
import pytest

from fair_launch.errors import SignerDeclined
from fair_launch.instructions import Instruction
from fair_launch.interfaces import CONFIRMED, PollResult, SignedTransaction
from fair_launch.project_constants import FAIR_LAUNCH_LOTTERY_SIZE
from fair_launch.state import AuctionState, IssuanceState, ParticipantView, Ticket, TicketState


def address(n: int) -> str:
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


FAIR_LAUNCH = address(1)
CANDY_MACHINE = address(2)
ALICE = address(3)
BOB = address(4)
TOKEN_MINT = address(5)

# Timeline (unix seconds)
PHASE_ONE_START = 1_000
PHASE_ONE_END = 2_000
PHASE_TWO_END = 3_000
GO_LIVE = 4_000


def make_auction(**overrides) -> AuctionState:
    fields = dict(
        phase_one_start=PHASE_ONE_START,
        phase_one_end=PHASE_ONE_END,
        phase_two_end=PHASE_TWO_END,
        price_range_start=1_000_000,
        price_range_end=5_000_000,
        tick_size=500_000,
        fee=100_000,
        token_mint=TOKEN_MINT,
    )
    fields.update(overrides)
    return AuctionState(**fields)


def make_issuance(**overrides) -> IssuanceState:
    fields = dict(go_live_date=GO_LIVE, is_active=True, items_available=100)
    fields.update(overrides)
    return IssuanceState(**fields)


def make_blob(winners: List[int], size: int = 8) -> bytes:
    bits = bytearray(size)
    for seq in winners:
        bits[seq // 8] |= 1 << (7 - seq % 8)
    return bytes(FAIR_LAUNCH_LOTTERY_SIZE) + bytes(bits)


def make_view(**overrides) -> ParticipantView:
    fields = dict(
        participant=ALICE,
        auction=make_auction(),
        ticket=None,
        lottery_blob=None,
        issuance=make_issuance(),
        balance=10_000_000,
        token_balance=0,
        now=1_500,
    )
    fields.update(overrides)
    return ParticipantView(**fields)


class FakeClock:
    def __init__(self, now: float) -> None:
        self.t = now

    def now(self) -> float:
        return self.t


class FakeTimer:
    """Stands in for time.monotonic / asyncio.sleep so timeouts run instantly."""

    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


class FakeSigner:
    def __init__(self, decline: bool = False) -> None:
        self.decline = decline
        self.signed: List[Instruction] = []

    async def sign(self, instruction: Instruction) -> SignedTransaction:
        if self.decline:
            raise SignerDeclined()
        self.signed.append(instruction)
        return SignedTransaction(instruction, instruction.data)


class FakeLedger:
    """In-memory ledger: reader and submitter/poller in one."""

    def __init__(
        self,
        auction: Optional[AuctionState] = None,
        issuance: Optional[IssuanceState] = None,
        blob: Optional[bytes] = None,
        balance: int = 10_000_000,
    ) -> None:
        self.auction = auction
        self.issuance = issuance
        self.blob = blob
        self.balances: Dict[str, int] = {}
        self.default_balance = balance
        self.tickets: Dict[str, Ticket] = {}
        self.token_balances: Dict[str, int] = {}
        self.submitted: List[Instruction] = []
        self.polls: List[PollResult] = []
        self.poll_count = 0
        self.submit_error: Optional[Exception] = None
        self.reads = 0
        self._next_seq = 0

    # reader
    async def read_auction_state(self, program_id, participant):
        self.reads += 1
        return self.auction

    async def read_ticket(self, program_id, participant):
        return self.tickets.get(participant)

    async def read_lottery_blob(self, program_id):
        return self.blob

    async def read_issuance_state(self, program_id):
        return self.issuance

    async def read_balance(self, participant):
        return self.balances.get(participant, self.default_balance)

    async def read_token_balance(self, participant, mint):
        return self.token_balances.get(participant, 0)

    # submitter
    async def submit(self, signed: SignedTransaction) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        ix = signed.instruction
        self.submitted.append(ix)
        buyer = ix.accounts[1]
        if ix.name == "purchase_ticket":
            amount = struct.unpack("<Q", ix.data[8:16])[0]
            self.tickets[buyer] = Ticket(amount, TicketState.UNPUNCHED, self._next_seq)
            self._next_seq += 1
        elif ix.name == "adjust_ticket":
            amount = struct.unpack("<Q", ix.data[8:16])[0]
            ticket = self.tickets[buyer]
            if amount == 0:
                self.tickets[buyer] = dataclasses.replace(
                    ticket, amount=0, state=TicketState.WITHDRAWN
                )
            else:
                self.tickets[buyer] = dataclasses.replace(ticket, amount=amount)
        elif ix.name == "punch_ticket":
            self.tickets[buyer] = dataclasses.replace(
                self.tickets[buyer], state=TicketState.PUNCHED
            )
        return f"sig{len(self.submitted)}"

    async def poll(self, handle: str) -> PollResult:
        self.poll_count += 1
        if self.polls:
            return self.polls.pop(0)
        return CONFIRMED


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def signer():
    return FakeSigner()
