from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from .instructions import Instruction
from .state import AuctionState, IssuanceState, Ticket


class PollState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PollResult:
    state: PollState
    code: Optional[int] = None


PENDING = PollResult(PollState.PENDING)
CONFIRMED = PollResult(PollState.CONFIRMED)


@dataclass(frozen=True)
class SignedTransaction:
    instruction: Instruction
    payload: bytes


class LedgerReader(Protocol):
    async def read_auction_state(self, program_id: str, participant: str) -> Optional[AuctionState]:
        ...

    async def read_ticket(self, program_id: str, participant: str) -> Optional[Ticket]:
        ...

    async def read_lottery_blob(self, program_id: str) -> Optional[bytes]:
        ...

    async def read_issuance_state(self, program_id: str) -> Optional[IssuanceState]:
        ...

    async def read_balance(self, participant: str) -> int:
        ...

    async def read_token_balance(self, participant: str, mint: str) -> int:
        ...


class Signer(Protocol):
    async def sign(self, instruction: Instruction) -> SignedTransaction:
        """Raise SignerDeclined when the holder refuses or is unavailable."""
        ...


class Submitter(Protocol):
    async def submit(self, signed: SignedTransaction) -> str:
        ...

    async def poll(self, handle: str) -> PollResult:
        ...


class Clock(Protocol):
    def now(self) -> float:
        ...


class SystemClock:
    def now(self) -> float:
        return time.time()
