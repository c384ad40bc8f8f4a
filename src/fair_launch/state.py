from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .lottery import is_winner
from .phase import Phase, get_phase, lottery_decided


class TicketState(Enum):
    UNPUNCHED = "unpunched"
    PUNCHED = "punched"
    WITHDRAWN = "withdrawn"


@dataclass(frozen=True)
class AuctionState:
    """Snapshot of the fair launch account. Timestamps are unix seconds."""

    phase_one_start: int
    phase_two_end: int
    price_range_start: int
    price_range_end: int
    tick_size: int
    fee: int
    phase_one_end: Optional[int] = None
    phase_three_start: Optional[int] = None  # lottery open; defaults to phase_two_end
    current_median: Optional[int] = None
    number_tickets_sold: int = 0
    treasury: int = 0
    token_mint: Optional[str] = None

    def __post_init__(self) -> None:
        if self.price_range_start > self.price_range_end:
            raise ValueError(
                f"price range start {self.price_range_start} exceeds end {self.price_range_end}"
            )
        if self.tick_size <= 0:
            raise ValueError(f"tick size must be positive, got {self.tick_size}")

    @property
    def lottery_open(self) -> int:
        if self.phase_three_start is None:
            return self.phase_two_end
        return max(self.phase_two_end, self.phase_three_start)


@dataclass(frozen=True)
class Ticket:
    amount: int
    state: TicketState
    seq: Optional[int] = None

    @property
    def withdrawn(self) -> bool:
        return self.state is TicketState.WITHDRAWN


@dataclass(frozen=True)
class Gatekeeper:
    gatekeeper_network: str
    expire_on_use: bool = False


@dataclass(frozen=True)
class IssuanceState:
    go_live_date: Optional[int]
    is_active: bool
    gatekeeper: Optional[Gatekeeper] = None
    items_available: int = 0
    items_redeemed: int = 0

    @property
    def sold_out(self) -> bool:
        return self.items_available > 0 and self.items_redeemed >= self.items_available


@dataclass(frozen=True)
class ParticipantView:
    """Everything one participant needs to decide on an action."""

    participant: str
    auction: Optional[AuctionState]
    ticket: Optional[Ticket]
    lottery_blob: Optional[bytes]
    issuance: Optional[IssuanceState]
    balance: int
    token_balance: int
    now: float

    @property
    def phase(self) -> Phase:
        return get_phase(self.auction, self.issuance, self.now, self.lottery_blob)

    @property
    def winner(self) -> bool:
        """True once the draw is published and this ticket's bit is set."""
        if self.ticket is None or not lottery_decided(self.phase):
            return False
        return is_winner(self.lottery_blob, self.ticket.seq)
