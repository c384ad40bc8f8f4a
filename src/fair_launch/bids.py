from __future__ import annotations

import logging
import random
from typing import Optional

from .errors import (
    AlreadyWithdrawn,
    ContractViolation,
    InsufficientFunds,
    InvalidBidAmount,
    NotAWinner,
    NotYetAllowed,
)
from .instructions import Instruction, adjust_ticket, punch_ticket, purchase_ticket
from .phase import BIDDING_PHASES, Phase, lottery_decided
from .project_constants import FAIR_LAUNCH_PROGRAM_ID
from .state import AuctionState, ParticipantView, Ticket, TicketState

log = logging.getLogger(__name__)


def validate_bid_amount(auction: AuctionState, amount: int) -> None:
    if not auction.price_range_start <= amount <= auction.price_range_end:
        raise InvalidBidAmount(
            f"Bid {amount} is outside the range "
            f"[{auction.price_range_start}, {auction.price_range_end}]."
        )
    if amount % auction.tick_size != 0:
        raise InvalidBidAmount(
            f"Bid {amount} is not a multiple of the tick size {auction.tick_size}."
        )


def suggest_bid(auction: AuctionState, phase: Phase, rng: Optional[random.Random] = None) -> int:
    """Starting point for the bid slider: a random tick while pricing, else the median."""
    if phase is Phase.SET_PRICE:
        rng = rng or random.Random()
        ticks = (auction.price_range_end - auction.price_range_start) // auction.tick_size
        return auction.price_range_start + rng.randint(0, ticks) * auction.tick_size
    if auction.current_median is not None:
        return auction.current_median
    return auction.price_range_start


def below_median(auction: Optional[AuctionState], ticket: Optional[Ticket]) -> bool:
    """Committed amount sits under the clearing median. Advisory only."""
    if auction is None or auction.current_median is None:
        return False
    if ticket is None or ticket.withdrawn or not ticket.amount:
        return False
    return auction.current_median > ticket.amount


class BidLedgerAdapter:
    """
    Validates one participant's bid, withdraw and punch requests against a
    snapshot and builds the matching instruction. Nothing is submitted here;
    every failure is raised before an instruction exists.
    """

    def __init__(
        self,
        view: ParticipantView,
        fair_launch_id: str,
        program_id: str = FAIR_LAUNCH_PROGRAM_ID,
    ) -> None:
        if view.auction is None:
            raise ContractViolation("No fair launch state loaded for this participant.")
        self.view = view
        self.auction: AuctionState = view.auction
        self.fair_launch_id = fair_launch_id
        self.program_id = program_id
        self.phase = view.phase

    @property
    def ticket(self) -> Optional[Ticket]:
        return self.view.ticket

    @property
    def winner(self) -> bool:
        return self.view.winner

    def place_or_update_bid(self, amount: int) -> Instruction:
        ticket = self.ticket
        if self.phase not in BIDDING_PHASES:
            raise NotYetAllowed(f"Bids are not accepted during {self.phase.name}.")
        if ticket is not None and ticket.withdrawn:
            raise AlreadyWithdrawn()
        if ticket is None and self.phase is Phase.GRACE_PERIOD:
            raise NotYetAllowed("New bids cannot be placed during the grace period.")

        validate_bid_amount(self.auction, amount)

        if ticket is None:
            required = amount + self.auction.fee
        else:
            # The fee was charged on purchase; an update moves only the difference.
            required = amount - ticket.amount
        if required > 0 and self.view.balance < required:
            raise InsufficientFunds(
                f"Bid needs {required} lamports, available {self.view.balance}."
            )

        if ticket is None:
            log.info("Building new bid of %d for %s", amount, self.view.participant)
            return purchase_ticket(
                self.program_id, self.fair_launch_id, self.view.participant, amount
            )
        log.info(
            "Building bid update %d -> %d for %s", ticket.amount, amount, self.view.participant
        )
        return adjust_ticket(self.program_id, self.fair_launch_id, self.view.participant, amount)

    def withdraw(self) -> Instruction:
        ticket = self.ticket
        if ticket is not None and ticket.withdrawn:
            raise AlreadyWithdrawn()
        if ticket is None:
            raise NotYetAllowed("There is no bid to withdraw.")
        if self.phase is Phase.LOTTERY:
            raise NotYetAllowed("The lottery is being drawn; withdrawals resume afterwards.")
        if self.phase is Phase.ANTICIPATION:
            raise NotYetAllowed("The auction has not started.")
        if lottery_decided(self.phase) and (
            ticket.state is TicketState.PUNCHED or self.winner or self.view.token_balance > 0
        ):
            raise NotYetAllowed("Winning tickets cannot be refunded.")

        log.info("Building withdrawal of %d for %s", ticket.amount, self.view.participant)
        return adjust_ticket(self.program_id, self.fair_launch_id, self.view.participant, 0)

    def punch(self) -> Instruction:
        ticket = self.ticket
        if ticket is None:
            raise ContractViolation("punch() called with no ticket loaded.")
        if ticket.state is not TicketState.UNPUNCHED:
            raise NotAWinner(f"Ticket is already {ticket.state.value}.")
        if not lottery_decided(self.phase):
            raise NotAWinner("The lottery has not been decided yet.")
        if not self.winner:
            raise NotAWinner()

        log.info("Building punch for ticket seq %s of %s", ticket.seq, self.view.participant)
        return punch_ticket(self.program_id, self.fair_launch_id, self.view.participant)
