import random
import struct

import pytest

from fair_launch.bids import BidLedgerAdapter, below_median, suggest_bid, validate_bid_amount
from fair_launch.errors import (
    AlreadyWithdrawn,
    ContractViolation,
    InsufficientFunds,
    InvalidBidAmount,
    NotAWinner,
    NotYetAllowed,
)
from fair_launch.instructions import discriminator
from fair_launch.phase import Phase
from fair_launch.state import Ticket, TicketState

from conftest import (
    ALICE,
    FAIR_LAUNCH,
    GO_LIVE,
    PHASE_ONE_END,
    PHASE_TWO_END,
    make_auction,
    make_blob,
    make_view,
)

GRACE = PHASE_ONE_END + 10
LOTTERY = PHASE_TWO_END + 10


def adapter(**overrides) -> BidLedgerAdapter:
    return BidLedgerAdapter(make_view(**overrides), FAIR_LAUNCH)


def amount_of(ix) -> int:
    return struct.unpack("<Q", ix.data[8:16])[0]


def test_bid_on_tick_is_accepted():
    ix = adapter().place_or_update_bid(2_000_000)
    assert ix.name == "purchase_ticket"
    assert ix.data[:8] == discriminator("purchase_ticket")
    assert amount_of(ix) == 2_000_000
    assert ix.accounts == (FAIR_LAUNCH, ALICE)


@pytest.mark.parametrize("amount", [2_300_000, 999_999, 500_000, 5_500_000, 0])
def test_bid_off_tick_or_out_of_range(amount):
    with pytest.raises(InvalidBidAmount):
        adapter().place_or_update_bid(amount)


def test_range_edges_are_inclusive():
    auction = make_auction()
    validate_bid_amount(auction, auction.price_range_start)
    validate_bid_amount(auction, auction.price_range_end)


def test_fee_counts_towards_required_balance():
    with pytest.raises(InsufficientFunds):
        adapter(balance=2_000_000).place_or_update_bid(2_000_000)
    adapter(balance=2_100_000).place_or_update_bid(2_000_000)


def test_update_needs_only_the_increase():
    ticket = Ticket(1_500_000, TicketState.UNPUNCHED, 0)
    ix = adapter(ticket=ticket, balance=500_000).place_or_update_bid(2_000_000)
    assert ix.name == "adjust_ticket"
    with pytest.raises(InsufficientFunds):
        adapter(ticket=ticket, balance=499_999).place_or_update_bid(2_000_000)


def test_lowering_a_bid_needs_no_balance():
    ticket = Ticket(3_000_000, TicketState.UNPUNCHED, 0)
    ix = adapter(ticket=ticket, balance=0).place_or_update_bid(1_000_000)
    assert amount_of(ix) == 1_000_000


def test_same_amount_with_empty_balance():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 0)
    ix = adapter(ticket=ticket, balance=0).place_or_update_bid(2_000_000)
    assert ix.name == "adjust_ticket"
    assert amount_of(ix) == 2_000_000


def test_same_amount_rebuilds_same_instruction():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 0)
    a = adapter(ticket=ticket)
    assert a.place_or_update_bid(2_000_000) == a.place_or_update_bid(2_000_000)


@pytest.mark.parametrize("now", [500, LOTTERY])
def test_bids_closed_outside_bidding_phases(now):
    with pytest.raises(NotYetAllowed):
        adapter(now=now).place_or_update_bid(2_000_000)


def test_grace_period_only_adjusts_existing_tickets():
    with pytest.raises(NotYetAllowed):
        adapter(now=GRACE).place_or_update_bid(2_000_000)
    ticket = Ticket(1_000_000, TicketState.UNPUNCHED, 0)
    ix = adapter(now=GRACE, ticket=ticket).place_or_update_bid(2_000_000)
    assert ix.name == "adjust_ticket"


def test_withdrawn_ticket_cannot_bid_again():
    ticket = Ticket(0, TicketState.WITHDRAWN, 0)
    with pytest.raises(AlreadyWithdrawn):
        adapter(ticket=ticket).place_or_update_bid(2_000_000)


def test_unset_median_does_not_filter_bids():
    ix = adapter(auction=make_auction(current_median=None)).place_or_update_bid(1_000_000)
    assert amount_of(ix) == 1_000_000


def test_withdraw_is_zero_adjust():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 0)
    ix = adapter(ticket=ticket).withdraw()
    assert ix.name == "adjust_ticket"
    assert amount_of(ix) == 0


def test_withdraw_twice():
    ticket = Ticket(0, TicketState.WITHDRAWN, 0)
    with pytest.raises(AlreadyWithdrawn):
        adapter(ticket=ticket).withdraw()


def test_withdraw_without_ticket():
    with pytest.raises(NotYetAllowed):
        adapter().withdraw()


def test_withdraw_blocked_while_drawing():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 0)
    with pytest.raises(NotYetAllowed):
        adapter(ticket=ticket, now=LOTTERY).withdraw()


def test_winner_cannot_withdraw():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 3)
    with pytest.raises(NotYetAllowed):
        adapter(ticket=ticket, now=LOTTERY, lottery_blob=make_blob([3])).withdraw()


def test_token_holder_cannot_withdraw():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 3)
    a = adapter(ticket=ticket, now=LOTTERY, lottery_blob=make_blob([]), token_balance=1)
    with pytest.raises(NotYetAllowed):
        a.withdraw()


def test_loser_withdraws_after_draw():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 3)
    a = adapter(ticket=ticket, now=LOTTERY, lottery_blob=make_blob([2]))
    assert a.phase is Phase.RAFFLE_FINISHED
    assert amount_of(a.withdraw()) == 0


def test_punch_winner():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 3)
    a = adapter(ticket=ticket, now=LOTTERY, lottery_blob=make_blob([3]))
    assert a.winner
    ix = a.punch()
    assert ix.name == "punch_ticket"
    assert ix.data == discriminator("punch_ticket")


def test_punch_after_mint_goes_live():
    ticket = Ticket(2_000_000, TicketState.UNPUNCHED, 3)
    a = adapter(ticket=ticket, now=GO_LIVE, lottery_blob=make_blob([3]))
    assert a.phase is Phase.MINT_LIVE
    assert a.punch().name == "punch_ticket"


@pytest.mark.parametrize(
    "ticket, now, blob",
    [
        (Ticket(2_000_000, TicketState.UNPUNCHED, 3), LOTTERY, make_blob([4])),
        (Ticket(2_000_000, TicketState.UNPUNCHED, 3), LOTTERY, None),
        (Ticket(2_000_000, TicketState.UNPUNCHED, 3), GRACE, make_blob([3])),
        (Ticket(2_000_000, TicketState.PUNCHED, 3), LOTTERY, make_blob([3])),
        (Ticket(0, TicketState.WITHDRAWN, 3), LOTTERY, make_blob([3])),
        (Ticket(2_000_000, TicketState.UNPUNCHED, None), LOTTERY, make_blob([0])),
    ],
)
def test_punch_rejected(ticket, now, blob):
    with pytest.raises(NotAWinner):
        adapter(ticket=ticket, now=now, lottery_blob=blob).punch()


def test_punch_without_ticket_is_a_contract_violation():
    with pytest.raises(ContractViolation):
        adapter(now=LOTTERY, lottery_blob=make_blob([0])).punch()


def test_adapter_needs_auction():
    with pytest.raises(ContractViolation):
        adapter(auction=None)


def test_suggest_bid_lands_on_a_tick():
    auction = make_auction()
    rng = random.Random(7)
    for _ in range(20):
        bid = suggest_bid(auction, Phase.SET_PRICE, rng)
        validate_bid_amount(auction, bid)


def test_suggest_bid_uses_median_after_pricing():
    assert suggest_bid(make_auction(current_median=3_000_000), Phase.GRACE_PERIOD) == 3_000_000
    assert suggest_bid(make_auction(), Phase.GRACE_PERIOD) == 1_000_000


def test_below_median():
    auction = make_auction(current_median=3_000_000)
    assert below_median(auction, Ticket(2_000_000, TicketState.UNPUNCHED, 0))
    assert not below_median(auction, Ticket(3_000_000, TicketState.UNPUNCHED, 0))
    assert not below_median(auction, Ticket(0, TicketState.WITHDRAWN, 0))
    assert not below_median(make_auction(), Ticket(1_000_000, TicketState.UNPUNCHED, 0))
    assert not below_median(auction, None)
