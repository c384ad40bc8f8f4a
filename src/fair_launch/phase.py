from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .state import AuctionState, IssuanceState


class Phase(IntEnum):
    """Discrete phases, ordered as they occur in time."""

    ANTICIPATION = 0
    SET_PRICE = 1
    GRACE_PERIOD = 2
    LOTTERY = 3
    RAFFLE_FINISHED = 4
    MINT_LIVE = 5


BIDDING_PHASES = frozenset({Phase.SET_PRICE, Phase.GRACE_PERIOD})


def mint_live(issuance: Optional[IssuanceState], now: float) -> bool:
    if issuance is None or not issuance.is_active:
        return False
    if issuance.go_live_date is None:
        return False
    return now >= issuance.go_live_date


def get_phase(
    auction: Optional[AuctionState],
    issuance: Optional[IssuanceState],
    now: Optional[float],
    lottery_blob: Optional[bytes] = None,
) -> Phase:
    """
    Map the known snapshots onto a single phase. Never raises.

    Rules are checked in order and the first match wins. Missing inputs count
    as "not yet known" and resolve to the earliest phase they allow:
      - no auction and no issuance            -> ANTICIPATION
      - before the pricing window opens       -> ANTICIPATION
      - pricing window open                   -> SET_PRICE
      - before the lottery opens              -> GRACE_PERIOD
      - bitmask not yet published             -> LOTTERY
      - issuance active and past go-live      -> MINT_LIVE
      - otherwise                             -> RAFFLE_FINISHED

    The pricing window closes at phase_one_end when the snapshot carries it;
    otherwise it stays open until a median has been computed.
    """
    if now is None:
        return Phase.ANTICIPATION

    if auction is None:
        # Plain candy machine, no fair launch in front of it.
        return Phase.MINT_LIVE if mint_live(issuance, now) else Phase.ANTICIPATION

    if now < auction.phase_one_start:
        return Phase.ANTICIPATION

    lottery_open = auction.lottery_open
    if auction.phase_one_end is None:
        pricing = now < lottery_open and auction.current_median is None
    else:
        pricing = now < min(auction.phase_one_end, lottery_open)
    if pricing:
        return Phase.SET_PRICE

    if now < lottery_open:
        return Phase.GRACE_PERIOD

    if not lottery_blob:
        return Phase.LOTTERY

    if mint_live(issuance, now):
        return Phase.MINT_LIVE
    return Phase.RAFFLE_FINISHED


def lottery_decided(phase: Phase) -> bool:
    return phase >= Phase.RAFFLE_FINISHED


def issuance_predates_auction(
    auction: Optional[AuctionState], issuance: Optional[IssuanceState]
) -> bool:
    """True when the mint is scheduled to go live before bidding has closed."""
    if auction is None or issuance is None or issuance.go_live_date is None:
        return False
    return issuance.go_live_date < auction.phase_two_end
