from __future__ import annotations

import logging
from typing import Optional

from .project_constants import FAIR_LAUNCH_LOTTERY_SIZE

log = logging.getLogger(__name__)


class LotteryOutOfRange(Exception):
    """The sequence number does not address a bit inside the blob."""


def winner_bit(blob: bytes, seq: Optional[int], header_size: int = FAIR_LAUNCH_LOTTERY_SIZE) -> int:
    """
    Return the bit for `seq` in the packed bitset that follows the header.

    Bits are counted from the most significant bit of each byte, so seq 0 is
    the top bit of the first bitset byte.
    """
    if seq is None or seq < 0:
        raise LotteryOutOfRange(f"Invalid sequence number: {seq!r}")
    index = header_size + seq // 8
    if index >= len(blob):
        raise LotteryOutOfRange(
            f"Sequence {seq} maps to byte {index}, blob has {len(blob)} bytes"
        )
    position_from_right = 7 - (seq % 8)
    return (blob[index] >> position_from_right) & 1


def is_winner(
    blob: Optional[bytes], seq: Optional[int], header_size: int = FAIR_LAUNCH_LOTTERY_SIZE
) -> bool:
    """True iff the bitmask marks `seq` as drawn. Out-of-range input is a loss.

    Callers must gate on the phase first; an unpublished blob yields
    meaningless bits.
    """
    if not blob:
        return False
    try:
        return winner_bit(blob, seq, header_size) == 1
    except LotteryOutOfRange as e:
        log.debug("Not a winner: %s", e)
        return False
