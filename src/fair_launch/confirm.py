from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from .errors import (
    ContractViolation,
    FairLaunchError,
    LedgerRejected,
    TimedOut,
    classify_ledger_code,
)
from .instructions import Instruction
from .interfaces import PollState, Signer, Submitter
from .project_constants import DEFAULT_POLL_INTERVAL, DEFAULT_TX_TIMEOUT

log = logging.getLogger(__name__)


class MintOutcome(Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Confirmation:
    handle: str
    outcome: MintOutcome
    error: Optional[FairLaunchError] = None
    polls: int = 0


def classify_rejection(error: LedgerRejected) -> LedgerRejected:
    """Narrow a bare LedgerRejected from the submitter to its taxonomy class."""
    if type(error) is LedgerRejected:
        return classify_ledger_code(error.code)
    return error


async def submit(signer: Signer, submitter: Submitter, instruction: Instruction) -> str:
    """
    Sign and submit one instruction, returning the transaction handle.

    Raises SignerDeclined when signing is refused and a classified
    LedgerRejected when the submitter rejects the transaction outright.
    Once this returns, the transaction is outstanding and cannot be recalled.
    """
    signed = await signer.sign(instruction)
    try:
        handle = await submitter.submit(signed)
    except LedgerRejected as e:
        raise classify_rejection(e) from e
    log.info("Submitted %s: %s", instruction.name, handle)
    return handle


async def await_confirmation(
    submitter: Submitter,
    handle: str,
    timeout: float = DEFAULT_TX_TIMEOUT,
    interval: float = DEFAULT_POLL_INTERVAL,
    monotonic: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Confirmation:
    """
    Poll `handle` until it confirms, fails on-chain, or `timeout` elapses.

    Transport errors while polling count as "no answer yet". A timeout does
    not mean the transaction failed; it may still land.
    """
    deadline = monotonic() + timeout
    polls = 0
    while True:
        try:
            result = await submitter.poll(handle)
        except ContractViolation:
            raise
        except (RuntimeError, httpx.HTTPError) as e:
            log.warning("Polling %s failed, will retry: %s", handle, e)
            result = None
        polls += 1

        if result is not None and result.state is PollState.CONFIRMED:
            log.info("Transaction %s confirmed after %d polls", handle, polls)
            return Confirmation(handle, MintOutcome.CONFIRMED, polls=polls)

        if result is not None and result.state is PollState.REJECTED:
            error = classify_ledger_code(result.code)
            log.info("Transaction %s rejected: %s", handle, error.message)
            return Confirmation(handle, MintOutcome.REJECTED, error=error, polls=polls)

        remaining = deadline - monotonic()
        if remaining <= 0:
            log.warning("Transaction %s unresolved after %.1fs", handle, timeout)
            return Confirmation(handle, MintOutcome.TIMED_OUT, error=TimedOut(), polls=polls)
        await sleep(min(interval, remaining))
