from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from .project_constants import (
    ERR_CANDY_MACHINE_EMPTY,
    ERR_CANDY_MACHINE_NOT_LIVE,
    ERR_NOT_ENOUGH_SOL,
    ERR_SYSTEM_INSUFFICIENT_LAMPORTS,
)

log = logging.getLogger(__name__)


class ContractViolation(RuntimeError):
    """Caller broke a precondition of the API (e.g. punch without a ticket)."""


class TransportError(RuntimeError):
    """The node could not be reached or answered with a JSON-RPC error."""


class FairLaunchError(Exception):
    """Base for expected failures. `message` is safe to show to a user."""

    message = "Something went wrong."

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# Validation: detected locally, nothing was submitted.


class ValidationError(FairLaunchError):
    pass


class InvalidBidAmount(ValidationError):
    message = "Bid amount is outside the price range or not a multiple of the tick size."


class InsufficientFunds(ValidationError):
    message = "You do not have enough SOL in your account to place this bid."


class NotAWinner(ValidationError):
    message = "This ticket was not drawn in the lottery."


class AlreadyWithdrawn(ValidationError):
    message = "Your bid was withdrawn and cannot be adjusted or re-inserted."


class NotYetAllowed(ValidationError):
    message = "This action is not allowed in the current phase."


class NotEligibleToMint(ValidationError):
    message = "Only lottery winners or fair launch token holders may mint."


class ChallengeRequired(ValidationError):
    message = "Complete the gateway challenge before minting."


class OperationInFlight(ValidationError):
    message = "Another transaction is still in progress. Please wait."


class RefreshRequired(ValidationError):
    message = "Ledger state has changed. Refresh before trying again."


# Signer


class SignerDeclined(FairLaunchError):
    message = "The wallet declined to sign the transaction."


# Submission / ledger


class LedgerRejected(FairLaunchError):
    """A transaction failed on-chain (or in preflight) with a numeric code."""

    message = "Transaction failed! Please try again!"

    def __init__(self, code: Optional[int] = None, message: Optional[str] = None) -> None:
        self.code = code
        super().__init__(message)


class SoldOut(LedgerRejected):
    message = "SOLD OUT!"


class MintNotLive(LedgerRejected):
    message = "Minting period hasn't started yet."


class InsufficientOnChainFunds(LedgerRejected):
    message = "Insufficient funds to mint. Please fund your wallet."


class UnknownLedgerError(LedgerRejected):
    def __init__(self, code: Optional[int] = None, message: Optional[str] = None) -> None:
        super().__init__(code, message or f"Transaction failed (error code {code}).")


class TimedOut(FairLaunchError):
    message = "Transaction Timeout! Check your wallet before trying again."


class NetworkError(FairLaunchError):
    message = "Could not reach the network. Check your wallet before trying again."


LEDGER_CODES: Dict[int, Type[LedgerRejected]] = {
    ERR_CANDY_MACHINE_EMPTY: SoldOut,
    ERR_CANDY_MACHINE_NOT_LIVE: MintNotLive,
    ERR_NOT_ENOUGH_SOL: InsufficientOnChainFunds,
    ERR_SYSTEM_INSUFFICIENT_LAMPORTS: InsufficientOnChainFunds,
}


def classify_ledger_code(code: Optional[int]) -> LedgerRejected:
    cls = LEDGER_CODES.get(code) if code is not None else None
    if cls is None:
        log.warning("Unmapped ledger error code: %r", code)
        return UnknownLedgerError(code)
    log.info("Ledger code %s classified as %s", code, cls.__name__)
    return cls(code)


def needs_refresh(error: FairLaunchError) -> bool:
    """After these, the outcome or the issuance state is unknown until re-read."""
    return isinstance(error, (SoldOut, TimedOut))
