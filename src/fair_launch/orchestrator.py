from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set

import httpx

from .bids import BidLedgerAdapter
from .confirm import MintOutcome, await_confirmation, submit
from .errors import (
    ChallengeRequired,
    ContractViolation,
    FairLaunchError,
    NetworkError,
    NotEligibleToMint,
    NotYetAllowed,
    OperationInFlight,
    RefreshRequired,
    needs_refresh,
)
from .instructions import Instruction, mint_nft
from .interfaces import Clock, LedgerReader, Signer, Submitter, SystemClock
from .phase import Phase
from .project_constants import (
    CANDY_MACHINE_PROGRAM_ID,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TX_TIMEOUT,
    FAIR_LAUNCH_PROGRAM_ID,
)
from .state import ParticipantView, TicketState

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    action: str
    ok: bool
    handle: Optional[str] = None
    error: Optional[FairLaunchError] = None
    outcome: Optional[MintOutcome] = None

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        return SUCCESS_MESSAGES.get(self.action, "Done.")


SUCCESS_MESSAGES = {
    "bid": "Congratulations! Bid placed!",
    "withdraw": "Congratulations! Funds withdrawn. This is an irreversible action.",
    "punch": "Congratulations! Ticket punched!",
    "mint": "Congratulations! Mint succeeded!",
}


class Orchestrator:
    """
    Runs participant actions end to end: read, validate, sign, submit and,
    for mints, confirm.

    At most one state-changing call per participant is outstanding at a time.
    Every expected failure comes back as an OperationResult; only contract
    violations raise.
    """

    def __init__(
        self,
        reader: LedgerReader,
        signer: Signer,
        submitter: Submitter,
        fair_launch_id: Optional[str] = None,
        candy_machine_id: Optional[str] = None,
        clock: Optional[Clock] = None,
        tx_timeout: float = DEFAULT_TX_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        fair_launch_program_id: str = FAIR_LAUNCH_PROGRAM_ID,
        candy_machine_program_id: str = CANDY_MACHINE_PROGRAM_ID,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.reader = reader
        self.signer = signer
        self.submitter = submitter
        self.fair_launch_id = fair_launch_id
        self.candy_machine_id = candy_machine_id
        self.clock = clock or SystemClock()
        self.tx_timeout = tx_timeout
        self.poll_interval = poll_interval
        self.fair_launch_program_id = fair_launch_program_id
        self.candy_machine_program_id = candy_machine_program_id
        self._monotonic = monotonic
        self._sleep = sleep

        self._views: Dict[str, ParticipantView] = {}
        self._in_flight: Set[str] = set()
        self._stale: Set[str] = set()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def refresh(self, participant: str) -> ParticipantView:
        """Re-read every collaborator for `participant` and cache the result."""
        auction = ticket = blob = issuance = None
        token_balance = 0

        if self.fair_launch_id:
            auction = await self.reader.read_auction_state(self.fair_launch_id, participant)
            ticket = await self.reader.read_ticket(self.fair_launch_id, participant)
            blob = await self.reader.read_lottery_blob(self.fair_launch_id)
            if auction is not None and auction.token_mint:
                token_balance = await self.reader.read_token_balance(
                    participant, auction.token_mint
                )
        if self.candy_machine_id:
            issuance = await self.reader.read_issuance_state(self.candy_machine_id)
        balance = await self.reader.read_balance(participant)

        view = ParticipantView(
            participant=participant,
            auction=auction,
            ticket=ticket,
            lottery_blob=blob,
            issuance=issuance,
            balance=balance,
            token_balance=token_balance,
            now=self.clock.now(),
        )
        self._views[participant] = view
        self._stale.discard(participant)
        log.debug("Refreshed %s: phase %s", participant, view.phase.name)
        return view

    async def current(self, participant: str) -> ParticipantView:
        view = self._views.get(participant)
        if view is None:
            return await self.refresh(participant)
        return dataclasses.replace(view, now=self.clock.now())

    def needs_refresh(self, participant: str) -> bool:
        return participant in self._stale

    def busy(self, participant: str) -> bool:
        return participant in self._in_flight

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def place_bid(self, participant: str, amount: int) -> OperationResult:
        async def body() -> OperationResult:
            adapter = await self._adapter(participant)
            instruction = adapter.place_or_update_bid(amount)
            return await self._send("bid", participant, instruction)

        return await self._run("bid", participant, body)

    async def withdraw(self, participant: str) -> OperationResult:
        async def body() -> OperationResult:
            adapter = await self._adapter(participant)
            instruction = adapter.withdraw()
            return await self._send("withdraw", participant, instruction)

        return await self._run("withdraw", participant, body)

    async def punch(self, participant: str) -> OperationResult:
        async def body() -> OperationResult:
            adapter = await self._adapter(participant)
            instruction = adapter.punch()
            return await self._send("punch", participant, instruction)

        return await self._run("punch", participant, body)

    async def mint(self, participant: str, challenge_satisfied: bool = False) -> OperationResult:
        """
        Mint one item. A winning, unpunched ticket is punched first; the mint
        is only built once the punch has been accepted by the submitter.
        """

        async def body() -> OperationResult:
            if participant in self._stale:
                raise RefreshRequired()
            if not self.candy_machine_id:
                raise NotYetAllowed("No candy machine is configured.")

            view = await self.current(participant)
            if view.phase is not Phase.MINT_LIVE:
                raise NotYetAllowed("Minting period hasn't started yet.")
            if view.issuance is not None and view.issuance.gatekeeper and not challenge_satisfied:
                raise ChallengeRequired()

            if view.auction is not None:
                adapter = self._adapter_for(view)
                winner = adapter.winner
                if not winner and view.token_balance <= 0:
                    raise NotEligibleToMint()
                ticket = view.ticket
                if winner and ticket is not None and ticket.state is TicketState.UNPUNCHED:
                    await submit(self.signer, self.submitter, adapter.punch())
                    self._views.pop(participant, None)

            instruction = mint_nft(self.candy_machine_program_id, self.candy_machine_id, participant)
            try:
                handle = await submit(self.signer, self.submitter, instruction)
                self._views.pop(participant, None)
                confirmation = await await_confirmation(
                    self.submitter,
                    handle,
                    timeout=self.tx_timeout,
                    interval=self.poll_interval,
                    monotonic=self._monotonic,
                    sleep=self._sleep,
                )
            except (asyncio.CancelledError, RuntimeError, httpx.HTTPError):
                # The mint may be outstanding; its outcome is unknown until re-read.
                self._stale.add(participant)
                raise

            if confirmation.outcome is MintOutcome.CONFIRMED:
                return OperationResult("mint", True, handle=handle, outcome=confirmation.outcome)
            if confirmation.error is not None and needs_refresh(confirmation.error):
                self._stale.add(participant)
            return OperationResult(
                "mint",
                False,
                handle=handle,
                error=confirmation.error,
                outcome=confirmation.outcome,
            )

        return await self._run("mint", participant, body)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _guard(self, participant: str) -> AsyncIterator[None]:
        if participant in self._in_flight:
            raise OperationInFlight()
        self._in_flight.add(participant)
        try:
            yield
        finally:
            self._in_flight.discard(participant)

    async def _run(
        self,
        action: str,
        participant: str,
        body: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        try:
            async with self._guard(participant):
                return await body()
        except FairLaunchError as e:
            log.info("%s for %s failed: %s", action, participant, e.message)
            if needs_refresh(e):
                self._stale.add(participant)
            return OperationResult(action, False, error=e)
        except ContractViolation:
            raise
        except (RuntimeError, httpx.HTTPError) as e:
            log.warning("%s for %s hit a transport failure: %s", action, participant, e)
            self._views.pop(participant, None)
            return OperationResult(action, False, error=NetworkError())

    async def _adapter(self, participant: str) -> BidLedgerAdapter:
        return self._adapter_for(await self.current(participant))

    def _adapter_for(self, view: ParticipantView) -> BidLedgerAdapter:
        if not self.fair_launch_id:
            raise NotYetAllowed("No fair launch is configured.")
        if view.auction is None:
            raise NotYetAllowed("Fair launch state is not available yet.")
        return BidLedgerAdapter(view, self.fair_launch_id, self.fair_launch_program_id)

    async def _send(
        self, action: str, participant: str, instruction: Instruction
    ) -> OperationResult:
        handle = await submit(self.signer, self.submitter, instruction)
        # Ticket state changed (or will); next action re-reads the ledger.
        self._views.pop(participant, None)
        return OperationResult(action, True, handle=handle)
