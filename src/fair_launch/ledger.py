from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional

import base58

from .accounts import (
    LOTTERY_DISCRIMINATOR,
    LOTTERY_FAIR_LAUNCH_OFFSET,
    TICKET_BUYER_OFFSET,
    TICKET_DISCRIMINATOR,
    TICKET_FAIR_LAUNCH_OFFSET,
    TICKET_SIZE,
    decode_candy_machine,
    decode_fair_launch,
    decode_ticket,
    sum_token_balance,
)
from .project_constants import FAIR_LAUNCH_PROGRAM_ID
from .rpc import RpcClient
from .state import AuctionState, IssuanceState, Ticket

log = logging.getLogger(__name__)


def _memcmp(offset: int, raw: bytes) -> Dict[str, Any]:
    return {"memcmp": {"offset": offset, "bytes": base58.b58encode(raw).decode("ascii")}}


class RpcLedgerReader:
    """
    Reads fair launch, ticket, lottery and candy machine accounts over RPC.

    Tickets and the lottery bitmap are located with getProgramAccounts
    filters rather than derived addresses.
    """

    def __init__(self, rpc: RpcClient, program_id: str = FAIR_LAUNCH_PROGRAM_ID) -> None:
        self.rpc = rpc
        self.program_id = program_id
        self._lottery_started: Dict[str, bool] = {}

    async def read_auction_state(self, program_id: str, participant: str) -> Optional[AuctionState]:
        data = await self.rpc.get_account_data(program_id)
        if data is None:
            log.info("Fair launch %s not found", program_id)
            return None
        account = decode_fair_launch(data)
        treasury = await self.rpc.get_balance(account.treasury_address)
        self._lottery_started[program_id] = account.phase_three_started
        return dataclasses.replace(account.auction, treasury=treasury)

    async def read_ticket(self, program_id: str, participant: str) -> Optional[Ticket]:
        filters: List[Dict[str, Any]] = [
            _memcmp(0, TICKET_DISCRIMINATOR),
            _memcmp(TICKET_FAIR_LAUNCH_OFFSET, base58.b58decode(program_id)),
            _memcmp(TICKET_BUYER_OFFSET, base58.b58decode(participant)),
            {"dataSize": TICKET_SIZE},
        ]
        accounts = await self.rpc.get_program_accounts(self.program_id, filters)
        if not accounts:
            return None
        if len(accounts) > 1:
            raise RuntimeError(f"{len(accounts)} tickets found for {participant}")
        return decode_ticket(accounts[0])

    async def read_lottery_blob(self, program_id: str) -> Optional[bytes]:
        # The bitmap is written in stages; it is only meaningful once phase three starts.
        if program_id in self._lottery_started and not self._lottery_started[program_id]:
            return None
        filters = [
            _memcmp(0, LOTTERY_DISCRIMINATOR),
            _memcmp(LOTTERY_FAIR_LAUNCH_OFFSET, base58.b58decode(program_id)),
        ]
        accounts = await self.rpc.get_program_accounts(self.program_id, filters)
        return accounts[0] if accounts else None

    async def read_issuance_state(self, program_id: str) -> Optional[IssuanceState]:
        data = await self.rpc.get_account_data(program_id)
        if data is None:
            log.info("Candy machine %s not found", program_id)
            return None
        return decode_candy_machine(data)

    async def read_balance(self, participant: str) -> int:
        return await self.rpc.get_balance(participant)

    async def read_token_balance(self, participant: str, mint: str) -> int:
        items = await self.rpc.get_token_accounts_base64(participant, mint)
        return sum_token_balance(items, mint)
