from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import LedgerRejected, TransportError
from .interfaces import CONFIRMED, PENDING, PollResult, PollState, SignedTransaction
from .project_constants import DEFAULT_COMMITMENT

log = logging.getLogger(__name__)

_COMMITMENT_LEVELS = {"processed": 0, "confirmed": 1, "finalized": 2}


def error_code(err: Any) -> Optional[int]:
    """
    Pull the program error code out of a transaction error.
    {"InstructionError": [0, {"Custom": 311}]} -> 311
    """
    if not isinstance(err, dict):
        return None
    instruction_error = err.get("InstructionError")
    if not isinstance(instruction_error, list) or len(instruction_error) != 2:
        return None
    detail = instruction_error[1]
    if isinstance(detail, dict) and isinstance(detail.get("Custom"), int):
        return detail["Custom"]
    return None


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        commitment: str = DEFAULT_COMMITMENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"{payload['method']} failed: {e}") from e
        return resp.json()

    async def _call(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        data = await self._post(payload)
        if "error" in data:
            raise TransportError(f"RPC error: {data['error']}")
        return data

    async def get_balance(self, address: str) -> int:
        data = await self._call("getBalance", [address, {"commitment": self.commitment}])
        return int(data["result"]["value"])

    async def get_account_data(self, address: str) -> Optional[bytes]:
        """Raw account bytes, or None when the account does not exist."""
        data = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.commitment}],
        )
        value = data["result"]["value"]
        if value is None:
            return None
        # value['data'] is [base64_str, "base64"]
        return base64.b64decode(value["data"][0])

    async def get_program_accounts(
        self, program_id: str, filters: List[Dict[str, Any]]
    ) -> List[bytes]:
        data = await self._call(
            "getProgramAccounts",
            [
                program_id,
                {"encoding": "base64", "commitment": self.commitment, "filters": filters},
            ],
        )
        return [base64.b64decode(item["account"]["data"][0]) for item in data.get("result", [])]

    async def get_token_accounts_base64(self, owner: str, mint: str) -> List[str]:
        data = await self._call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "base64", "commitment": self.commitment}],
        )
        return [item["account"]["data"][0] for item in data["result"]["value"]]

    async def send_transaction(self, payload: bytes) -> str:
        """
        Submit a signed transaction. A failed preflight that names a program
        error is raised as LedgerRejected so callers can classify it.
        """
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendTransaction",
            "params": [
                base64.b64encode(payload).decode("ascii"),
                {"encoding": "base64", "preflightCommitment": self.commitment},
            ],
        }
        data = await self._post(body)
        if "error" in data:
            err = (data["error"].get("data") or {}).get("err")
            if err is not None:
                raise LedgerRejected(error_code(err))
            raise TransportError(f"RPC error: {data['error']}")
        return data["result"]

    async def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        data = await self._call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": True}],
        )
        statuses = data["result"]["value"]
        return statuses[0] if statuses else None


class RpcSubmitter:
    """Submitter/poller over JSON-RPC."""

    def __init__(self, rpc: RpcClient) -> None:
        self.rpc = rpc

    async def submit(self, signed: SignedTransaction) -> str:
        return await self.rpc.send_transaction(signed.payload)

    async def poll(self, handle: str) -> PollResult:
        status = await self.rpc.get_signature_status(handle)
        if status is None:
            return PENDING
        if status.get("err") is not None:
            return PollResult(PollState.REJECTED, error_code(status["err"]))
        level = _COMMITMENT_LEVELS.get(status.get("confirmationStatus") or "processed", 0)
        if level >= _COMMITMENT_LEVELS.get(self.rpc.commitment, 1):
            return CONFIRMED
        log.debug("%s at %s, waiting", handle, status.get("confirmationStatus"))
        return PENDING
