from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .project_constants import DEFAULT_COMMITMENT, DEFAULT_POLL_INTERVAL, DEFAULT_TX_TIMEOUT


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number of seconds, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    fair_launch_id: Optional[str] = None
    candy_machine_id: Optional[str] = None
    tx_timeout: float = DEFAULT_TX_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    commitment: str = DEFAULT_COMMITMENT

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        fair_launch_override: str | None = None,
        candy_machine_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        # If user provides --rpc-url, trust it.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip()
        if not rpc_url:
            helius_key = os.getenv("HELIUS_API_KEY", "").strip()
            if not helius_key:
                raise RuntimeError(
                    "Missing RPC_URL (or HELIUS_API_KEY). Put it in .env or export it."
                )
            rpc_url = f"https://mainnet.helius-rpc.com/?api-key={helius_key}"

        return Settings(
            rpc_url=rpc_url,
            fair_launch_id=fair_launch_override or os.getenv("FAIR_LAUNCH_ID", "").strip() or None,
            candy_machine_id=candy_machine_override
            or os.getenv("CANDY_MACHINE_ID", "").strip()
            or None,
            tx_timeout=_float_env("TX_TIMEOUT", DEFAULT_TX_TIMEOUT),
            poll_interval=_float_env("POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            commitment=os.getenv("COMMITMENT", "").strip() or DEFAULT_COMMITMENT,
        )
