from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import Tuple

import base58


@dataclass(frozen=True)
class Instruction:
    """An unsigned program call, ready to hand to a signer."""

    program_id: str
    name: str
    accounts: Tuple[str, ...]
    data: bytes


def discriminator(name: str) -> bytes:
    """Anchor method selector: first 8 bytes of sha256("global:<name>")."""
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:8]


def check_address(address: str) -> str:
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise ValueError(f"Not a base58 address: {address!r}") from e
    if len(raw) != 32:
        raise ValueError(f"Address {address!r} decodes to {len(raw)} bytes, expected 32")
    return address


def _u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def purchase_ticket(program_id: str, fair_launch: str, buyer: str, amount: int) -> Instruction:
    return Instruction(
        program_id=check_address(program_id),
        name="purchase_ticket",
        accounts=(check_address(fair_launch), check_address(buyer)),
        data=discriminator("purchase_ticket") + _u64(amount),
    )


def adjust_ticket(program_id: str, fair_launch: str, buyer: str, amount: int) -> Instruction:
    # amount 0 is a full refund
    return Instruction(
        program_id=check_address(program_id),
        name="adjust_ticket",
        accounts=(check_address(fair_launch), check_address(buyer)),
        data=discriminator("adjust_ticket") + _u64(amount),
    )


def punch_ticket(program_id: str, fair_launch: str, buyer: str) -> Instruction:
    return Instruction(
        program_id=check_address(program_id),
        name="punch_ticket",
        accounts=(check_address(fair_launch), check_address(buyer)),
        data=discriminator("punch_ticket"),
    )


def mint_nft(program_id: str, candy_machine: str, payer: str) -> Instruction:
    return Instruction(
        program_id=check_address(program_id),
        name="mint_nft",
        accounts=(check_address(candy_machine), check_address(payer)),
        data=discriminator("mint_nft"),
    )
