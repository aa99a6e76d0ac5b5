"""Canonical state digest implementation (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

from .config import ADDRESS_LEN, ASSET_ID_LEN

_STATE_CODES = {
    "FUNDED": 0,
    "RELEASED": 1,
    "CANCELLED": 2,
    "DISPUTED": 3,
    "RESOLVED": 4,
}


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _key(value: str | None, length: int, what: str) -> bytes:
    raw = _hex_to_bytes(value)
    if len(raw) != length:
        raise ValueError(f"{what} must be {length} bytes, got {len(raw)}")
    return raw


def _u8(value: int) -> bytes:
    return int(value).to_bytes(1, "big", signed=False)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _u128_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u128 must be non-negative")
    return int(value).to_bytes(16, "big", signed=False)


def compute_state_digest(post_state: dict[str, Any]) -> str:
    """Compute state digest v1 from post_state.

    Covers the ledger timestamp, the id counter, every escrow's consensus
    fields and every non-zero balance, encoded in canonical order and hashed
    with BLAKE3-256. Bookkeeping timestamps and the event log are excluded so
    implementations that do not track them still agree.
    """
    state = post_state if isinstance(post_state, dict) else {}
    ledger = state.get("ledger", {})
    buf = bytearray()
    buf += _u64_be(int(ledger.get("timestamp", 0)))
    buf += _u64_be(int(state.get("next_escrow_id", 0)))

    escrows = sorted(state.get("escrows", []), key=lambda e: int(e["id"]))
    buf += _u64_be(len(escrows))
    for e in escrows:
        buf += _u64_be(int(e["id"]))
        for field in ("client", "freelancer", "arbiter"):
            buf += _key(e.get(field), ADDRESS_LEN, field)
        buf += _key(e.get("asset"), ASSET_ID_LEN, "asset")
        buf += _u128_be(int(e.get("amount", 0)))
        buf += _u8(_STATE_CODES[e.get("state", "FUNDED")])
        buf += _u8(1 if e.get("approved_by_client") else 0)
        buf += _u8(1 if e.get("approved_by_freelancer") else 0)
        buf += _u64_be(int(e.get("deadline", 0)))

    balances = []
    for b in ledger.get("balances", []):
        amount = int(b.get("amount", 0))
        if amount == 0:
            continue
        asset = _key(b.get("asset"), ASSET_ID_LEN, "asset")
        address = _key(b.get("address"), ADDRESS_LEN, "address")
        balances.append((asset, address, amount))
    balances.sort()

    buf += _u64_be(len(balances))
    for asset, address, amount in balances:
        buf += asset
        buf += address
        buf += _u128_be(amount)

    return blake3(buf).hexdigest()
