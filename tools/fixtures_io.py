"""Helpers to serialize/deserialize minimal fixtures for SafeHands specs."""

from __future__ import annotations

from typing import Any

from safehands_spec.contract import EscrowContract
from safehands_spec.ledger import Ledger
from safehands_spec.store import EscrowStore
from safehands_spec.types import (
    Action,
    ActionType,
    Escrow,
    EscrowEvent,
    EscrowState,
)

# Payload fields holding addresses or asset ids (hex on the wire)
_BYTES_FIELDS = frozenset({"freelancer", "arbiter", "asset", "winner"})


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def escrow_to_json(e: Escrow) -> dict[str, Any]:
    return {
        "id": e.id,
        "client": _bytes_to_hex(e.client),
        "freelancer": _bytes_to_hex(e.freelancer),
        "arbiter": _bytes_to_hex(e.arbiter),
        "asset": _bytes_to_hex(e.asset),
        "amount": e.amount,
        "state": e.state.name,
        "approved_by_client": e.approved_by_client,
        "approved_by_freelancer": e.approved_by_freelancer,
        "deadline": e.deadline,
        "created_at": e.created_at,
        "updated_at": e.updated_at,
    }


def escrow_from_json(data: dict[str, Any]) -> Escrow:
    return Escrow(
        id=data["id"],
        client=_hex_to_bytes(data["client"]),
        freelancer=_hex_to_bytes(data["freelancer"]),
        arbiter=_hex_to_bytes(data["arbiter"]),
        asset=_hex_to_bytes(data["asset"]),
        amount=data["amount"],
        state=EscrowState[data.get("state", "FUNDED")],
        approved_by_client=data.get("approved_by_client", False),
        approved_by_freelancer=data.get("approved_by_freelancer", False),
        deadline=data.get("deadline", 0),
        created_at=data.get("created_at", 0),
        updated_at=data.get("updated_at", 0),
    )


def event_to_json(ev: EscrowEvent) -> dict[str, Any]:
    return {
        "topic": ev.topic.value,
        "escrow_id": ev.escrow_id,
        "actor": _bytes_to_hex(ev.actor),
        "amount": ev.amount,
        "recipient": _bytes_to_hex(ev.recipient) if ev.recipient else None,
        "timestamp": ev.timestamp,
    }


def state_to_json(contract: EscrowContract) -> dict[str, Any]:
    ledger = contract.ledger
    balances = [
        {
            "asset": _bytes_to_hex(asset),
            "address": _bytes_to_hex(address),
            "amount": amount,
        }
        for (asset, address), amount in sorted(ledger.balances().items())
    ]
    result: dict[str, Any] = {
        "ledger": {
            "timestamp": ledger.now(),
            "custody": _bytes_to_hex(ledger.custody),
            "balances": balances,
        },
        "next_escrow_id": contract.store.next_id,
        "escrows": [escrow_to_json(e) for e in contract.store.records()],
    }
    frozen = ledger.frozen()
    if frozen:
        result["ledger"]["frozen"] = sorted(_bytes_to_hex(a) for a in frozen)
    return result


def state_from_json(data: dict[str, Any]) -> EscrowContract:
    lg = data.get("ledger", {})
    balances = {
        (_hex_to_bytes(b["asset"]), _hex_to_bytes(b["address"])): b.get("amount", 0)
        for b in lg.get("balances", [])
    }
    ledger_kwargs: dict[str, Any] = {
        "balances": balances,
        "frozen": [_hex_to_bytes(a) for a in lg.get("frozen", [])],
    }
    if "timestamp" in lg:
        ledger_kwargs["timestamp"] = lg["timestamp"]
    if lg.get("custody"):
        ledger_kwargs["custody"] = _hex_to_bytes(lg["custody"])

    store = EscrowStore(next_id=data.get("next_escrow_id", 1))
    for e in data.get("escrows", []):
        store.put(escrow_from_json(e))

    return EscrowContract(ledger=Ledger(**ledger_kwargs), store=store)


def _payload_to_json(payload: Any) -> Any:
    """Recursively convert a payload value, turning bytes into hex strings."""
    if payload is None:
        return None
    if isinstance(payload, (bytes, bytearray)):
        return _bytes_to_hex(bytes(payload))
    if isinstance(payload, dict):
        return {k: _payload_to_json(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_payload_to_json(item) for item in payload]
    return payload


def action_to_json(action: Action) -> dict[str, Any]:
    return {
        "type": action.action_type.value,
        "caller": _payload_to_json(action.caller),
        "escrow_id": action.escrow_id,
        "payload": _payload_to_json(action.payload),
    }


def action_from_json(data: dict[str, Any]) -> Action:
    payload = {}
    for k, v in (data.get("payload") or {}).items():
        if k in _BYTES_FIELDS and isinstance(v, str):
            payload[k] = _hex_to_bytes(v)
        else:
            payload[k] = v
    caller = data.get("caller")
    return Action(
        action_type=ActionType(data["type"]),
        caller=_hex_to_bytes(caller) if isinstance(caller, str) else caller,
        escrow_id=data.get("escrow_id"),
        payload=payload,
    )
