"""Escrow lifecycle specs.

Every action is split into a `_verify_*` step that only reads the record and
raises `SpecError`, and an `_apply_*` step that computes the next record on a
copy together with the fund movement and event it implies. Nothing here
touches storage or balances; the contract facade commits the result.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Optional, cast

from .config import (
    ADDRESS_LEN,
    ASSET_ID_LEN,
    NO_DEADLINE,
    SECONDS_PER_DAY,
    U64_MAX,
    U128_MAX,
)
from .errors import ErrorCode, SpecError
from .types import (
    Action,
    ActionType,
    Escrow,
    EscrowEvent,
    EscrowState,
    EventTopic,
    Transfer,
    Transition,
)

_RECORD_ACTIONS = frozenset({
    ActionType.APPROVE,
    ActionType.CANCEL,
    ActionType.DISPUTE,
    ActionType.RESOLVE,
    ActionType.CLAIM_TIMEOUT,
})

_TIMEOUT_STATES = frozenset({EscrowState.FUNDED, EscrowState.DISPUTED})


def _require_address(value: object, what: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != ADDRESS_LEN:
        raise SpecError(ErrorCode.INVALID_ADDRESS, f"{what} must be a {ADDRESS_LEN}-byte address")
    return bytes(value)


def _require_int(value: object, what: str) -> int:
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, f"{what} must be an integer")
    return value


def require_escrow_id(value: object) -> int:
    escrow_id = _require_int(value, "escrow_id")
    if not 0 <= escrow_id <= U64_MAX:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "escrow_id out of range")
    return escrow_id


def _deposit_fields(action: Action) -> tuple[bytes, bytes, bytes, bytes, int, int]:
    p = action.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "deposit payload must be dict")

    client = _require_address(action.caller, "client")
    freelancer = _require_address(p.get("freelancer"), "freelancer")
    arbiter_raw = p.get("arbiter")
    arbiter = client if arbiter_raw is None else _require_address(arbiter_raw, "arbiter")

    asset = p.get("asset")
    if not isinstance(asset, (bytes, bytearray)) or len(asset) != ASSET_ID_LEN:
        raise SpecError(ErrorCode.INVALID_ADDRESS, f"asset must be a {ASSET_ID_LEN}-byte id")

    amount = _require_int(p.get("amount", 0), "amount")
    deadline_days = _require_int(p.get("deadline_days", 0), "deadline_days")
    return client, freelancer, arbiter, bytes(asset), amount, deadline_days


def deadline_for(now: int, deadline_days: int) -> int:
    """Absolute deadline for an escrow created at `now`; 0 disables it."""
    if deadline_days == 0:
        return NO_DEADLINE
    return now + deadline_days * SECONDS_PER_DAY


# --- DEPOSIT ---

def verify_deposit(action: Action, now: int) -> None:
    if action.action_type != ActionType.DEPOSIT:
        raise SpecError(ErrorCode.INVALID_TYPE, f"not a deposit: {action.action_type}")

    client, freelancer, _arbiter, _asset, amount, deadline_days = _deposit_fields(action)

    if amount <= 0:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "escrow amount must be > 0")
    if amount > U128_MAX:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "escrow amount exceeds u128")
    if deadline_days < 0:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "deadline_days must be >= 0")
    if client == freelancer:
        raise SpecError(ErrorCode.SELF_OPERATION, "client cannot be freelancer")
    if deadline_for(now, deadline_days) > U64_MAX:
        raise SpecError(ErrorCode.OVERFLOW, "deadline exceeds u64")


def funding_transfer(action: Action, custody: bytes) -> Transfer:
    """The client-to-custody movement that backs a new escrow."""
    client, _freelancer, _arbiter, asset, amount, _days = _deposit_fields(action)
    return Transfer(asset=asset, source=client, destination=custody, amount=amount)


def apply_deposit(escrow_id: int, action: Action, now: int, custody: bytes) -> Transition:
    client, freelancer, arbiter, asset, amount, deadline_days = _deposit_fields(action)
    escrow = Escrow(
        id=escrow_id,
        client=client,
        freelancer=freelancer,
        arbiter=arbiter,
        asset=asset,
        amount=amount,
        state=EscrowState.FUNDED,
        deadline=deadline_for(now, deadline_days),
        created_at=now,
        updated_at=now,
    )
    return Transition(
        escrow=escrow,
        transfer=funding_transfer(action, custody),
        event=EscrowEvent(
            topic=EventTopic.DEPOSIT,
            escrow_id=escrow_id,
            actor=client,
            amount=amount,
            timestamp=now,
        ),
    )


# --- record actions ---

def verify(escrow: Optional[Escrow], action: Action, now: int) -> None:
    if action.action_type not in _RECORD_ACTIONS:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported escrow action: {action.action_type}")
    if escrow is None:
        raise SpecError(ErrorCode.ESCROW_NOT_FOUND, f"escrow {action.escrow_id} does not exist")

    at = action.action_type
    if at == ActionType.APPROVE:
        _verify_approve(escrow, action)
    elif at == ActionType.CANCEL:
        _verify_cancel(escrow, action)
    elif at == ActionType.DISPUTE:
        _verify_dispute(escrow, action)
    elif at == ActionType.RESOLVE:
        _verify_resolve(escrow, action)
    elif at == ActionType.CLAIM_TIMEOUT:
        _verify_claim_timeout(escrow, action, now)


def apply(escrow: Escrow, action: Action, now: int, custody: bytes) -> Transition:
    at = action.action_type
    ns = deepcopy(escrow)
    ns.updated_at = now
    if at == ActionType.APPROVE:
        return _apply_approve(ns, action, now, custody)
    elif at == ActionType.CANCEL:
        return _apply_cancel(ns, action, now, custody)
    elif at == ActionType.DISPUTE:
        return _apply_dispute(ns, action, now)
    elif at == ActionType.RESOLVE:
        return _apply_resolve(ns, action, now, custody)
    elif at == ActionType.CLAIM_TIMEOUT:
        return _apply_claim_timeout(ns, action, now, custody)
    raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported escrow action: {at}")


def transition(escrow: Optional[Escrow], action: Action, now: int, custody: bytes) -> Transition:
    """Verify then apply; the input record is never modified."""
    verify(escrow, action, now)
    return apply(cast(Escrow, escrow), action, now, custody)


def _payout(escrow: Escrow, custody: bytes, destination: bytes) -> Transfer:
    return Transfer(
        asset=escrow.asset,
        source=custody,
        destination=destination,
        amount=escrow.amount,
    )


# --- APPROVE ---

def _verify_approve(escrow: Escrow, action: Action) -> None:
    approver = action.caller
    if approver != escrow.client and approver != escrow.freelancer:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only client or freelancer can approve")
    if escrow.state != EscrowState.FUNDED:
        raise SpecError(ErrorCode.INVALID_STATE, f"cannot approve escrow in state {escrow.state.name}")
    if approver == escrow.client and escrow.approved_by_client:
        raise SpecError(ErrorCode.ALREADY_APPROVED, "client already approved")
    if approver == escrow.freelancer and escrow.approved_by_freelancer:
        raise SpecError(ErrorCode.ALREADY_APPROVED, "freelancer already approved")


def _apply_approve(ns: Escrow, action: Action, now: int, custody: bytes) -> Transition:
    if action.caller == ns.client:
        ns.approved_by_client = True
    else:
        ns.approved_by_freelancer = True

    if ns.approved_by_client and ns.approved_by_freelancer:
        ns.state = EscrowState.RELEASED
        return Transition(
            escrow=ns,
            transfer=_payout(ns, custody, ns.freelancer),
            event=EscrowEvent(
                topic=EventTopic.RELEASE,
                escrow_id=ns.id,
                actor=action.caller,
                amount=ns.amount,
                timestamp=now,
                recipient=ns.freelancer,
            ),
        )

    return Transition(
        escrow=ns,
        event=EscrowEvent(
            topic=EventTopic.APPROVE,
            escrow_id=ns.id,
            actor=action.caller,
            amount=0,
            timestamp=now,
        ),
    )


# --- CANCEL ---

def _verify_cancel(escrow: Escrow, action: Action) -> None:
    if action.caller != escrow.client:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only client can cancel")
    if escrow.state != EscrowState.FUNDED:
        raise SpecError(ErrorCode.INVALID_STATE, f"cannot cancel escrow in state {escrow.state.name}")
    if escrow.approved_by_freelancer:
        raise SpecError(ErrorCode.INVALID_STATE, "freelancer has already approved")


def _apply_cancel(ns: Escrow, action: Action, now: int, custody: bytes) -> Transition:
    ns.state = EscrowState.CANCELLED
    return Transition(
        escrow=ns,
        transfer=_payout(ns, custody, ns.client),
        event=EscrowEvent(
            topic=EventTopic.CANCEL,
            escrow_id=ns.id,
            actor=action.caller,
            amount=ns.amount,
            timestamp=now,
            recipient=ns.client,
        ),
    )


# --- DISPUTE ---

def _verify_dispute(escrow: Escrow, action: Action) -> None:
    if action.caller != escrow.client and action.caller != escrow.freelancer:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only parties can raise dispute")
    if escrow.state != EscrowState.FUNDED:
        raise SpecError(ErrorCode.INVALID_STATE, "can only dispute funded escrows")


def _apply_dispute(ns: Escrow, action: Action, now: int) -> Transition:
    ns.state = EscrowState.DISPUTED
    return Transition(
        escrow=ns,
        event=EscrowEvent(
            topic=EventTopic.DISPUTE,
            escrow_id=ns.id,
            actor=action.caller,
            amount=0,
            timestamp=now,
        ),
    )


# --- RESOLVE ---

def _verify_resolve(escrow: Escrow, action: Action) -> None:
    if action.caller != escrow.arbiter:
        raise SpecError(ErrorCode.UNAUTHORIZED, "not the authorized arbiter")
    if escrow.state != EscrowState.DISPUTED:
        raise SpecError(ErrorCode.INVALID_STATE, f"cannot resolve escrow in state {escrow.state.name}")
    p = action.payload if isinstance(action.payload, dict) else {}
    winner = p.get("winner")
    if winner != escrow.client and winner != escrow.freelancer:
        raise SpecError(ErrorCode.INVALID_WINNER, "winner must be client or freelancer")


def _apply_resolve(ns: Escrow, action: Action, now: int, custody: bytes) -> Transition:
    winner = bytes(action.payload["winner"])
    ns.state = EscrowState.RESOLVED
    return Transition(
        escrow=ns,
        transfer=_payout(ns, custody, winner),
        event=EscrowEvent(
            topic=EventTopic.RESOLVE,
            escrow_id=ns.id,
            actor=action.caller,
            amount=ns.amount,
            timestamp=now,
            recipient=winner,
        ),
    )


# --- CLAIM_TIMEOUT ---

def _verify_claim_timeout(escrow: Escrow, action: Action, now: int) -> None:
    if escrow.state not in _TIMEOUT_STATES:
        raise SpecError(ErrorCode.INVALID_STATE, f"cannot time out escrow in state {escrow.state.name}")
    if escrow.deadline == NO_DEADLINE:
        raise SpecError(ErrorCode.DEADLINE_NOT_REACHED, "escrow has no deadline")
    if now <= escrow.deadline:
        raise SpecError(ErrorCode.DEADLINE_NOT_REACHED, "deadline not reached")


def _apply_claim_timeout(ns: Escrow, action: Action, now: int, custody: bytes) -> Transition:
    # Timeout always refunds the client, also while a dispute is pending.
    ns.state = EscrowState.CANCELLED
    return Transition(
        escrow=ns,
        transfer=_payout(ns, custody, ns.client),
        event=EscrowEvent(
            topic=EventTopic.TIMEOUT,
            escrow_id=ns.id,
            actor=action.caller,
            amount=ns.amount,
            timestamp=now,
            recipient=ns.client,
        ),
    )
