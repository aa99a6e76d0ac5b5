"""Claim-timeout action fixtures."""

from __future__ import annotations

from safehands_spec.config import SECONDS_PER_DAY
from safehands_spec.errors import ErrorCode
from safehands_spec.test_accounts import ALICE, BOB, CAROL, EVE, XLM
from safehands_spec.types import Action, ActionType, EscrowState, EventTopic

from conftest import START_BALANCE

FIXTURE = "actions/claim_timeout.json"


def _mk_claim(caller: bytes, escrow_id: int) -> Action:
    return Action(action_type=ActionType.CLAIM_TIMEOUT, caller=caller, escrow_id=escrow_id)


def _funded(contract, deadline_days: int = 1) -> int:
    return contract.deposit(ALICE, BOB, CAROL, XLM, 1000, deadline_days)


def test_claim_timeout_after_deadline(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.ledger.advance(SECONDS_PER_DAY + 1)
    result = action_test_group(FIXTURE, "claim_timeout_after_deadline", contract, _mk_claim(ALICE, eid))

    assert result.ok
    assert contract.get_escrow(eid).state == EscrowState.CANCELLED
    assert contract.ledger.balance(XLM, ALICE) == START_BALANCE
    last = contract.get_events(eid)[-1]
    assert last.topic == EventTopic.TIMEOUT
    assert last.recipient == ALICE


def test_claim_timeout_any_caller(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.ledger.advance(SECONDS_PER_DAY + 1)
    result = action_test_group(FIXTURE, "claim_timeout_any_caller", contract, _mk_claim(EVE, eid))

    assert result.ok
    # Funds go to the client, never to the caller.
    assert contract.ledger.balance(XLM, ALICE) == START_BALANCE
    assert contract.ledger.balance(XLM, EVE) == 0


def test_claim_timeout_at_deadline(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.ledger.advance(SECONDS_PER_DAY)
    result = action_test_group(FIXTURE, "claim_timeout_at_deadline", contract, _mk_claim(ALICE, eid))

    assert result.error.code == ErrorCode.DEADLINE_NOT_REACHED
    assert contract.get_escrow(eid).state == EscrowState.FUNDED


def test_claim_timeout_before_deadline(contract, action_test_group) -> None:
    eid = _funded(contract, deadline_days=30)
    contract.ledger.advance(SECONDS_PER_DAY)
    result = action_test_group(FIXTURE, "claim_timeout_before_deadline", contract, _mk_claim(ALICE, eid))

    assert result.error.code == ErrorCode.DEADLINE_NOT_REACHED


def test_claim_timeout_without_deadline(contract, action_test_group) -> None:
    eid = _funded(contract, deadline_days=0)
    contract.ledger.advance(10_000 * SECONDS_PER_DAY)
    result = action_test_group(FIXTURE, "claim_timeout_without_deadline", contract, _mk_claim(ALICE, eid))

    assert result.error.code == ErrorCode.DEADLINE_NOT_REACHED
    assert contract.get_escrow(eid).state == EscrowState.FUNDED


def test_claim_timeout_while_disputed_refunds_client(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.dispute(BOB, eid)
    contract.ledger.advance(SECONDS_PER_DAY + 1)
    result = action_test_group(
        FIXTURE, "claim_timeout_while_disputed", contract, _mk_claim(BOB, eid)
    )

    assert result.ok
    assert contract.get_escrow(eid).state == EscrowState.CANCELLED
    assert contract.ledger.balance(XLM, ALICE) == START_BALANCE
    assert contract.ledger.balance(XLM, BOB) == START_BALANCE


def test_claim_timeout_after_release(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.approve(ALICE, eid)
    contract.approve(BOB, eid)
    contract.ledger.advance(SECONDS_PER_DAY + 1)
    result = action_test_group(FIXTURE, "claim_timeout_after_release", contract, _mk_claim(ALICE, eid))

    assert result.error.code == ErrorCode.INVALID_STATE
    assert contract.ledger.balance(XLM, BOB) == START_BALANCE + 1000


def test_claim_timeout_after_resolve(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.dispute(ALICE, eid)
    contract.resolve(CAROL, eid, BOB)
    contract.ledger.advance(SECONDS_PER_DAY + 1)
    result = action_test_group(FIXTURE, "claim_timeout_after_resolve", contract, _mk_claim(ALICE, eid))

    assert result.error.code == ErrorCode.INVALID_STATE


def test_claim_timeout_unknown_escrow(contract, action_test_group) -> None:
    result = action_test_group(FIXTURE, "claim_timeout_unknown_escrow", contract, _mk_claim(ALICE, 99))

    assert result.error.code == ErrorCode.ESCROW_NOT_FOUND


def test_claim_timeout_transfer_failure_keeps_record(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.ledger.advance(SECONDS_PER_DAY + 1)
    contract.ledger.freeze(ALICE)
    result = action_test_group(
        FIXTURE, "claim_timeout_transfer_failure", contract, _mk_claim(BOB, eid)
    )

    assert result.error.code == ErrorCode.TRANSFER_FAILED
    assert contract.get_escrow(eid).state == EscrowState.FUNDED
    assert contract.ledger.balance(XLM, contract.ledger.custody) == 1000
    assert [ev.topic for ev in contract.get_events(eid)] == [EventTopic.DEPOSIT]
