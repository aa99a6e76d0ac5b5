"""Approve action fixtures."""

from __future__ import annotations

from safehands_spec.errors import ErrorCode
from safehands_spec.test_accounts import ALICE, BOB, CAROL, DAVE, XLM
from safehands_spec.types import Action, ActionType, EscrowState, EventTopic

from conftest import START_BALANCE

FIXTURE = "actions/approve.json"


def _mk_approve(approver: bytes, escrow_id: int) -> Action:
    return Action(action_type=ActionType.APPROVE, caller=approver, escrow_id=escrow_id)


def _funded(contract, amount: int = 1000) -> int:
    return contract.deposit(ALICE, BOB, CAROL, XLM, amount, 30)


def test_approve_by_freelancer_only(contract, action_test_group) -> None:
    eid = _funded(contract)
    result = action_test_group(FIXTURE, "approve_by_freelancer_only", contract, _mk_approve(BOB, eid))

    assert result.ok
    escrow = contract.get_escrow(eid)
    assert escrow.state == EscrowState.FUNDED
    assert escrow.approved_by_freelancer
    assert not escrow.approved_by_client
    assert contract.ledger.balance(XLM, BOB) == START_BALANCE


def test_approve_by_client_only(contract, action_test_group) -> None:
    eid = _funded(contract)
    result = action_test_group(FIXTURE, "approve_by_client_only", contract, _mk_approve(ALICE, eid))

    assert result.ok
    escrow = contract.get_escrow(eid)
    assert escrow.state == EscrowState.FUNDED
    assert escrow.approved_by_client


def test_approve_both_releases_to_freelancer(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.approve(ALICE, eid)
    result = action_test_group(
        FIXTURE, "approve_both_releases_to_freelancer", contract, _mk_approve(BOB, eid)
    )

    assert result.ok
    escrow = contract.get_escrow(eid)
    assert escrow.state == EscrowState.RELEASED
    assert escrow.approved_by_client and escrow.approved_by_freelancer
    assert contract.ledger.balance(XLM, BOB) == START_BALANCE + 1000
    assert contract.ledger.balance(XLM, contract.ledger.custody) == 0


def test_approve_order_does_not_matter(contract) -> None:
    first = _funded(contract)
    second = _funded(contract)

    contract.approve(ALICE, first)
    contract.approve(BOB, first)
    contract.approve(BOB, second)
    contract.approve(ALICE, second)

    assert contract.get_escrow(first).state == EscrowState.RELEASED
    assert contract.get_escrow(second).state == EscrowState.RELEASED
    assert contract.ledger.balance(XLM, BOB) == START_BALANCE + 2000


def test_approve_twice_same_party(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.approve(BOB, eid)
    result = action_test_group(FIXTURE, "approve_twice_same_party", contract, _mk_approve(BOB, eid))

    assert result.error.code == ErrorCode.ALREADY_APPROVED
    escrow = contract.get_escrow(eid)
    assert escrow.approved_by_freelancer
    assert escrow.state == EscrowState.FUNDED


def test_approve_after_release(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.approve(BOB, eid)
    contract.approve(ALICE, eid)
    result = action_test_group(FIXTURE, "approve_after_release", contract, _mk_approve(BOB, eid))

    assert result.error.code == ErrorCode.INVALID_STATE
    # Funds moved exactly once.
    assert contract.ledger.balance(XLM, BOB) == START_BALANCE + 1000
    release_events = [e for e in contract.get_events(eid) if e.topic == EventTopic.RELEASE]
    assert len(release_events) == 1


def test_approve_by_arbiter_rejected(contract, action_test_group) -> None:
    eid = _funded(contract)
    result = action_test_group(FIXTURE, "approve_by_arbiter_rejected", contract, _mk_approve(CAROL, eid))

    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_approve_by_outsider_rejected(contract, action_test_group) -> None:
    eid = _funded(contract)
    result = action_test_group(FIXTURE, "approve_by_outsider_rejected", contract, _mk_approve(DAVE, eid))

    assert result.error.code == ErrorCode.UNAUTHORIZED
    escrow = contract.get_escrow(eid)
    assert not escrow.approved_by_client and not escrow.approved_by_freelancer


def test_approve_unknown_escrow(contract, action_test_group) -> None:
    result = action_test_group(FIXTURE, "approve_unknown_escrow", contract, _mk_approve(ALICE, 42))

    assert result.error.code == ErrorCode.ESCROW_NOT_FOUND


def test_approve_while_disputed(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.dispute(BOB, eid)
    result = action_test_group(FIXTURE, "approve_while_disputed", contract, _mk_approve(ALICE, eid))

    assert result.error.code == ErrorCode.INVALID_STATE
    assert not contract.get_escrow(eid).approved_by_client


def test_approve_release_transfer_failure_keeps_record(contract, action_test_group) -> None:
    eid = _funded(contract)
    contract.approve(ALICE, eid)
    contract.ledger.freeze(BOB)
    result = action_test_group(
        FIXTURE,
        "approve_release_transfer_failure",
        contract,
        _mk_approve(BOB, eid),
    )

    assert result.error.code == ErrorCode.TRANSFER_FAILED
    escrow = contract.get_escrow(eid)
    # The approval flag must not flip when the release it triggers fails.
    assert not escrow.approved_by_freelancer
    assert escrow.state == EscrowState.FUNDED
    assert contract.ledger.balance(XLM, contract.ledger.custody) == 1000

    contract.ledger.unfreeze(BOB)
    contract.approve(BOB, eid)
    assert contract.get_escrow(eid).state == EscrowState.RELEASED
