"""Pytest hooks to generate fixtures (EEST-style)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from safehands_spec.contract import ActionResult, EscrowContract
from safehands_spec.ledger import Ledger
from safehands_spec.test_accounts import ALICE, BOB, CAROL, DAVE, XLM
from safehands_spec.types import Action
from tools.fixtures_io import action_to_json, event_to_json, state_to_json

_STATE_CASES: dict[str, list[dict[str, Any]]] = {}
_ACCOUNTS: list[dict[str, str]] = []

START_BALANCE = 1_000_000


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


def _expected(contract: EscrowContract, result: ActionResult, events_before: int) -> dict[str, Any]:
    return {
        "ok": result.ok,
        "error": result.error.code.name if result.error else None,
        "value": result.value,
        "events": [event_to_json(ev) for ev in contract.get_events()[events_before:]],
        "post_state": state_to_json(contract),
    }


@pytest.fixture
def contract() -> EscrowContract:
    """Fresh contract whose parties each hold START_BALANCE of XLM."""
    ledger = Ledger()
    for party in (ALICE, BOB, CAROL, DAVE):
        ledger.mint(XLM, party, START_BALANCE)
    return EscrowContract(ledger=ledger)


@pytest.fixture
def action_test_group() -> Callable[[str, str, EscrowContract, Action], ActionResult]:
    """Execute one action, collect it as a fixture case and return its result."""

    def _action_test_group(
        rel_path: str, name: str, contract: EscrowContract, action: Action
    ) -> ActionResult:
        pre_state = state_to_json(contract)
        events_before = len(contract.get_events())
        result = contract.execute(action)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "pre_state": pre_state,
                "action": action_to_json(action),
                "expected": _expected(contract, result, events_before),
            }
        )
        return result

    return _action_test_group


@pytest.fixture
def accounts_collector() -> Callable[[list[dict[str, str]]], None]:
    def _collect(accounts: list[dict[str, str]]) -> None:
        _ACCOUNTS[:] = accounts

    return _collect


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    if _ACCOUNTS:
        (out / "accounts.json").write_text(json.dumps({"accounts": _ACCOUNTS}, indent=2))

    for rel_path, cases in _STATE_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))
