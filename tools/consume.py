"""Consume fixtures and validate against Python specs."""

from __future__ import annotations

import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from safehands_spec.state_digest import compute_state_digest  # noqa: E402
from fixtures_io import (  # noqa: E402
    action_from_json,
    event_to_json,
    state_from_json,
    state_to_json,
)


def check_case(case: dict) -> str | None:
    """Replay one fixture case; return a failure reason or None."""
    contract = state_from_json(case["pre_state"])
    action = action_from_json(case["action"])
    result = contract.execute(action)

    expected = case["expected"]
    if result.ok != expected["ok"]:
        return "ok_mismatch"

    actual_err = result.error.code.name if result.error else None
    if actual_err != expected["error"]:
        return "error_mismatch"

    if result.value != expected.get("value"):
        return "value_mismatch"

    events = [event_to_json(ev) for ev in contract.get_events()]
    if events != expected.get("events", []):
        return "events_mismatch"

    post_state = state_to_json(contract)
    if compute_state_digest(post_state) != compute_state_digest(expected["post_state"]):
        return "state_digest_mismatch"
    if post_state["escrows"] != expected["post_state"]["escrows"]:
        return "escrow_mismatch"

    return None


def check_file(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for case in data.get("cases", []):
        reason = check_case(case)
        if reason:
            failures.append(f"{path.name}:{case['name']}: {reason}")
    return failures


def main() -> None:
    fixtures = ROOT / "fixtures"
    if not fixtures.exists():
        raise SystemExit(f"fixtures dir not found: {fixtures}")

    failures: list[str] = []
    checked = 0
    for path in sorted(fixtures.rglob("*.json")):
        failures.extend(check_file(path))
        checked += 1

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print(f"All fixtures passed ({checked} files)")


if __name__ == "__main__":
    main()
