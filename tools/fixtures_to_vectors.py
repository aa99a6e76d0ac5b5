#!/usr/bin/env python3
"""Convert spec fixtures into client-consumable vectors.

Every fixture case becomes one YAML vector carrying the pre-state, the action
in its JSON form and the expected outcome reduced to what a contract
implementation can report: success, numeric error code, state digest and
the emitted events.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from safehands_spec.errors import ErrorCode  # noqa: E402
from safehands_spec.state_digest import compute_state_digest  # noqa: E402
from yaml_dump import write_yaml  # noqa: E402


def _map_error_code(name: str | None) -> int:
    if not name:
        return int(ErrorCode.SUCCESS)
    try:
        return int(ErrorCode[name])
    except KeyError:
        return int(ErrorCode.UNKNOWN)


def case_to_vector(case: dict[str, Any]) -> dict[str, Any]:
    expected = case.get("expected", {})
    post_state = expected.get("post_state")
    return {
        "name": case.get("name", ""),
        "description": case.get("description", ""),
        "pre_state": case.get("pre_state"),
        "input": {
            "kind": "action",
            "action": case.get("action"),
        },
        "expected": {
            "success": bool(expected.get("ok", False)),
            "error_code": _map_error_code(expected.get("error")),
            "value": expected.get("value"),
            "state_digest": compute_state_digest(post_state) if post_state else "",
            "events": expected.get("events", []),
        },
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert fixtures to vectors")
    parser.add_argument("--fixtures", default=str(ROOT / "fixtures"))
    parser.add_argument("--vectors", default=str(ROOT / "vectors"))
    args = parser.parse_args()

    fixtures = Path(args.fixtures).resolve()
    vectors = Path(args.vectors).resolve()

    if not fixtures.exists():
        raise SystemExit(f"fixtures dir not found: {fixtures}")

    vectors.mkdir(parents=True, exist_ok=True)
    old_files = {p.resolve() for p in vectors.rglob("*.yaml")}
    written: set[Path] = set()

    for path in sorted(fixtures.rglob("*.json")):
        data = json.loads(path.read_text())
        if not isinstance(data, dict) or not isinstance(data.get("cases"), list):
            continue
        rel = path.relative_to(fixtures)
        dest = (vectors / rel).with_suffix(".yaml")
        dest.parent.mkdir(parents=True, exist_ok=True)
        write_yaml(dest, {"test_vectors": [case_to_vector(c) for c in data["cases"]]})
        written.add(dest.resolve())

    # Remove stale vectors that no longer have a fixtures source.
    removed = 0
    for old in sorted(old_files - written):
        old.unlink()
        removed += 1

    print(f"Written {len(written)} vector files into {vectors}")
    if removed:
        print(f"Removed {removed} stale files")


if __name__ == "__main__":
    main()
