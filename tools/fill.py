"""Run pytest to generate fixtures, then optionally convert them to vectors."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
OUT = ROOT / "fixtures"
VECTORS = ROOT / "vectors"


def main() -> int:
    parser = argparse.ArgumentParser(description="Fill SafeHands fixtures")
    parser.add_argument("--output", default=str(OUT), help="Fixture output directory")
    parser.add_argument(
        "--vectors",
        action="store_true",
        help=f"Also convert the fixtures into YAML vectors under {VECTORS}",
    )
    parser.add_argument("pytest_args", nargs="*", help="Extra arguments passed to pytest")
    args = parser.parse_args()

    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([str(ROOT / "src"), str(ROOT)])

    cmd = [
        sys.executable,
        "-m",
        "pytest",
        str(ROOT / "tests"),
        "-q",
        "--output",
        args.output,
        *args.pytest_args,
    ]
    print("Running:", " ".join(cmd))
    rc = subprocess.call(cmd, env=env, cwd=str(ROOT))
    if rc != 0 or not args.vectors:
        return rc

    convert = [
        sys.executable,
        str(ROOT / "tools" / "fixtures_to_vectors.py"),
        "--fixtures",
        args.output,
        "--vectors",
        str(VECTORS),
    ]
    print("Running:", " ".join(convert))
    return subprocess.call(convert, env=env, cwd=str(ROOT))


if __name__ == "__main__":
    raise SystemExit(main())
