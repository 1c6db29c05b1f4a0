#!/usr/bin/env python3
"""Run formatters, linters and the test suite in one go.

Usage:
    python run_all_linters.py          # check only
    python run_all_linters.py --fix    # let black/isort/ruff rewrite files first
    python run_all_linters.py --no-tests
"""

from __future__ import annotations

import argparse
from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent
PACKAGES = ["app", "core", "infrastructure", "main.py"]


def _steps(fix: bool, with_tests: bool) -> list[tuple[str, list[str]]]:
    py = [sys.executable, "-m"]
    steps = [
        ("black", py + ["black", "."] + ([] if fix else ["--check"])),
        ("isort", py + ["isort", "."] + ([] if fix else ["--check-only"])),
        ("ruff", py + ["ruff", "check", "."] + (["--fix"] if fix else [])),
        ("pylint", py + ["pylint", *PACKAGES]),
    ]
    if with_tests:
        steps.append(("pytest", py + ["pytest", "-q"]))
    return steps


def run_step(name: str, cmd: list[str]) -> tuple[bool, str]:
    print(f"\n{'=' * 60}\n{name}: {' '.join(cmd)}\n{'=' * 60}")
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as ex:
        print(f"FAILED to start: {ex}")
        return False, str(ex)
    output = (proc.stdout + proc.stderr).strip()
    print("ok" if proc.returncode == 0 else f"FAILED (exit {proc.returncode})")
    if output:
        print(output)
    return proc.returncode == 0, output


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--fix", action="store_true", help="apply automatic fixes")
    parser.add_argument("--no-tests", action="store_true", help="skip pytest")
    args = parser.parse_args()

    results = [(name, run_step(name, cmd)[0]) for name, cmd in _steps(args.fix, not args.no_tests)]

    print(f"\n{'=' * 60}\nSummary\n{'=' * 60}")
    for name, ok in results:
        print(f"{name:8} {'passed' if ok else 'FAILED'}")
    return 0 if all(ok for _, ok in results) else 1


if __name__ == "__main__":
    sys.exit(main())
