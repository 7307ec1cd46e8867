#!/usr/bin/env python3
"""Run repository checks: ruff, pyright, and optional tests.

Exits non-zero on the first failing step so CI and local tooling can
observe status. Tests run with Qt in offscreen mode.
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys

STEPS: list[tuple[str, list[str]]] = [
    ("ruff", [sys.executable, "-m", "ruff", "check", "framiq", "tests"]),
    ("pyright", [sys.executable, "-m", "pyright"]),
]


def run(cmd: list[str], env: dict[str, str] | None = None) -> int:
    print("=>", " ".join(cmd))
    return subprocess.run(cmd, check=False, env=env).returncode


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--no-tests", action="store_true", help="Skip running pytest")
    parser.add_argument("--fix", action="store_true", help="Let ruff apply safe fixes")
    args = parser.parse_args()

    for name, cmd in STEPS:
        if name == "ruff" and args.fix:
            cmd = [*cmd, "--fix"]
        rc = run(cmd)
        if rc != 0:
            print(f"{name} failed")
            return rc

    if not args.no_tests:
        env = os.environ.copy()
        env.setdefault("QT_QPA_PLATFORM", "offscreen")
        rc = run([sys.executable, "-m", "pytest", "-q"], env=env)
        if rc != 0:
            print("pytest failed")
            return rc

    print("All checks passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
