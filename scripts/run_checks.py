#!/usr/bin/env python3
"""Run repository checks for image_loader: ruff, pyright, then pytest.

Exits non-zero on the first failing step so CI can observe status.
"""

from __future__ import annotations

import argparse
import subprocess
import sys

STEPS = {
    "lint": [sys.executable, "-m", "ruff", "check", "image_loader", "tests"],
    "types": [sys.executable, "-m", "pyright", "image_loader"],
    "tests": [sys.executable, "-m", "pytest", "-q"],
}


def run(cmd: list[str]) -> int:
    print("=>", " ".join(cmd))
    res = subprocess.run(cmd, check=False)
    return res.returncode


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--fix", action="store_true", help="Let ruff apply safe fixes")
    parser.add_argument("--skip", action="append", choices=sorted(STEPS), default=[], help="Skip a step")
    args = parser.parse_args()

    for name, cmd in STEPS.items():
        if name in args.skip:
            continue
        if name == "lint" and args.fix:
            cmd = [*cmd, "--fix"]
        rc = run(cmd)
        if rc != 0:
            print(f"{name} failed")
            return rc

    print("All checks passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
