"""Regenerate payout and vector fixtures by running the test suite.

Usage: python tools/fill.py [OUTPUT_DIR] [--yaml] [extra pytest args...]
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_OUT = ROOT / "fixtures"


def main(argv: list[str]) -> int:
    args = list(argv)
    with_yaml = "--yaml" in args
    if with_yaml:
        args.remove("--yaml")
    out = Path(args.pop(0)) if args and not args[0].startswith("-") else DEFAULT_OUT

    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([str(ROOT / "src"), str(ROOT)])

    cmd = [sys.executable, "-m", "pytest", str(ROOT / "tests"), "-q", "--output", str(out), *args]
    print("Running:", " ".join(cmd))
    rc = subprocess.call(cmd, env=env, cwd=str(ROOT))
    if rc != 0 or not with_yaml:
        return rc

    from yaml_dump import main as dump_main

    return dump_main([str(out), str(out.with_name(out.name + "-yaml"))])


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
