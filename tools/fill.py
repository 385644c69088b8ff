"""Generate settlement fixtures from the test suite, then YAML vectors.

    python tools/fill.py                 # fixtures/ and vectors/
    python tools/fill.py -k withdraw     # only tests matching an expression
    python tools/fill.py --no-vectors    # stop after the JSON fixtures
"""

from __future__ import annotations

import argparse
import os
import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def _run(cmd: list[str], env: dict[str, str]) -> int:
    print("Running:", " ".join(cmd))
    return subprocess.call(cmd, env=env, cwd=str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(description="Fill settlement fixtures")
    parser.add_argument("--output", default=str(ROOT / "fixtures"))
    parser.add_argument("--vectors", default=str(ROOT / "vectors"))
    parser.add_argument("-k", dest="keyword", default=None, help="pytest -k expression")
    parser.add_argument("--no-vectors", action="store_true")
    args = parser.parse_args()

    out = Path(args.output)
    # stale cases from removed tests must not survive a refill
    if out.exists():
        shutil.rmtree(out)

    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([str(ROOT / "src"), str(ROOT)])

    cmd = [sys.executable, "-m", "pytest", str(ROOT / "tests"), "-q", "--output", str(out)]
    if args.keyword:
        cmd += ["-k", args.keyword]
    rc = _run(cmd, env)
    if rc != 0 or args.no_vectors:
        return rc

    return _run(
        [
            sys.executable,
            str(ROOT / "tools" / "fixtures_to_vectors.py"),
            "--fixtures",
            str(out),
            "--vectors",
            args.vectors,
        ],
        env,
    )


if __name__ == "__main__":
    raise SystemExit(main())
