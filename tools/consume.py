"""Consume fixtures and validate them against the Python model."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from vested_settlement.state_digest import compute_state_digest  # noqa: E402
from vested_settlement.state_transition import apply_call, apply_calls  # noqa: E402
from fixtures_io import call_from_json, state_from_json, state_to_json  # noqa: E402


def _check_state_cases(path: Path) -> tuple[int, list[str]]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    cases = data.get("cases", [])

    for case in cases:
        pre_state = state_from_json(case["pre_state"])
        if "calls" in case:
            calls = [call_from_json(c) for c in case["calls"]]
            post_state, result = apply_calls(pre_state, calls)
        else:
            post_state, result = apply_call(pre_state, call_from_json(case["call"]))

        expected = case["expected"]
        if result.ok != expected["ok"]:
            failures.append(f"{case['name']}: ok_mismatch")
            continue

        actual_err = result.error.code.name if result.error else None
        if actual_err != expected["error"]:
            failures.append(f"{case['name']}: error_mismatch ({actual_err} != {expected['error']})")
            continue

        actual_digest = compute_state_digest(state_to_json(post_state))
        if actual_digest != compute_state_digest(expected["post_state"]):
            failures.append(f"{case['name']}: post_state_mismatch")

    return len(cases), failures


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay settlement fixtures")
    parser.add_argument(
        "--fixtures",
        default=str(ROOT / "fixtures"),
        help="Fixtures directory (default: ./fixtures)",
    )
    args = parser.parse_args()

    fixtures = Path(args.fixtures)
    if not fixtures.exists():
        raise SystemExit(f"Missing fixtures directory: {fixtures} (run tools/fill.py first)")

    total = 0
    failures: list[str] = []
    for path in sorted(fixtures.rglob("*.json")):
        count, fails = _check_state_cases(path)
        total += count
        failures.extend(f"{path.relative_to(fixtures)}::{f}" for f in fails)

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print(f"All {total} fixture cases passed")


if __name__ == "__main__":
    main()
