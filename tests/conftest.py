"""Pytest hooks that run settlement calls and collect them as fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from vested_settlement.state_transition import TransitionResult, apply_call, apply_calls
from vested_settlement.test_accounts import name_of
from vested_settlement.types import Call, ChainState
from tools.fixtures_io import call_to_json, state_to_json

_STATE_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


def _expected(post_state: ChainState, result: TransitionResult) -> dict[str, Any]:
    return {
        "ok": result.ok,
        "error": result.error.code.name if result.error else None,
        "post_state": state_to_json(post_state),
    }


def _describe(call: Call) -> str:
    return f"{call.call_type.value} by {name_of(call.caller)}"


@pytest.fixture
def state_test_group() -> Callable[[str, str, ChainState, Call], tuple[ChainState, TransitionResult]]:
    """Apply a single call, record the case under a fixture path, return the outcome."""

    def _state_test_group(
        rel_path: str, name: str, pre_state: ChainState, call: Call
    ) -> tuple[ChainState, TransitionResult]:
        pre_json = state_to_json(pre_state)
        post_state, result = apply_call(pre_state, call)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "description": _describe(call),
                "pre_state": pre_json,
                "call": call_to_json(call),
                "expected": _expected(post_state, result),
            }
        )
        return post_state, result

    return _state_test_group


@pytest.fixture
def batch_test_group() -> Callable[[str, str, ChainState, list[Call]], tuple[ChainState, TransitionResult]]:
    """Apply an all-or-nothing batch of calls and record it as one case."""

    def _batch_test_group(
        rel_path: str, name: str, pre_state: ChainState, calls: list[Call]
    ) -> tuple[ChainState, TransitionResult]:
        pre_json = state_to_json(pre_state)
        post_state, result = apply_calls(pre_state, calls)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "description": "; ".join(_describe(c) for c in calls),
                "pre_state": pre_json,
                "calls": [call_to_json(c) for c in calls],
                "expected": _expected(post_state, result),
            }
        )
        return post_state, result

    return _batch_test_group


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _STATE_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))
