"""freeze / unfreeze fixtures."""

from __future__ import annotations

import pytest

from vested_settlement import ledger
from vested_settlement.config import DEFAULT_SETTLEMENT_AMOUNT
from vested_settlement.errors import ErrorCode
from vested_settlement.state_transition import apply_call
from vested_settlement.test_accounts import (
    ARBITER,
    DEPLOYER,
    OUTSIDER,
    RECEIVER,
    SENDER,
    USDC,
)
from vested_settlement.types import Call, CallType, ChainState, EventKind

T0 = 1_700_000_000
AMOUNT = DEFAULT_SETTLEMENT_AMOUNT

FREEZE = Call(caller=ARBITER, call_type=CallType.FREEZE)
UNFREEZE = Call(caller=ARBITER, call_type=CallType.UNFREEZE)
FUND = Call(caller=SENDER, call_type=CallType.FUND)


def _approved_state() -> ChainState:
    state = ChainState(timestamp=T0)
    ledger.mint(state, USDC, SENDER, AMOUNT)
    create = Call(
        caller=DEPLOYER,
        call_type=CallType.CREATE_SETTLEMENT,
        payload={
            "sender": SENDER,
            "receiver": RECEIVER,
            "arbiter": ARBITER,
            "asset": USDC,
            "amount": AMOUNT,
        },
    )
    state, result = apply_call(state, create)
    assert result.ok
    ledger.approve(state, USDC, SENDER, state.settlement.address, AMOUNT)
    return state


def test_freeze_sets_flag(state_test_group) -> None:
    post, result = state_test_group("calls/freeze.json", "freeze_unfunded", _approved_state(), FREEZE)
    assert result.ok
    assert post.settlement.frozen
    assert [(e.kind, e.timestamp, e.amount) for e in post.events] == [
        (EventKind.FROZEN, T0, None)
    ]


def test_unfreeze_clears_flag(state_test_group) -> None:
    state, _ = apply_call(_approved_state(), FREEZE)
    post, result = state_test_group("calls/freeze.json", "unfreeze", state, UNFREEZE)
    assert result.ok
    assert not post.settlement.frozen
    assert [e.kind for e in post.events] == [EventKind.FROZEN, EventKind.UNFROZEN]


def test_freeze_twice_is_allowed(state_test_group) -> None:
    state, _ = apply_call(_approved_state(), FREEZE)
    post, result = state_test_group("calls/freeze.json", "freeze_already_frozen", state, FREEZE)
    assert result.ok
    assert post.settlement.frozen
    assert [e.kind for e in post.events] == [EventKind.FROZEN, EventKind.FROZEN]


def test_unfreeze_when_not_frozen(state_test_group) -> None:
    post, result = state_test_group(
        "calls/freeze.json", "unfreeze_not_frozen", _approved_state(), UNFREEZE
    )
    assert result.ok
    assert not post.settlement.frozen
    assert [e.kind for e in post.events] == [EventKind.UNFROZEN]


@pytest.mark.parametrize("call_type", [CallType.FREEZE, CallType.UNFREEZE])
@pytest.mark.parametrize("caller", [SENDER, RECEIVER, OUTSIDER, DEPLOYER])
def test_freeze_unauthorized(call_type: CallType, caller: bytes) -> None:
    state = _approved_state()
    post, result = apply_call(state, Call(caller=caller, call_type=call_type))
    assert result.error.code == ErrorCode.UNAUTHORIZED
    assert result.error.message == "Only the arbiter can call this function"
    assert post is state


def test_freeze_by_sender_fixture(state_test_group) -> None:
    call = Call(caller=SENDER, call_type=CallType.FREEZE)
    _, result = state_test_group("calls/freeze.json", "freeze_by_sender", _approved_state(), call)
    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_freeze_then_fund_then_unfreeze(batch_test_group) -> None:
    """Freezing blocks funding until the arbiter lifts it."""
    state = _approved_state()

    post, result = batch_test_group(
        "batches/freeze.json", "freeze_then_fund", state, [FREEZE, FUND]
    )
    assert result.error.code == ErrorCode.FROZEN
    assert post is state

    post, result = batch_test_group(
        "batches/freeze.json", "freeze_unfreeze_fund", state, [FREEZE, UNFREEZE, FUND]
    )
    assert result.ok
    assert post.settlement.funded
    assert [e.kind for e in post.events] == [
        EventKind.FROZEN,
        EventKind.UNFROZEN,
        EventKind.FUNDED,
    ]
