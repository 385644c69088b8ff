"""withdraw fixtures: tranche schedule, unlock edges and gating."""

from __future__ import annotations

import pytest

from vested_settlement import ledger
from vested_settlement.config import (
    DEFAULT_SETTLEMENT_AMOUNT,
    SECOND_UNLOCK_DELAY,
    THIRD_UNLOCK_DELAY,
)
from vested_settlement.errors import ErrorCode
from vested_settlement.settlement import contract_balance, total_claimed
from vested_settlement.state_transition import advance_time, apply_call
from vested_settlement.test_accounts import (
    ARBITER,
    DEPLOYER,
    OUTSIDER,
    RECEIVER,
    SENDER,
    USDC,
)
from vested_settlement.types import Call, CallType, ChainState, ClaimStage, EventKind

T0 = 1_700_000_000
AMOUNT = DEFAULT_SETTLEMENT_AMOUNT

WITHDRAW = Call(caller=RECEIVER, call_type=CallType.WITHDRAW)


def _created_state(amount: int = AMOUNT) -> ChainState:
    state = ChainState(timestamp=T0)
    ledger.mint(state, USDC, SENDER, amount)
    create = Call(
        caller=DEPLOYER,
        call_type=CallType.CREATE_SETTLEMENT,
        payload={
            "sender": SENDER,
            "receiver": RECEIVER,
            "arbiter": ARBITER,
            "asset": USDC,
            "amount": amount,
        },
    )
    state, result = apply_call(state, create)
    assert result.ok
    ledger.approve(state, USDC, SENDER, state.settlement.address, amount)
    return state


def _funded_state(amount: int = AMOUNT) -> ChainState:
    state, result = apply_call(_created_state(amount), Call(caller=SENDER, call_type=CallType.FUND))
    assert result.ok
    return state


def _withdraw(state: ChainState) -> ChainState:
    state, result = apply_call(state, WITHDRAW)
    assert result.ok, result
    return state


def _at(state: ChainState, offset: int) -> ChainState:
    """Move the clock to T0 + offset."""
    return advance_time(state, T0 + offset - state.timestamp)


def test_withdraw_first_tranche(state_test_group) -> None:
    state = _funded_state()
    assert state.settlement.claim_stage == ClaimStage.NONE
    post, result = state_test_group("calls/withdraw.json", "withdraw_first_tranche", state, WITHDRAW)
    assert result.ok
    assert ledger.balance_of(post, USDC, RECEIVER) == AMOUNT // 2
    assert contract_balance(post) == AMOUNT // 2
    assert post.settlement.claim_stage == ClaimStage.FIRST
    ev = post.events[-1]
    assert (ev.kind, ev.timestamp, ev.amount) == (EventKind.WITHDRAWAL, T0, AMOUNT // 2)


def test_withdraw_second_window_not_open(state_test_group) -> None:
    state = _withdraw(_funded_state())
    post, result = state_test_group(
        "calls/withdraw.json", "withdraw_second_too_early", state, WITHDRAW
    )
    assert result.error.code == ErrorCode.CLAIM_WINDOW_NOT_OPEN
    assert result.error.message == "Claim period has not yet passed"
    assert ledger.balance_of(post, USDC, RECEIVER) == AMOUNT // 2


def test_withdraw_at_second_unlock_instant(state_test_group) -> None:
    state = _at(_withdraw(_funded_state()), SECOND_UNLOCK_DELAY)
    _, result = state_test_group(
        "calls/withdraw.json", "withdraw_at_second_unlock_instant", state, WITHDRAW
    )
    assert result.error.code == ErrorCode.CLAIM_WINDOW_NOT_OPEN


def test_withdraw_just_after_second_unlock(state_test_group) -> None:
    state = _at(_withdraw(_funded_state()), SECOND_UNLOCK_DELAY + 1)
    post, result = state_test_group(
        "calls/withdraw.json", "withdraw_second_tranche", state, WITHDRAW
    )
    assert result.ok
    assert post.settlement.claimed_second
    assert ledger.balance_of(post, USDC, RECEIVER) == AMOUNT * 3 // 4


def test_withdraw_at_third_unlock_instant(state_test_group) -> None:
    state = _withdraw(_at(_withdraw(_funded_state()), SECOND_UNLOCK_DELAY + 1))
    state = _at(state, THIRD_UNLOCK_DELAY)
    _, result = state_test_group(
        "calls/withdraw.json", "withdraw_at_third_unlock_instant", state, WITHDRAW
    )
    assert result.error.code == ErrorCode.CLAIM_WINDOW_NOT_OPEN


def test_withdraw_third_then_fully_claimed(state_test_group) -> None:
    state = _withdraw(_at(_withdraw(_funded_state()), SECOND_UNLOCK_DELAY + 1))
    state = _at(state, THIRD_UNLOCK_DELAY + 1)
    post, result = state_test_group(
        "calls/withdraw.json", "withdraw_third_tranche", state, WITHDRAW
    )
    assert result.ok
    assert post.settlement.fully_claimed
    assert ledger.balance_of(post, USDC, RECEIVER) == AMOUNT
    assert contract_balance(post) == 0

    again, result = state_test_group(
        "calls/withdraw.json", "withdraw_fully_claimed", post, WITHDRAW
    )
    assert result.error.code == ErrorCode.FULLY_CLAIMED
    assert result.error.message == "All settlement funds have been claimed"
    assert again is post


def test_withdraw_catch_up_pays_one_tranche_per_call() -> None:
    state = _at(_funded_state(), THIRD_UNLOCK_DELAY + 1)

    state = _withdraw(state)
    assert state.settlement.claim_stage == ClaimStage.FIRST
    state = _withdraw(state)
    assert state.settlement.claim_stage == ClaimStage.SECOND
    state = _withdraw(state)
    assert state.settlement.claim_stage == ClaimStage.THIRD

    amounts = [ev.amount for ev in state.events if ev.kind == EventKind.WITHDRAWAL]
    assert amounts == [AMOUNT // 2, AMOUNT // 4, AMOUNT // 4]

    _, result = apply_call(state, WITHDRAW)
    assert result.error.code == ErrorCode.FULLY_CLAIMED


@pytest.mark.parametrize("amount,dust", [(10, 1), (7, 2), (3, 2), (4, 0), (101, 1)])
def test_withdraw_truncation_leaves_dust(amount: int, dust: int) -> None:
    state = _at(_funded_state(amount), THIRD_UNLOCK_DELAY + 1)
    for _ in range(3):
        state = _withdraw(state)

    assert state.settlement.fully_claimed
    assert total_claimed(state) == amount - dust
    assert contract_balance(state) == dust
    assert ledger.balance_of(state, USDC, RECEIVER) == amount - dust


def test_withdraw_dust_fixture(state_test_group) -> None:
    state = _withdraw(_withdraw(_at(_funded_state(10), THIRD_UNLOCK_DELAY + 1)))
    post, result = state_test_group(
        "calls/withdraw.json", "withdraw_third_tranche_with_dust", state, WITHDRAW
    )
    assert result.ok
    assert contract_balance(post) == 1


@pytest.mark.parametrize("caller", [SENDER, ARBITER, OUTSIDER])
def test_withdraw_unauthorized(caller: bytes) -> None:
    state = _funded_state()
    post, result = apply_call(state, Call(caller=caller, call_type=CallType.WITHDRAW))
    assert result.error.code == ErrorCode.UNAUTHORIZED
    assert result.error.message == "Only the receiver can call this function"
    assert post is state


def test_withdraw_by_sender_fixture(state_test_group) -> None:
    call = Call(caller=SENDER, call_type=CallType.WITHDRAW)
    _, result = state_test_group(
        "calls/withdraw.json", "withdraw_by_sender", _funded_state(), call
    )
    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_withdraw_not_funded(state_test_group) -> None:
    _, result = state_test_group(
        "calls/withdraw.json", "withdraw_not_funded", _created_state(), WITHDRAW
    )
    assert result.error.code == ErrorCode.NOT_FUNDED
    assert result.error.message == "Settlement has not been funded yet"


def test_withdraw_while_frozen(state_test_group) -> None:
    state, _ = apply_call(_funded_state(), Call(caller=ARBITER, call_type=CallType.FREEZE))
    post, result = state_test_group(
        "calls/withdraw.json", "withdraw_while_frozen", state, WITHDRAW
    )
    assert result.error.code == ErrorCode.FROZEN
    assert not post.settlement.claimed_first
    assert ledger.balance_of(post, USDC, RECEIVER) == 0


def test_withdraw_frozen_checked_before_funding() -> None:
    state, _ = apply_call(_created_state(), Call(caller=ARBITER, call_type=CallType.FREEZE))
    _, result = apply_call(state, WITHDRAW)
    assert result.error.code == ErrorCode.FROZEN


def test_withdraw_authorization_checked_first() -> None:
    state, _ = apply_call(_created_state(), Call(caller=ARBITER, call_type=CallType.FREEZE))
    _, result = apply_call(state, Call(caller=OUTSIDER, call_type=CallType.WITHDRAW))
    assert result.error.code == ErrorCode.UNAUTHORIZED
