"""State transition entrypoints for the vested settlement model."""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Optional

from . import ledger
from . import settlement
from .config import ADDRESS_LEN, U64_MAX
from .errors import ErrorCode, SettlementError
from .types import Call, CallType, ChainState

logger = logging.getLogger(__name__)

_LEDGER_TYPES = frozenset({
    CallType.APPROVE,
    CallType.TRANSFER,
})

# Calls that carry no arguments beyond the caller.
_NO_PAYLOAD_TYPES = frozenset({
    CallType.FUND,
    CallType.WITHDRAW,
    CallType.FREEZE,
    CallType.UNFREEZE,
    CallType.RECOVER_FUNDS,
})


class TransitionResult:
    """Thin wrapper for verify/apply results."""

    def __init__(self, ok: bool, error: Optional[SettlementError] = None):
        self.ok = ok
        self.error = error

    @classmethod
    def success(cls) -> "TransitionResult":
        return cls(True, None)

    @classmethod
    def failure(cls, error: SettlementError) -> "TransitionResult":
        return cls(False, error)

    def __repr__(self) -> str:
        if self.ok:
            return "TransitionResult(ok)"
        return f"TransitionResult({self.error})"


def _dispatch_verify(state: ChainState, call: Call) -> None:
    if call.call_type in _LEDGER_TYPES:
        return ledger.verify(state, call)
    if settlement.is_settlement_call(call):
        return settlement.verify(state, call)

    raise SettlementError(ErrorCode.NOT_IMPLEMENTED, f"verify not implemented for {call.call_type}")


def _dispatch_apply(state: ChainState, call: Call) -> ChainState:
    if call.call_type in _LEDGER_TYPES:
        return ledger.apply(state, call)
    if settlement.is_settlement_call(call):
        return settlement.apply(state, call)

    raise SettlementError(ErrorCode.NOT_IMPLEMENTED, f"apply not implemented for {call.call_type}")


def _verify_common(state: ChainState, call: Call) -> None:
    if not isinstance(call.call_type, CallType):
        raise SettlementError(ErrorCode.INVALID_TYPE, "unknown call type")

    if not isinstance(call.caller, bytes) or len(call.caller) != ADDRESS_LEN:
        raise SettlementError(ErrorCode.INVALID_ADDRESS, "caller must be a 32-byte address")

    if call.call_type in _NO_PAYLOAD_TYPES and call.payload:
        raise SettlementError(ErrorCode.INVALID_PAYLOAD, f"{call.call_type.value} takes no payload")


def verify_call(state: ChainState, call: Call) -> TransitionResult:
    """Check every precondition that does not depend on moving funds."""
    try:
        _verify_common(state, call)
        _dispatch_verify(state, call)
        return TransitionResult.success()
    except SettlementError as exc:
        return TransitionResult.failure(exc)


def apply_call(state: ChainState, call: Call) -> tuple[ChainState, TransitionResult]:
    """Apply a call after verification.

    Failed-call semantics: the input state object is returned unchanged, no
    flag is set, no balance moves and no event is recorded.
    """
    # Pre-validation
    try:
        _verify_common(state, call)
        _dispatch_verify(state, call)
    except SettlementError as exc:
        logger.info(f"Rejected {call.call_type}: {exc}")
        return state, TransitionResult.failure(exc)

    try:
        working = _dispatch_apply(state, call)
    except SettlementError as exc:
        # Execution failure (e.g. the asset transfer was refused): state unchanged
        logger.info(f"Execution of {call.call_type} failed: {exc}")
        return state, TransitionResult.failure(exc)

    logger.debug(f"Applied {call.call_type.value} at t={working.timestamp}")
    return working, TransitionResult.success()


def apply_calls(state: ChainState, calls: list[Call]) -> tuple[ChainState, TransitionResult]:
    """Apply calls in order with batch-atomic semantics.

    If any call fails, the whole batch is rejected and the state is
    unchanged.
    """
    working = state
    for call in calls:
        working, result = apply_call(working, call)
        if not result.ok:
            return state, result
    return working, TransitionResult.success()


def advance_time(state: ChainState, seconds: int) -> ChainState:
    if seconds < 0:
        raise SettlementError(ErrorCode.INVALID_TIMESTAMP, "time cannot move backwards")
    if state.timestamp + seconds > U64_MAX:
        raise SettlementError(ErrorCode.INVALID_TIMESTAMP, "timestamp overflow")
    ns = deepcopy(state)
    ns.timestamp += seconds
    return ns
