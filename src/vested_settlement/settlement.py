"""Vested settlement rules.

The receiver claims 50% of the settlement as soon as it is funded, 25% once
`second_unlock_time` has passed and the last 25% once `third_unlock_time`
has passed. Unlock comparisons are strict: the unlock instant itself is not
claimable yet. Each tranche is truncated independently, so an amount that is
not a multiple of 4 leaves up to 3 units in the contract that only
`recover_funds` can move.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Optional

from blake3 import blake3

from . import ledger
from .config import (
    ADDRESS_LEN,
    ASSET_ID_LEN,
    FIRST_TRANCHE_PERCENT,
    PERCENT_DENOMINATOR,
    SECOND_TRANCHE_PERCENT,
    SECOND_UNLOCK_DELAY,
    THIRD_TRANCHE_PERCENT,
    THIRD_UNLOCK_DELAY,
    U256_MAX,
)
from .errors import ErrorCode, SettlementError
from .types import (
    Call,
    CallType,
    ChainState,
    ClaimStage,
    Event,
    EventKind,
    SettlementState,
)

_SETTLEMENT_TYPES = frozenset({
    CallType.CREATE_SETTLEMENT,
    CallType.FUND,
    CallType.WITHDRAW,
    CallType.FREEZE,
    CallType.UNFREEZE,
    CallType.RECOVER_FUNDS,
    CallType.RECOVER_FOREIGN_ASSET,
})

_ONLY_SENDER = "Only the sender can call this function"
_ONLY_RECEIVER = "Only the receiver can call this function"
_ONLY_ARBITER = "Only the arbiter can call this function"


def _to_bytes(v: object) -> bytes:
    if isinstance(v, bytes):
        return v
    if isinstance(v, (bytearray, list, tuple)):
        return bytes(v)
    return b""


def tranche(amount: int, percent: int) -> int:
    return amount * percent // PERCENT_DENOMINATOR


def settlement_address(
    deployer: bytes,
    sender: bytes,
    receiver: bytes,
    arbiter: bytes,
    asset: bytes,
    amount: int,
    creation_time: int,
) -> bytes:
    buf = bytearray()
    buf += deployer
    buf += sender
    buf += receiver
    buf += arbiter
    buf += asset
    buf += amount.to_bytes(32, "big")
    buf += creation_time.to_bytes(8, "big")
    return blake3(bytes(buf)).digest()


def _settlement(state: ChainState) -> SettlementState:
    s = state.settlement
    if s is None:
        raise SettlementError(ErrorCode.SETTLEMENT_NOT_FOUND, "settlement not created")
    return s


def _require_caller(caller: bytes, expected: bytes, message: str) -> None:
    if caller != expected:
        raise SettlementError(ErrorCode.UNAUTHORIZED, message)


def _require_not_frozen(s: SettlementState) -> None:
    if s.frozen:
        raise SettlementError(ErrorCode.FROZEN, "Contract is frozen")


def _pending_claim(s: SettlementState, now: int) -> Optional[tuple[ClaimStage, int]]:
    if s.claim_stage == ClaimStage.NONE:
        return ClaimStage.FIRST, tranche(s.settlement_amount, FIRST_TRANCHE_PERCENT)
    if now > s.second_unlock_time and not s.claimed_second:
        return ClaimStage.SECOND, tranche(s.settlement_amount, SECOND_TRANCHE_PERCENT)
    if now > s.third_unlock_time and not s.claimed_third:
        return ClaimStage.THIRD, tranche(s.settlement_amount, THIRD_TRANCHE_PERCENT)
    return None


def _next_claim(s: SettlementState, now: int) -> tuple[ClaimStage, int]:
    """Pick the single tranche a withdraw call pays out right now."""
    pending = _pending_claim(s, now)
    if pending is not None:
        return pending
    if s.fully_claimed:
        raise SettlementError(ErrorCode.FULLY_CLAIMED, "All settlement funds have been claimed")
    raise SettlementError(ErrorCode.CLAIM_WINDOW_NOT_OPEN, "Claim period has not yet passed")


def verify(state: ChainState, call: Call) -> None:
    tt = call.call_type
    if tt == CallType.CREATE_SETTLEMENT:
        _verify_create(state, call)
    elif tt == CallType.FUND:
        _verify_fund(state, call)
    elif tt == CallType.WITHDRAW:
        _verify_withdraw(state, call)
    elif tt in (CallType.FREEZE, CallType.UNFREEZE, CallType.RECOVER_FUNDS):
        _require_caller(call.caller, _settlement(state).arbiter, _ONLY_ARBITER)
    elif tt == CallType.RECOVER_FOREIGN_ASSET:
        _verify_recover_foreign_asset(state, call)
    else:
        raise SettlementError(ErrorCode.INVALID_TYPE, f"unsupported settlement call type: {tt}")


def apply(state: ChainState, call: Call) -> ChainState:
    tt = call.call_type
    if tt == CallType.CREATE_SETTLEMENT:
        return _apply_create(state, call)
    elif tt == CallType.FUND:
        return _apply_fund(state, call)
    elif tt == CallType.WITHDRAW:
        return _apply_withdraw(state, call)
    elif tt == CallType.FREEZE:
        return _apply_set_frozen(state, call, True)
    elif tt == CallType.UNFREEZE:
        return _apply_set_frozen(state, call, False)
    elif tt == CallType.RECOVER_FUNDS:
        return _apply_recover_funds(state, call)
    elif tt == CallType.RECOVER_FOREIGN_ASSET:
        return _apply_recover_foreign_asset(state, call)
    raise SettlementError(ErrorCode.INVALID_TYPE, f"unsupported settlement call type: {tt}")


# --- CREATE_SETTLEMENT ---

def _verify_create(state: ChainState, call: Call) -> None:
    if state.settlement is not None:
        raise SettlementError(ErrorCode.SETTLEMENT_EXISTS, "settlement already created")

    p = call.payload
    if not isinstance(p, dict):
        raise SettlementError(ErrorCode.INVALID_PAYLOAD, "create payload must be dict")

    parties = [_to_bytes(p.get(k)) for k in ("sender", "receiver", "arbiter")]
    if any(len(party) != ADDRESS_LEN for party in parties):
        raise SettlementError(ErrorCode.INVALID_ADDRESS, "invalid party address")
    if len(set(parties)) != len(parties):
        raise SettlementError(ErrorCode.INVALID_ADDRESS, "parties must be distinct")

    if len(_to_bytes(p.get("asset"))) != ASSET_ID_LEN:
        raise SettlementError(ErrorCode.INVALID_ASSET, "invalid settlement asset")

    amount = p.get("amount", 0)
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "settlement amount must be an integer")
    if amount <= 0:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "settlement amount must be > 0")
    if amount > U256_MAX:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "settlement amount exceeds u256")


def _apply_create(state: ChainState, call: Call) -> ChainState:
    ns = deepcopy(state)
    p = call.payload
    now = ns.timestamp
    sender = _to_bytes(p.get("sender"))
    receiver = _to_bytes(p.get("receiver"))
    arbiter = _to_bytes(p.get("arbiter"))
    asset = _to_bytes(p.get("asset"))
    amount = p["amount"]

    ns.settlement = SettlementState(
        address=settlement_address(call.caller, sender, receiver, arbiter, asset, amount, now),
        sender=sender,
        receiver=receiver,
        arbiter=arbiter,
        settlement_asset=asset,
        settlement_amount=amount,
        creation_time=now,
        second_unlock_time=now + SECOND_UNLOCK_DELAY,
        third_unlock_time=now + THIRD_UNLOCK_DELAY,
    )
    return ns


# --- FUND ---

def _verify_fund(state: ChainState, call: Call) -> None:
    s = _settlement(state)
    _require_caller(call.caller, s.sender, _ONLY_SENDER)
    _require_not_frozen(s)
    if s.funded:
        raise SettlementError(ErrorCode.ALREADY_FUNDED, "Settlement has already been funded")


def _apply_fund(state: ChainState, call: Call) -> ChainState:
    _verify_fund(state, call)
    ns = deepcopy(state)
    s = ns.settlement
    ledger.transfer_from(
        ns,
        s.settlement_asset,
        spender=s.address,
        owner=s.sender,
        destination=s.address,
        amount=s.settlement_amount,
    )
    s.funded = True
    ns.events.append(Event(EventKind.FUNDED, ns.timestamp, s.settlement_amount))
    return ns


# --- WITHDRAW ---

def _verify_withdraw(state: ChainState, call: Call) -> None:
    s = _settlement(state)
    _require_caller(call.caller, s.receiver, _ONLY_RECEIVER)
    _require_not_frozen(s)
    if not s.funded:
        raise SettlementError(ErrorCode.NOT_FUNDED, "Settlement has not been funded yet")
    _next_claim(s, state.timestamp)


def _apply_withdraw(state: ChainState, call: Call) -> ChainState:
    _verify_withdraw(state, call)
    ns = deepcopy(state)
    s = ns.settlement
    stage, amount = _next_claim(s, ns.timestamp)

    ledger.transfer(ns, s.settlement_asset, s.address, s.receiver, amount)

    if stage == ClaimStage.FIRST:
        s.claimed_first = True
    elif stage == ClaimStage.SECOND:
        s.claimed_second = True
    else:
        s.claimed_third = True
    ns.events.append(Event(EventKind.WITHDRAWAL, ns.timestamp, amount))
    return ns


# --- FREEZE / UNFREEZE ---

def _apply_set_frozen(state: ChainState, call: Call, frozen: bool) -> ChainState:
    _require_caller(call.caller, _settlement(state).arbiter, _ONLY_ARBITER)
    ns = deepcopy(state)
    ns.settlement.frozen = frozen
    kind = EventKind.FROZEN if frozen else EventKind.UNFROZEN
    ns.events.append(Event(kind, ns.timestamp))
    return ns


# --- RECOVER_FUNDS ---

def _apply_recover_funds(state: ChainState, call: Call) -> ChainState:
    s = _settlement(state)
    _require_caller(call.caller, s.arbiter, _ONLY_ARBITER)
    ns = deepcopy(state)
    balance = ledger.balance_of(ns, s.settlement_asset, s.address)
    ledger.transfer(ns, s.settlement_asset, s.address, s.arbiter, balance)
    return ns


# --- RECOVER_FOREIGN_ASSET ---

def _verify_recover_foreign_asset(state: ChainState, call: Call) -> None:
    s = _settlement(state)
    _require_caller(call.caller, s.arbiter, _ONLY_ARBITER)

    p = call.payload
    if not isinstance(p, dict):
        raise SettlementError(ErrorCode.INVALID_PAYLOAD, "recover payload must be dict")
    asset = _to_bytes(p.get("asset"))
    if len(asset) != ASSET_ID_LEN:
        raise SettlementError(ErrorCode.INVALID_ASSET, "invalid asset id")
    if asset == s.settlement_asset:
        raise SettlementError(ErrorCode.INVALID_ASSET, "Cannot recover the settlement asset")

    amount = p.get("amount", 0)
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "invalid recover amount")


def _apply_recover_foreign_asset(state: ChainState, call: Call) -> ChainState:
    _verify_recover_foreign_asset(state, call)
    ns = deepcopy(state)
    s = ns.settlement
    p = call.payload
    ledger.transfer(ns, _to_bytes(p.get("asset")), s.address, s.arbiter, p.get("amount", 0))
    return ns


# --- Read-only projections ---

def time_until_next_unlock(state: ChainState) -> int:
    s = _settlement(state)
    now = state.timestamp
    if now < s.second_unlock_time:
        return s.second_unlock_time - now
    if now < s.third_unlock_time:
        return s.third_unlock_time - now
    return 0


def amount_next_unlock(state: ChainState) -> int:
    """Amount the next unlock releases.

    Only looks at `claimed_first` and the third unlock time, so it keeps
    reporting 25% between the second and third unlock even after the second
    tranche has been claimed. `next_claim_amount` is the exact figure.
    """
    s = _settlement(state)
    if not s.claimed_first:
        return tranche(s.settlement_amount, FIRST_TRANCHE_PERCENT)
    if state.timestamp < s.third_unlock_time:
        return tranche(s.settlement_amount, SECOND_TRANCHE_PERCENT)
    return 0


def next_claim_amount(state: ChainState) -> int:
    """What `withdraw` would pay right now, ignoring caller and freeze checks."""
    s = _settlement(state)
    if not s.funded:
        return 0
    pending = _pending_claim(s, state.timestamp)
    return pending[1] if pending is not None else 0


def total_claimed(state: ChainState) -> int:
    s = _settlement(state)
    total = 0
    if s.claimed_first:
        total += tranche(s.settlement_amount, FIRST_TRANCHE_PERCENT)
    if s.claimed_second:
        total += tranche(s.settlement_amount, SECOND_TRANCHE_PERCENT)
    if s.claimed_third:
        total += tranche(s.settlement_amount, THIRD_TRANCHE_PERCENT)
    return total


def contract_balance(state: ChainState) -> int:
    s = _settlement(state)
    return ledger.balance_of(state, s.settlement_asset, s.address)


def is_settlement_call(call: Call) -> bool:
    return call.call_type in _SETTLEMENT_TYPES
