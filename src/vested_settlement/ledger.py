"""Fungible asset ledger (the custody primitive the settlement calls).

Helpers mutate the state they are given. `apply` works on a deep copy so an
APPROVE/TRANSFER call is all-or-nothing like every other call.
"""

from __future__ import annotations

from copy import deepcopy

from .config import ADDRESS_LEN, ASSET_ID_LEN, U256_MAX
from .errors import ErrorCode, SettlementError
from .types import AssetState, Call, CallType, ChainState


def _to_bytes(v: object) -> bytes:
    if isinstance(v, bytes):
        return v
    if isinstance(v, (bytearray, list, tuple)):
        return bytes(v)
    return b""


def _asset(state: ChainState, asset: bytes) -> AssetState:
    a = state.assets.get(asset)
    if a is None:
        a = AssetState()
        state.assets[asset] = a
    return a


def balance_of(state: ChainState, asset: bytes, holder: bytes) -> int:
    a = state.assets.get(asset)
    if a is None:
        return 0
    return a.balances.get(holder, 0)


def allowance(state: ChainState, asset: bytes, owner: bytes, spender: bytes) -> int:
    a = state.assets.get(asset)
    if a is None:
        return 0
    return a.allowances.get(owner, {}).get(spender, 0)


def mint(state: ChainState, asset: bytes, holder: bytes, amount: int) -> None:
    if amount < 0:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "mint amount negative")
    a = _asset(state, asset)
    if a.total_supply + amount > U256_MAX:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "total supply overflow")
    a.total_supply += amount
    a.balances[holder] = a.balances.get(holder, 0) + amount


def approve(state: ChainState, asset: bytes, owner: bytes, spender: bytes, amount: int) -> None:
    if amount < 0 or amount > U256_MAX:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "allowance out of range")
    _asset(state, asset).allowances.setdefault(owner, {})[spender] = amount


def transfer(
    state: ChainState, asset: bytes, source: bytes, destination: bytes, amount: int
) -> None:
    if amount < 0:
        raise SettlementError(ErrorCode.TRANSFER_FAILED, "transfer amount negative")
    if balance_of(state, asset, source) < amount:
        raise SettlementError(ErrorCode.TRANSFER_FAILED, "transfer amount exceeds balance")
    # A no-op move leaves the ledger untouched, unseen assets included.
    if amount == 0 or source == destination:
        return
    a = _asset(state, asset)
    source_balance = a.balances.get(source, 0)
    dest_balance = a.balances.get(destination, 0)
    if dest_balance + amount > U256_MAX:
        raise SettlementError(ErrorCode.TRANSFER_FAILED, "receiver balance overflow")
    a.balances[source] = source_balance - amount
    a.balances[destination] = dest_balance + amount


def transfer_from(
    state: ChainState,
    asset: bytes,
    spender: bytes,
    owner: bytes,
    destination: bytes,
    amount: int,
) -> None:
    remaining = allowance(state, asset, owner, spender)
    if remaining < amount:
        raise SettlementError(ErrorCode.TRANSFER_FAILED, "insufficient allowance")
    transfer(state, asset, owner, destination, amount)
    if amount == 0:
        return
    _asset(state, asset).allowances.setdefault(owner, {})[spender] = remaining - amount


# --- APPROVE / TRANSFER calls ---


def verify(state: ChainState, call: Call) -> None:
    p = call.payload
    if not isinstance(p, dict):
        raise SettlementError(ErrorCode.INVALID_PAYLOAD, "ledger payload must be dict")

    asset = _to_bytes(p.get("asset"))
    if len(asset) != ASSET_ID_LEN:
        raise SettlementError(ErrorCode.INVALID_ASSET, "invalid asset id")

    amount = p.get("amount")
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "amount must be an integer")

    if call.call_type == CallType.APPROVE:
        spender = _to_bytes(p.get("spender"))
        if len(spender) != ADDRESS_LEN:
            raise SettlementError(ErrorCode.INVALID_ADDRESS, "invalid spender")
        if amount < 0 or amount > U256_MAX:
            raise SettlementError(ErrorCode.INVALID_AMOUNT, "allowance out of range")
        return

    if call.call_type != CallType.TRANSFER:
        raise SettlementError(ErrorCode.INVALID_TYPE, "unsupported ledger call type")

    destination = _to_bytes(p.get("destination"))
    if len(destination) != ADDRESS_LEN:
        raise SettlementError(ErrorCode.INVALID_ADDRESS, "invalid destination")
    if amount < 0:
        raise SettlementError(ErrorCode.INVALID_AMOUNT, "transfer amount negative")


def apply(state: ChainState, call: Call) -> ChainState:
    ns = deepcopy(state)
    p = call.payload
    asset = _to_bytes(p.get("asset"))
    amount = p.get("amount", 0)

    if call.call_type == CallType.APPROVE:
        approve(ns, asset, call.caller, _to_bytes(p.get("spender")), amount)
        return ns
    if call.call_type == CallType.TRANSFER:
        transfer(ns, asset, call.caller, _to_bytes(p.get("destination")), amount)
        return ns
    raise SettlementError(ErrorCode.INVALID_TYPE, f"unsupported ledger call type: {call.call_type}")
