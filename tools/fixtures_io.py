"""Helpers to serialize/deserialize fixtures for the vested settlement model."""

from __future__ import annotations

from typing import Any

from vested_settlement.types import (
    AssetState,
    Call,
    CallType,
    ChainState,
    Event,
    EventKind,
    SettlementState,
)


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


_SETTLEMENT_BYTES_FIELDS = ("address", "sender", "receiver", "arbiter", "settlement_asset")
_SETTLEMENT_INT_FIELDS = (
    "settlement_amount",
    "creation_time",
    "second_unlock_time",
    "third_unlock_time",
)
_SETTLEMENT_FLAG_FIELDS = (
    "funded",
    "frozen",
    "claimed_first",
    "claimed_second",
    "claimed_third",
)


def state_to_json(state: ChainState) -> dict[str, Any]:
    assets_out: list[dict[str, Any]] = []
    for asset_id, a in state.assets.items():
        assets_out.append(
            {
                "asset": _bytes_to_hex(asset_id),
                "total_supply": a.total_supply,
                "balances": [
                    {"holder": _bytes_to_hex(holder), "amount": amount}
                    for holder, amount in a.balances.items()
                ],
                "allowances": [
                    {
                        "owner": _bytes_to_hex(owner),
                        "spender": _bytes_to_hex(spender),
                        "amount": amount,
                    }
                    for owner, spenders in a.allowances.items()
                    for spender, amount in spenders.items()
                ],
            }
        )

    result: dict[str, Any] = {
        "timestamp": state.timestamp,
        "assets": assets_out,
        "settlement": None,
        "events": [
            {"kind": ev.kind.value, "timestamp": ev.timestamp, "amount": ev.amount}
            for ev in state.events
        ],
    }

    s = state.settlement
    if s is not None:
        entry: dict[str, Any] = {}
        for name in _SETTLEMENT_BYTES_FIELDS:
            entry[name] = _bytes_to_hex(getattr(s, name))
        for name in _SETTLEMENT_INT_FIELDS + _SETTLEMENT_FLAG_FIELDS:
            entry[name] = getattr(s, name)
        result["settlement"] = entry

    return result


def state_from_json(data: dict[str, Any]) -> ChainState:
    state = ChainState(timestamp=data.get("timestamp", 0))

    for a in data.get("assets", []):
        asset = AssetState(total_supply=a.get("total_supply", 0))
        for b in a.get("balances", []):
            asset.balances[_hex_to_bytes(b["holder"])] = b["amount"]
        for al in a.get("allowances", []):
            owner = _hex_to_bytes(al["owner"])
            asset.allowances.setdefault(owner, {})[_hex_to_bytes(al["spender"])] = al["amount"]
        state.assets[_hex_to_bytes(a["asset"])] = asset

    s = data.get("settlement")
    if s:
        kwargs: dict[str, Any] = {}
        for name in _SETTLEMENT_BYTES_FIELDS:
            kwargs[name] = _hex_to_bytes(s[name])
        for name in _SETTLEMENT_INT_FIELDS:
            kwargs[name] = s[name]
        for name in _SETTLEMENT_FLAG_FIELDS:
            kwargs[name] = bool(s.get(name, False))
        state.settlement = SettlementState(**kwargs)

    for ev in data.get("events", []):
        state.events.append(
            Event(
                kind=EventKind(ev["kind"]),
                timestamp=ev.get("timestamp", 0),
                amount=ev.get("amount"),
            )
        )

    return state


def _payload_to_json(payload: Any) -> Any:
    """Recursively convert a payload value, turning bytes into hex strings."""
    if payload is None:
        return None
    if isinstance(payload, (bytes, bytearray)):
        return _bytes_to_hex(bytes(payload))
    if isinstance(payload, dict):
        return {k: _payload_to_json(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_payload_to_json(item) for item in payload]
    return payload


def call_to_json(call: Call) -> dict[str, Any]:
    return {
        "caller": _bytes_to_hex(call.caller),
        "call_type": call.call_type.value,
        "payload": _payload_to_json(call.payload),
    }


_BYTES_FIELDS: set[str] = {
    "sender", "receiver", "arbiter", "asset", "spender", "destination",
}


def _json_to_bytes_payload(payload: Any) -> Any:
    """Recursively convert hex string fields to bytes in a JSON payload."""
    if payload is None:
        return None
    if isinstance(payload, dict):
        result: dict[str, Any] = {}
        for key, value in payload.items():
            if key in _BYTES_FIELDS and isinstance(value, str) and value:
                result[key] = _hex_to_bytes(value)
            elif isinstance(value, (dict, list)):
                result[key] = _json_to_bytes_payload(value)
            else:
                result[key] = value
        return result
    if isinstance(payload, list):
        return [_json_to_bytes_payload(item) for item in payload]
    return payload


def call_from_json(data: dict[str, Any]) -> Call:
    return Call(
        caller=_hex_to_bytes(data["caller"]),
        call_type=CallType(data["call_type"]),
        payload=_json_to_bytes_payload(data.get("payload")),
    )
