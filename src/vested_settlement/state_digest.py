"""Canonical state digest implementation (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

_EVENT_KIND_IDS = {
    "Funded": 0,
    "Withdrawal": 1,
    "Frozen": 2,
    "Unfrozen": 3,
}


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _u256_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u256 must be non-negative")
    return int(value).to_bytes(32, "big", signed=False)


def _addr(value: str | None) -> bytes:
    b = _hex_to_bytes(value)
    if len(b) != 32:
        raise ValueError(f"address must be 32 bytes, got {len(b)}")
    return b


def _is_empty_asset(a: dict[str, Any]) -> bool:
    if int(a.get("total_supply", 0)) != 0:
        return False
    if any(int(b.get("amount", 0)) != 0 for b in a.get("balances", [])):
        return False
    return not any(int(al.get("amount", 0)) != 0 for al in a.get("allowances", []))


def _encode_assets(buf: bytearray, assets: list[dict[str, Any]]) -> None:
    # An asset with no supply and no live entries encodes like an absent one.
    ordered = sorted(
        ((_addr(a.get("asset")), a) for a in assets if not _is_empty_asset(a)),
        key=lambda x: x[0],
    )
    buf += _u64_be(len(ordered))
    for asset_id, a in ordered:
        buf += asset_id
        buf += _u256_be(int(a.get("total_supply", 0)))

        # Zero entries are indistinguishable from missing ones.
        balances = sorted(
            (_addr(b["holder"]), int(b["amount"]))
            for b in a.get("balances", [])
            if int(b.get("amount", 0)) != 0
        )
        buf += _u64_be(len(balances))
        for holder, amount in balances:
            buf += holder
            buf += _u256_be(amount)

        allowances = sorted(
            (_addr(al["owner"]), _addr(al["spender"]), int(al["amount"]))
            for al in a.get("allowances", [])
            if int(al.get("amount", 0)) != 0
        )
        buf += _u64_be(len(allowances))
        for owner, spender, amount in allowances:
            buf += owner
            buf += spender
            buf += _u256_be(amount)


def _encode_settlement(buf: bytearray, s: dict[str, Any] | None) -> None:
    if not s:
        buf += b"\x00"
        return
    buf += b"\x01"
    for field in ("address", "sender", "receiver", "arbiter", "settlement_asset"):
        buf += _addr(s.get(field))
    buf += _u256_be(int(s.get("settlement_amount", 0)))
    for field in ("creation_time", "second_unlock_time", "third_unlock_time"):
        buf += _u64_be(int(s.get(field, 0)))
    flags = 0
    for bit, field in enumerate(
        ("funded", "frozen", "claimed_first", "claimed_second", "claimed_third")
    ):
        if s.get(field):
            flags |= 1 << bit
    buf += bytes([flags])


def _encode_events(buf: bytearray, events: list[dict[str, Any]]) -> None:
    buf += _u64_be(len(events))
    for ev in events:
        kind = ev.get("kind", "")
        if kind not in _EVENT_KIND_IDS:
            raise ValueError(f"unknown event kind: {kind}")
        buf += bytes([_EVENT_KIND_IDS[kind]])
        buf += _u64_be(int(ev.get("timestamp", 0)))
        amount = ev.get("amount")
        buf += _u256_be(int(amount) if amount is not None else 0)


def compute_state_digest(post_state: dict[str, Any]) -> str:
    """Compute state digest v1 from an exported state.

    Fields are encoded in canonical order and hashed with BLAKE3-256.
    """
    if not isinstance(post_state, dict):
        post_state = {}
    buf = bytearray()
    buf += _u64_be(int(post_state.get("timestamp", 0)))
    _encode_assets(buf, post_state.get("assets", []) or [])
    _encode_settlement(buf, post_state.get("settlement"))
    _encode_events(buf, post_state.get("events", []) or [])
    return blake3(bytes(buf)).hexdigest()
