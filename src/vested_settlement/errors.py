"""Vested settlement error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    RESOURCE = 0x03
    STATE = 0x04
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation
    INVALID_FORMAT = 0x0100
    INVALID_TYPE = 0x0102
    INVALID_TIMESTAMP = 0x0104
    INVALID_AMOUNT = 0x0105
    INVALID_ADDRESS = 0x0106
    INVALID_PAYLOAD = 0x0107
    INVALID_ASSET = 0x0108

    # Authorization
    UNAUTHORIZED = 0x0200

    # Resource
    TRANSFER_FAILED = 0x0300

    # State
    SETTLEMENT_NOT_FOUND = 0x0400
    SETTLEMENT_EXISTS = 0x0401
    FROZEN = 0x0402
    ALREADY_FUNDED = 0x0403
    NOT_FUNDED = 0x0404
    CLAIM_WINDOW_NOT_OPEN = 0x0405
    FULLY_CLAIMED = 0x0406

    # Internal
    INTERNAL_ERROR = 0xFF00
    NOT_IMPLEMENTED = 0xFF01
    UNKNOWN = 0xFFFF

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class SettlementError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__"))
_frozen_setattr = SettlementError.__setattr__


def _settlement_error_setattr(self: SettlementError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


SettlementError.__setattr__ = _settlement_error_setattr  # type: ignore[method-assign]


def err(code: ErrorCode, message: str) -> SettlementError:
    return SettlementError(code=code, message=message)
