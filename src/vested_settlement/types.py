"""Core types for the vested settlement model.

One settlement per chain state: a sender funds it once, a receiver claims it
in three tranches and an arbiter can freeze it or pull the funds back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional


class CallType(Enum):
    CREATE_SETTLEMENT = "create_settlement"
    APPROVE = "approve"
    TRANSFER = "transfer"
    FUND = "fund"
    WITHDRAW = "withdraw"
    FREEZE = "freeze"
    UNFREEZE = "unfreeze"
    RECOVER_FUNDS = "recover_funds"
    RECOVER_FOREIGN_ASSET = "recover_foreign_asset"


class ClaimStage(IntEnum):
    NONE = 0
    FIRST = 1
    SECOND = 2
    THIRD = 3


class EventKind(Enum):
    FUNDED = "Funded"
    WITHDRAWAL = "Withdrawal"
    FROZEN = "Frozen"
    UNFROZEN = "Unfrozen"


@dataclass
class Call:
    caller: bytes
    call_type: CallType
    payload: Optional[dict] = None


@dataclass
class Event:
    kind: EventKind
    timestamp: int
    amount: Optional[int] = None


# --- Asset ledger ---


@dataclass
class AssetState:
    balances: dict[bytes, int] = field(default_factory=dict)
    # owner -> spender -> remaining allowance
    allowances: dict[bytes, dict[bytes, int]] = field(default_factory=dict)
    total_supply: int = 0


# --- Settlement ---


@dataclass
class SettlementState:
    address: bytes
    sender: bytes
    receiver: bytes
    arbiter: bytes
    settlement_asset: bytes
    settlement_amount: int
    creation_time: int
    second_unlock_time: int
    third_unlock_time: int
    funded: bool = False
    frozen: bool = False
    claimed_first: bool = False
    claimed_second: bool = False
    claimed_third: bool = False

    @property
    def claim_stage(self) -> ClaimStage:
        if self.claimed_third:
            return ClaimStage.THIRD
        if self.claimed_second:
            return ClaimStage.SECOND
        if self.claimed_first:
            return ClaimStage.FIRST
        return ClaimStage.NONE

    @property
    def fully_claimed(self) -> bool:
        return self.claimed_first and self.claimed_second and self.claimed_third


# --- ChainState ---


@dataclass
class ChainState:
    timestamp: int = 0
    assets: dict[bytes, AssetState] = field(default_factory=dict)
    settlement: Optional[SettlementState] = None
    events: list[Event] = field(default_factory=list)
