"""Core types for the SafeHands escrow specs.

The escrow record mirrors the on-chain `Escrow` struct; everything else here
(transfers, events, actions) is the surface the lifecycle engine and the
contract facade exchange.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional


class EscrowState(IntEnum):
    FUNDED = 0
    RELEASED = 1
    CANCELLED = 2
    DISPUTED = 3
    RESOLVED = 4

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    EscrowState.RELEASED,
    EscrowState.CANCELLED,
    EscrowState.RESOLVED,
})


class ActionType(Enum):
    DEPOSIT = "deposit"
    APPROVE = "approve"
    CANCEL = "cancel"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CLAIM_TIMEOUT = "claim_timeout"


class EventTopic(Enum):
    DEPOSIT = "deposit"
    APPROVE = "approve"
    RELEASE = "release"
    CANCEL = "cancel"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    TIMEOUT = "timeout"


@dataclass
class Escrow:
    id: int
    client: bytes
    freelancer: bytes
    arbiter: bytes
    asset: bytes
    amount: int
    state: EscrowState = EscrowState.FUNDED
    approved_by_client: bool = False
    approved_by_freelancer: bool = False
    deadline: int = 0
    created_at: int = 0
    updated_at: int = 0

    def parties(self) -> list[bytes]:
        """Distinct parties in index order (client, freelancer, arbiter)."""
        out: list[bytes] = []
        for party in (self.client, self.freelancer, self.arbiter):
            if party not in out:
                out.append(party)
        return out


@dataclass(frozen=True)
class Transfer:
    asset: bytes
    source: bytes
    destination: bytes
    amount: int


@dataclass(frozen=True)
class EscrowEvent:
    topic: EventTopic
    escrow_id: int
    actor: bytes
    amount: int
    timestamp: int
    recipient: Optional[bytes] = None


@dataclass
class Transition:
    """Outcome of one engine step: the next record plus its side effects."""

    escrow: Escrow
    event: EscrowEvent
    transfer: Optional[Transfer] = None


@dataclass
class Action:
    action_type: ActionType
    caller: bytes
    escrow_id: Optional[int] = None
    payload: dict = field(default_factory=dict)
