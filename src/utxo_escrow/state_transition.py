"""Escrow lifecycle state machine.

Legal transitions::

    CREATED           --WALLET_GENERATED-->     AWAITING_DEPOSITS
    AWAITING_DEPOSITS --DEPOSITS_SATISFIED-->   FUNDED
    FUNDED            --SETTLEMENT_BROADCAST--> SETTLED
    AWAITING_DEPOSITS --REFUND_BROADCAST-->     REFUNDED   (timelock only)

SETTLED and REFUNDED are terminal. The machine is single-writer: callers
serialize transitions for one escrow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .errors import AlreadySettledError, EscrowError, IllegalTransitionError
from .types import EscrowEvent, EscrowState

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[tuple[EscrowState, EscrowEvent], EscrowState] = {
    (EscrowState.CREATED, EscrowEvent.WALLET_GENERATED): EscrowState.AWAITING_DEPOSITS,
    (EscrowState.AWAITING_DEPOSITS, EscrowEvent.DEPOSITS_SATISFIED): EscrowState.FUNDED,
    (EscrowState.FUNDED, EscrowEvent.SETTLEMENT_BROADCAST): EscrowState.SETTLED,
    (EscrowState.AWAITING_DEPOSITS, EscrowEvent.REFUND_BROADCAST): EscrowState.REFUNDED,
}


class TransitionResult:
    """Thin wrapper for verify results."""

    def __init__(self, ok: bool, error: Optional[EscrowError] = None, target: Optional[EscrowState] = None):
        self.ok = ok
        self.error = error
        self.target = target

    @classmethod
    def success(cls, target: EscrowState) -> "TransitionResult":
        return cls(True, None, target)

    @classmethod
    def failure(cls, error: EscrowError) -> "TransitionResult":
        return cls(False, error)


def _check(state: EscrowState, event: EscrowEvent, refundable: bool) -> EscrowState:
    if state.is_terminal:
        raise AlreadySettledError(
            f"escrow is already {state.value}; {event.value} rejected",
            state=state.value,
            event=event.value,
        )
    if event is EscrowEvent.REFUND_BROADCAST and not refundable:
        raise IllegalTransitionError(
            "refund is only available to time-locked escrows", state=state.value, event=event.value
        )
    target = _TRANSITIONS.get((state, event))
    if target is None:
        raise IllegalTransitionError(
            f"{event.value} is not allowed from {state.value}", state=state.value, event=event.value
        )
    return target


def verify_transition(state: EscrowState, event: EscrowEvent, *, refundable: bool = False) -> TransitionResult:
    try:
        target = _check(state, event, refundable)
    except EscrowError as e:
        return TransitionResult.failure(e)
    return TransitionResult.success(target)


def apply_transition(state: EscrowState, event: EscrowEvent, *, refundable: bool = False) -> EscrowState:
    """Return the successor of ``state`` under ``event`` or raise."""
    return _check(state, event, refundable)


@dataclass(frozen=True)
class TransitionRecord:
    from_state: EscrowState
    event: EscrowEvent
    to_state: EscrowState
    at: datetime
    txid: Optional[str] = None


class EscrowStateMachine:
    def __init__(self, escrow_id: str, *, refundable: bool = False, state: EscrowState = EscrowState.CREATED):
        self.escrow_id = escrow_id
        self.refundable = refundable
        self._state = state
        self.history: list[TransitionRecord] = []

    @property
    def state(self) -> EscrowState:
        return self._state

    def can(self, event: EscrowEvent) -> bool:
        return verify_transition(self._state, event, refundable=self.refundable).ok

    def apply(self, event: EscrowEvent, *, txid: Optional[str] = None) -> EscrowState:
        target = apply_transition(self._state, event, refundable=self.refundable)
        self.history.append(
            TransitionRecord(self._state, event, target, datetime.now(timezone.utc), txid)
        )
        logger.info("escrow %s: %s -> %s", self.escrow_id, self._state.value, target.value)
        self._state = target
        return target

    def mark_wallet_generated(self) -> EscrowState:
        return self.apply(EscrowEvent.WALLET_GENERATED)

    def mark_funded(self) -> EscrowState:
        return self.apply(EscrowEvent.DEPOSITS_SATISFIED)

    def mark_settled(self, txid: str) -> EscrowState:
        return self.apply(EscrowEvent.SETTLEMENT_BROADCAST, txid=txid)

    def mark_refunded(self, txid: str) -> EscrowState:
        return self.apply(EscrowEvent.REFUND_BROADCAST, txid=txid)

    def require(self, event: EscrowEvent) -> None:
        """Raise the transition error for ``event`` without changing state.

        Lets a caller reject a settlement or refund before building and
        broadcasting anything.
        """
        apply_transition(self._state, event, refundable=self.refundable)
