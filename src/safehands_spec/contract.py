"""SafeHands escrow contract: the seven external operations.

Each mutating call runs check-transfer-commit while holding the escrow's
exclusive lock. The transfer is executed before the record is stored, so a
failing transfer leaves the record and the event log untouched.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from . import engine
from .errors import ErrorCode, SpecError
from .ledger import Ledger
from .store import EscrowStore
from .types import Action, ActionType, Escrow, EscrowEvent, Transfer

logger = logging.getLogger(__name__)


class ActionResult:
    """Thin wrapper for execute results."""

    def __init__(self, ok: bool, error: Optional[SpecError] = None, value: Any = None):
        self.ok = ok
        self.error = error
        self.value = value

    @classmethod
    def success(cls, value: Any = None) -> "ActionResult":
        return cls(True, None, value)

    @classmethod
    def failure(cls, error: SpecError) -> "ActionResult":
        return cls(False, error)


class EscrowContract:
    def __init__(self, ledger: Optional[Ledger] = None, store: Optional[EscrowStore] = None):
        self.ledger = ledger if ledger is not None else Ledger()
        self.store = store if store is not None else EscrowStore()

    # --- mutating operations ---

    def deposit(
        self,
        client: bytes,
        freelancer: bytes,
        arbiter: Optional[bytes],
        asset: bytes,
        amount: int,
        deadline_days: int,
    ) -> int:
        action = Action(
            action_type=ActionType.DEPOSIT,
            caller=client,
            payload={
                "freelancer": freelancer,
                "arbiter": arbiter,
                "asset": asset,
                "amount": amount,
                "deadline_days": deadline_days,
            },
        )
        return self._deposit(action)

    def approve(self, approver: bytes, escrow_id: int) -> None:
        self._run(Action(ActionType.APPROVE, caller=approver, escrow_id=escrow_id))

    def cancel(self, client: bytes, escrow_id: int) -> None:
        self._run(Action(ActionType.CANCEL, caller=client, escrow_id=escrow_id))

    def dispute(self, caller: bytes, escrow_id: int) -> None:
        self._run(Action(ActionType.DISPUTE, caller=caller, escrow_id=escrow_id))

    def resolve(self, arbiter: bytes, escrow_id: int, winner: bytes) -> None:
        self._run(
            Action(
                ActionType.RESOLVE,
                caller=arbiter,
                escrow_id=escrow_id,
                payload={"winner": winner},
            )
        )

    def claim_timeout(self, escrow_id: int, caller: bytes) -> None:
        self._run(Action(ActionType.CLAIM_TIMEOUT, caller=caller, escrow_id=escrow_id))

    # --- read-only operations ---

    def get_escrow(self, escrow_id: int) -> Escrow:
        escrow = self.store.get(escrow_id)
        if escrow is None:
            raise SpecError(ErrorCode.ESCROW_NOT_FOUND, f"escrow {escrow_id} does not exist")
        return escrow

    def get_user_escrows(self, party: bytes) -> set[int]:
        return self.store.ids_for(party)

    def get_events(self, escrow_id: Optional[int] = None) -> list[EscrowEvent]:
        return self.store.events(escrow_id)

    # --- dispatch ---

    def execute(self, action: Action) -> ActionResult:
        """Run an action and report the outcome instead of raising."""
        try:
            if action.action_type == ActionType.DEPOSIT:
                return ActionResult.success(self._deposit(action))
            self._run(action)
            return ActionResult.success()
        except SpecError as exc:
            return ActionResult.failure(exc)

    def _deposit(self, action: Action) -> int:
        now = self.ledger.now()
        custody = self.ledger.custody
        try:
            engine.verify_deposit(action, now)
            # Funds enter custody before an id is handed out, so a failed
            # transfer never consumes an id.
            funding = engine.funding_transfer(action, custody)
            self._transfer(funding)
            try:
                escrow_id = self.store.allocate_id()
            except SpecError:
                self.ledger.transfer(funding.asset, custody, funding.source, funding.amount)
                raise
        except SpecError as exc:
            logger.debug("deposit rejected: %s", exc)
            raise

        result = engine.apply_deposit(escrow_id, action, now, custody)
        with self.store.lock_for(escrow_id):
            self.store.commit(result.escrow, result.event)
        logger.info(
            "escrow %d funded: amount=%d deadline=%d",
            escrow_id,
            result.escrow.amount,
            result.escrow.deadline,
        )
        return escrow_id

    def _run(self, action: Action) -> None:
        if action.escrow_id is None:
            raise SpecError(ErrorCode.INVALID_PAYLOAD, "escrow_id required")
        escrow_id = engine.require_escrow_id(action.escrow_id)

        with self.store.lock_for(escrow_id):
            escrow = self.store.get(escrow_id)
            now = self.ledger.now()
            try:
                result = engine.transition(escrow, action, now, self.ledger.custody)
                if result.transfer is not None:
                    self._transfer(result.transfer)
            except SpecError as exc:
                logger.debug(
                    "%s on escrow %s rejected: %s",
                    action.action_type.value,
                    escrow_id,
                    exc,
                )
                raise
            self.store.commit(result.escrow, result.event)

        logger.info(
            "escrow %d %s: state=%s",
            result.escrow.id,
            result.event.topic.value,
            result.escrow.state.name,
        )

    def _transfer(self, t: Transfer) -> None:
        self.ledger.transfer(t.asset, t.source, t.destination, t.amount)
