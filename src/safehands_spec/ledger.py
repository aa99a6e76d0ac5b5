"""Host ledger model: asset balances, custody, and the ledger clock.

The escrow engine consumes exactly two primitives from the host ledger:
`transfer` (atomic, failure-reporting) and `now`. This module provides an
in-memory ledger with those semantics for specs, fixtures and conformance.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from .config import CUSTODY_ADDRESS, GENESIS_TIMESTAMP, U128_MAX
from .errors import ErrorCode, SpecError


class Ledger:
    """Balances keyed by (asset, address) plus a monotonic timestamp.

    Accounts listed in `frozen` can neither send nor receive, which models an
    asset issuer revoking authorization; it is the only way a transfer out of
    custody can fail.
    """

    def __init__(
        self,
        timestamp: int = GENESIS_TIMESTAMP,
        custody: bytes = CUSTODY_ADDRESS,
        balances: Optional[dict[tuple[bytes, bytes], int]] = None,
        frozen: Optional[Iterable[bytes]] = None,
    ):
        self.custody = custody
        self._timestamp = timestamp
        self._balances: dict[tuple[bytes, bytes], int] = dict(balances or {})
        self._frozen: set[bytes] = set(frozen or ())
        self._lock = threading.Lock()

    # --- clock ---

    def now(self) -> int:
        with self._lock:
            return self._timestamp

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("ledger time cannot go backwards")
        with self._lock:
            self._timestamp += seconds
            return self._timestamp

    # --- balances ---

    def balance(self, asset: bytes, address: bytes) -> int:
        with self._lock:
            return self._balances.get((asset, address), 0)

    def balances(self) -> dict[tuple[bytes, bytes], int]:
        with self._lock:
            return dict(self._balances)

    def frozen(self) -> set[bytes]:
        with self._lock:
            return set(self._frozen)

    def mint(self, asset: bytes, address: bytes, amount: int) -> None:
        if amount < 0:
            raise ValueError("mint amount must be >= 0")
        with self._lock:
            key = (asset, address)
            new_balance = self._balances.get(key, 0) + amount
            if new_balance > U128_MAX:
                raise SpecError(ErrorCode.OVERFLOW, "balance overflow")
            self._balances[key] = new_balance

    def freeze(self, address: bytes) -> None:
        with self._lock:
            self._frozen.add(address)

    def unfreeze(self, address: bytes) -> None:
        with self._lock:
            self._frozen.discard(address)

    def transfer(self, asset: bytes, source: bytes, destination: bytes, amount: int) -> None:
        """Move `amount` of `asset`; either both sides change or neither does."""
        with self._lock:
            if amount <= 0:
                raise SpecError(ErrorCode.TRANSFER_FAILED, "transfer amount must be > 0")
            if source in self._frozen:
                raise SpecError(ErrorCode.TRANSFER_FAILED, "source account frozen")
            if destination in self._frozen:
                raise SpecError(ErrorCode.TRANSFER_FAILED, "destination account frozen")

            src_key = (asset, source)
            dst_key = (asset, destination)
            src_balance = self._balances.get(src_key, 0)
            if src_balance < amount:
                raise SpecError(ErrorCode.TRANSFER_FAILED, "insufficient balance")
            if source == destination:
                return
            dst_balance = self._balances.get(dst_key, 0)
            if dst_balance + amount > U128_MAX:
                raise SpecError(ErrorCode.TRANSFER_FAILED, "destination balance overflow")

            self._balances[src_key] = src_balance - amount
            self._balances[dst_key] = dst_balance + amount
