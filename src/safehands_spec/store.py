"""Escrow record store: keyed records, id allocation and the party index."""

from __future__ import annotations

import threading
from copy import deepcopy
from typing import Iterator, Optional

from .config import FIRST_ESCROW_ID, U64_MAX
from .errors import ErrorCode, SpecError
from .types import Escrow, EscrowEvent


class EscrowStore:
    """In-memory escrow storage.

    The store is a dumb keyed map: it never validates transitions. It hands out
    copies on read so a caller can only change a record through `put`.

    One store-level lock guards the id counter, the party index and the event
    log. Per-escrow locks (`lock_for`) serialize mutating calls against a
    single record and are held by the contract facade, not by the store.
    """

    def __init__(self, next_id: int = FIRST_ESCROW_ID):
        self._next_id = next_id
        self._records: dict[int, Escrow] = {}
        self._index: dict[bytes, set[int]] = {}
        self._events: list[EscrowEvent] = []
        self._record_locks: dict[int, threading.Lock] = {}
        self._lock = threading.Lock()

    @property
    def next_id(self) -> int:
        return self._next_id

    def allocate_id(self) -> int:
        with self._lock:
            eid = self._next_id
            if eid > U64_MAX:
                raise SpecError(ErrorCode.OVERFLOW, "escrow id limit reached")
            self._next_id = eid + 1
            return eid

    def put(self, escrow: Escrow) -> None:
        with self._lock:
            self._put_locked(escrow)

    def commit(self, escrow: Escrow, event: EscrowEvent) -> None:
        """Store a record and its event as one step."""
        with self._lock:
            self._put_locked(escrow)
            self._events.append(event)

    def _put_locked(self, escrow: Escrow) -> None:
        first_insert = escrow.id not in self._records
        self._records[escrow.id] = deepcopy(escrow)
        if first_insert:
            for party in escrow.parties():
                self._index.setdefault(party, set()).add(escrow.id)
            # Records loaded from fixtures may carry ids past the counter.
            if escrow.id >= self._next_id:
                self._next_id = escrow.id + 1

    def get(self, escrow_id: int) -> Optional[Escrow]:
        with self._lock:
            escrow = self._records.get(escrow_id)
            return deepcopy(escrow) if escrow is not None else None

    def ids_for(self, party: bytes) -> set[int]:
        with self._lock:
            return set(self._index.get(party, ()))

    def records(self) -> Iterator[Escrow]:
        """Snapshot of all records in id order."""
        with self._lock:
            snapshot = [deepcopy(self._records[k]) for k in sorted(self._records)]
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def lock_for(self, escrow_id: int) -> threading.Lock:
        with self._lock:
            lock = self._record_locks.get(escrow_id)
            if lock is None:
                lock = threading.Lock()
                self._record_locks[escrow_id] = lock
            return lock

    def events(self, escrow_id: Optional[int] = None) -> list[EscrowEvent]:
        with self._lock:
            if escrow_id is None:
                return list(self._events)
            return [e for e in self._events if e.escrow_id == escrow_id]
