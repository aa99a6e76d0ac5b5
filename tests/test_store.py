"""Escrow store and ledger behaviour."""

from __future__ import annotations

import threading

import pytest

from safehands_spec.config import U64_MAX
from safehands_spec.errors import ErrorCode, SpecError
from safehands_spec.ledger import Ledger
from safehands_spec.store import EscrowStore
from safehands_spec.test_accounts import ALICE, BOB, CAROL, XLM
from safehands_spec.types import Escrow, EscrowEvent, EventTopic


def _escrow(eid: int, arbiter: bytes = CAROL) -> Escrow:
    return Escrow(id=eid, client=ALICE, freelancer=BOB, arbiter=arbiter, asset=XLM, amount=10)


def test_allocate_id_sequential() -> None:
    store = EscrowStore()
    assert [store.allocate_id() for _ in range(3)] == [1, 2, 3]
    assert store.next_id == 4


def test_allocate_id_overflow() -> None:
    store = EscrowStore(next_id=U64_MAX)
    assert store.allocate_id() == U64_MAX
    with pytest.raises(SpecError) as exc_info:
        store.allocate_id()
    assert exc_info.value.code == ErrorCode.OVERFLOW


def test_allocate_id_unique_across_threads() -> None:
    store = EscrowStore()
    seen: list[int] = []
    seen_lock = threading.Lock()

    def worker() -> None:
        ids = [store.allocate_id() for _ in range(200)]
        with seen_lock:
            seen.extend(ids)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(seen) == list(range(1, 1601))


def test_put_indexes_each_party_once() -> None:
    store = EscrowStore()
    store.put(_escrow(1, arbiter=ALICE))

    assert store.ids_for(ALICE) == {1}
    assert store.ids_for(BOB) == {1}
    assert store.ids_for(CAROL) == set()


def test_put_advances_counter_past_loaded_ids() -> None:
    store = EscrowStore()
    store.put(_escrow(7))
    assert store.allocate_id() == 8


def test_get_returns_copy() -> None:
    store = EscrowStore()
    store.put(_escrow(1))
    copy = store.get(1)
    copy.amount = 0
    assert store.get(1).amount == 10
    assert store.get(2) is None


def test_ids_for_returns_copy() -> None:
    store = EscrowStore()
    store.put(_escrow(1))
    ids = store.ids_for(ALICE)
    ids.add(99)
    assert store.ids_for(ALICE) == {1}


def test_commit_appends_event() -> None:
    store = EscrowStore()
    event = EscrowEvent(topic=EventTopic.DEPOSIT, escrow_id=1, actor=ALICE, amount=10, timestamp=0)
    store.commit(_escrow(1), event)

    assert len(store) == 1
    assert store.events() == [event]
    assert store.events(1) == [event]
    assert store.events(2) == []


def test_records_in_id_order() -> None:
    store = EscrowStore()
    for eid in (3, 1, 2):
        store.put(_escrow(eid))
    assert [e.id for e in store.records()] == [1, 2, 3]


def test_lock_for_is_stable_per_id() -> None:
    store = EscrowStore()
    assert store.lock_for(1) is store.lock_for(1)
    assert store.lock_for(1) is not store.lock_for(2)


# --- ledger ---


def test_ledger_transfer_moves_funds() -> None:
    ledger = Ledger()
    ledger.mint(XLM, ALICE, 100)
    ledger.transfer(XLM, ALICE, BOB, 40)
    assert ledger.balance(XLM, ALICE) == 60
    assert ledger.balance(XLM, BOB) == 40


@pytest.mark.parametrize("amount", [0, -1, 101])
def test_ledger_transfer_rejects(amount) -> None:
    ledger = Ledger()
    ledger.mint(XLM, ALICE, 100)
    with pytest.raises(SpecError) as exc_info:
        ledger.transfer(XLM, ALICE, BOB, amount)
    assert exc_info.value.code == ErrorCode.TRANSFER_FAILED
    assert ledger.balance(XLM, ALICE) == 100


def test_ledger_frozen_destination() -> None:
    ledger = Ledger(frozen=[BOB])
    ledger.mint(XLM, ALICE, 100)
    with pytest.raises(SpecError):
        ledger.transfer(XLM, ALICE, BOB, 1)
    assert ledger.balance(XLM, ALICE) == 100
    assert ledger.frozen() == {BOB}


def test_ledger_clock() -> None:
    ledger = Ledger(timestamp=10)
    assert ledger.advance(5) == 15
    assert ledger.now() == 15
    with pytest.raises(ValueError):
        ledger.advance(-1)
