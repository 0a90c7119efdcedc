# tests/test_stores.py
import asyncio
from datetime import datetime, timezone

import pytest

from fakes import make_event
from merchant.enums import OrderStatus
from merchant.models import OrderRecord
from merchant.stores.dedup_ledger import DedupLedger
from merchant.stores.order_store import OrderStore

T0 = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def _record(order_id: str = "o1", status: OrderStatus = OrderStatus.NEW) -> OrderRecord:
    return OrderRecord(order_id=order_id, detail={"id": order_id}, status=status, created_at=T0)


@pytest.mark.asyncio
async def test_put_get_and_list():
    store = OrderStore()
    assert await store.get("o1") is None

    await store.put("o1", _record("o1"))
    await store.put("o2", _record("o2"))
    await store.put("o1", _record("o1", OrderStatus.CONFIRMED))

    assert (await store.get("o1")).status is OrderStatus.CONFIRMED
    assert sorted(r.order_id for r in await store.list_all()) == ["o1", "o2"]
    assert len(store) == 2


@pytest.mark.asyncio
async def test_list_all_is_a_snapshot():
    store = OrderStore()
    await store.put("o1", _record("o1"))
    snap = await store.list_all()
    await store.put("o2", _record("o2"))
    assert len(snap) == 1


@pytest.mark.asyncio
async def test_update_swaps_whole_record():
    store = OrderStore()
    before = _record("o1")
    await store.put("o1", before)

    ev = make_event("e2", "CFM", "o1")
    after = await store.update("o1", lambda r: r.with_event(ev, OrderStatus.CONFIRMED))

    assert after is await store.get("o1")
    assert after.status is OrderStatus.CONFIRMED
    assert after.event_history == (ev,)
    # readers holding the old record never see it change
    assert before.status is OrderStatus.NEW
    assert before.event_history == ()


@pytest.mark.asyncio
async def test_update_absent_returns_none():
    store = OrderStore()
    assert await store.update("missing", lambda r: r.with_status(OrderStatus.CANCELLED)) is None
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_concurrent_appends_are_not_lost():
    store = OrderStore()
    await store.put("o1", _record("o1"))
    events = [make_event(f"e{i}", "XYZ", "o1") for i in range(50)]

    await asyncio.gather(*(store.update("o1", lambda r, ev=ev: r.with_event(ev)) for ev in events))

    rec = await store.get("o1")
    assert len(rec.event_history) == 50


@pytest.mark.asyncio
async def test_dedup_ledger():
    ledger = DedupLedger()
    assert not await ledger.already_applied("e1")
    await ledger.mark_applied("e1")
    await ledger.mark_applied("e1")
    assert await ledger.already_applied("e1")
    assert not await ledger.already_applied("e2")
    assert len(ledger) == 1
