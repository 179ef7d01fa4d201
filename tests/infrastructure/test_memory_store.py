from dataclasses import replace

import pytest

from recall.domain.models import Grade, ReviewEvent
from recall.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewEventLog


@pytest.mark.asyncio
async def test_card_store_keeps_insertion_order(make_card):
    store = InMemoryCardStore([make_card("b"), make_card("a")])
    await store.save(make_card("c"))
    await store.save(replace(make_card("b"), interval=3))

    assert [c.id for c in await store.list_all()] == ["b", "a", "c"]
    assert (await store.find("b")).interval == 3
    assert await store.find("zzz") is None


@pytest.mark.asyncio
async def test_card_store_delete(make_card):
    store = InMemoryCardStore([make_card("a"), make_card("b")])
    assert await store.delete("a") is True
    assert await store.delete("a") is False
    assert [c.id for c in await store.list_all()] == ["b"]


@pytest.mark.asyncio
async def test_event_log_ignores_duplicate_ids(now):
    event = ReviewEvent("r1", "c1", "s1", now, Grade.PASS, 0, 1, 2.5, 2.5, 100)
    log = InMemoryReviewEventLog()
    await log.append(event)
    await log.append(event)
    assert await log.list_events() == [event]
    assert await log.list_events("other") == []
