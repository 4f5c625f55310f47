# tests/services/test_countdown.py
import asyncio

import pytest

from dictation_room.core.exceptions import BackendUnavailable
from dictation_room.services.countdown import CountdownScheduler
from dictation_room.stores.memory_store import InMemoryRoomStore


async def _counting_room(store: InMemoryRoomStore, room_id: str = "ROOM01", generation: int = 1):
    await store.create(room_id, {
        "id": room_id,
        "host_id": "h",
        "is_counting_down": True,
        "countdown_generation": generation,
        "round_start_time": None,
        "participants": {},
    })
    return room_id


@pytest.mark.asyncio
async def test_completion_opens_round(clock):
    store = InMemoryRoomStore()
    room_id = await _counting_room(store)
    scheduler = CountdownScheduler(store, countdown_seconds=0.01, clock=clock)

    task = scheduler.schedule(room_id, generation=1)
    await task

    room = await store.get(room_id)
    assert room["is_counting_down"] is False
    assert room["round_start_time"] == clock.now.isoformat()
    assert room_id not in scheduler.active_countdowns


@pytest.mark.asyncio
async def test_new_schedule_cancels_previous(clock):
    store = InMemoryRoomStore()
    room_id = await _counting_room(store)
    scheduler = CountdownScheduler(store, countdown_seconds=0.05, clock=clock)

    first = scheduler.schedule(room_id, generation=1)
    second = scheduler.schedule(room_id, generation=1)
    await asyncio.sleep(0)
    assert first.cancelled() or first.done()
    assert scheduler.active_countdowns[room_id] is second
    await second
    assert (await store.get(room_id))["is_counting_down"] is False


@pytest.mark.asyncio
async def test_stale_completion_does_not_touch_newer_round(clock):
    store = InMemoryRoomStore()
    room_id = await _counting_room(store, generation=2)
    scheduler = CountdownScheduler(store, countdown_seconds=0.01, clock=clock)

    applied = await scheduler.complete(room_id, generation=1)

    assert applied is False
    room = await store.get(room_id)
    assert room["is_counting_down"] is True
    assert room["round_start_time"] is None


@pytest.mark.asyncio
async def test_completion_for_deleted_room_is_dropped(clock):
    store = InMemoryRoomStore()
    scheduler = CountdownScheduler(store, countdown_seconds=0.01, clock=clock)
    assert await scheduler.complete("GONE00", generation=1) is False


@pytest.mark.asyncio
async def test_failed_completion_write_is_retried_once(clock, mocker):
    store = InMemoryRoomStore()
    room_id = await _counting_room(store)
    scheduler = CountdownScheduler(store, countdown_seconds=0.01, clock=clock)

    mock_update = mocker.patch.object(store, "update", side_effect=[BackendUnavailable(), True])

    assert await scheduler.complete(room_id, generation=1) is True
    assert mock_update.call_count == 2


@pytest.mark.asyncio
async def test_completion_gives_up_after_retry(clock, mocker):
    store = InMemoryRoomStore()
    room_id = await _counting_room(store)
    scheduler = CountdownScheduler(store, countdown_seconds=0.01, clock=clock)
    mock_update = mocker.patch.object(store, "update", side_effect=BackendUnavailable())

    assert await scheduler.complete(room_id, generation=1) is False
    assert mock_update.call_count == 2


@pytest.mark.asyncio
async def test_shutdown_cancels_pending(clock):
    store = InMemoryRoomStore()
    room_id = await _counting_room(store)
    scheduler = CountdownScheduler(store, countdown_seconds=10, clock=clock)
    task = scheduler.schedule(room_id, generation=1)

    await scheduler.shutdown()

    assert task.cancelled()
    assert scheduler.active_countdowns == {}
    assert (await store.get(room_id))["is_counting_down"] is True
