# tests/stores/test_memory_store.py
import logging

import pytest

from dictation_room.core.exceptions import RoomNotFound
from dictation_room.stores.memory_store import InMemoryRoomStore


def _doc(room_id="ROOM01"):
    return {"id": room_id, "host_id": "h", "countdown_generation": 0, "participants": {}}


@pytest.mark.asyncio
async def test_create_get_and_duplicate():
    store = InMemoryRoomStore()
    assert await store.create("ROOM01", _doc()) is True
    assert await store.create("ROOM01", _doc()) is False
    assert (await store.get("ROOM01"))["host_id"] == "h"
    assert await store.get("NOPE00") is None


@pytest.mark.asyncio
async def test_get_returns_a_copy():
    store = InMemoryRoomStore()
    await store.create("ROOM01", _doc())
    snapshot = await store.get("ROOM01")
    snapshot["participants"]["x"] = {}
    assert (await store.get("ROOM01"))["participants"] == {}


@pytest.mark.asyncio
async def test_conditional_update():
    store = InMemoryRoomStore()
    await store.create("ROOM01", _doc())

    assert await store.update("ROOM01", {"countdown_generation": 1}, expect={"countdown_generation": 0}) is True
    assert await store.update("ROOM01", {"countdown_generation": 5}, expect={"countdown_generation": 0}) is False
    assert (await store.get("ROOM01"))["countdown_generation"] == 1


@pytest.mark.asyncio
async def test_update_unknown_room_raises():
    store = InMemoryRoomStore()
    with pytest.raises(RoomNotFound):
        await store.update("NOPE00", {"x": 1})


@pytest.mark.asyncio
async def test_invalid_patch_leaves_document_untouched():
    store = InMemoryRoomStore()
    await store.create("ROOM01", _doc())
    with pytest.raises(ValueError):
        await store.update("ROOM01", {"countdown_generation": 3, "host_id.bad": 1})
    assert (await store.get("ROOM01"))["countdown_generation"] == 0


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots_and_deletion():
    store = InMemoryRoomStore()
    await store.create("ROOM01", _doc())
    received = []

    async def listener(snapshot):
        received.append(snapshot)

    unsubscribe = store.subscribe("ROOM01", listener)
    await store.update("ROOM01", {"participants.p1.nickname": "Ann"})
    received[0]["participants"].clear()
    assert (await store.get("ROOM01"))["participants"] == {"p1": {"nickname": "Ann"}}

    await store.delete("ROOM01")
    assert received[-1] is None
    assert len(received) == 2

    unsubscribe()
    await store.create("ROOM01", _doc())
    assert len(received) == 2


@pytest.mark.asyncio
async def test_failing_listener_is_logged_and_others_still_run(caplog):
    store = InMemoryRoomStore()
    await store.create("ROOM01", _doc())
    calls = []

    def broken(snapshot):
        raise RuntimeError("listener exploded")

    store.subscribe("ROOM01", broken)
    store.subscribe("ROOM01", lambda snapshot: calls.append(snapshot))

    with caplog.at_level(logging.ERROR, logger="dictation_room.stores.base"):
        assert await store.update("ROOM01", {"host_id": "h2"}) is True

    assert len(calls) == 1
    assert "listener exploded" in caplog.text


@pytest.mark.asyncio
async def test_delete_unknown_room():
    store = InMemoryRoomStore()
    assert await store.delete("NOPE00") is False
