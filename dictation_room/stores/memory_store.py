# dictation_room/stores/memory_store.py
import asyncio
import copy
import logging
from typing import Any, Dict, Mapping, Optional

from dictation_room.core.exceptions import RoomNotFound
from dictation_room.stores.base import ListenerRegistry, RoomListener, Unsubscribe
from dictation_room.stores.documents import apply_patch, matches

logger = logging.getLogger("dictation_room.stores.memory_store")  # Logger for this module


class InMemoryRoomStore:
    """Process-local room store. Used as the fallback when the database is unreachable."""

    def __init__(self):
        self.rooms: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self._listeners = ListenerRegistry()

    async def create(self, room_id: str, document: Dict[str, Any]) -> bool:
        async with self._lock:
            if room_id in self.rooms:
                return False
            self.rooms[room_id] = copy.deepcopy(document)
            snapshot = copy.deepcopy(self.rooms[room_id])
        logger.info(f"Room {room_id} created in memory store.")
        await self._listeners.notify(room_id, snapshot)
        return True

    async def get(self, room_id: str) -> Optional[Dict[str, Any]]:
        document = self.rooms.get(room_id)
        return copy.deepcopy(document) if document is not None else None

    async def update(
        self,
        room_id: str,
        patch: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        async with self._lock:
            document = self.rooms.get(room_id)
            if document is None:
                raise RoomNotFound()
            if not matches(document, expect):
                logger.debug(f"Conditional update on room {room_id} skipped; expectation {dict(expect)} not met.")
                return False
            # Apply to a copy so a bad path leaves the stored document untouched
            updated = apply_patch(copy.deepcopy(document), patch)
            self.rooms[room_id] = updated
            snapshot = copy.deepcopy(updated)
        await self._listeners.notify(room_id, snapshot)
        return True

    async def delete(self, room_id: str) -> bool:
        async with self._lock:
            removed = self.rooms.pop(room_id, None)
        if removed is None:
            return False
        logger.info(f"Room {room_id} deleted from memory store.")
        await self._listeners.notify(room_id, None)
        return True

    def subscribe(self, room_id: str, listener: RoomListener) -> Unsubscribe:
        return self._listeners.add(room_id, listener)

    async def close(self) -> None:
        self._listeners.clear()
