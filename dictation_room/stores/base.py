# dictation_room/stores/base.py
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Union

logger = logging.getLogger("dictation_room.stores.base")  # Logger for this module

# Receives the full room document after every change, or None once the room is deleted
RoomListener = Callable[[Optional[Dict[str, Any]]], Union[Awaitable[None], None]]
Unsubscribe = Callable[[], None]


class RoomStore(Protocol):
    """Room-keyed document store with live-update subscriptions."""

    async def create(self, room_id: str, document: Dict[str, Any]) -> bool:
        """Stores a new document. Returns False when the id is already taken."""
        ...

    async def get(self, room_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def update(
        self,
        room_id: str,
        patch: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Applies a dotted-path patch atomically. When `expect` is given the patch
        is applied only if every expected path still holds its value.
        Returns whether the patch was applied. Raises RoomNotFound for an unknown room.
        """
        ...

    async def delete(self, room_id: str) -> bool:
        ...

    def subscribe(self, room_id: str, listener: RoomListener) -> Unsubscribe:
        ...

    async def close(self) -> None:
        ...


class ListenerRegistry:
    """In-process fan-out of room snapshots to subscribers."""

    def __init__(self):
        self._listeners: Dict[str, List[RoomListener]] = {}

    def add(self, room_id: str, listener: RoomListener) -> Unsubscribe:
        self._listeners.setdefault(room_id, []).append(listener)
        logger.debug(f"Listener added for room {room_id}. Total: {len(self._listeners[room_id])}")

        def unsubscribe():
            listeners = self._listeners.get(room_id)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[room_id]
                logger.debug(f"Listener removed for room {room_id}.")

        return unsubscribe

    def count(self, room_id: str) -> int:
        return len(self._listeners.get(room_id, []))

    async def notify(self, room_id: str, snapshot: Optional[Dict[str, Any]]) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(room_id, [])):
            try:
                result = listener(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"Room listener for {room_id} failed: {e}")

    def clear(self) -> None:
        self._listeners.clear()
