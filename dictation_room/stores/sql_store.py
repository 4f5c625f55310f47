# dictation_room/stores/sql_store.py
import asyncio
import copy
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dictation_room.core.exceptions import BackendUnavailable, ConcurrentModification, RoomNotFound
from dictation_room.crud import crud_room
from dictation_room.stores.base import ListenerRegistry, RoomListener, Unsubscribe
from dictation_room.stores.documents import apply_patch, matches

logger = logging.getLogger("dictation_room.stores.sql_store")  # Logger for this module

VERSION_CONFLICT_RETRIES = 5


class SqlRoomStore:
    """
    Room documents in the `rooms` table, one JSON document per room.

    Blocking session work runs in worker threads. Subscriptions are served
    in-process: listeners see writes made through this store instance only.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        retry_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        self._session_factory = session_factory
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._listeners = ListenerRegistry()

    async def _run(self, operation: str, func, *args):
        """Runs a blocking call off the event loop, retrying database errors with linear backoff."""
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await asyncio.to_thread(func, *args)
            except SQLAlchemyError as e:
                if attempt == self.retry_attempts:
                    logger.error(f"Room store '{operation}' failed after {attempt} attempts: {e}")
                    raise BackendUnavailable() from e
                delay = self.retry_delay_seconds * attempt
                logger.warning(f"Room store '{operation}' attempt {attempt} failed: {e}. Retrying in {delay}s.")
                await asyncio.sleep(delay)

    # --- Blocking helpers, run in worker threads ---

    def _create_sync(self, room_id: str, document: Dict[str, Any]) -> bool:
        db = self._session_factory()
        try:
            return crud_room.create_room_document(db, room_id, document) is not None
        finally:
            db.close()

    def _get_sync(self, room_id: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            row = crud_room.get_room_document(db, room_id)
            return copy.deepcopy(row.document) if row else None
        finally:
            db.close()

    def _update_sync(
        self,
        room_id: str,
        patch: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]],
    ) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            for _ in range(VERSION_CONFLICT_RETRIES):
                row = crud_room.get_room_document(db, room_id)
                if row is None:
                    raise RoomNotFound()
                document = copy.deepcopy(row.document)
                version = row.version
                if not matches(document, expect):
                    return None
                apply_patch(document, patch)
                if crud_room.replace_room_document(db, room_id, document, version):
                    return document
                logger.debug(f"Version conflict on room {room_id} at version {version}; re-reading.")
                db.expire_all()
            raise ConcurrentModification()
        finally:
            db.close()

    def _delete_sync(self, room_id: str) -> bool:
        db = self._session_factory()
        try:
            return crud_room.delete_room_document(db, room_id)
        finally:
            db.close()

    # --- RoomStore interface ---

    async def create(self, room_id: str, document: Dict[str, Any]) -> bool:
        created = await self._run("create", self._create_sync, room_id, document)
        if created:
            logger.info(f"Room {room_id} created in SQL store.")
            await self._listeners.notify(room_id, copy.deepcopy(document))
        return created

    async def get(self, room_id: str) -> Optional[Dict[str, Any]]:
        return await self._run("get", self._get_sync, room_id)

    async def update(
        self,
        room_id: str,
        patch: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        document = await self._run("update", self._update_sync, room_id, dict(patch), dict(expect) if expect else None)
        if document is None:
            return False
        await self._listeners.notify(room_id, document)
        return True

    async def delete(self, room_id: str) -> bool:
        deleted = await self._run("delete", self._delete_sync, room_id)
        if deleted:
            logger.info(f"Room {room_id} deleted from SQL store.")
            await self._listeners.notify(room_id, None)
        return deleted

    def subscribe(self, room_id: str, listener: RoomListener) -> Unsubscribe:
        return self._listeners.add(room_id, listener)

    async def close(self) -> None:
        self._listeners.clear()
