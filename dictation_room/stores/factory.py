# dictation_room/stores/factory.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from dictation_room.core.config import Settings
from dictation_room.crud import crud_room
from dictation_room.services.phrase_service import InMemoryPhraseSource, PhraseSource, SqlPhraseSource
from dictation_room.stores.base import RoomStore
from dictation_room.stores.memory_store import InMemoryRoomStore
from dictation_room.stores.sql_store import SqlRoomStore

logger = logging.getLogger("dictation_room.stores.factory")  # Logger for this module


@dataclass
class Stores:
    rooms: RoomStore
    phrases: PhraseSource
    backend: str # "sql" or "memory"


def _probe_database(session_factory: Callable[[], Session], engine) -> None:
    from dictation_room.db.base import Base # Registers all tables

    Base.metadata.create_all(bind=engine)
    db = session_factory()
    try:
        crud_room.check_connection(db)
    finally:
        db.close()


def _memory_stores() -> Stores:
    return Stores(rooms=InMemoryRoomStore(), phrases=InMemoryPhraseSource(), backend="memory")


def _sql_stores(settings: Settings, session_factory: Callable[[], Session]) -> Stores:
    return Stores(
        rooms=SqlRoomStore(
            session_factory,
            retry_attempts=settings.STORE_RETRY_ATTEMPTS,
            retry_delay_seconds=settings.STORE_RETRY_DELAY_SECONDS,
        ),
        phrases=SqlPhraseSource(session_factory, default_phrases=settings.DEFAULT_PHRASES),
        backend="sql",
    )


async def build_stores(
    settings: Settings,
    session_factory: Optional[Callable[[], Session]] = None,
    engine=None,
) -> Stores:
    """
    Resolves the storage backend once, at startup.
    "auto" probes the database within STORE_PROBE_TIMEOUT_SECONDS and falls back
    to the in-memory stores when it does not answer.
    """
    backend = settings.STORE_BACKEND
    if backend == "memory":
        logger.info("Using in-memory room store (configured).")
        return _memory_stores()

    if session_factory is None or engine is None:
        from dictation_room.db.session import SessionLocal, engine as default_engine
        session_factory = session_factory or SessionLocal
        engine = engine or default_engine

    if backend == "sql":
        logger.info("Using SQL room store (configured).")
        await asyncio.to_thread(_probe_database, session_factory, engine)
        return _sql_stores(settings, session_factory)

    try:
        await asyncio.wait_for(
            asyncio.to_thread(_probe_database, session_factory, engine),
            timeout=settings.STORE_PROBE_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning(
            f"Database did not answer within {settings.STORE_PROBE_TIMEOUT_SECONDS}s. Falling back to in-memory room store."
        )
        return _memory_stores()
    except Exception as e:
        logger.warning(f"Database probe failed: {e}. Falling back to in-memory room store.")
        return _memory_stores()

    logger.info("Database probe succeeded. Using SQL room store.")
    return _sql_stores(settings, session_factory)
