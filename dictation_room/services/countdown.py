# dictation_room/services/countdown.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from dictation_room.core.exceptions import RoomError, RoomNotFound
from dictation_room.stores.base import RoomStore

logger = logging.getLogger("dictation_room.services.countdown")  # Logger for this module

COMPLETION_WRITE_ATTEMPTS = 2 # First try plus one retry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CountdownScheduler:
    """
    Runs the deferred "countdown finished" transition for each room.

    At most one pending task per room. Each task carries the generation of the
    phrase assignment that scheduled it and only writes while the stored room
    is still on that generation.
    """

    def __init__(self, store: RoomStore, countdown_seconds: float, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.countdown_seconds = countdown_seconds
        self.clock = clock
        self.active_countdowns: Dict[str, asyncio.Task] = {}

    def schedule(self, room_id: str, generation: int) -> asyncio.Task:
        self.cancel(room_id)
        task = asyncio.create_task(self._complete_after_delay(room_id, generation))
        self.active_countdowns[room_id] = task
        logger.debug(f"Countdown for room {room_id} (generation {generation}) scheduled in {self.countdown_seconds}s.")
        return task

    def cancel(self, room_id: str) -> bool:
        task = self.active_countdowns.pop(room_id, None)
        if task and not task.done():
            task.cancel()
            logger.debug(f"Cancelled pending countdown for room {room_id}.")
            return True
        return False

    async def _complete_after_delay(self, room_id: str, generation: int):
        try:
            await asyncio.sleep(self.countdown_seconds)
            await self.complete(room_id, generation)
        except asyncio.CancelledError:
            logger.debug(f"Countdown task for room {room_id} (generation {generation}) cancelled.")
            raise
        finally:
            if self.active_countdowns.get(room_id) is asyncio.current_task():
                del self.active_countdowns[room_id]

    async def complete(self, room_id: str, generation: int, opened_at: Optional[datetime] = None) -> bool:
        """
        Opens the round if `generation` is still current. Returns whether the write applied.
        `opened_at` backdates the round start when the countdown is settled late.
        """
        round_start_time = (opened_at or self.clock()).isoformat()
        for attempt in range(1, COMPLETION_WRITE_ATTEMPTS + 1):
            try:
                applied = await self.store.update(
                    room_id,
                    {"is_counting_down": False, "round_start_time": round_start_time},
                    expect={"countdown_generation": generation, "is_counting_down": True},
                )
            except RoomNotFound:
                logger.info(f"Room {room_id} is gone; countdown completion dropped.")
                return False
            except RoomError as e:
                logger.exception(f"Countdown completion for room {room_id} failed on attempt {attempt}: {e}")
                continue
            if not applied:
                logger.info(f"Stale countdown for room {room_id} (generation {generation}) ignored.")
            else:
                logger.info(f"Countdown finished for room {room_id}; round open.")
            return applied
        logger.error(f"Giving up on countdown completion for room {room_id} (generation {generation}).")
        return False

    async def shutdown(self):
        tasks = list(self.active_countdowns.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.active_countdowns.clear()
