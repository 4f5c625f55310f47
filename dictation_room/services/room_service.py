# dictation_room/services/room_service.py
import functools
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from dictation_room.core.config import settings
from dictation_room.core.exceptions import (
    ConcurrentModification,
    EmptyList,
    Forbidden,
    InputLocked,
    InvalidPhrase,
    NoPhrase,
    ParticipantNotFound,
    RoomInactive,
    RoomNotFound,
)
from dictation_room.models.enums import ParticipantStatus
from dictation_room.models.room import AccuracyResult, ParticipantData, Room, SubmissionRecord
from dictation_room.services.accuracy_scorer import score
from dictation_room.services.countdown import CountdownScheduler, utcnow
from dictation_room.services.phrase_service import PhraseSource
from dictation_room.stores.base import RoomStore, Unsubscribe
from dictation_room.stores.documents import DELETE_FIELD

logger = logging.getLogger("dictation_room.services.room_service")  # Logger for this module

MAX_ROOM_ID_ATTEMPTS = 10

RoomCallback = Callable[[Optional[Room]], Awaitable[None]]


def host_only(allow_inactive: bool = False):
    """
    Authorization gate for host-privileged operations.
    The wrapped method receives the loaded Room in place of the room id.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: "RoomService", room_id: str, caller_id: str, *args, **kwargs):
            room = await self._load(room_id)
            if not allow_inactive and not room.is_active:
                raise RoomInactive()
            if room.host_id != caller_id:
                logger.warning(f"Participant {caller_id} attempted host-only '{func.__name__}' in room {room_id}.")
                raise Forbidden()
            return await func(self, room, caller_id, *args, **kwargs)
        return wrapper
    return decorator


def _participant_path(participant_id: str, field: str | None = None) -> str:
    return f"participants.{participant_id}" + (f".{field}" if field else "")


class RoomService:
    """Room session state machine. All state lives in the injected store."""

    def __init__(
        self,
        store: RoomStore,
        phrases: PhraseSource,
        clock: Callable[[], datetime] = utcnow,
        countdown_seconds: Optional[float] = None,
        scheduler: Optional[CountdownScheduler] = None,
        deactivate_on_host_leave: Optional[bool] = None,
        reset_participant_on_rejoin: Optional[bool] = None,
    ):
        self.store = store
        self.phrases = phrases
        self.clock = clock
        self.scheduler = scheduler or CountdownScheduler(
            store,
            settings.COUNTDOWN_SECONDS if countdown_seconds is None else countdown_seconds,
            clock=clock,
        )
        self.deactivate_on_host_leave = (
            settings.DEACTIVATE_ON_HOST_LEAVE if deactivate_on_host_leave is None else deactivate_on_host_leave
        )
        self.reset_participant_on_rejoin = (
            settings.RESET_PARTICIPANT_ON_REJOIN if reset_participant_on_rejoin is None else reset_participant_on_rejoin
        )

    # --- Loading ---

    async def _load(self, room_id: str) -> Room:
        document = await self.store.get(room_id)
        if document is None:
            raise RoomNotFound()
        return Room.model_validate(document)

    async def _load_active(self, room_id: str) -> Room:
        room = await self._load(room_id)
        if not room.is_active:
            raise RoomInactive()
        return room

    async def get_room(self, room_id: str) -> Room:
        return await self._load(room_id)

    async def _settle_overdue_countdown(self, room: Room) -> Room:
        """Opens a round whose countdown ran out without its task firing, e.g. across a restart."""
        if not room.is_counting_down or room.countdown_started_at is None:
            return room
        due = room.countdown_started_at + timedelta(seconds=self.scheduler.countdown_seconds)
        if self.clock() < due:
            return room
        logger.warning(f"Room {room.id}: countdown (generation {room.countdown_generation}) overdue; completing it now.")
        await self.scheduler.complete(room.id, room.countdown_generation, opened_at=due)
        return await self._load_active(room.id)

    def subscribe(self, room_id: str, callback: RoomCallback) -> Unsubscribe:
        """`callback` gets the parsed Room after every change, or None once the room is deleted."""
        async def on_change(document: Optional[Dict[str, Any]]):
            await callback(Room.model_validate(document) if document is not None else None)

        return self.store.subscribe(room_id, on_change)

    # --- Lifecycle ---

    def _new_room_id(self) -> str:
        return "".join(secrets.choice(settings.ROOM_ID_ALPHABET) for _ in range(settings.ROOM_ID_LENGTH))

    async def create_room(self, host_id: str, host_nickname: str) -> Room:
        now = self.clock()
        for _ in range(MAX_ROOM_ID_ATTEMPTS):
            room = Room(
                id=self._new_room_id(),
                host_id=host_id,
                created_at=now,
                participants={host_id: ParticipantData(nickname=host_nickname, joined_at=now)},
            )
            if await self.store.create(room.id, room.model_dump(mode="json")):
                logger.info(f"Room {room.id} created by host {host_id} ('{host_nickname}').")
                return room
            logger.debug(f"Room id {room.id} already taken, generating another.")
        raise ConcurrentModification("Could not allocate a free room code.")

    async def join_room(self, room_id: str, participant_id: str, nickname: str) -> Room:
        room = await self._load_active(room_id)
        existing = room.participants.get(participant_id)

        if existing is not None and not self.reset_participant_on_rejoin:
            # Returning participant keeps counters and history
            if existing.nickname != nickname:
                await self.store.update(room_id, {_participant_path(participant_id, "nickname"): nickname})
            logger.info(f"Participant {participant_id} rejoined room {room_id}.")
            return await self._load(room_id)

        record = ParticipantData(nickname=nickname, joined_at=self.clock())
        await self.store.update(room_id, {_participant_path(participant_id): record.model_dump(mode="json")})
        logger.info(f"Participant {participant_id} ('{nickname}') joined room {room_id}.")
        return await self._load(room_id)

    async def leave_room(self, room_id: str, participant_id: str) -> None:
        """Guests may still leave a deactivated room; the host has already left it."""
        room = await self._load(room_id)
        if not room.is_active and participant_id == room.host_id:
            raise RoomInactive()
        if participant_id not in room.participants:
            raise ParticipantNotFound()

        if participant_id == room.host_id:
            self.scheduler.cancel(room_id)
            if self.deactivate_on_host_leave:
                await self.store.update(room_id, {"is_active": False, "is_counting_down": False})
                logger.info(f"Host left room {room_id}; room deactivated.")
            else:
                await self.store.delete(room_id)
                logger.info(f"Host left room {room_id}; room deleted.")
            return

        await self.store.update(room_id, {_participant_path(participant_id): DELETE_FIELD})
        logger.info(f"Participant {participant_id} left room {room_id}.")

    @host_only(allow_inactive=True)
    async def delete_room(self, room: Room, caller_id: str) -> None:
        self.scheduler.cancel(room.id)
        await self.store.delete(room.id)
        logger.info(f"Room {room.id} deleted by host.")

    # --- Host controls ---

    async def _start_round(self, room: Room, phrase: str, index: Optional[int], audio_url: Optional[str]) -> Room:
        """Sets the phrase, resets every participant's round fields and starts the countdown, as one write."""
        for _ in range(settings.SUBMIT_MAX_RETRIES):
            generation = room.countdown_generation + 1
            patch: Dict[str, Any] = {
                "target_phrase": phrase,
                "audio_url": audio_url,
                "is_counting_down": True,
                "countdown_started_at": self.clock().isoformat(),
                "countdown_generation": generation,
                "round_start_time": None,
            }
            if index is not None:
                patch["current_phrase_index"] = index
            # Each participant must still exist when the reset lands
            expect: Dict[str, Any] = {"countdown_generation": room.countdown_generation}
            for participant_id, participant in room.participants.items():
                patch[_participant_path(participant_id, "status")] = ParticipantStatus.WAITING.value
                patch[_participant_path(participant_id, "is_typing")] = False
                patch[_participant_path(participant_id, "submission")] = DELETE_FIELD
                patch[_participant_path(participant_id, "accuracy")] = DELETE_FIELD
                patch[_participant_path(participant_id, "submitted_at")] = DELETE_FIELD
                expect[_participant_path(participant_id, "nickname")] = participant.nickname

            if await self.store.update(room.id, patch, expect=expect):
                self.scheduler.schedule(room.id, generation)
                logger.info(f"Room {room.id}: phrase assigned (index {index}, generation {generation}); countdown started.")
                return await self._load(room.id)

            logger.debug(f"Room {room.id} changed during phrase assignment; reloading.")
            room = await self._load_active(room.id)
        raise ConcurrentModification()

    @host_only()
    async def assign_phrase(
        self,
        room: Room,
        caller_id: str,
        phrase: str,
        index: Optional[int] = None,
        audio_url: Optional[str] = None,
    ) -> Room:
        phrase = (phrase or "").strip()
        if not phrase:
            raise InvalidPhrase()
        return await self._start_round(room, phrase, index, audio_url)

    @host_only()
    async def advance_phrase(self, room: Room, caller_id: str) -> Room:
        phrases = await self.phrases.list_phrases()
        if not phrases:
            raise EmptyList()
        # No index yet counts as 0, so the first advance lands on 1
        next_index = ((room.current_phrase_index or 0) + 1) % len(phrases)
        item = phrases[next_index]
        return await self._start_round(room, item.text, next_index, item.audio_url)

    @host_only()
    async def toggle_phrase_visibility(self, room: Room, caller_id: str, show: bool) -> Room:
        await self.store.update(room.id, {"show_phrase_to_participants": show})
        return await self._load(room.id)

    @host_only()
    async def remove_participant(self, room: Room, caller_id: str, target_id: str) -> Room:
        if target_id == room.host_id:
            raise Forbidden("The host cannot be removed from the room.")
        if target_id not in room.participants:
            raise ParticipantNotFound()
        await self.store.update(room.id, {_participant_path(target_id): DELETE_FIELD})
        logger.info(f"Participant {target_id} removed from room {room.id} by host.")
        return await self._load(room.id)

    # --- Participant actions ---

    async def update_typing_status(self, room_id: str, participant_id: str, is_typing: bool) -> bool:
        """Returns whether the status changed. Submitted participants stay submitted."""
        room = await self._load_active(room_id)
        room = await self._settle_overdue_countdown(room)
        participant = room.participants.get(participant_id)
        if participant is None:
            raise ParticipantNotFound()
        if participant.status == ParticipantStatus.SUBMITTED:
            return False
        if is_typing and room.is_counting_down:
            return False

        new_status = ParticipantStatus.TYPING if is_typing else ParticipantStatus.WAITING
        if participant.status == new_status and participant.is_typing == is_typing:
            return False
        return await self.store.update(
            room_id,
            {
                _participant_path(participant_id, "status"): new_status.value,
                _participant_path(participant_id, "is_typing"): is_typing,
            },
            expect={_participant_path(participant_id, "status"): participant.status.value},
        )

    async def submit(self, room_id: str, participant_id: str, answer: str) -> AccuracyResult:
        for _ in range(settings.SUBMIT_MAX_RETRIES):
            room = await self._load_active(room_id)
            room = await self._settle_overdue_countdown(room)
            if not room.target_phrase:
                raise NoPhrase()
            if room.is_counting_down:
                raise InputLocked()
            participant = room.participants.get(participant_id)
            if participant is None:
                raise ParticipantNotFound()

            result = score(room.target_phrase, answer)
            now = self.clock()
            record = SubmissionRecord(
                phrase=room.target_phrase,
                answer=answer,
                accuracy=result,
                submitted_at=now,
                phrase_index=room.current_phrase_index,
            )

            completion_times = list(participant.completion_times)
            average_time = participant.average_time
            fastest_time = participant.fastest_time
            if result.is_fully_correct and room.round_start_time is not None:
                elapsed_ms = max(0, (now - room.round_start_time) // timedelta(milliseconds=1))
                completion_times.append(elapsed_ms)
                average_time = sum(completion_times) / len(completion_times)
                fastest_time = min(completion_times)

            history = [entry.model_dump(mode="json") for entry in participant.submission_history]
            history.append(record.model_dump(mode="json"))

            patch = {
                _participant_path(participant_id, "status"): ParticipantStatus.SUBMITTED.value,
                _participant_path(participant_id, "is_typing"): False,
                _participant_path(participant_id, "submission"): answer,
                _participant_path(participant_id, "accuracy"): result.model_dump(mode="json"),
                _participant_path(participant_id, "submitted_at"): now.isoformat(),
                _participant_path(participant_id, "total_attempts"): participant.total_attempts + 1,
                _participant_path(participant_id, "correct_count"): participant.correct_count + (1 if result.is_fully_correct else 0),
                _participant_path(participant_id, "completion_times"): completion_times,
                _participant_path(participant_id, "average_time"): average_time,
                _participant_path(participant_id, "fastest_time"): fastest_time,
                _participant_path(participant_id, "submission_history"): history,
            }
            # Lands only on the same round and on top of this participant's last attempt
            expect = {
                "countdown_generation": room.countdown_generation,
                "is_counting_down": False,
                _participant_path(participant_id, "total_attempts"): participant.total_attempts,
            }
            if await self.store.update(room_id, patch, expect=expect):
                logger.info(
                    f"Room {room_id}: participant {participant_id} submitted "
                    f"(accuracy {result.accuracy}, fully correct: {result.is_fully_correct})."
                )
                return result
            logger.debug(f"Room {room_id} changed during submission by {participant_id}; retrying.")
        raise ConcurrentModification()
