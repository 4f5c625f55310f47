# dictation_room/core/exceptions.py
from fastapi import status


class RoomError(Exception):
    """Base exception for room session errors."""
    code = "room_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__


class RoomNotFound(RoomError):
    """Room not found."""
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ParticipantNotFound(RoomError):
    """Participant not found in this room."""
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(RoomError):
    """Only the host can perform this action."""
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class RoomInactive(RoomError):
    """Room is not active."""
    code = "inactive"
    status_code = status.HTTP_409_CONFLICT


class NoPhrase(RoomError):
    """No target phrase set."""
    code = "no_phrase"
    status_code = status.HTTP_409_CONFLICT


class InputLocked(RoomError):
    """Input is locked until the countdown ends."""
    code = "input_locked"
    status_code = status.HTTP_409_CONFLICT


class EmptyList(RoomError):
    """No phrases in the phrase list."""
    code = "empty_list"
    status_code = status.HTTP_409_CONFLICT


class InvalidPhrase(RoomError):
    """Phrase must not be empty."""
    code = "invalid_phrase"
    status_code = status.HTTP_400_BAD_REQUEST


class ConcurrentModification(RoomError):
    """Room changed while the request was being applied. Try again."""
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class BackendUnavailable(RoomError):
    """Room storage is unavailable."""
    code = "backend_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
