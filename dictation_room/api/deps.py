# dictation_room/api/deps.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from dictation_room.core import security
from dictation_room.core.config import settings
from dictation_room.core.exceptions import RoomError
from dictation_room.services.phrase_service import PhraseSource
from dictation_room.services.room_service import RoomService

logger = logging.getLogger("dictation_room.api.deps")  # Logger for this module

# Set once by the application lifespan after the store backend is chosen
_room_service: Optional[RoomService] = None
_phrase_source: Optional[PhraseSource] = None


def set_services(room_service: Optional[RoomService], phrase_source: Optional[PhraseSource]):
    global _room_service, _phrase_source
    _room_service = room_service
    _phrase_source = phrase_source


def get_room_service() -> RoomService:
    if _room_service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Room service is not ready.")
    return _room_service


def get_phrase_source() -> PhraseSource:
    if _phrase_source is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Phrase source is not ready.")
    return _phrase_source


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/anonymous") # Nominal URL


def get_current_participant_id(token: str = Depends(oauth2_scheme)) -> str:
    payload = security.verify_backend_token(token)
    return payload["sub"]


def normalize_room_id(room_id: str) -> str:
    """Room codes are case-insensitive for callers."""
    return room_id.strip().upper()


def room_error_to_http(e: RoomError) -> HTTPException:
    if e.status_code >= 500:
        logger.error(f"Room operation failed: {e.message}")
    else:
        logger.info(f"Room operation rejected ({e.code}): {e.message}")
    return HTTPException(status_code=e.status_code, detail={"message": e.message, "code": e.code})
