# dictation_room/api/auth.py
import logging
from datetime import timedelta
from fastapi import APIRouter, Depends

from dictation_room.api import deps
from dictation_room.core import security
from dictation_room.core.config import settings
from dictation_room.models.identity import AnonymousIdentity, BackendToken

logger = logging.getLogger("dictation_room.api.auth")  # Logger for this module
router = APIRouter()


@router.post("/anonymous", response_model=BackendToken)
async def issue_anonymous_token():
    """Issues a fresh participant identity. No account, no password."""
    participant_id = security.new_participant_id()
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = security.create_access_token(data={"sub": participant_id}, expires_delta=expires)
    logger.info(f"Issued anonymous identity {participant_id}.")
    return BackendToken(
        access_token=access_token,
        participant_id=participant_id,
        expires_in=int(expires.total_seconds()),
    )


@router.get("/me", response_model=AnonymousIdentity)
async def read_current_identity(participant_id: str = Depends(deps.get_current_participant_id)):
    return AnonymousIdentity(participant_id=participant_id)
