# dictation_room/core/security.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from fastapi import HTTPException, status

from dictation_room.core.config import settings

logger = logging.getLogger("dictation_room.core.security")  # Logger for this module


def new_participant_id() -> str:
    """Anonymous, ephemeral identity. Hex only, so it is safe inside dotted store paths."""
    return uuid.uuid4().hex


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_backend_token(token: str) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as e: # Expired, bad signature, malformed
        logger.warning(f"JWTError during token verification: {e}")
        raise credentials_exception
    if not payload.get("sub"):
        logger.warning("Token verified but 'sub' claim is missing.")
        raise credentials_exception
    return payload
