# tests/core/test_security.py
from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from dictation_room.core import security
from dictation_room.core.config import settings

def test_new_participant_id_is_unique_hex():
    first = security.new_participant_id()
    second = security.new_participant_id()
    assert first != second
    assert len(first) == 32
    assert "." not in first
    int(first, 16)

def test_token_round_trip():
    token = security.create_access_token({"sub": "abc123"})
    payload = security.verify_backend_token(token)
    assert payload["sub"] == "abc123"
    assert "exp" in payload

def test_expired_token_is_rejected():
    token = security.create_access_token({"sub": "abc123"}, expires_delta=timedelta(seconds=-5))
    with pytest.raises(HTTPException) as exc_info:
        security.verify_backend_token(token)
    assert exc_info.value.status_code == 401

def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "abc123"}, "some-other-secret", algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(HTTPException) as exc_info:
        security.verify_backend_token(token)
    assert exc_info.value.status_code == 401

def test_token_without_subject_is_rejected():
    token = security.create_access_token({"role": "participant"})
    with pytest.raises(HTTPException) as exc_info:
        security.verify_backend_token(token)
    assert "Could not validate credentials" in exc_info.value.detail

def test_malformed_token_is_rejected():
    with pytest.raises(HTTPException):
        security.verify_backend_token("not-a-jwt")
