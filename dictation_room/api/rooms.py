# dictation_room/api/rooms.py
import logging
from typing import List
from fastapi import APIRouter, Depends, Response, status

from dictation_room.api import deps
from dictation_room.core.exceptions import RoomError
from dictation_room.models.room import (
    AccuracyResult,
    AssignPhraseRequest,
    CreateRoomRequest,
    JoinRoomRequest,
    LeaderboardEntry,
    ParticipantView,
    Room,
    RoundStats,
    SessionStatistics,
    SubmitAnswerRequest,
    TypingStatusRequest,
    TypingStatusResponse,
    VisibilityRequest,
)
from dictation_room.services import room_stats
from dictation_room.services.room_service import RoomService

logger = logging.getLogger("dictation_room.api.rooms")  # Logger for this module
router = APIRouter()


@router.post("", response_model=Room, status_code=status.HTTP_201_CREATED)
async def create_room(
    request_data: CreateRoomRequest,
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.create_room(participant_id, request_data.nickname.strip())
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.get("/{room_id}", response_model=Room)
async def get_room(
    room_id: str = Depends(deps.normalize_room_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.get_room(room_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        await service.delete_room(room_id, participant_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{room_id}/join", response_model=Room)
async def join_room(
    request_data: JoinRoomRequest,
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.join_room(room_id, participant_id, request_data.nickname.strip())
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.post("/{room_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_room(
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        await service.leave_room(room_id, participant_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Host controls ---

@router.post("/{room_id}/phrase", response_model=Room)
async def assign_phrase(
    request_data: AssignPhraseRequest,
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.assign_phrase(
            room_id,
            participant_id,
            request_data.phrase,
            index=request_data.index,
            audio_url=request_data.audio_url,
        )
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.post("/{room_id}/next-phrase", response_model=Room)
async def advance_phrase(
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.advance_phrase(room_id, participant_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.post("/{room_id}/visibility", response_model=Room)
async def toggle_phrase_visibility(
    request_data: VisibilityRequest,
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.toggle_phrase_visibility(room_id, participant_id, request_data.show)
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.delete("/{room_id}/participants/{target_id}", response_model=Room)
async def remove_participant(
    target_id: str,
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.remove_participant(room_id, participant_id, target_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)


# --- Participant actions ---

@router.post("/{room_id}/submissions", response_model=AccuracyResult)
async def submit_answer(
    request_data: SubmitAnswerRequest,
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        return await service.submit(room_id, participant_id, request_data.answer)
    except RoomError as e:
        raise deps.room_error_to_http(e)


@router.post("/{room_id}/typing", response_model=TypingStatusResponse)
async def update_typing_status(
    request_data: TypingStatusRequest,
    room_id: str = Depends(deps.normalize_room_id),
    participant_id: str = Depends(deps.get_current_participant_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        changed = await service.update_typing_status(room_id, participant_id, request_data.is_typing)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return TypingStatusResponse(changed=changed)


# --- Derived views ---

@router.get("/{room_id}/participants", response_model=List[ParticipantView])
async def list_participants(
    room_id: str = Depends(deps.normalize_room_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        room = await service.get_room(room_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return room_stats.participant_views(room)


@router.get("/{room_id}/stats", response_model=RoundStats)
async def get_round_stats(
    room_id: str = Depends(deps.normalize_room_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        room = await service.get_room(room_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return room_stats.round_stats(room)


@router.get("/{room_id}/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    room_id: str = Depends(deps.normalize_room_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        room = await service.get_room(room_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return room_stats.leaderboard(room)


@router.get("/{room_id}/statistics", response_model=SessionStatistics)
async def get_session_statistics(
    room_id: str = Depends(deps.normalize_room_id),
    service: RoomService = Depends(deps.get_room_service),
):
    try:
        room = await service.get_room(room_id)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return room_stats.session_statistics(room)
