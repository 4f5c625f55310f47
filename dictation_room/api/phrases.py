# dictation_room/api/phrases.py
import logging
from typing import List
from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from dictation_room.api import deps
from dictation_room.core.exceptions import RoomError
from dictation_room.models.phrase import PhraseImportResponse, PhraseItem, PhraseListRequest, PhraseListResponse
from dictation_room.services import phrase_service
from dictation_room.services.phrase_service import PhraseSource

logger = logging.getLogger("dictation_room.api.phrases")  # Logger for this module
router = APIRouter()


@router.get("", response_model=PhraseListResponse)
async def list_phrases(source: PhraseSource = Depends(deps.get_phrase_source)):
    try:
        phrases = await source.list_phrases()
    except RoomError as e:
        raise deps.room_error_to_http(e)
    return PhraseListResponse(phrases=phrases, count=len(phrases))


@router.post("", response_model=List[PhraseItem], status_code=status.HTTP_201_CREATED)
async def add_phrases(
    request_data: PhraseListRequest,
    participant_id: str = Depends(deps.get_current_participant_id),
    source: PhraseSource = Depends(deps.get_phrase_source),
):
    try:
        added = await source.add_phrases(request_data.phrases)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    logger.info(f"Participant {participant_id} added {len(added)} phrase(s).")
    return added


@router.put("", response_model=PhraseListResponse)
async def replace_phrases(
    request_data: PhraseListRequest,
    participant_id: str = Depends(deps.get_current_participant_id),
    source: PhraseSource = Depends(deps.get_phrase_source),
):
    try:
        phrases = await source.replace_phrases(request_data.phrases)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    logger.info(f"Participant {participant_id} replaced the phrase list ({len(phrases)} phrases).")
    return PhraseListResponse(phrases=phrases, count=len(phrases))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def remove_phrase(
    text: str = Query(..., min_length=1),
    participant_id: str = Depends(deps.get_current_participant_id),
    source: PhraseSource = Depends(deps.get_phrase_source),
):
    try:
        removed = await source.remove_phrase(text)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"message": "Phrase not found.", "code": "not_found"})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/import-csv", response_model=PhraseImportResponse)
async def import_phrases_csv(
    file: UploadFile = File(...),
    skip_header: bool = Query(False, description="Ignore the first non-empty row"),
    participant_id: str = Depends(deps.get_current_participant_id),
    source: PhraseSource = Depends(deps.get_phrase_source),
):
    content = await file.read()
    try:
        phrase_service.validate_csv_upload(file.filename, len(content))
        parsed = phrase_service.parse_csv(content, skip_header=skip_header)
        added = await source.add_phrases(PhraseItem(text=text) for text in parsed)
    except RoomError as e:
        raise deps.room_error_to_http(e)
    finally:
        await file.close()
    logger.info(f"Participant {participant_id} imported '{file.filename}': {len(parsed)} parsed, {len(added)} added.")
    return PhraseImportResponse(parsed=len(parsed), added=added)


@router.get("/sample.csv")
async def download_sample_csv():
    return Response(
        content=phrase_service.generate_sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="wfd-phrases-sample.csv"'},
    )
