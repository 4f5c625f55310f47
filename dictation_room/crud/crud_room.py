# dictation_room/crud/crud_room.py
import logging
from typing import Any, Dict

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dictation_room.schemas.room import RoomDocument

logger = logging.getLogger("dictation_room.crud.crud_room")  # Logger for this module

def get_room_document(db: Session, room_id: str) -> RoomDocument | None:
    return db.query(RoomDocument).filter(RoomDocument.id == room_id).first()

def create_room_document(db: Session, room_id: str, document: Dict[str, Any]) -> RoomDocument | None:
    """Inserts a new room. Returns None when the id is already taken."""
    db_item = RoomDocument(id=room_id, document=document, version=1)
    db.add(db_item)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Room id {room_id} already exists; not created.")
        return None
    db.refresh(db_item)
    return db_item

def replace_room_document(db: Session, room_id: str, document: Dict[str, Any], expected_version: int) -> bool:
    """
    Writes `document` only if the stored row is still at `expected_version`.
    Returns False when another writer got there first.
    """
    result = db.execute(
        update(RoomDocument)
        .where(RoomDocument.id == room_id, RoomDocument.version == expected_version)
        .values(document=document, version=expected_version + 1)
    )
    db.commit()
    return result.rowcount == 1

def delete_room_document(db: Session, room_id: str) -> bool:
    deleted = db.query(RoomDocument).filter(RoomDocument.id == room_id).delete()
    db.commit()
    return deleted > 0

def check_connection(db: Session) -> None:
    """Raises if the database cannot answer a trivial query on the rooms table."""
    db.query(RoomDocument.id).limit(1).all()
