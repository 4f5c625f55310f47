# dictation_room/crud/crud_phrase.py
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from dictation_room.schemas.phrase import Phrase

def get_phrases(db: Session) -> List[Phrase]:
    return db.query(Phrase).order_by(Phrase.position, Phrase.id).all()

def count_phrases(db: Session) -> int:
    return db.query(func.count(Phrase.id)).scalar() or 0

def get_phrase_at(db: Session, index: int) -> Phrase | None:
    return db.query(Phrase).order_by(Phrase.position, Phrase.id).offset(index).limit(1).first()

def get_phrase_by_text(db: Session, text: str) -> Phrase | None:
    return db.query(Phrase).filter(Phrase.text == text).first()

def create_phrases(db: Session, items: List[tuple[str, str | None]]) -> List[Phrase]:
    """Appends (text, audio_url) pairs after the current last position."""
    next_position = (db.query(func.max(Phrase.position)).scalar() or 0) + 1
    db_items = []
    for offset, (text, audio_url) in enumerate(items):
        db_item = Phrase(text=text, audio_url=audio_url, position=next_position + offset)
        db.add(db_item)
        db_items.append(db_item)
    db.commit()
    for db_item in db_items:
        db.refresh(db_item)
    return db_items

def delete_phrase_by_text(db: Session, text: str) -> bool:
    deleted = db.query(Phrase).filter(Phrase.text == text).delete()
    db.commit()
    return deleted > 0

def delete_all_phrases(db: Session) -> int:
    deleted = db.query(Phrase).delete()
    db.commit()
    return deleted

def replace_all_phrases(db: Session, items: List[tuple[str, str | None]]) -> List[Phrase]:
    """Swaps the whole list in a single transaction."""
    db.query(Phrase).delete()
    db_items = [
        Phrase(text=text, audio_url=audio_url, position=position)
        for position, (text, audio_url) in enumerate(items, start=1)
    ]
    db.add_all(db_items)
    db.commit()
    for db_item in db_items:
        db.refresh(db_item)
    return db_items
