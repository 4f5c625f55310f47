# dictation_room/schemas/phrase.py
from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func

from dictation_room.db.base_class import Base

class Phrase(Base):
    id = Column(Integer, primary_key=True, index=True)
    position = Column(Integer, nullable=False, index=True) # Order in the practice list
    text = Column(String(200), unique=True, nullable=False)
    audio_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
