# dictation_room/schemas/room.py
from sqlalchemy import Column, String, Integer, DateTime, JSON
from sqlalchemy.sql import func

from dictation_room.db.base_class import Base

class RoomDocument(Base):
    __tablename__ = "rooms" # Explicitly set table name

    id = Column(String(16), primary_key=True, index=True) # The 6-character room code
    document = Column(JSON, nullable=False) # Full room state as a JSON document
    version = Column(Integer, nullable=False, default=1) # Bumped on every write, used for optimistic checks
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
