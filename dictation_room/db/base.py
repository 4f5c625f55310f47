# dictation_room/db/base.py
# Import all the tables, so that Base has them before being
# imported by Alembic
from dictation_room.db.base_class import Base
from dictation_room.schemas.room import RoomDocument
from dictation_room.schemas.phrase import Phrase
