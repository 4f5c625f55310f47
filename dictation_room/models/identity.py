# dictation_room/models/identity.py
from pydantic import BaseModel

class AnonymousIdentity(BaseModel):
    participant_id: str

# Token issued by this backend for an anonymous participant
class BackendToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    participant_id: str
    expires_in: int
