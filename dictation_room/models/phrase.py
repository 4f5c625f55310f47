from pydantic import BaseModel, Field
from typing import List, Optional

class PhraseItem(BaseModel):
    text: str = Field(min_length=1, max_length=200)
    audio_url: Optional[str] = None

    class Config:
        from_attributes = True

class PhraseListRequest(BaseModel):
    phrases: List[PhraseItem]

class PhraseListResponse(BaseModel):
    phrases: List[PhraseItem]
    count: int

class PhraseImportResponse(BaseModel):
    parsed: int
    added: List[PhraseItem]
