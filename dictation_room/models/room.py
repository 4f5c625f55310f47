# dictation_room/models/room.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Optional

from dictation_room.models.enums import DisplayStatus, ParticipantStatus, RoomPhase

class AccuracyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    correct: List[str] = []
    incorrect: List[str] = []
    missing: List[str] = []
    extra: List[str] = []
    is_fully_correct: bool
    accuracy: float = Field(description="Percentage of reference words matched, rounded to 2 decimals.")

class SubmissionRecord(BaseModel):
    phrase: str
    answer: str
    accuracy: AccuracyResult
    submitted_at: datetime
    phrase_index: Optional[int] = None

class ParticipantData(BaseModel):
    nickname: str
    status: ParticipantStatus = ParticipantStatus.WAITING
    is_typing: bool = False
    joined_at: Optional[datetime] = None
    # Present only after a submission for the current phrase
    submission: Optional[str] = None
    accuracy: Optional[AccuracyResult] = None
    submitted_at: Optional[datetime] = None
    # Cumulative for the whole session
    correct_count: int = 0
    total_attempts: int = 0
    completion_times: List[int] = Field(default_factory=list, description="Milliseconds from round start, fully-correct submissions only.")
    average_time: Optional[float] = None
    fastest_time: Optional[int] = None
    submission_history: List[SubmissionRecord] = Field(default_factory=list)

class Room(BaseModel):
    id: str
    host_id: str
    target_phrase: str = ""
    audio_url: Optional[str] = None
    current_phrase_index: Optional[int] = None
    is_active: bool = True
    is_counting_down: bool = False
    countdown_started_at: Optional[datetime] = None
    countdown_generation: int = 0 # Bumped by every phrase assignment
    round_start_time: Optional[datetime] = None
    show_phrase_to_participants: bool = False
    created_at: Optional[datetime] = None
    participants: Dict[str, ParticipantData] = Field(default_factory=dict)

    @property
    def phase(self) -> RoomPhase:
        if not self.is_active:
            return RoomPhase.INACTIVE
        if self.is_counting_down:
            return RoomPhase.COUNTING_DOWN
        if not self.target_phrase:
            return RoomPhase.IDLE
        return RoomPhase.OPEN

# --- Derived views ---

class RoundStats(BaseModel):
    total_participants: int
    waiting_count: int
    typing_count: int
    submitted_count: int
    fully_correct_count: int
    incorrect_count: int
    completion_percent: float
    correctness_percent: float

class LeaderboardEntry(BaseModel):
    rank: int
    participant_id: str
    nickname: str
    is_host: bool
    correct_count: int
    total_attempts: int
    success_rate: float
    average_time: Optional[float] = None
    fastest_time: Optional[int] = None

class PhraseDifficulty(BaseModel):
    phrase: str
    total_attempts: int
    errors: int
    error_rate: float
    participant_count: int

class SessionStatistics(BaseModel):
    participant_count: int
    total_submissions: int
    total_errors: int
    error_rate: float
    hardest_phrases: List[PhraseDifficulty]

class ParticipantView(BaseModel):
    participant_id: str
    nickname: str
    display_status: DisplayStatus
    is_host: bool

# --- API request/response bodies ---

class CreateRoomRequest(BaseModel):
    nickname: str = Field(min_length=1, max_length=50)

class JoinRoomRequest(BaseModel):
    nickname: str = Field(min_length=1, max_length=50)

class AssignPhraseRequest(BaseModel):
    phrase: str
    index: Optional[int] = Field(default=None, ge=0)
    audio_url: Optional[str] = None

class SubmitAnswerRequest(BaseModel):
    answer: str = Field(max_length=2000)

class TypingStatusRequest(BaseModel):
    is_typing: bool

class TypingStatusResponse(BaseModel):
    changed: bool

class VisibilityRequest(BaseModel):
    show: bool
