from enum import Enum

class ParticipantStatus(str, Enum):
    WAITING = "waiting"
    TYPING = "typing"
    SUBMITTED = "submitted"

class DisplayStatus(str, Enum):
    """What observers render; `submitted` is split by correctness."""
    WAITING = "waiting"
    TYPING = "typing"
    CORRECT = "correct"
    INCORRECT = "incorrect"

class RoomPhase(str, Enum):
    IDLE = "idle" # No phrase assigned yet
    COUNTING_DOWN = "counting_down"
    OPEN = "open"
    INACTIVE = "inactive"
