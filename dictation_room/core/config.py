# dictation_room/core/config.py
import pathlib
import logging
from typing import List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

logger = logging.getLogger("dictation_room.core.config")  # Logger for this module

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    PROJECT_NAME: str = "Dictation Room Backend"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'dictation_room.db'}"

    # "sql" uses DATABASE_URL, "memory" keeps rooms in-process,
    # "auto" probes the database once at startup and falls back to memory.
    STORE_BACKEND: Literal["auto", "sql", "memory"] = "auto"
    STORE_PROBE_TIMEOUT_SECONDS: float = 10.0
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_DELAY_SECONDS: float = 1.0  # Multiplied by the attempt number

    COUNTDOWN_SECONDS: float = 3.0
    SUBMIT_MAX_RETRIES: int = 3
    ROOM_ID_LENGTH: int = 6
    ROOM_ID_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    DEACTIVATE_ON_HOST_LEAVE: bool = False # Default deletes the room when the host leaves
    RESET_PARTICIPANT_ON_REJOIN: bool = False

    MAX_PHRASE_LENGTH: int = 200
    MAX_CSV_BYTES: int = 5 * 1024 * 1024
    DEFAULT_PHRASES: List[str] = [
        "The lecture was about climate change",
        "Students should submit their assignments on time",
        "The research findings were quite surprising",
        "Technology has revolutionized modern education",
        "Environmental protection is everyone's responsibility",
    ]

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60
    JWT_SECRET_KEY: str = "change-this-dictation-room-secret-before-deploying"
    JWT_ALGORITHM: str = "HS256"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache()
def get_settings():
    settings_instance = Settings()
    logger.info(f"Store backend requested: {settings_instance.STORE_BACKEND}")
    return settings_instance

settings = get_settings()
