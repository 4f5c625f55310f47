# dictation_room/services/phrase_service.py
import asyncio
import csv
import io
import logging
from typing import Callable, Iterable, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dictation_room.core.config import settings
from dictation_room.core.exceptions import BackendUnavailable, InvalidPhrase
from dictation_room.crud import crud_phrase
from dictation_room.models.phrase import PhraseItem

logger = logging.getLogger("dictation_room.services.phrase_service")  # Logger for this module

SAMPLE_CSV_HEADER = "WFD Phrases"
SAMPLE_PHRASES = [
    "The lecture was about climate change",
    "Students should submit their assignments on time",
    "The research findings were quite surprising",
    "Technology has revolutionized modern education",
    "Environmental protection is everyone's responsibility",
    "The conference will be held next month",
    "Please complete the survey by Friday",
    "The new policy takes effect immediately",
    "All participants must register in advance",
    "The deadline has been extended until next week",
]


class PhraseSource(Protocol):
    """Ordered list of practice phrases that `advance_phrase` cycles through."""

    async def list_phrases(self) -> List[PhraseItem]: ...

    async def get_phrase(self, index: int) -> Optional[PhraseItem]: ...

    async def add_phrases(self, items: Iterable[PhraseItem]) -> List[PhraseItem]: ...

    async def remove_phrase(self, text: str) -> bool: ...

    async def replace_phrases(self, items: Iterable[PhraseItem]) -> List[PhraseItem]: ...


def _clean_items(items: Iterable[PhraseItem], existing: Iterable[str] = ()) -> List[PhraseItem]:
    """Trims text and drops blanks and duplicates (against `existing` and within the batch)."""
    seen = set(existing)
    cleaned = []
    for item in items:
        text = item.text.strip()
        if not text or text in seen:
            continue
        seen.add(text)
        cleaned.append(PhraseItem(text=text, audio_url=item.audio_url))
    return cleaned


class InMemoryPhraseSource:
    def __init__(self, default_phrases: Optional[List[str]] = None):
        self._phrases: List[PhraseItem] = []
        self._defaults = settings.DEFAULT_PHRASES if default_phrases is None else default_phrases
        self._seeded = False

    def _ensure_seeded(self):
        if not self._seeded:
            self._seeded = True
            if not self._phrases:
                self._phrases = _clean_items(PhraseItem(text=text) for text in self._defaults)
                logger.info(f"Seeded in-memory phrase list with {len(self._phrases)} default phrases.")

    async def list_phrases(self) -> List[PhraseItem]:
        self._ensure_seeded()
        return list(self._phrases)

    async def get_phrase(self, index: int) -> Optional[PhraseItem]:
        self._ensure_seeded()
        if 0 <= index < len(self._phrases):
            return self._phrases[index]
        return None

    async def add_phrases(self, items: Iterable[PhraseItem]) -> List[PhraseItem]:
        self._ensure_seeded()
        added = _clean_items(items, existing=(p.text for p in self._phrases))
        self._phrases.extend(added)
        return added

    async def remove_phrase(self, text: str) -> bool:
        self._ensure_seeded()
        before = len(self._phrases)
        self._phrases = [p for p in self._phrases if p.text != text.strip()]
        return len(self._phrases) < before

    async def replace_phrases(self, items: Iterable[PhraseItem]) -> List[PhraseItem]:
        self._seeded = True
        self._phrases = _clean_items(items)
        return list(self._phrases)


class SqlPhraseSource:
    """Phrase list kept in the `phrases` table."""

    def __init__(self, session_factory: Callable[[], Session], default_phrases: Optional[List[str]] = None):
        self._session_factory = session_factory
        self._defaults = settings.DEFAULT_PHRASES if default_phrases is None else default_phrases
        self._seeded = False

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as e:
            logger.error(f"Phrase store operation failed: {e}")
            raise BackendUnavailable() from e

    def _with_session(self, func, *args):
        db = self._session_factory()
        try:
            if not self._seeded:
                self._seeded = True
                if crud_phrase.count_phrases(db) == 0:
                    defaults = _clean_items(PhraseItem(text=text) for text in self._defaults)
                    crud_phrase.create_phrases(db, [(p.text, p.audio_url) for p in defaults])
                    logger.info(f"Seeded phrases table with {len(defaults)} default phrases.")
            return func(db, *args)
        finally:
            db.close()

    def _list_sync(self, db: Session) -> List[PhraseItem]:
        return [PhraseItem.model_validate(row) for row in crud_phrase.get_phrases(db)]

    def _get_sync(self, db: Session, index: int) -> Optional[PhraseItem]:
        if index < 0:
            return None
        row = crud_phrase.get_phrase_at(db, index)
        return PhraseItem.model_validate(row) if row else None

    def _add_sync(self, db: Session, items: List[PhraseItem]) -> List[PhraseItem]:
        existing = [row.text for row in crud_phrase.get_phrases(db)]
        added = _clean_items(items, existing=existing)
        crud_phrase.create_phrases(db, [(p.text, p.audio_url) for p in added])
        return added

    def _remove_sync(self, db: Session, text: str) -> bool:
        return crud_phrase.delete_phrase_by_text(db, text.strip())

    def _replace_sync(self, db: Session, items: List[PhraseItem]) -> List[PhraseItem]:
        cleaned = _clean_items(items)
        crud_phrase.replace_all_phrases(db, [(p.text, p.audio_url) for p in cleaned])
        return cleaned

    async def list_phrases(self) -> List[PhraseItem]:
        return await self._run(self._with_session, self._list_sync)

    async def get_phrase(self, index: int) -> Optional[PhraseItem]:
        return await self._run(self._with_session, self._get_sync, index)

    async def add_phrases(self, items: Iterable[PhraseItem]) -> List[PhraseItem]:
        return await self._run(self._with_session, self._add_sync, list(items))

    async def remove_phrase(self, text: str) -> bool:
        return await self._run(self._with_session, self._remove_sync, text)

    async def replace_phrases(self, items: Iterable[PhraseItem]) -> List[PhraseItem]:
        self._seeded = True
        return await self._run(self._with_session, self._replace_sync, list(items))


# --- CSV import/export ---

def validate_csv_upload(filename: Optional[str], size: int) -> None:
    if not filename or not filename.lower().endswith(".csv"):
        raise InvalidPhrase("Only .csv files are accepted.")
    if size > settings.MAX_CSV_BYTES:
        raise InvalidPhrase(f"File too large (max {settings.MAX_CSV_BYTES // (1024 * 1024)}MB).")


def parse_csv(content: str | bytes, skip_header: bool = False, max_length: Optional[int] = None) -> List[str]:
    """
    Extracts phrases from the first column of each non-empty row.
    Quoted fields may contain commas. Phrases outside 1..max_length characters are dropped.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InvalidPhrase("CSV file must be UTF-8 encoded.") from e
    max_length = settings.MAX_PHRASE_LENGTH if max_length is None else max_length

    phrases = []
    header_pending = skip_header
    for row in csv.reader(io.StringIO(content)):
        if not row or not "".join(row).strip():
            continue
        if header_pending:
            header_pending = False
            continue
        phrase = row[0].strip()
        if 0 < len(phrase) <= max_length:
            phrases.append(phrase)
    return phrases


def generate_sample_csv() -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    buffer.write(SAMPLE_CSV_HEADER + "\n")
    for phrase in SAMPLE_PHRASES:
        writer.writerow([phrase])
    return buffer.getvalue()
