# dictation_room/services/accuracy_scorer.py
import math
import re
from collections import Counter
from typing import List

from dictation_room.models.room import AccuracyResult

_WHITESPACE_RUN = re.compile(r"\s+")


def round_half_up(value: float) -> float:
    """Two decimals, ties away from zero (3.125 -> 3.13)."""
    return math.floor(value * 100 + 0.5) / 100


def normalize_text(text: str) -> str:
    """Trim, lowercase and collapse whitespace runs to a single space."""
    return _WHITESPACE_RUN.sub(" ", (text or "").strip().lower())


def tokenize(text: str) -> List[str]:
    normalized = normalize_text(text)
    return normalized.split(" ") if normalized else []


def score(reference: str, submission: str) -> AccuracyResult:
    """
    Scores a dictation attempt against the reference phrase by word multiset.

    Word order is never penalized. A submission word that does not occur in the
    reference at all is reported both as `incorrect` and as `extra`; a reference
    word typed too many times is only `extra`.
    """
    reference_words = tokenize(reference)
    submitted_words = tokenize(submission)

    # Counter keeps first-occurrence order, which fixes the order of every list below
    reference_counts = Counter(reference_words)
    submitted_counts = Counter(submitted_words)

    correct: List[str] = []
    missing: List[str] = []
    for word, ref_count in reference_counts.items():
        sub_count = submitted_counts.get(word, 0)
        correct.extend([word] * min(ref_count, sub_count))
        missing.extend([word] * max(0, ref_count - sub_count))

    extra: List[str] = []
    for word, sub_count in submitted_counts.items():
        extra.extend([word] * max(0, sub_count - reference_counts.get(word, 0)))

    incorrect = [word for word in submitted_words if word not in reference_counts]

    accuracy = round_half_up(100 * len(correct) / len(reference_words)) if reference_words else 0.0

    return AccuracyResult(
        correct=correct,
        incorrect=incorrect,
        missing=missing,
        extra=extra,
        is_fully_correct=not (missing or incorrect or extra),
        accuracy=accuracy,
    )
