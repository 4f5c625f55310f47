# dictation_room/services/room_stats.py
"""Read-only views derived from a room snapshot. Nothing here is stored."""
from functools import cmp_to_key
from typing import Dict, List

from dictation_room.models.enums import DisplayStatus, ParticipantStatus
from dictation_room.models.room import (
    LeaderboardEntry,
    ParticipantData,
    ParticipantView,
    PhraseDifficulty,
    Room,
    RoundStats,
    SessionStatistics,
)

HARDEST_PHRASES_LIMIT = 10


def display_status(participant: ParticipantData) -> DisplayStatus:
    if participant.status == ParticipantStatus.SUBMITTED and participant.accuracy is not None:
        return DisplayStatus.CORRECT if participant.accuracy.is_fully_correct else DisplayStatus.INCORRECT
    if participant.status == ParticipantStatus.TYPING:
        return DisplayStatus.TYPING
    return DisplayStatus.WAITING


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _non_host(room: Room) -> Dict[str, ParticipantData]:
    return {pid: p for pid, p in room.participants.items() if pid != room.host_id}


def participant_views(room: Room) -> List[ParticipantView]:
    return [
        ParticipantView(
            participant_id=pid,
            nickname=p.nickname,
            display_status=display_status(p),
            is_host=pid == room.host_id,
        )
        for pid, p in room.participants.items()
    ]


def round_stats(room: Room) -> RoundStats:
    """Counts for the current phrase. The host is not counted."""
    statuses = [display_status(p) for p in _non_host(room).values()]
    total = len(statuses)
    correct = statuses.count(DisplayStatus.CORRECT)
    incorrect = statuses.count(DisplayStatus.INCORRECT)
    submitted = correct + incorrect
    return RoundStats(
        total_participants=total,
        waiting_count=statuses.count(DisplayStatus.WAITING),
        typing_count=statuses.count(DisplayStatus.TYPING),
        submitted_count=submitted,
        fully_correct_count=correct,
        incorrect_count=incorrect,
        completion_percent=_percent(submitted, total),
        correctness_percent=_percent(correct, submitted),
    )


def _compare_entries(a: LeaderboardEntry, b: LeaderboardEntry) -> int:
    if a.correct_count != b.correct_count:
        return b.correct_count - a.correct_count
    if a.correct_count > 0 and b.correct_count > 0:
        a_avg, b_avg = a.average_time or 0, b.average_time or 0
        if a_avg != b_avg:
            return -1 if a_avg < b_avg else 1
        return (a.fastest_time or 0) - (b.fastest_time or 0)
    if a.success_rate != b.success_rate:
        return -1 if a.success_rate > b.success_rate else 1
    return 0


def leaderboard(room: Room) -> List[LeaderboardEntry]:
    """
    Everyone in the room, host included, ranked by correct answers.
    Ties between scorers go to the lower average time, then the fastest single time;
    ties without any correct answer go to the higher success rate.
    """
    entries = [
        LeaderboardEntry(
            rank=0,
            participant_id=pid,
            nickname=p.nickname,
            is_host=pid == room.host_id,
            correct_count=p.correct_count,
            total_attempts=p.total_attempts,
            success_rate=_percent(p.correct_count, p.total_attempts),
            average_time=p.average_time,
            fastest_time=p.fastest_time,
        )
        for pid, p in room.participants.items()
    ]
    entries.sort(key=cmp_to_key(_compare_entries))
    for rank, entry in enumerate(entries, start=1):
        entry.rank = rank
    return entries


def session_statistics(room: Room) -> SessionStatistics:
    participants = _non_host(room)
    total_submissions = 0
    total_errors = 0
    per_phrase: Dict[str, dict] = {}

    for pid, participant in participants.items():
        for record in participant.submission_history:
            total_submissions += 1
            failed = not record.accuracy.is_fully_correct
            if failed:
                total_errors += 1
            stats = per_phrase.setdefault(record.phrase, {"total": 0, "errors": 0, "participants": set()})
            stats["total"] += 1
            stats["errors"] += 1 if failed else 0
            stats["participants"].add(pid)

    hardest = sorted(
        (
            PhraseDifficulty(
                phrase=phrase,
                total_attempts=stats["total"],
                errors=stats["errors"],
                error_rate=_percent(stats["errors"], stats["total"]),
                participant_count=len(stats["participants"]),
            )
            for phrase, stats in per_phrase.items()
        ),
        key=lambda item: item.error_rate,
        reverse=True,
    )

    return SessionStatistics(
        participant_count=len(participants),
        total_submissions=total_submissions,
        total_errors=total_errors,
        error_rate=_percent(total_errors, total_submissions),
        hardest_phrases=hardest[:HARDEST_PHRASES_LIMIT],
    )
