# Groups raw quiz-attempt rows into quiz sessions per (user, book) using a time-gap heuristic
# ilaw/services/session_grouping.py
from typing import Dict, Iterable, List, Optional, Tuple

from ilaw.models.enums import QuizMode
from ilaw.models.quiz import QuizAttemptRecord, QuizSession
from ilaw.utils.config import settings
from ilaw.utils.scoring import safe_percentage
from ilaw.utils.timeutils import to_epoch_ms


def attempt_timestamp(attempt: QuizAttemptRecord) -> int:
    """Epoch milliseconds of an attempt; attempts without a usable created_at sort as time 0."""
    return to_epoch_ms(attempt.created_at)


def attempt_percentage(attempt: QuizAttemptRecord) -> int:
    """The stored percentage when there is one, otherwise computed from the raw score."""
    if attempt.percentage is not None:
        return attempt.percentage
    return safe_percentage(attempt.score_correct, attempt.score_total)


def group_into_sessions(
    attempts: Iterable[QuizAttemptRecord],
    gap_sec: int = settings.session_gap_sec,
) -> List[QuizSession]:
    """
    Walks attempts that are already sorted ascending by time and folds them into
    sessions. A new session starts when an attempt lands more than gap_sec after
    the previous attempt of the current session. A single "straight" attempt
    marks the whole session as "straight".
    """
    gap_ms = gap_sec * 1000
    sessions: List[QuizSession] = []
    current: Optional[QuizSession] = None

    for attempt in attempts:
        time = attempt_timestamp(attempt)

        if current is None or time - current.end_at > gap_ms:
            current = QuizSession(
                book_id=attempt.book_id,
                start_at=time,
                end_at=time,
                mode=attempt.mode,
            )
            sessions.append(current)
        else:
            current.end_at = time

        current.total_correct += attempt.score_correct or 0
        current.total_total += attempt.score_total or 0
        current.percentage = safe_percentage(current.total_correct, current.total_total)

        if attempt.mode == QuizMode.STRAIGHT:
            current.mode = QuizMode.STRAIGHT

    return sessions


def partition_attempts(
    attempts: Iterable[QuizAttemptRecord],
) -> Dict[Tuple[Optional[int], Optional[int]], List[QuizAttemptRecord]]:
    """Buckets attempts by (user_id, book_id), keeping first-seen order of the keys."""
    partitions: Dict[Tuple[Optional[int], Optional[int]], List[QuizAttemptRecord]] = {}
    for attempt in attempts:
        partitions.setdefault((attempt.user_id, attempt.book_id), []).append(attempt)
    return partitions


def group_attempts(
    attempts: Iterable[QuizAttemptRecord],
    gap_sec: int = settings.session_gap_sec,
) -> List[QuizSession]:
    """
    Groups an unordered list of attempts for any number of users and books.
    Each (user, book) partition is sorted by time (stable) and grouped on its
    own; the per-partition results are concatenated in discovery order.
    """
    sessions: List[QuizSession] = []
    for partition in partition_attempts(attempts).values():
        ordered = sorted(partition, key=attempt_timestamp)
        sessions.extend(group_into_sessions(ordered, gap_sec))
    return sessions
