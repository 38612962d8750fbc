# Student progress view: quiz sessions, score averages and reading stats for one student
# ilaw/services/progress_view.py
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ilaw.models.enums import QuizScoreBand
from ilaw.models.quiz import QuizAttemptRecord, QuizSession
from ilaw.services.session_grouping import attempt_percentage, attempt_timestamp, group_attempts, group_into_sessions
from ilaw.utils.config import settings
from ilaw.utils.logger import logger
from ilaw.utils.scoring import round_half_away, safe_percentage
from ilaw.utils.timeutils import to_epoch_ms


def format_reading_time(total_seconds: Optional[int]) -> str:
    """H:MM:SS"""
    if not total_seconds:
        return "0:00:00"
    hours, rest = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def quiz_score_band(percentage: int) -> QuizScoreBand:
    if percentage >= settings.quiz_band_high_threshold:
        return QuizScoreBand.HIGH
    if percentage >= settings.quiz_band_medium_threshold:
        return QuizScoreBand.MEDIUM
    return QuizScoreBand.LOW


def _get(row: Any, name: str, default=None):
    if isinstance(row, dict):
        return row.get(name, default)
    return getattr(row, name, default)


class StudentProgressView:
    """
    Everything the student progress page derives from one fetch of attempts
    and progress rows. The student (user_id) is the implicit subject of every
    query; nothing here touches the database.
    """

    def __init__(
        self,
        user_id: int,
        attempts: Iterable[Any],
        progress_rows: Iterable[Any] = (),
        gap_sec: int = settings.session_gap_sec,
    ):
        self.user_id = user_id
        self.gap_sec = gap_sec
        self.attempts: List[QuizAttemptRecord] = [
            a if isinstance(a, QuizAttemptRecord) else QuizAttemptRecord.model_validate(a)
            for a in attempts
        ]
        self.progress_rows = list(progress_rows)

    def _own_attempts(self) -> List[QuizAttemptRecord]:
        return [a for a in self.attempts if a.user_id == self.user_id]

    # --- quiz sessions ---

    def all_sessions(self) -> List[QuizSession]:
        return group_attempts(self._own_attempts(), self.gap_sec)

    def sessions_for_book(self, book_id: int) -> List[QuizSession]:
        book_attempts = [a for a in self._own_attempts() if a.book_id == book_id]
        return group_into_sessions(sorted(book_attempts, key=attempt_timestamp), self.gap_sec)

    def latest_session_for_book(self, book_id: int) -> Optional[QuizSession]:
        sessions = self.sessions_for_book(book_id)
        return sessions[-1] if sessions else None

    def latest_attempt_for_book(self, book_id: int) -> Optional[QuizAttemptRecord]:
        book_attempts = sorted((a for a in self._own_attempts() if a.book_id == book_id), key=attempt_timestamp)
        return book_attempts[-1] if book_attempts else None

    def average_across_all_sessions(self) -> Optional[int]:
        """Mean session percentage, or None when there is no quiz data at all (not 0)."""
        sessions = self.all_sessions()
        if not sessions:
            return None
        return round_half_away(sum(s.percentage for s in sessions) / len(sessions))

    # --- reading progress ---

    def unique_progress(self) -> List[Any]:
        """One row per book, keeping the most recently read one."""
        latest: Dict[Any, Any] = {}
        for row in self.progress_rows:
            book_id = _get(row, "book_id")
            kept = latest.get(book_id)
            if kept is None or to_epoch_ms(_get(row, "last_read_at")) > to_epoch_ms(_get(kept, "last_read_at")):
                latest[book_id] = row
        return list(latest.values())

    def reading_stats(self) -> Dict[str, int]:
        unique = self.unique_progress()
        completed = sum(1 for p in unique if (_get(p, "percent_complete") or 0) == 100)
        in_progress = sum(1 for p in unique if 0 < (_get(p, "percent_complete") or 0) < 100)
        total_seconds = sum(_get(p, "total_reading_time") or 0 for p in unique)
        return {
            "books_completed": completed,
            "books_in_progress": in_progress,
            "total_reading_time": total_seconds,
            "completion_rate": safe_percentage(completed, completed + in_progress),
        }

    def summary(self) -> Dict[str, Any]:
        """Serializable snapshot of the whole view."""
        stats = self.reading_stats()
        average = self.average_across_all_sessions()
        books = []
        for row in sorted(self.unique_progress(), key=lambda r: to_epoch_ms(_get(r, "last_read_at")), reverse=True):
            book_id = _get(row, "book_id")
            latest = self.latest_session_for_book(book_id)
            last_attempt = self.latest_attempt_for_book(book_id)
            last_read_at = _get(row, "last_read_at")
            book = _get(row, "book")
            books.append({
                "book_id": book_id,
                "title": _get(book, "title") if book is not None else None,
                "percent_complete": _get(row, "percent_complete") or 0,
                "total_reading_time": _get(row, "total_reading_time") or 0,
                "last_read_at": last_read_at.isoformat() if isinstance(last_read_at, datetime) else last_read_at,
                "latest_quiz": latest.model_dump(mode="json") if latest else None,
                "latest_quiz_band": quiz_score_band(latest.percentage).value if latest else None,
                "latest_attempt_percentage": attempt_percentage(last_attempt) if last_attempt else None,
            })

        sessions = self.all_sessions()
        logger.debug(f"Progress summary for user {self.user_id}: {len(sessions)} quiz sessions, {len(books)} books")
        return {
            "user_id": self.user_id,
            "stats": {**stats, "total_reading_time_display": format_reading_time(stats["total_reading_time"])},
            "average_quiz_score": average,
            "average_quiz_band": quiz_score_band(average).value if average is not None else None,
            "books": books,
            "sessions": [s.model_dump(mode="json") for s in sessions],
        }
