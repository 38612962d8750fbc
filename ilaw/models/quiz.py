# Data models for quiz attempts as consumed by the progress aggregation, and the derived sessions
# ilaw/models/quiz.py
import math
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, field_validator

from ilaw.models.enums import QuizMode
from ilaw.utils.scoring import round_half_away
from ilaw.utils.timeutils import parse_timestamp


def _lenient_int(value: Any) -> Optional[int]:
    """Coerce to int, returning None for anything missing or malformed."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


class QuizAttemptRecord(BaseModel):
    """
    One submitted quiz, read-only input to the session grouping.

    Parsing never fails on bad field values: numbers that cannot be read become
    None, unreadable timestamps become None (treated as epoch 0 downstream) and
    any mode other than "straight" is "retry".
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    user_id: Optional[int] = None
    book_id: Optional[int] = None
    page_id: Optional[int] = None
    score_correct: Optional[int] = None
    score_total: Optional[int] = None
    percentage: Optional[int] = None
    mode: QuizMode = QuizMode.RETRY
    attempt_number: Optional[int] = None
    duration_sec: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator(
        "user_id", "book_id", "page_id", "score_correct", "score_total",
        "attempt_number", "duration_sec",
        mode="before",
    )
    @classmethod
    def coerce_ints(cls, v):
        return _lenient_int(v)

    @field_validator("percentage", mode="before")
    @classmethod
    def coerce_percentage(cls, v):
        # Only a real number counts as a stored percentage; anything else gets recomputed
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if not math.isfinite(v):
            return None
        return round_half_away(v)

    @field_validator("mode", mode="before")
    @classmethod
    def coerce_mode(cls, v):
        if isinstance(v, QuizMode):
            return v
        return QuizMode.STRAIGHT if v == QuizMode.STRAIGHT.value else QuizMode.RETRY

    @field_validator("created_at", mode="before")
    @classmethod
    def coerce_created_at(cls, v):
        return parse_timestamp(v)


class QuizSession(BaseModel):
    """A run of temporally adjacent attempts on one book, treated as one quiz-taking episode."""
    book_id: Optional[int]
    start_at: int  # epoch milliseconds
    end_at: int
    total_correct: int = 0
    total_total: int = 0
    percentage: int = 0
    mode: QuizMode = QuizMode.RETRY
