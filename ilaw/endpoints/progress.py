# Endpoints for reading progress, reading-session timers and the student progress summary
# ilaw/endpoints/progress.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ilaw.models.quiz import QuizAttemptRecord
from ilaw.services.badge_service import badge_service
from ilaw.services.progress_view import StudentProgressView
from ilaw.state_manager import (
    end_reading_session,
    get_book_or_404,
    get_user_or_404,
    list_progress,
    list_quiz_attempts,
    start_reading_session,
    upsert_progress,
)
from ilaw.utils.config import settings
from ilaw.utils.db import get_db
from ilaw.utils.logger import logger
from ilaw.utils.scoring import round_half_away

router = APIRouter()

class ProgressUpdate(BaseModel):
    user_id: int
    book_id: int
    percent_complete: Optional[float] = Field(None, allow_inf_nan=False)

class ProgressOut(BaseModel):
    id: int
    user_id: int
    book_id: int
    current_chapter: Optional[str] = None
    percent_complete: int
    total_reading_time: int
    last_read_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ReadingSessionRequest(BaseModel):
    user_id: int
    book_id: int


@router.get("/progress/{user_id}", response_model=List[ProgressOut], tags=["Progress"])
async def get_progress(user_id: int, db: AsyncSession = Depends(get_db)):
    await get_user_or_404(db, user_id)
    return await list_progress(db, user_id)

@router.post("/progress/", response_model=ProgressOut, tags=["Progress"])
async def update_progress(request: ProgressUpdate, db: AsyncSession = Depends(get_db)):
    """Upserts progress; the percentage is rounded and clamped to 0..100."""
    await get_user_or_404(db, request.user_id)
    await get_book_or_404(db, request.book_id)
    percent = request.percent_complete if request.percent_complete is not None else 0
    percent = max(0, min(100, round_half_away(percent)))
    progress = await upsert_progress(db, request.user_id, request.book_id, percent_complete=percent)
    await db.commit()
    return progress

@router.get("/progress/{user_id}/summary", tags=["Progress"])
async def get_progress_summary(user_id: int, gap_sec: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """
    The student progress page in one payload: reading stats, quiz sessions
    grouped from raw attempts, the session-based average score (null when the
    student has no quiz data), latest session per book and earned badges.
    """
    await get_user_or_404(db, user_id)
    attempts = await list_quiz_attempts(db, user_id=user_id)
    progress_rows = await list_progress(db, user_id)

    view = StudentProgressView(
        user_id=user_id,
        attempts=[QuizAttemptRecord.model_validate(a) for a in attempts],
        progress_rows=progress_rows,
        gap_sec=gap_sec if gap_sec and gap_sec > 0 else settings.session_gap_sec,
    )
    summary = view.summary()
    summary["badges"] = await badge_service.list_earned_badges(db, user_id)
    logger.info(f"Built progress summary for user {user_id}: {len(attempts)} attempts, {len(summary['sessions'])} sessions")
    return summary

@router.post("/reading-sessions/start", tags=["Reading Sessions"])
async def start_session(request: ReadingSessionRequest, db: AsyncSession = Depends(get_db)):
    await get_user_or_404(db, request.user_id)
    await get_book_or_404(db, request.book_id)
    reading_session, created = await start_reading_session(db, request.user_id, request.book_id)
    await db.commit()
    return {
        "session_id": reading_session.id,
        "start_time": reading_session.start_time.isoformat(),
        "message": "Reading session started" if created else "Active session already exists",
    }

@router.post("/reading-sessions/end", tags=["Reading Sessions"])
async def end_session(request: ReadingSessionRequest, db: AsyncSession = Depends(get_db)):
    reading_session = await end_reading_session(db, request.user_id, request.book_id)
    await db.commit()
    return {
        "session_id": reading_session.id,
        "start_time": reading_session.start_time.isoformat(),
        "end_time": reading_session.end_time.isoformat(),
        "total_seconds": reading_session.total_seconds,
        "message": "Reading session ended",
    }
