# ilaw/endpoints/quiz_attempts.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ilaw.models.enums import QuizMode
from ilaw.state_manager import get_book_or_404, get_user_or_404, list_quiz_attempts, record_quiz_attempt
from ilaw.utils.db import get_db
from ilaw.utils.logger import logger

router = APIRouter()

class QuizAttemptCreate(BaseModel):
    user_id: int
    book_id: int
    page_id: Optional[int] = None
    score_correct: int
    score_total: int
    percentage: Optional[float] = Field(None, allow_inf_nan=False)
    mode: Optional[str] = None  # anything but "straight" is stored as "retry"
    duration_sec: Optional[int] = None

class QuizAttemptOut(BaseModel):
    id: int
    user_id: int
    book_id: int
    page_id: Optional[int] = None
    score_correct: int
    score_total: int
    percentage: int
    mode: QuizMode
    attempt_number: int
    duration_sec: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class QuizAttemptList(BaseModel):
    count: int
    attempts: List[QuizAttemptOut]


@router.post("/", response_model=QuizAttemptOut, status_code=201)
async def submit_quiz_attempt(request: QuizAttemptCreate, db: AsyncSession = Depends(get_db)):
    if request.score_total <= 0 or request.score_correct < 0 or request.score_correct > request.score_total:
        raise HTTPException(status_code=400, detail="Invalid score values")
    if request.duration_sec is not None and request.duration_sec < 0:
        raise HTTPException(status_code=400, detail="Invalid duration")

    await get_user_or_404(db, request.user_id)
    await get_book_or_404(db, request.book_id)

    attempt = await record_quiz_attempt(
        db,
        user_id=request.user_id,
        book_id=request.book_id,
        page_id=request.page_id,
        score_correct=request.score_correct,
        score_total=request.score_total,
        percentage=request.percentage,
        mode=request.mode,
        duration_sec=request.duration_sec,
    )
    await db.commit()
    return attempt

@router.get("/", response_model=QuizAttemptList)
async def get_quiz_attempts(
    user_id: Optional[int] = None,
    book_id: Optional[int] = None,
    page_id: Optional[int] = None,
    latest_per_book: bool = False,
    db: AsyncSession = Depends(get_db),
):
    """Attempt rows newest first, optionally reduced to the latest attempt per (user, book)."""
    logger.debug(f"Listing quiz attempts: user={user_id}, book={book_id}, page={page_id}, latest_per_book={latest_per_book}")
    attempts = await list_quiz_attempts(db, user_id=user_id, book_id=book_id, page_id=page_id, latest_per_book=latest_per_book)
    return QuizAttemptList(count=len(attempts), attempts=attempts)
