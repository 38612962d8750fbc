# ilaw/state_manager.py
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from ilaw.models.enums import QuizMode
from ilaw.models.tables import Book, Progress, QuizAttempt, ReadingSession, TeachingSettings, User
from ilaw.utils.logger import logger
from ilaw.utils.scoring import round_half_away, safe_percentage


async def get_user_or_404(session: AsyncSession, user_id: int) -> User:
    result = await session.execute(select(User).filter_by(id=user_id))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_book_or_404(session: AsyncSession, book_id: int) -> Book:
    result = await session.execute(select(Book).filter_by(id=book_id))
    book = result.scalars().first()
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


async def get_teaching_settings(session: AsyncSession, user_id: int) -> Optional[TeachingSettings]:
    result = await session.execute(select(TeachingSettings).filter_by(user_id=user_id))
    return result.scalars().first()


# --- Quiz attempts ---

async def record_quiz_attempt(
    session: AsyncSession,
    user_id: int,
    book_id: int,
    score_correct: int,
    score_total: int,
    page_id: Optional[int] = None,
    percentage: Optional[float] = None,
    mode: Optional[str] = None,
    duration_sec: Optional[int] = None,
) -> QuizAttempt:
    """
    Stores one quiz submission. The attempt number continues from the latest
    attempt on the same user/book (and page, when given).
    The calling function is responsible for committing the transaction.
    """
    query = (
        select(QuizAttempt.attempt_number)
        .filter_by(user_id=user_id, book_id=book_id)
        .order_by(desc(QuizAttempt.attempt_number))
        .limit(1)
    )
    if page_id is not None:
        query = query.filter_by(page_id=page_id)
    latest_number = (await session.execute(query)).scalars().first()
    next_attempt_number = (latest_number or 0) + 1

    computed_pct = round_half_away(percentage) if percentage is not None else safe_percentage(score_correct, score_total)

    attempt = QuizAttempt(
        user_id=user_id,
        book_id=book_id,
        page_id=page_id,
        score_correct=score_correct,
        score_total=score_total,
        percentage=computed_pct,
        mode=QuizMode.STRAIGHT if mode == QuizMode.STRAIGHT.value else QuizMode.RETRY,
        attempt_number=next_attempt_number,
        duration_sec=duration_sec or 0,
    )
    session.add(attempt)
    await session.flush()
    await session.refresh(attempt)
    logger.info(f"Recorded quiz attempt #{next_attempt_number} for user {user_id} on book {book_id}: {score_correct}/{score_total}")
    return attempt


async def list_quiz_attempts(
    session: AsyncSession,
    user_id: Optional[int] = None,
    book_id: Optional[int] = None,
    page_id: Optional[int] = None,
    latest_per_book: bool = False,
) -> List[QuizAttempt]:
    """Attempts newest first. With latest_per_book only the latest attempt per (user, book) is kept."""
    query = select(QuizAttempt).order_by(desc(QuizAttempt.created_at), desc(QuizAttempt.id))
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    if book_id is not None:
        query = query.filter_by(book_id=book_id)
    if page_id is not None:
        query = query.filter_by(page_id=page_id)
    attempts = list((await session.execute(query)).scalars().all())

    if not latest_per_book:
        return attempts

    # Rows are newest first, so the first row seen per key is the latest
    latest = {}
    for attempt in attempts:
        latest.setdefault((attempt.user_id, attempt.book_id), attempt)
    return list(latest.values())


# --- Reading progress ---

async def list_progress(session: AsyncSession, user_id: int) -> List[Progress]:
    result = await session.execute(
        select(Progress)
        .filter_by(user_id=user_id)
        .options(selectinload(Progress.book))
        .order_by(desc(Progress.last_read_at))
    )
    return list(result.scalars().all())


async def upsert_progress(
    session: AsyncSession,
    user_id: int,
    book_id: int,
    percent_complete: Optional[int] = None,
    add_reading_seconds: int = 0,
    read_at: Optional[datetime] = None,
) -> Progress:
    """
    Creates or updates the single progress row of a user/book pair.
    percent_complete is left untouched when None.
    The calling function is responsible for committing the transaction.
    """
    read_at = read_at or datetime.utcnow()
    result = await session.execute(select(Progress).filter_by(user_id=user_id, book_id=book_id))
    progress = result.scalars().first()

    if progress is None:
        progress = Progress(
            user_id=user_id,
            book_id=book_id,
            percent_complete=percent_complete or 0,
            total_reading_time=add_reading_seconds,
            last_read_at=read_at,
        )
        session.add(progress)
        logger.info(f"Created progress for user {user_id} on book {book_id}")
    else:
        if percent_complete is not None:
            progress.percent_complete = percent_complete
        progress.total_reading_time = (progress.total_reading_time or 0) + add_reading_seconds
        progress.last_read_at = read_at
        logger.debug(f"Updated progress for user {user_id} on book {book_id}")

    await session.flush()
    await session.refresh(progress)
    return progress


# --- Reading sessions ---

async def get_open_reading_session(session: AsyncSession, user_id: int, book_id: int) -> Optional[ReadingSession]:
    result = await session.execute(
        select(ReadingSession)
        .filter_by(user_id=user_id, book_id=book_id)
        .filter(ReadingSession.end_time.is_(None))
    )
    return result.scalars().first()


async def start_reading_session(session: AsyncSession, user_id: int, book_id: int) -> tuple[ReadingSession, bool]:
    """Returns (session, created). An already open session for the same book is reused."""
    active = await get_open_reading_session(session, user_id, book_id)
    if active:
        logger.debug(f"Reading session {active.id} already open for user {user_id} on book {book_id}")
        return active, False

    reading_session = ReadingSession(user_id=user_id, book_id=book_id, start_time=datetime.utcnow())
    session.add(reading_session)
    await session.flush()
    await session.refresh(reading_session)
    logger.info(f"Started reading session {reading_session.id} for user {user_id} on book {book_id}")
    return reading_session, True


async def end_reading_session(session: AsyncSession, user_id: int, book_id: int) -> ReadingSession:
    """Closes the open session and adds its elapsed whole seconds to the book's reading time."""
    active = await get_open_reading_session(session, user_id, book_id)
    if not active:
        raise HTTPException(status_code=404, detail="No active reading session found")

    end_time = datetime.utcnow()
    total_seconds = max(0, int((end_time - active.start_time).total_seconds()))
    active.end_time = end_time
    active.total_seconds = total_seconds

    await upsert_progress(session, user_id, book_id, add_reading_seconds=total_seconds, read_at=end_time)
    logger.info(f"Ended reading session {active.id} for user {user_id}: {total_seconds}s")
    return active
