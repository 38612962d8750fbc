# ilaw/services/badge_service.py
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from ilaw.models.enums import BadgeAwardMethod
from ilaw.models.tables import Badge, BookBadge, EarnedBadge
from ilaw.services.badge_display import badge_icon_url, order_badges_for_display
from ilaw.state_manager import get_book_or_404, get_user_or_404, upsert_progress
from ilaw.utils.logger import logger


def serialize_earned_badge(earned: EarnedBadge) -> dict:
    badge = earned.badge
    book = earned.book
    return {
        "id": earned.id,
        "user_id": earned.user_id,
        "badge_id": earned.badge_id,
        "book_id": earned.book_id,
        "awarded_by_id": earned.awarded_by_id,
        "note": earned.note,
        "awarded_at": earned.awarded_at.isoformat() if earned.awarded_at else None,
        "created_at": earned.created_at.isoformat() if earned.created_at else None,
        "badge": {
            "id": badge.id,
            "name": badge.name,
            "description": badge.description,
            "icon_url": badge_icon_url(badge),
            "icon_public_id": badge.icon_public_id,
        } if badge else None,
        "book": {"id": book.id, "title": book.title} if book else None,
    }


class BadgeService:
    async def get_badge_or_404(self, session: AsyncSession, badge_id: int) -> Badge:
        result = await session.execute(select(Badge).filter_by(id=badge_id))
        badge = result.scalars().first()
        if not badge:
            raise HTTPException(status_code=404, detail="Badge not found")
        return badge

    async def list_earned_badges(self, session: AsyncSession, user_id: int) -> List[dict]:
        """A student's earned badges in display order (most recently awarded first)."""
        result = await session.execute(
            select(EarnedBadge)
            .filter_by(user_id=user_id)
            .options(selectinload(EarnedBadge.badge), selectinload(EarnedBadge.book))
            .order_by(desc(EarnedBadge.created_at))
        )
        earned = [serialize_earned_badge(eb) for eb in result.scalars().all()]
        return order_badges_for_display(earned)

    async def _find_earned(
        self, session: AsyncSession, user_id: int, badge_id: int, book_id: Optional[int]
    ) -> Optional[EarnedBadge]:
        query = select(EarnedBadge).filter_by(user_id=user_id, badge_id=badge_id)
        if book_id is None:
            query = query.filter(EarnedBadge.book_id.is_(None))
        else:
            query = query.filter_by(book_id=book_id)
        result = await session.execute(
            query.options(selectinload(EarnedBadge.badge), selectinload(EarnedBadge.book))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def award_badge(
        self,
        session: AsyncSession,
        user_id: int,
        badge_id: int,
        book_id: Optional[int] = None,
        awarded_by_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> tuple[EarnedBadge, bool]:
        """
        Manually awards a badge. Returns (earned_badge, created); awarding the
        same badge for the same book (or no book) twice returns the existing row.
        """
        await get_user_or_404(session, user_id)
        await self.get_badge_or_404(session, badge_id)
        if book_id is not None:
            await get_book_or_404(session, book_id)

        existing = await self._find_earned(session, user_id, badge_id, book_id)
        if existing:
            logger.debug(f"User {user_id} already holds badge {badge_id} (book {book_id})")
            return existing, False

        earned = EarnedBadge(
            user_id=user_id,
            badge_id=badge_id,
            book_id=book_id,
            awarded_by_id=awarded_by_id,
            note=note or None,
        )
        session.add(earned)
        await session.flush()
        earned = await self._find_earned(session, user_id, badge_id, book_id)
        logger.info(f"Awarded badge {badge_id} to user {user_id} (book {book_id})")
        return earned, True

    async def complete_book(self, session: AsyncSession, user_id: int, book_id: int) -> dict:
        """
        Marks a book as fully read and auto-awards every enabled badge mapped
        to it that the student does not hold yet.
        """
        await get_user_or_404(session, user_id)
        await get_book_or_404(session, book_id)
        progress = await upsert_progress(session, user_id, book_id, percent_complete=100)

        result = await session.execute(
            select(BookBadge)
            .filter_by(book_id=book_id, is_enabled=True)
            .options(selectinload(BookBadge.badge))
        )
        newly_awarded = []
        for mapping in result.scalars().all():
            if mapping.award_method != BadgeAwardMethod.AUTO_ON_BOOK_COMPLETE:
                continue
            if progress.percent_complete < mapping.completion_threshold:
                continue
            if await self._find_earned(session, user_id, mapping.badge_id, book_id):
                continue

            awarded_at = datetime.utcnow()
            session.add(EarnedBadge(user_id=user_id, badge_id=mapping.badge_id, book_id=book_id, awarded_at=awarded_at))
            newly_awarded.append({
                "badge_id": mapping.badge_id,
                "name": mapping.badge.name,
                "description": mapping.badge.description,
                "icon_url": badge_icon_url(mapping.badge),
                "is_generic": mapping.badge.is_generic,
                "awarded_at": awarded_at.isoformat(),
            })

        await session.flush()
        count = len(newly_awarded)
        message = "Book marked as completed"
        if count:
            message += f". {count} badge{'' if count == 1 else 's'} awarded."
        logger.info(f"User {user_id} completed book {book_id}; {count} badge(s) awarded")
        return {
            "message": message,
            "progress": {
                "book_id": progress.book_id,
                "percent_complete": progress.percent_complete,
                "total_reading_time": progress.total_reading_time,
                "last_read_at": progress.last_read_at.isoformat() if progress.last_read_at else None,
            },
            "awarded_badges": newly_awarded,
        }

badge_service = BadgeService()
