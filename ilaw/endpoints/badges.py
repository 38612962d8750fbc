# Endpoints for the badge catalog, book-badge mappings, earned badges and book completion
# ilaw/endpoints/badges.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import delete, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from ilaw.models.enums import BadgeAwardMethod
from ilaw.models.tables import Badge, BookBadge, EarnedBadge
from ilaw.services.badge_service import badge_service, serialize_earned_badge
from ilaw.state_manager import get_book_or_404, get_user_or_404
from ilaw.utils.config import settings
from ilaw.utils.db import get_db
from ilaw.utils.logger import logger
from ilaw.utils.scoring import round_half_away

router = APIRouter(
    tags=["Badges"]
)

class BadgeCreate(BaseModel):
    name: str = Field(..., min_length=2)
    description: str = ""
    icon_url: Optional[str] = None
    icon_public_id: Optional[str] = None
    is_generic: bool = True
    is_active: bool = True
    created_by_id: Optional[int] = None

class BadgeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    description: Optional[str] = None
    icon_url: Optional[str] = None
    icon_public_id: Optional[str] = None
    is_generic: Optional[bool] = None
    is_active: Optional[bool] = None

class BadgeOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    icon_public_id: Optional[str] = None
    is_active: bool
    is_generic: bool
    created_by_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class BookBadgeCreate(BaseModel):
    badge_id: int
    award_method: Optional[str] = None  # anything but "manual" means auto on completion
    completion_threshold: Optional[float] = Field(None, allow_inf_nan=False)
    is_enabled: bool = True

class BookBadgeOut(BaseModel):
    id: int
    book_id: int
    badge_id: int
    award_method: BadgeAwardMethod
    completion_threshold: int
    is_enabled: bool
    badge: Optional[BadgeOut] = None

    model_config = ConfigDict(from_attributes=True)

class AwardRequest(BaseModel):
    badge_id: int
    book_id: Optional[int] = None
    awarded_by_id: Optional[int] = None
    note: Optional[str] = None

class CompleteBookRequest(BaseModel):
    user_id: int


# --- Badge catalog ---

@router.post("/badges/", response_model=BadgeOut, status_code=201)
async def create_badge(payload: BadgeCreate, db: AsyncSession = Depends(get_db)):
    name = payload.name.strip()
    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Badge name is required (min 2 chars)")
    badge = Badge(**payload.model_dump(exclude={"name"}), name=name)
    db.add(badge)
    await db.flush()
    await db.refresh(badge)
    await db.commit()
    logger.info(f"Created badge {badge.id}: '{badge.name}'")
    return badge

@router.get("/badges/", response_model=List[BadgeOut])
async def list_badges(search: str = "", active: Optional[bool] = None, db: AsyncSession = Depends(get_db)):
    query = select(Badge).order_by(desc(Badge.created_at), desc(Badge.id))
    if search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Badge.name.like(pattern), Badge.description.like(pattern)))
    if active is not None:
        query = query.filter(Badge.is_active == active)
    return (await db.execute(query)).scalars().all()

@router.patch("/badges/{badge_id}", response_model=BadgeOut)
async def update_badge(badge_id: int, payload: BadgeUpdate, db: AsyncSession = Depends(get_db)):
    badge = await badge_service.get_badge_or_404(db, badge_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(badge, field, value)
    await db.flush()
    await db.refresh(badge)
    await db.commit()
    return badge

@router.delete("/badges/{badge_id}")
async def delete_badge(badge_id: int, db: AsyncSession = Depends(get_db)):
    """Deletes a badge together with its book mappings and every award of it."""
    await badge_service.get_badge_or_404(db, badge_id)
    await db.execute(delete(BookBadge).where(BookBadge.badge_id == badge_id))
    await db.execute(delete(EarnedBadge).where(EarnedBadge.badge_id == badge_id))
    await db.execute(delete(Badge).where(Badge.id == badge_id))
    await db.commit()
    logger.info(f"Deleted badge {badge_id}")
    return {"message": "Badge deleted"}


# --- Book mappings ---

@router.post("/books/{book_id}/badges", response_model=BookBadgeOut)
async def attach_badge(book_id: int, payload: BookBadgeCreate, db: AsyncSession = Depends(get_db)):
    """Attaches a badge to a book. Attaching the same badge again returns the existing mapping."""
    await get_book_or_404(db, book_id)
    await badge_service.get_badge_or_404(db, payload.badge_id)

    method = BadgeAwardMethod.MANUAL if payload.award_method == BadgeAwardMethod.MANUAL.value \
        else BadgeAwardMethod.AUTO_ON_BOOK_COMPLETE
    threshold = payload.completion_threshold
    threshold = settings.default_completion_threshold if threshold is None else round_half_away(threshold)
    threshold = min(100, max(1, threshold))

    query = (
        select(BookBadge)
        .filter_by(book_id=book_id, badge_id=payload.badge_id)
        .options(selectinload(BookBadge.badge))
        .execution_options(populate_existing=True)
    )
    existing = (await db.execute(query)).scalars().first()
    if existing:
        return existing

    db.add(BookBadge(
        book_id=book_id,
        badge_id=payload.badge_id,
        award_method=method,
        completion_threshold=threshold,
        is_enabled=payload.is_enabled,
    ))
    await db.flush()
    mapping = (await db.execute(query)).scalars().first()
    await db.commit()
    logger.info(f"Attached badge {payload.badge_id} to book {book_id} ({method.value}, threshold {threshold}%)")
    return mapping

@router.get("/books/{book_id}/badges", response_model=List[BookBadgeOut])
async def list_book_badges(book_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(BookBadge)
        .filter_by(book_id=book_id)
        .options(selectinload(BookBadge.badge))
        .order_by(desc(BookBadge.created_at), desc(BookBadge.id))
    )
    return result.scalars().all()

@router.delete("/books/{book_id}/badges/{book_badge_id}")
async def remove_book_badge(book_id: int, book_badge_id: int, db: AsyncSession = Depends(get_db)):
    mapping = (await db.execute(select(BookBadge).filter_by(id=book_badge_id, book_id=book_id))).scalars().first()
    if not mapping:
        raise HTTPException(status_code=404, detail="Book badge mapping not found")
    await db.delete(mapping)
    await db.commit()
    return {"message": "Book badge removed"}

@router.post("/books/{book_id}/complete")
async def complete_book(book_id: int, request: CompleteBookRequest, db: AsyncSession = Depends(get_db)):
    result = await badge_service.complete_book(db, request.user_id, book_id)
    await db.commit()
    return result


# --- Earned badges ---

@router.get("/users/{user_id}/badges")
async def list_earned_badges(user_id: int, db: AsyncSession = Depends(get_db)):
    """Earned badges, most recently awarded first."""
    await get_user_or_404(db, user_id)
    return {"earned_badges": await badge_service.list_earned_badges(db, user_id)}

@router.post("/users/{user_id}/badges")
async def award_badge(user_id: int, request: AwardRequest, response: Response, db: AsyncSession = Depends(get_db)):
    earned, created = await badge_service.award_badge(
        db,
        user_id=user_id,
        badge_id=request.badge_id,
        book_id=request.book_id,
        awarded_by_id=request.awarded_by_id,
        note=request.note,
    )
    await db.commit()
    response.status_code = 201 if created else 200
    return {
        "message": "Badge awarded" if created else "Badge already earned",
        "earned_badge": serialize_earned_badge(earned),
    }
