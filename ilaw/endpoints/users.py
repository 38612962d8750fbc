# ilaw/endpoints/users.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ilaw.models.enums import ApprovalStatus, UserRole
from ilaw.models.tables import TeachingSettings, User
from ilaw.services.book_filters import normalize_subjects, to_canonical_grade, to_label_grade
from ilaw.state_manager import get_teaching_settings, get_user_or_404
from ilaw.utils.db import get_db
from ilaw.utils.logger import logger

router = APIRouter(
    tags=["Users"]
)

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    email: str
    first_name: str = Field(..., min_length=2)
    last_name: str = Field(..., min_length=2)
    role: UserRole = UserRole.STUDENT
    grade_level: Optional[str] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING

class UserOut(BaseModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    grade_level: Optional[str] = None
    approval_status: Optional[ApprovalStatus] = None
    rejection_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class RejectRequest(BaseModel):
    reason: Optional[str] = None

class TeachingSettingsIn(BaseModel):
    preferred_grades: List[str] = Field(..., min_length=1)
    subjects: List[str] = Field(..., min_length=1)
    max_class_size: int = Field(30, ge=10, le=50)

    @field_validator("subjects")
    @classmethod
    def clean_subjects(cls, v):
        cleaned = normalize_subjects(v)
        if not cleaned:
            raise ValueError("At least one subject must be selected")
        return cleaned

class TeachingSettingsOut(BaseModel):
    preferred_grades: List[str]
    subjects: List[str]
    max_class_size: int


@router.post("/", response_model=UserOut, status_code=201)
async def create_user(user_create: UserCreate, db: AsyncSession = Depends(get_db)):
    """Registers a student, teacher or admin account."""
    logger.debug(f"Creating user: {user_create.username}")
    grade_level = to_canonical_grade(user_create.grade_level) if user_create.grade_level else None
    user = User(**user_create.model_dump(exclude={"grade_level"}), grade_level=grade_level)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Username or email already exists")
    await db.refresh(user)
    await db.commit()
    logger.info(f"Created {user.role.value} '{user.username}' with id {user.id}")
    return user

@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await get_user_or_404(db, user_id)

@router.post("/{user_id}/approve", response_model=UserOut)
async def approve_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await get_user_or_404(db, user_id)
    user.approval_status = ApprovalStatus.APPROVED
    user.rejection_reason = None
    await db.commit()
    logger.info(f"Approved user {user_id}")
    return user

@router.post("/{user_id}/reject", response_model=UserOut)
async def reject_user(user_id: int, request: RejectRequest, db: AsyncSession = Depends(get_db)):
    user = await get_user_or_404(db, user_id)
    user.approval_status = ApprovalStatus.REJECTED
    user.rejection_reason = request.reason
    await db.commit()
    logger.info(f"Rejected user {user_id}: {request.reason}")
    return user

@router.get("/{user_id}/teaching-settings", response_model=TeachingSettingsOut)
async def read_teaching_settings(user_id: int, db: AsyncSession = Depends(get_db)):
    """Grades come back as labels ("Grade 3", "Kinder")."""
    await get_user_or_404(db, user_id)
    teaching_settings = await get_teaching_settings(db, user_id)
    if not teaching_settings:
        return TeachingSettingsOut(preferred_grades=[], subjects=[], max_class_size=30)
    return TeachingSettingsOut(
        preferred_grades=[to_label_grade(g) for g in teaching_settings.preferred_grades or []],
        subjects=teaching_settings.subjects or [],
        max_class_size=teaching_settings.max_class_size,
    )

@router.put("/{user_id}/teaching-settings", response_model=TeachingSettingsOut)
async def update_teaching_settings(user_id: int, payload: TeachingSettingsIn, db: AsyncSession = Depends(get_db)):
    """Stores grades in canonical form ("3", "K") with duplicates removed."""
    user = await get_user_or_404(db, user_id)
    if user.role != UserRole.TEACHER:
        raise HTTPException(status_code=400, detail="Teaching settings are only available for teachers")

    grades = list(dict.fromkeys(g for g in (to_canonical_grade(x) for x in payload.preferred_grades) if g))
    subjects = list(dict.fromkeys(payload.subjects))

    teaching_settings = await get_teaching_settings(db, user_id)
    if teaching_settings is None:
        teaching_settings = TeachingSettings(user_id=user_id)
        db.add(teaching_settings)
    teaching_settings.preferred_grades = grades
    teaching_settings.subjects = subjects
    teaching_settings.max_class_size = payload.max_class_size
    await db.commit()
    logger.info(f"Updated teaching settings for user {user_id}: grades={grades}, subjects={subjects}")

    return TeachingSettingsOut(
        preferred_grades=[to_label_grade(g) for g in grades],
        subjects=subjects,
        max_class_size=payload.max_class_size,
    )
