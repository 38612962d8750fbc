# Endpoints for the book catalog, its pages/questions, and the teacher's filtered book listing
# ilaw/endpoints/books.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import and_, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ilaw.models.enums import BookType, QuizMode, UserRole
from ilaw.models.tables import Book, Page, Question
from ilaw.services.book_filters import query_conditions, settings_conditions, to_canonical_grade
from ilaw.state_manager import get_book_or_404, get_teaching_settings, get_user_or_404
from ilaw.utils.db import get_db
from ilaw.utils.logger import logger

router = APIRouter()

class BookCreate(BaseModel):
    title: str = Field(..., min_length=2)
    description: str = Field(..., min_length=10)
    type: BookType
    subject: Optional[str] = None
    grade: Optional[str] = None
    cover_image: Optional[str] = None
    quiz_mode: QuizMode = QuizMode.RETRY
    added_by_id: Optional[int] = None

class BookOut(BaseModel):
    id: int
    title: str
    description: str
    type: BookType
    subject: Optional[str] = None
    grade: Optional[str] = None
    cover_image: Optional[str] = None
    quiz_mode: QuizMode
    added_by_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class PageCreate(BaseModel):
    page_number: int = Field(..., ge=1)
    content: str = Field(..., min_length=1)
    title: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    shuffle_questions: bool = False

class PageOut(PageCreate):
    id: int
    book_id: int

    model_config = ConfigDict(from_attributes=True)

class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=5)
    answer_type: str = "text"  # "text" | "multiple_choice"
    correct_answer: Optional[str] = None
    options: Optional[List[str]] = None

class QuestionOut(QuestionCreate):
    id: int
    page_id: int

    model_config = ConfigDict(from_attributes=True)


@router.post("/books/", response_model=BookOut, status_code=201, tags=["Books"])
async def create_book(payload: BookCreate, db: AsyncSession = Depends(get_db)):
    data = payload.model_dump()
    if data["grade"]:
        data["grade"] = to_canonical_grade(data["grade"])
    if data["added_by_id"] is not None:
        await get_user_or_404(db, data["added_by_id"])
    book = Book(**data)
    db.add(book)
    await db.flush()
    await db.refresh(book)
    await db.commit()
    logger.info(f"Created {book.type.value} book {book.id}: '{book.title}' (grade={book.grade}, subject={book.subject})")
    return book

@router.get("/books/", response_model=List[BookOut], tags=["Books"])
async def list_books(
    grade: str = "all",
    subject: str = "all",
    type: str = "",
    search: str = "",
    db: AsyncSession = Depends(get_db),
):
    conditions = query_conditions(grade=grade, subject=subject, book_type=type, search=search)
    query = select(Book).order_by(desc(Book.created_at), desc(Book.id))
    if conditions:
        query = query.filter(and_(*conditions))
    return (await db.execute(query)).scalars().all()

@router.get("/books/{book_id}", response_model=BookOut, tags=["Books"])
async def get_book(book_id: int, db: AsyncSession = Depends(get_db)):
    return await get_book_or_404(db, book_id)

@router.delete("/books/{book_id}", tags=["Books"])
async def delete_book(book_id: int, db: AsyncSession = Depends(get_db)):
    book = await get_book_or_404(db, book_id)
    await db.delete(book)
    await db.commit()
    logger.info(f"Deleted book {book_id}")
    return {"message": "Book deleted"}

@router.get("/teachers/{user_id}/books", response_model=List[BookOut], tags=["Books"])
async def list_teacher_books(
    user_id: int,
    grade: str = "all",
    subject: str = "all",
    type: str = "",
    search: str = "",
    db: AsyncSession = Depends(get_db),
):
    """
    Books matching the teacher's saved grades/subjects, further narrowed by
    the explicit query filters. Newest first.
    """
    user = await get_user_or_404(db, user_id)
    if user.role != UserRole.TEACHER:
        raise HTTPException(status_code=403, detail="Access denied")

    teaching_settings = await get_teaching_settings(db, user_id)
    if teaching_settings is None:
        logger.warning(f"No teaching settings for teacher {user_id}; listing without preference filters")

    conditions = settings_conditions(teaching_settings)
    conditions += query_conditions(grade=grade, subject=subject, book_type=type, search=search)
    logger.debug(f"Teacher {user_id} book listing with {len(conditions)} filter condition(s)")

    query = select(Book).order_by(desc(Book.created_at), desc(Book.id))
    if conditions:
        query = query.filter(and_(*conditions))
    return (await db.execute(query)).scalars().all()


# --- Pages & questions ---

@router.get("/books/{book_id}/pages", response_model=List[PageOut], tags=["Pages"])
async def list_pages(book_id: int, db: AsyncSession = Depends(get_db)):
    await get_book_or_404(db, book_id)
    result = await db.execute(select(Page).filter_by(book_id=book_id).order_by(Page.page_number))
    return result.scalars().all()

@router.post("/books/{book_id}/pages", response_model=PageOut, status_code=201, tags=["Pages"])
async def create_page(book_id: int, payload: PageCreate, db: AsyncSession = Depends(get_db)):
    await get_book_or_404(db, book_id)
    page = Page(book_id=book_id, **payload.model_dump())
    db.add(page)
    await db.flush()
    await db.refresh(page)
    await db.commit()
    return page

@router.get("/pages/{page_id}/questions", response_model=List[QuestionOut], tags=["Pages"])
async def list_questions(page_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Question).filter_by(page_id=page_id).order_by(Question.id))
    return result.scalars().all()

@router.post("/pages/{page_id}/questions", response_model=QuestionOut, status_code=201, tags=["Pages"])
async def create_question(page_id: int, payload: QuestionCreate, db: AsyncSession = Depends(get_db)):
    page = (await db.execute(select(Page).filter_by(id=page_id))).scalars().first()
    if not page:
        raise HTTPException(status_code=404, detail="Page not found")
    if payload.answer_type == "multiple_choice" and not payload.options:
        raise HTTPException(status_code=400, detail="Multiple choice questions need options")
    question = Question(page_id=page_id, **payload.model_dump())
    db.add(question)
    await db.flush()
    await db.refresh(question)
    await db.commit()
    return question
