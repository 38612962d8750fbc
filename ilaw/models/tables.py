# ilaw/models/tables.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    Boolean,
    Enum as SAEnum,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
from ilaw.models.enums import (
    UserRole,
    ApprovalStatus,
    BookType,
    QuizMode,
    BadgeAwardMethod,
)
from ilaw.utils.config import settings


Base = declarative_base()


def _values(enum_cls):
    # Store the enum *values* ("storybook"), not the member names ("STORYBOOK")
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    role = Column(SAEnum(UserRole, values_callable=_values, name="user_role"), nullable=False, default=UserRole.STUDENT)
    grade_level = Column(String, nullable=True)
    approval_status = Column(
        SAEnum(ApprovalStatus, values_callable=_values, name="approval_status"),
        default=ApprovalStatus.PENDING,
    )
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    progress = relationship("Progress", back_populates="user")
    quiz_attempts = relationship("QuizAttempt", back_populates="user")
    reading_sessions = relationship("ReadingSession", back_populates="user")
    teaching_settings = relationship("TeachingSettings", back_populates="user", uselist=False)
    earned_badges = relationship("EarnedBadge", back_populates="user", foreign_keys="EarnedBadge.user_id")


class Book(Base):
    __tablename__ = "books"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    cover_image = Column(String, nullable=True)
    type = Column(SAEnum(BookType, values_callable=_values, name="book_type"), nullable=False)
    subject = Column(String, nullable=True)
    grade = Column(String, nullable=True)  # canonical: "K", "1".."6"
    quiz_mode = Column(SAEnum(QuizMode, values_callable=_values, name="quiz_mode"), nullable=False, default=QuizMode.RETRY)
    added_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pages = relationship("Page", back_populates="book", cascade="all, delete-orphan")
    book_badges = relationship("BookBadge", back_populates="book", cascade="all, delete-orphan")


class Page(Base):
    __tablename__ = "pages"
    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    page_number = Column(Integer, nullable=False)
    title = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    audio_url = Column(String, nullable=True)
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    book = relationship("Book", back_populates="pages")
    questions = relationship("Question", back_populates="page", cascade="all, delete-orphan")


class Question(Base):
    __tablename__ = "questions"
    id = Column(Integer, primary_key=True, index=True)
    page_id = Column(Integer, ForeignKey("pages.id"), nullable=False)
    question_text = Column(Text, nullable=False)
    answer_type = Column(String, default="text", nullable=False)  # "text" | "multiple_choice"
    correct_answer = Column(Text, nullable=True)
    options = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    page = relationship("Page", back_populates="questions")


class Progress(Base):
    __tablename__ = "progress"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    current_chapter = Column(String, nullable=True)
    percent_complete = Column(Integer, default=0)
    total_reading_time = Column(Integer, default=0)  # seconds
    last_read_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="progress")
    book = relationship("Book")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    page_id = Column(Integer, ForeignKey("pages.id"), nullable=True)
    score_correct = Column(Integer, nullable=False)
    score_total = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False)  # 0-100
    mode = Column(SAEnum(QuizMode, values_callable=_values, name="quiz_mode"), nullable=False, default=QuizMode.RETRY)
    attempt_number = Column(Integer, nullable=False, default=1)
    duration_sec = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="quiz_attempts")
    book = relationship("Book")


class ReadingSession(Base):
    __tablename__ = "reading_sessions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    start_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_time = Column(DateTime, nullable=True)  # NULL while the session is open
    total_seconds = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="reading_sessions")


class TeachingSettings(Base):
    __tablename__ = "teaching_settings"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    preferred_grades = Column(JSON, default=lambda: [])
    subjects = Column(JSON, default=lambda: [])
    max_class_size = Column(Integer, default=30, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="teaching_settings")


class Badge(Base):
    __tablename__ = "badges"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    icon_url = Column(String, nullable=True)
    icon_public_id = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_generic = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BookBadge(Base):
    __tablename__ = "book_badges"
    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    badge_id = Column(Integer, ForeignKey("badges.id"), nullable=False)
    award_method = Column(
        SAEnum(BadgeAwardMethod, values_callable=_values, name="badge_award_method"),
        nullable=False,
        default=BadgeAwardMethod.AUTO_ON_BOOK_COMPLETE,
    )
    completion_threshold = Column(Integer, nullable=False, default=settings.default_completion_threshold)
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    book = relationship("Book", back_populates="book_badges")
    badge = relationship("Badge")


class EarnedBadge(Base):
    __tablename__ = "earned_badges"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    badge_id = Column(Integer, ForeignKey("badges.id"), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=True)
    awarded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    note = Column(Text, nullable=True)
    awarded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="earned_badges", foreign_keys=[user_id])
    badge = relationship("Badge")
    book = relationship("Book")
