# ilaw/models/enums.py
from enum import Enum

class UserRole(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"
    TEACHER = "teacher"

class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class BookType(str, Enum):
    STORYBOOK = "storybook"
    EDUCATIONAL = "educational"

class QuizMode(str, Enum):
    """Retry policy of a quiz: 'retry' allows re-attempts, 'straight' is single-pass."""
    RETRY = "retry"
    STRAIGHT = "straight"

class BadgeAwardMethod(str, Enum):
    """How a badge attached to a book gets awarded."""
    AUTO_ON_BOOK_COMPLETE = "auto_on_book_complete"
    MANUAL = "manual"

class QuizScoreBand(str, Enum):
    """Colored indicator buckets for quiz percentages."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
