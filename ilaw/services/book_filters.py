# Grade/subject normalisation and the filter rules behind the teacher's book listing
# ilaw/services/book_filters.py
import re
from typing import Any, List, Optional

from sqlalchemy import and_, or_

from ilaw.models.enums import BookType
from ilaw.models.tables import Book, TeachingSettings
from ilaw.utils.logger import logger

_KINDER_RE = re.compile(r"^k(in(der(garten)?)?)?$", re.IGNORECASE)
_STORYBOOK_RE = re.compile(r"^storybooks?$", re.IGNORECASE)


def to_canonical_grade(grade: Any) -> str:
    """
    "Grade 3" -> "3", "Kindergarten" -> "K". Values that look like neither are
    passed through unchanged.
    """
    value = str(grade or "").strip()
    if not value:
        return value
    if _KINDER_RE.match(value):
        return "K"
    digits = re.search(r"\d+", value)
    if digits:
        return digits.group(0)
    return value


def to_label_grade(canon: str) -> str:
    if not canon:
        return canon
    if canon.upper() == "K":
        return "Kinder"
    if re.fullmatch(r"[0-9]{1,2}", canon):
        return f"Grade {canon}"
    if re.fullmatch(r"grade\s*\d+", canon, re.IGNORECASE):
        return re.sub(r"^grade\s*", "Grade ", canon, flags=re.IGNORECASE)
    return canon


def norm_subject(subject: Optional[str]) -> str:
    """Forgiving kebab-case form for comparing free-text subjects ("Reading Comprehension" -> "reading-comprehension")."""
    text = str(subject or "").lower()
    text = re.sub(r"[^a-z0-9\s-]", "", text).strip()
    return re.sub(r"\s+", "-", text)


def is_storybook_subject(subject: Optional[str]) -> bool:
    return bool(subject) and bool(_STORYBOOK_RE.match(subject.strip()))


def normalize_subjects(subjects: Any) -> List[str]:
    if not isinstance(subjects, list):
        return []
    cleaned = [s.strip() for s in subjects if isinstance(s, str)]
    return ["Storybook" if is_storybook_subject(s) else s for s in cleaned if s]


def _subject_matches(label: str):
    kebab = norm_subject(label)
    return [
        Book.subject == label,
        Book.subject == kebab,
        Book.subject.like(f"%{label}%"),
        Book.subject.like(f"%{kebab}%"),
    ]


def settings_conditions(teaching_settings: Optional[TeachingSettings]) -> list:
    """WHERE clauses derived from a teacher's preferred grades and subjects."""
    conditions = []
    if teaching_settings is None:
        return conditions

    grades = [to_canonical_grade(g) for g in (teaching_settings.preferred_grades or [])]
    grades = [g for g in grades if g]
    if grades:
        conditions.append(or_(*[Book.grade == g for g in grades]))

    wanted = normalize_subjects(teaching_settings.subjects)
    if wanted:
        has_storybook = any(is_storybook_subject(s) for s in wanted)
        educational = [s for s in wanted if not is_storybook_subject(s)]
        edu_or = or_(*[c for label in educational for c in _subject_matches(label)]) if educational else None

        if has_storybook and edu_or is not None:
            conditions.append(or_(Book.type == BookType.STORYBOOK, and_(Book.type == BookType.EDUCATIONAL, edu_or)))
        elif has_storybook:
            conditions.append(Book.type == BookType.STORYBOOK)
        elif edu_or is not None:
            conditions.append(and_(Book.type == BookType.EDUCATIONAL, edu_or))
    return conditions


def query_conditions(
    grade: str = "all",
    subject: str = "all",
    book_type: str = "",
    search: str = "",
) -> list:
    """WHERE clauses for the explicit grade/subject/type/search filters of a listing request."""
    conditions = []

    if grade and grade != "all":
        canon = to_canonical_grade(grade)
        if canon:
            conditions.append(Book.grade == canon)

    has_subject = bool(subject) and subject != "all"
    if has_subject:
        if is_storybook_subject(subject):
            # "Storybook" is a type, not a subject
            conditions.append(Book.type == BookType.STORYBOOK)
        else:
            conditions.append(and_(Book.type == BookType.EDUCATIONAL, or_(*_subject_matches(subject.strip()))))

    # Type only applies without a subject filter, otherwise the two can contradict
    if not has_subject and book_type and book_type != "all":
        try:
            conditions.append(Book.type == BookType(book_type))
        except ValueError:
            logger.warning(f"Ignoring unknown book type filter '{book_type}'")

    if search:
        pattern = f"%{search}%"
        conditions.append(or_(Book.title.like(pattern), Book.description.like(pattern), Book.subject.like(pattern)))

    return conditions
