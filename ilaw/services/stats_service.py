# Dashboard statistics for teachers/admins, aggregated over reading sessions and progress
# ilaw/services/stats_service.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ilaw.models.enums import ApprovalStatus, UserRole
from ilaw.models.tables import Progress, ReadingSession, User
from ilaw.utils.config import settings
from ilaw.utils.logger import logger
from ilaw.utils.scoring import round_half_away, safe_percentage


async def dashboard_stats(session: AsyncSession) -> dict:
    ended = (await session.execute(
        select(ReadingSession).filter(ReadingSession.end_time.is_not(None))
    )).scalars().all()
    completed_sessions = [s for s in ended if s.total_seconds and s.total_seconds > 0]
    total_reading_seconds = sum(s.total_seconds for s in completed_sessions)

    if completed_sessions:
        avg_reading_minutes = round_half_away(total_reading_seconds / len(completed_sessions) / 60)
    else:
        avg_reading_minutes = settings.default_avg_reading_minutes

    rows = (await session.execute(
        select(Progress.user_id, Progress.percent_complete)
        .join(User, Progress.user_id == User.id)
        .filter(User.role == UserRole.STUDENT, User.approval_status == ApprovalStatus.APPROVED)
    )).all()
    completed_rows = [r for r in rows if (r.percent_complete or 0) >= 100]
    students = {r.user_id for r in rows}
    students_with_completed = {r.user_id for r in completed_rows}

    stats = {
        "avg_reading_time": avg_reading_minutes,
        "completion_rate": safe_percentage(len(completed_rows), len(rows)),
        "student_completion_rate": safe_percentage(len(students_with_completed), len(students)),
        "total_sessions": len(ended),
        "total_reading_minutes": round_half_away(total_reading_seconds / 60),
    }
    logger.debug(f"Dashboard stats: {stats}")
    return stats
