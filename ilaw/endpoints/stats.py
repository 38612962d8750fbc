# ilaw/endpoints/stats.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ilaw.services.stats_service import dashboard_stats
from ilaw.utils.db import get_db

router = APIRouter(
    tags=["Stats"]
)

@router.get("/stats")
async def get_dashboard_stats(db: AsyncSession = Depends(get_db)):
    """Reading-time and completion figures for the teacher/admin dashboard."""
    return {"stats": await dashboard_stats(db)}
