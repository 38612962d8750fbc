# ilaw/utils/db.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from ilaw.models.tables import Base
from ilaw.utils.config import settings
from ilaw.utils.logger import logger

_is_sqlite = settings.database_url.startswith("sqlite")

# SQLite files take no pool tuning; Postgres connections get checked before reuse
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **({} if _is_sqlite else {"pool_pre_ping": True}),
)

AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_models() -> None:
    """Creates any missing tables. Existing tables are left as they are."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready ({engine.url.get_backend_name()})")


async def get_db() -> AsyncSession:
    """
    Request-scoped session. Endpoints commit explicitly; anything left
    uncommitted when the request ends is rolled back on close.
    """
    async with AsyncSessionLocal() as session:
        yield session
