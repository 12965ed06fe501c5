import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from portal_authz.config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    # SQLite drivers do not take pool sizing arguments
    if database_url.startswith("sqlite"):
        return {"echo": settings.debug}
    if settings.environment == "production":
        return {
            "pool_size": 20,
            "max_overflow": 50,
            "pool_timeout": 60,
            "pool_recycle": 1800,
        }
    return {
        "echo": settings.debug,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
    }


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db():
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except SQLAlchemyError as e:
            logger.error(f"Database session error: {e}")
            await db.rollback()
            raise
        finally:
            await db.close()
