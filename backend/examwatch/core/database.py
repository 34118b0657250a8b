from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
import logging
from .config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        return {"poolclass": NullPool, "echo": False}
    return {
        "pool_size": 20,
        "max_overflow": 40,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "pool_timeout": 20,
        "echo": False,
        "connect_args": {
            "server_settings": {
                "application_name": "examwatch_async"
            }
        },
    }


async_engine = create_async_engine(
    settings.async_database_url,
    **_engine_options(settings.async_database_url)
)
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_async_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def create_db_and_tables():
    from .. import models  # noqa: F401  registers mappers on Base.metadata

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    logger.info("Database tables ready")
