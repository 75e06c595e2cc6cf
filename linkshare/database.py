import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from linkshare.config import settings
from linkshare.middleware import install_query_counter

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """Per-backend engine options; a file-backed SQLite URL is handy for local runs."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


# Module-level engine; tests override get_db with their own engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Yield one AsyncSession per request.

    Commits when the handler returns normally and rolls back when it
    raises; services only ever flush.  That final commit can land after
    the response is sent, so routes that write commit explicitly first.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back request transaction")
            await session.rollback()
            raise
