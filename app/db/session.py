from typing import AsyncGenerator

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # one file (or memory) database shared across the event loop's tasks
        return {"connect_args": {"check_same_thread": False}}
    # pool_pre_ping: drop connections the server closed while idle.
    # pool_recycle: never hand out a connection older than five minutes.
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(settings.database_url, echo=False, **_engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()

# Snapshots, line items and totals are stored whole: JSONB on PostgreSQL, JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
