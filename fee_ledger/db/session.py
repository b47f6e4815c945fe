from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from fee_ledger.core.config import settings

# Models live in the core/school/auth schemas on PostgreSQL. SQLite (local runs, tests)
# has no schemas, so every table is mapped into the single database file.
SQLITE_SCHEMA_TRANSLATE_MAP = {"core": None, "school": None, "auth": None}


def engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"execution_options": {"schema_translate_map": SQLITE_SCHEMA_TRANSLATE_MAP}}
    # pool_pre_ping: check connection is alive before use.
    # pool_recycle: discard connections after this many seconds to avoid stale connections.
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    **engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
