from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from coach_scheduling.core.config import settings


def to_async_url(database_url: str) -> str:
    """Use asyncpg for postgres URLs; asyncpg does not accept psycopg params like sslmode/channel_binding."""
    parsed = urlparse(database_url)
    scheme = "postgresql+asyncpg" if parsed.scheme == "postgresql" else parsed.scheme
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse((scheme, parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment))


async_database_url = to_async_url(settings.database_url)

engine = create_async_engine(
    async_database_url,
    echo=settings.env == "development",
    pool_pre_ping=True,
    # asyncpg takes SSL through connect_args instead of sslmode
    connect_args={"ssl": True} if settings.database_ssl and "asyncpg" in async_database_url else {},
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
