"""Database setup and session management."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config import settings

# Async engine for the SQL key/value store
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    future=True,
)

# Session maker
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


def make_sessionmaker(engine) -> async_sessionmaker:
    """Build a session maker bound to another engine (tests, alternate URLs)."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine=None):
    """Create the store tables if they do not exist."""
    # Import models so they register on Base.metadata
    import models  # noqa: F401

    engine = engine or async_engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

