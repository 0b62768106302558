"""
Database Connection Module
Handles the relational store through the SQLAlchemy async engine.
PostgreSQL (psycopg) in deployments, SQLite (aiosqlite) for tests.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from marketplace.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _engine_options() -> dict:
    if settings.is_sqlite:
        # aiosqlite connections are bound to the loop that opened them
        return {"poolclass": NullPool}
    return {
        "pool_size": 5,  # Connection pool size
        "max_overflow": 10,  # Extra connections when pool is full
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_options(),
)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False  # Objects remain accessible after commit
)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create all tables and seed bootstrap rows.
    Called once at application startup.
    """
    # Register every mapped class on Base.metadata
    from marketplace import models

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    async with async_session_maker() as session:
        await models.ensure_platform_config(session)
        await _ensure_bootstrap_admin(session)
        await session.commit()


async def _ensure_bootstrap_admin(session: AsyncSession) -> None:
    """Create the configured admin account once."""
    from marketplace.core.security import hash_password
    from marketplace.models import User, UserRole

    if not settings.admin_email or not settings.admin_password:
        return

    result = await session.execute(
        select(User).where(User.email == settings.admin_email)
    )
    if result.scalar_one_or_none():
        return

    session.add(User(
        email=settings.admin_email,
        password=hash_password(settings.admin_password),
        role=UserRole.ADMIN,
        first_name="Admin",
        last_name="Platform",
        phone=settings.support_phone,
    ))
    logger.info(f"Bootstrap admin created: {settings.admin_email}")
