"""
Async engine, session factory and schema creation.

DATABASE_URL selects the backend; SQLite via aiosqlite is the default and any
SQLAlchemy async URL works without code changes.
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core import config

engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    # SQLite connections are not shared across tasks
    poolclass=NullPool if config.SQLALCHEMY_DATABASE_URL.startswith("sqlite") else None,
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Usage in FastAPI routes:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def register_models() -> None:
    """Import every model module so the mappers and metadata are complete."""
    from app.features.users.models import User  # noqa: F401
    from app.features.organizations.models import Organization  # noqa: F401
    from app.features.subscriptions.models import Subscription  # noqa: F401
    from app.features.permissions.models import AuditLog  # noqa: F401


async def init_db(bind: AsyncEngine | None = None):
    """
    Initialize database tables.
    Call this on application startup to create all tables.

    Usage in main.py:
        @app.on_event("startup")
        async def startup():
            await init_db()
    """
    from app.core.database.base import Base

    register_models()

    async with (bind or engine).begin() as conn:
        # For development: drop and recreate all tables
        # await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
