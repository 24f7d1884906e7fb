"""SQLAlchemy async engine, session factory and request-scoped sessions."""

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.infra.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign key enforcement."""
    async_engine = create_async_engine(url, echo=echo, future=True)
    if async_engine.dialect.name == "sqlite":
        sync_engine: Engine = async_engine.sync_engine
        event.listen(sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


engine = build_engine(settings.database_url, echo=settings.app_debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: one session per request, committed on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping(db: AsyncSession) -> None:
    """Round-trip a trivial statement; raises if the database is unreachable."""
    await db.execute(text("SELECT 1"))


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables (for dev/testing; production uses Alembic)."""
    from app.models.db_models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
