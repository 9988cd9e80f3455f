"""Unit test conftest for setting up test environment."""

import os

# Set minimal required environment variables before importing any catalogsync modules
# This prevents Settings from pointing the module-level engine at a real database
os.environ.setdefault("SQLALCHEMY_ASYNC_DATABASE_URI", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOCAL_DEVELOPMENT", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SYNC_ENABLED", "false")
os.environ.setdefault("VALI_API_TOKEN", "test-token")

from contextlib import asynccontextmanager  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from catalogsync.models import Base  # noqa: E402
from catalogsync.platform.sync.config import ReconciliationConfig  # noqa: E402


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine with SAVEPOINT support and foreign keys enforced."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so nested SAVEPOINTs work
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine, configured like the application's."""
    return async_sessionmaker(
        bind=db_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
def db_context(session_factory):
    """Drop-in replacement for ``get_db_context`` bound to the test engine."""

    @asynccontextmanager
    async def _context():
        async with session_factory() as db:
            try:
                yield db
            except Exception:
                await db.rollback()
                raise

    return _context


@pytest.fixture
def engine_config():
    """Engine configuration without pauses, for fast tests."""
    return ReconciliationConfig(batch_pause_seconds=0)
