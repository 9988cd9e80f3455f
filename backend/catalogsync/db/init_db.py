"""Schema bootstrap.

Tables are created from the model metadata; there is no migration tooling.
"""

from sqlalchemy.ext.asyncio import AsyncEngine

from catalogsync.core.logging import logger
from catalogsync.db.session import async_engine
from catalogsync.models import Base


async def init_db(engine: AsyncEngine = async_engine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"[Database] Schema ensured ({len(Base.metadata.tables)} tables)")
