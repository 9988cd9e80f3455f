"""Unit of work around an async session."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


class UnitOfWork:
    """Owns the transaction scope of one reconciliation stage.

    The engine writes through the session directly; the unit of work decides when
    pending writes are flushed, when the identity map is released and when the
    transaction is committed.
    """

    def __init__(self, session: AsyncSession):
        """Wrap ``session``."""
        self.session = session

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        await self.session.rollback()

    async def flush(self) -> None:
        """Send pending writes to the database without committing."""
        await self.session.flush()

    async def flush_and_release(self) -> None:
        """Flush pending writes and drop every tracked instance from the session.

        Released instances stay usable as detached objects, which is what the lookup
        cache holds on to between batches.
        """
        await self.session.flush()
        self.session.expunge_all()

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Run a block inside a SAVEPOINT, rolled back on any exception."""
        async with self.session.begin_nested():
            yield
