"""Module for reconciliation context."""

from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.core.logging import ContextualLogger
from catalogsync.core.shared_models import Platform
from catalogsync.db.unit_of_work import UnitOfWork
from catalogsync.platform.sources._base import BaseSource
from catalogsync.platform.sync.config import ReconciliationConfig


class ReconcileContext:
    """Context container for one stage run.

    Contains everything a stage needs:
    - db - the session the stage writes through
    - uow - the unit of work owning flush/release/commit of that session
    - source - the vendor adapter
    - config - engine knobs
    - sync_type - e.g. ``VALI_PRODUCTS``
    - logger - contextual logger with platform and sync type dimensions
    """

    def __init__(
        self,
        db: AsyncSession,
        source: BaseSource,
        config: ReconciliationConfig,
        sync_type: str,
        logger: ContextualLogger,
    ):
        """Initialize the context."""
        self.db = db
        self.uow = UnitOfWork(db)
        self.source = source
        self.config = config
        self.sync_type = sync_type
        self.logger = logger

    @property
    def platform(self) -> Platform:
        """Platform of the adapter."""
        return self.source.platform
