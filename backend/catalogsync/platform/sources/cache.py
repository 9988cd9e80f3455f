"""Response cache owned by a source adapter."""

import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class CachedResponse(Generic[T]):
    """Holds one fetched payload together with the moment it was fetched.

    The clock is injectable so staleness can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Create an empty cache."""
        self._clock = clock
        self.data: Optional[T] = None
        self.fetched_at: Optional[float] = None

    def put(self, data: T) -> None:
        """Store ``data`` as fetched now."""
        self.data = data
        self.fetched_at = self._clock()

    def is_stale(self, ttl_seconds: float) -> bool:
        """Whether the cache is empty or older than ``ttl_seconds``."""
        if self.fetched_at is None:
            return True
        return (self._clock() - self.fetched_at) >= ttl_seconds

    def invalidate(self) -> None:
        """Drop the cached payload."""
        self.data = None
        self.fetched_at = None
