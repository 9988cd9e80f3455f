"""Source adapters, one per vendor platform."""

from catalogsync.platform.sources._base import BaseSource
from catalogsync.platform.sources.asbis import AsbisSource
from catalogsync.platform.sources.cache import CachedResponse
from catalogsync.platform.sources.tekra import TekraSource
from catalogsync.platform.sources.vali import ValiSource

__all__ = ["AsbisSource", "BaseSource", "CachedResponse", "TekraSource", "ValiSource"]
