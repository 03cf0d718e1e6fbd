"""Storage and caching."""

from propline.storage.cache import CacheStore, MemoryCache, FileCache
from propline.storage.db import ProjectionStore

__all__ = ["CacheStore", "MemoryCache", "FileCache", "ProjectionStore"]
