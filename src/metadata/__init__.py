"""Package metadata caching: in-memory tier plus optional JSON file tier."""

from .cache import (
    AsyncMetadataCache,
    AsyncMetadataSource,
    CacheStats,
    MetadataCache,
    MetadataSource,
)
from .store import JsonFileStore

__all__ = [
    "AsyncMetadataCache",
    "AsyncMetadataSource",
    "CacheStats",
    "JsonFileStore",
    "MetadataCache",
    "MetadataSource",
]
