"""Session-scoped schema metadata cache."""

from metacache.cache import (
    DEFAULT_TTL,
    CacheEntry,
    CacheKey,
    CacheKind,
    FetchFailedError,
    MetadataCache,
    collections_key,
    namespaces_key,
    routines_key,
    table_key,
)

__all__ = [
    "DEFAULT_TTL",
    "CacheEntry",
    "CacheKey",
    "CacheKind",
    "FetchFailedError",
    "MetadataCache",
    "collections_key",
    "namespaces_key",
    "routines_key",
    "table_key",
]
