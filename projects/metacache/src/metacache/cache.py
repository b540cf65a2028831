"""Per-session cache of schema metadata with time-based expiry."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum, auto
from logging import getLogger
from time import monotonic
from typing import TYPE_CHECKING, Any, NamedTuple

from results import Namespace

if TYPE_CHECKING:
    from backend import FetchBackend, TableSchema

logger = getLogger(__name__)

# Seconds an entry stays fresh
DEFAULT_TTL = 5 * 60.0


class CacheKind(StrEnum):
    """Kinds of metadata held by the cache."""

    NAMESPACES = auto()
    COLLECTIONS = auto()
    TABLE_SCHEMA = auto()
    ROUTINES = auto()


class CacheKey(NamedTuple):
    """Identity of a cached value within a session."""

    kind: CacheKind
    namespace: Namespace | None = None
    table: str | None = None


def namespaces_key() -> CacheKey:
    """Key of the namespace list."""
    return CacheKey(CacheKind.NAMESPACES)


def collections_key(namespace: Namespace) -> CacheKey:
    """Key of the table list of a namespace."""
    return CacheKey(CacheKind.COLLECTIONS, namespace)


def table_key(namespace: Namespace, table: str) -> CacheKey:
    """Key of a table schema."""
    return CacheKey(CacheKind.TABLE_SCHEMA, namespace, table)


def routines_key(namespace: Namespace) -> CacheKey:
    """Key of the routine list of a namespace."""
    return CacheKey(CacheKind.ROUTINES, namespace)


class FetchFailedError(RuntimeError):
    """Raised when the backend call behind a cache miss fails."""

    def __init__(self, key: CacheKey, error: Exception) -> None:
        """Wrap the backend error for the given key."""
        self.key = key
        self.error = error
        super().__init__(f"Failed to fetch {key.kind}: {error}")


@dataclass(frozen=True)
class CacheEntry[T]:
    """A fetched value and the clock reading at fetch time."""

    value: T
    fetched_at: float

    def is_stale(self, now: float, ttl: float) -> bool:
        """Whether the entry is older than the time to live."""
        return now - self.fetched_at > ttl


class MetadataCache:
    """Namespace, table and routine metadata per session.

    The cache has no view of schema-changing statements; callers must
    invalidate the affected keys after running one. Concurrent misses for
    the same key are not deduplicated and each calls the backend.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        """Initialize an empty cache with a time to live in seconds."""
        self.ttl = ttl
        self._clock = clock
        self._sessions: dict[str, dict[CacheKey, CacheEntry[Any]]] = {}

    def _entries(self, session: str) -> dict[CacheKey, CacheEntry[Any]]:
        return self._sessions.setdefault(session, {})

    def peek(self, session: str, key: CacheKey) -> CacheEntry[Any] | None:
        """Return the entry for a key, stale or not, without fetching."""
        return self._sessions.get(session, {}).get(key)

    def is_stale(self, session: str, key: CacheKey) -> bool | None:
        """Whether the entry for a key is stale, None when nothing is cached."""
        entry = self.peek(session, key)
        if entry is None:
            return None
        return entry.is_stale(self._clock(), self.ttl)

    def store[T](self, session: str, key: CacheKey, value: T) -> CacheEntry[T]:
        """Cache a value with a fresh timestamp."""
        entry = CacheEntry(value, self._clock())
        self._entries(session)[key] = entry
        return entry

    async def get_or_fetch[T](
        self,
        session: str,
        key: CacheKey,
        fetch: Callable[[], Awaitable[T]],
    ) -> T:
        """Return a fresh cached value, or fetch, cache and return it.

        A failed fetch writes nothing and leaves any previous entry in place.
        """
        entry = self.peek(session, key)
        if entry is not None and not entry.is_stale(self._clock(), self.ttl):
            logger.debug("Cache hit for %s in session %s", key, session)
            return entry.value

        logger.debug("Cache miss for %s in session %s", key, session)
        try:
            value = await fetch()
        except Exception as err:
            raise FetchFailedError(key, err) from err

        return self.store(session, key, value).value

    async def namespaces(self, session: str, backend: FetchBackend) -> list[Namespace]:
        """Return the namespaces of a session."""
        return await self.get_or_fetch(
            session,
            namespaces_key(),
            lambda: backend.list_namespaces(session),
        )

    async def collections(
        self,
        session: str,
        backend: FetchBackend,
        namespace: Namespace,
    ) -> list[str]:
        """Return the table names of a namespace."""
        return await self.get_or_fetch(
            session,
            collections_key(namespace),
            lambda: backend.list_collections(session, namespace),
        )

    async def table_schema(
        self,
        session: str,
        backend: FetchBackend,
        namespace: Namespace,
        table: str,
    ) -> TableSchema:
        """Return the schema of a table."""
        return await self.get_or_fetch(
            session,
            table_key(namespace, table),
            lambda: backend.describe_table(session, namespace, table),
        )

    async def routines(
        self,
        session: str,
        backend: FetchBackend,
        namespace: Namespace,
    ) -> list[str]:
        """Return the routine names of a namespace."""
        return await self.get_or_fetch(
            session,
            routines_key(namespace),
            lambda: backend.list_routines(session, namespace),
        )

    def invalidate(self, session: str, key: CacheKey) -> bool:
        """Remove one entry, returning whether it existed."""
        removed = self._sessions.get(session, {}).pop(key, None) is not None
        if removed:
            logger.debug("Invalidated %s in session %s", key, session)
        return removed

    def invalidate_namespaces(self, session: str) -> bool:
        """Forget the namespace list, after creating or dropping a schema."""
        return self.invalidate(session, namespaces_key())

    def invalidate_collections(self, session: str, namespace: Namespace) -> bool:
        """Forget a namespace's table list, after creating or dropping a table."""
        return self.invalidate(session, collections_key(namespace))

    def invalidate_table(self, session: str, namespace: Namespace, table: str) -> bool:
        """Forget a table schema, after altering the table."""
        return self.invalidate(session, table_key(namespace, table))

    def invalidate_routines(self, session: str, namespace: Namespace) -> bool:
        """Forget a namespace's routine list."""
        return self.invalidate(session, routines_key(namespace))

    def invalidate_namespace(self, session: str, namespace: Namespace) -> int:
        """Forget everything cached under a namespace, after dropping it.

        The namespace list itself is invalidated too, returning the number
        of removed entries.
        """
        entries = self._sessions.get(session, {})
        stale = [
            key
            for key in entries
            if key.namespace == namespace or key.kind == CacheKind.NAMESPACES
        ]
        for key in stale:
            del entries[key]
        return len(stale)

    def invalidate_all(self, session: str) -> None:
        """Clear every entry of a session, for a manual full refresh."""
        if entries := self._sessions.get(session):
            entries.clear()
        logger.debug("Invalidated all metadata of session %s", session)

    def drop_session(self, session: str) -> None:
        """Remove a session and its entries, on disconnect."""
        self._sessions.pop(session, None)
