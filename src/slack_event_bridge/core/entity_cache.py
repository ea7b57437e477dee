"""Stale-tolerant cache of Slack users and conversations."""

import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import LRUCache

from ..interfaces.lookup import EntityLookup
from ..models.entity import CacheEntry, EntityKind
from ..utils.async_helpers import BridgeError, with_timeout
from ..utils.logging import LogEventNames

log = structlog.get_logger()


class EntityCache:
    """Resolves entity ids to metadata with a freshness window.

    An entry older than ``ttl`` seconds is refreshed on the next ``resolve``.
    If the refresh fails the old value keeps being served; a lookup that
    fails with nothing cached returns ``None`` and is retried next time.
    Failures are never stored.
    """

    def __init__(
        self,
        lookup: EntityLookup,
        ttl: float = 300.0,
        maxsize: int = 5000,
        lookup_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lookup = lookup
        self._ttl = ttl
        self._lookup_timeout = lookup_timeout
        self._clock = clock
        self._entries: LRUCache[tuple[EntityKind, str], CacheEntry] = LRUCache(maxsize=maxsize)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def entry(self, kind: EntityKind, entity_id: str) -> CacheEntry | None:
        """Return the raw entry, fresh or not."""
        return self._entries.get((kind, entity_id))

    def peek(self, kind: EntityKind, entity_id: str) -> dict[str, Any] | None:
        """Return whatever is cached without fetching."""
        entry = self.entry(kind, entity_id)
        return entry.value if entry else None

    def put(self, kind: EntityKind, entity_id: str, value: dict[str, Any]) -> None:
        """Store a value fetched elsewhere, e.g. by user sync."""
        key = (kind, entity_id)
        self._entries[key] = CacheEntry(key=key, value=value, fetched_at=self._clock())

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at <= self._ttl

    async def resolve(self, kind: EntityKind, entity_id: str) -> dict[str, Any] | None:
        """
        Resolve an entity, fetching it when absent or expired.

        Args:
            kind: User or conversation
            entity_id: Slack id

        Returns:
            The entity metadata, a stale copy if a refresh failed, or None
        """
        entry = self.entry(kind, entity_id)
        if entry is not None and self.is_fresh(entry):
            log.debug(LogEventNames.CACHE_HIT, kind=str(kind), entity_id=entity_id)
            return entry.value

        if entry is None:
            log.debug(LogEventNames.CACHE_MISS, kind=str(kind), entity_id=entity_id)
        else:
            log.debug(LogEventNames.CACHE_EXPIRED, kind=str(kind), entity_id=entity_id)

        try:
            value = await with_timeout(
                self._lookup.fetch(kind, entity_id),
                timeout=self._lookup_timeout,
                error_message=f"Lookup of {kind} {entity_id} timed out",
            )
        except BridgeError as e:
            log.error(
                LogEventNames.LOOKUP_FAILED,
                kind=str(kind),
                entity_id=entity_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            if entry is not None:
                log.info(LogEventNames.CACHE_STALE_SERVED, kind=str(kind), entity_id=entity_id)
                return entry.value
            return None

        self.put(kind, entity_id, value)
        return value
