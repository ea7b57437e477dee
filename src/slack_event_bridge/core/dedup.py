"""Suppression of retried Slack deliveries."""

import time
from collections.abc import Callable

import structlog
from cachetools import TTLCache

from ..utils.logging import LogEventNames

log = structlog.get_logger()


class DeliveryDeduplicator:
    """Remembers delivery ids so Slack's retries are not handled twice.

    Ids stay recorded for ``ttl`` seconds (or until ``maxsize`` newer ids
    push them out). Slack retries within minutes, so an hour covers every
    retry of an event even after its handler has finished.
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        maxsize: int = 10000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._seen: TTLCache[str, float] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._timer = timer

    def __contains__(self, delivery_id: object) -> bool:
        return delivery_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def should_process(self, delivery_id: str | None, retry_num: int = 0) -> bool:
        """
        Decide whether a delivery should reach the handlers.

        Args:
            delivery_id: Identity of the logical event, None if unknown
            retry_num: Slack's retry counter, 0 for the first delivery

        Returns:
            False only for a retry of an id that is still recorded
        """
        if not delivery_id:
            return True

        if retry_num and delivery_id in self._seen:
            log.info(LogEventNames.DUPLICATE_DELIVERY, delivery_id=delivery_id, retry_num=retry_num)
            return False

        self._seen[delivery_id] = self._timer()
        return True

    def release(self, delivery_id: str | None) -> None:
        """Forget an id, allowing a later retry through."""
        if delivery_id:
            self._seen.pop(delivery_id, None)
