"""
Opportunistic cleanup of the response cache and HTTP connection pool.

There is no background timer. Callers invoke maybe_cleanup() at the top of
every sync entry point (and after each week); it only does work when the
cleanup interval has elapsed.
"""

import logging
import time
from typing import Callable

from .espn_client import ESPNClient
from .response_cache import ResponseCache

logger = logging.getLogger(__name__)


class ConnectionLifecycleManager:
    """Bounds long-run resource growth of a cache and its client."""

    def __init__(
        self,
        cache: ResponseCache,
        client: ESPNClient,
        cleanup_interval: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cache = cache
        self.client = client
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self.last_cleanup = clock()
        self.cleanup_count = 0

    def is_due(self) -> bool:
        return self._clock() - self.last_cleanup > self.cleanup_interval

    async def maybe_cleanup(self) -> bool:
        """Purge stale cache entries and recycle the pool if the interval elapsed."""
        if not self.is_due():
            return False

        # Reset first so an overlapping caller does not clean up twice
        self.last_cleanup = self._clock()
        purged = self.cache.purge_stale()
        await self.client.recycle()
        self.cleanup_count += 1
        logger.info(f"[Lifecycle] Cleanup #{self.cleanup_count}: purged {purged} cache entries, pool recycled")
        return True
