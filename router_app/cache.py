"""
Time-bounded routing table cache.

``RouteTableCache`` wraps a route source with a time-to-live.  A fresh
table is served straight from memory; an expired one triggers a single
fetch.  When that fetch fails the cache keeps serving the last good table
(or an empty one on a cold start) so an outage of the project list
degrades to "no routes match" instead of failing requests.

The cache record is immutable and replaced by one attribute assignment,
so concurrent requests always see a complete table.  Two requests that
miss at the same moment may both fetch; the second write simply wins.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from router_app.errors import ConfigFetchError
from router_app.sources import RouteSource
from router_app.table import RoutingTable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class CacheRecord:
    table: RoutingTable
    fetched_at: float


class RouteTableCache:
    """
    Serve a routing table, refreshing it from *source* every *ttl* seconds.

    Args:
        source: Any object with a ``fetch_projects()`` method.
        ttl: Seconds a fetched table stays fresh.  ``math.inf`` fetches
            once and never again.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        source: RouteSource,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.ttl = ttl
        self._clock = clock
        self._record: CacheRecord | None = None

    @property
    def record(self) -> CacheRecord | None:
        return self._record

    def get_table(self) -> RoutingTable:
        """
        Return the current routing table.  Never raises.

        Returns:
            The cached table while it is fresh; otherwise a freshly fetched
            table, or the previous table if the fetch fails, or an empty
            table if there has never been a successful fetch.
        """
        record = self._record
        now = self._clock()
        if record is not None and now - record.fetched_at < self.ttl:
            return record.table

        try:
            projects = self.source.fetch_projects()
        except ConfigFetchError as exc:
            if record is None:
                logger.warning("Route refresh failed with no cached table: %s", exc)
                return RoutingTable.empty()
            logger.warning("Route refresh failed, serving cached table: %s", exc)
            return record.table

        table = RoutingTable.from_projects(projects)
        self._record = CacheRecord(table=table, fetched_at=now)
        logger.info(
            "Routing table refreshed: %d redirect, %d proxy routes",
            len(table.redirects),
            len(table.proxies),
        )
        return table

    def invalidate(self) -> None:
        """Forget the cached table so the next call fetches again."""
        self._record = None
