"""
Routing table data model.

A ``RoutingTable`` is an immutable pair of prefix mappings: redirect-class
routes and proxy-class routes.  Tables are built in one go from a batch of
project records and never mutated afterwards, so a table handed to a
request is always complete.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from router_app.sources import ProjectRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteEntry:
    """One prefix and the upstream origin it is served from."""

    prefix: str
    upstream_origin: str
    is_proxied: bool = True

    def matches(self, path: str) -> bool:
        """Return True when *path* is the prefix itself or lies beneath it."""
        return path == self.prefix or path.startswith(self.prefix + "/")


def _frozen(entries: dict[str, RouteEntry]) -> Mapping[str, RouteEntry]:
    return MappingProxyType(dict(entries))


@dataclass(frozen=True)
class RoutingTable:
    """
    Redirect-class and proxy-class routes keyed by prefix.

    Both mappings are read-only views.  A prefix may in theory appear in
    both partitions when the source document is inconsistent; dispatch
    resolves that in favour of the redirect.
    """

    redirects: Mapping[str, RouteEntry] = field(default_factory=lambda: _frozen({}))
    proxies: Mapping[str, RouteEntry] = field(default_factory=lambda: _frozen({}))

    @classmethod
    def empty(cls) -> RoutingTable:
        return cls()

    @classmethod
    def from_projects(cls, projects: Iterable[ProjectRecord]) -> RoutingTable:
        """
        Partition project records into redirect and proxy routes.

        Later records replace earlier ones with the same prefix in the
        same partition, mirroring how the routing document is read as a
        plain object keyed by ``labUrl``.
        """
        redirects: dict[str, RouteEntry] = {}
        proxies: dict[str, RouteEntry] = {}
        for project in projects:
            entry = project.to_route()
            partition = proxies if entry.is_proxied else redirects
            if entry.prefix in partition:
                logger.warning(
                    "Duplicate route for %s: %s replaces %s",
                    entry.prefix,
                    entry.upstream_origin,
                    partition[entry.prefix].upstream_origin,
                )
            partition[entry.prefix] = entry
        return cls(redirects=_frozen(redirects), proxies=_frozen(proxies))

    @property
    def prefixes(self) -> list[str]:
        """Every routable prefix, redirects first, without duplicates."""
        seen = dict.fromkeys(self.redirects)
        seen.update(dict.fromkeys(self.proxies))
        return list(seen)

    def __len__(self) -> int:
        return len(self.redirects) + len(self.proxies)
