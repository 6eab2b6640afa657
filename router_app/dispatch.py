"""
Prefix dispatch and target URL construction.

A prefix ``/p`` owns the path ``/p`` and everything under ``/p/``; it does
not own ``/pq``.  Redirect routes are consulted before proxy routes, and
within one partition the longest matching prefix wins.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

from router_app.table import RouteEntry, RoutingTable

logger = logging.getLogger(__name__)


class MatchKind(str, enum.Enum):
    REDIRECT = "redirect"
    PROXY = "proxy"
    NONE = "none"


@dataclass(frozen=True)
class Match:
    kind: MatchKind
    entry: RouteEntry | None = None


NO_MATCH = Match(MatchKind.NONE)


def _longest_match(path: str, routes: Mapping[str, RouteEntry]) -> RouteEntry | None:
    candidates = [entry for entry in routes.values() if entry.matches(path)]
    if not candidates:
        return None
    # Matching prefixes are distinct ancestors of one path, so their
    # lengths differ and the maximum is unique.
    return max(candidates, key=lambda entry: len(entry.prefix))


def match(path: str, table: RoutingTable) -> Match:
    """
    Find the route that serves *path*.

    Args:
        path: The request path, without query string.
        table: Routing table snapshot for this request.

    Returns:
        A redirect match if any redirect prefix matches, else a proxy
        match, else ``NO_MATCH``.
    """
    entry = _longest_match(path, table.redirects)
    if entry is not None:
        logger.debug("Path %s matched redirect route %s", path, entry.prefix)
        return Match(MatchKind.REDIRECT, entry)

    entry = _longest_match(path, table.proxies)
    if entry is not None:
        logger.debug("Path %s matched proxy route %s", path, entry.prefix)
        return Match(MatchKind.PROXY, entry)

    logger.debug("Path %s matched no route", path)
    return NO_MATCH


def strip_prefix(path: str, prefix: str) -> str:
    """
    Remove the segments of *prefix* from the front of *path*.

    *path* may still be percent-encoded; the remainder is cut at the
    segment boundary, so encoded characters after the prefix survive
    unchanged.  An empty remainder becomes ``/``.  Repeated leading
    slashes collapse to one so the remainder is always a path, never a
    ``//host`` reference.

    >>> strip_prefix("/aic", "/aic")
    '/'
    >>> strip_prefix("/aic/foo", "/aic")
    '/foo'
    """
    depth = prefix.count("/")
    parts = path.split("/", depth + 1)
    remainder = parts[depth + 1] if len(parts) > depth + 1 else ""
    return "/" + remainder.lstrip("/")


def build_target_url(origin: str, target_path: str, query: str = "") -> str:
    """
    Resolve *target_path* against *origin* and set its query string.

    The query replaces whatever query *origin* carried; an empty query
    clears it.  Fragments are dropped.
    """
    resolved = urlsplit(urljoin(origin, target_path))
    return resolved._replace(query=query, fragment="").geturl()
