"""
Route sources.

A route source produces the list of project records the routing table is
built from.  ``RemoteRouteSource`` downloads the labs project list, a JSON
array published next to the main site; ``StaticRouteSource`` serves a fixed
prefix map and never touches the network.

Records that cannot become a route (no ``labUrl``, no ``pagesWorkerUrl``,
unusable values) are logged and skipped.  One bad record never costs the
rest of the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlsplit

import requests

from router_app.errors import ConfigFetchError, MalformedProjectRecord
from router_app.table import RouteEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectRecord:
    """One element of the labs project list that can be routed."""

    lab_url: str
    pages_worker_url: str
    is_proxied: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> ProjectRecord:
        """
        Validate a raw project dict and normalise its routing fields.

        Args:
            data: One decoded element of the project list.

        Returns:
            A ``ProjectRecord`` whose ``lab_url`` starts with ``/`` and has
            no trailing slash, and whose ``pages_worker_url`` is an absolute
            http(s) URL.

        Raises:
            MalformedProjectRecord: If a required field is missing or has
                a value the router cannot route on.
        """
        if not isinstance(data, Mapping):
            raise MalformedProjectRecord(f"expected an object, got {type(data).__name__}")

        lab_url = data.get("labUrl")
        upstream = data.get("pagesWorkerUrl")
        if not lab_url or not upstream:
            raise MalformedProjectRecord("labUrl and pagesWorkerUrl are required")
        if not isinstance(lab_url, str) or not isinstance(upstream, str):
            raise MalformedProjectRecord("labUrl and pagesWorkerUrl must be strings")

        prefix = lab_url.strip().rstrip("/")
        if not prefix.startswith("/"):
            raise MalformedProjectRecord(f"labUrl {lab_url!r} is not an absolute path")

        upstream = upstream.strip()
        parts = urlsplit(upstream)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise MalformedProjectRecord(f"pagesWorkerUrl {upstream!r} is not an http(s) URL")

        is_proxied = data.get("isProxied")
        if is_proxied is None:
            is_proxied = True
        elif not isinstance(is_proxied, bool):
            raise MalformedProjectRecord(f"isProxied must be a boolean, got {is_proxied!r}")

        return cls(lab_url=prefix, pages_worker_url=upstream, is_proxied=is_proxied)

    def to_route(self) -> RouteEntry:
        return RouteEntry(
            prefix=self.lab_url,
            upstream_origin=self.pages_worker_url,
            is_proxied=self.is_proxied,
        )


class RouteSource(Protocol):
    def fetch_projects(self) -> list[ProjectRecord]: ...


def parse_projects(payload: Any) -> list[ProjectRecord]:
    """
    Turn a decoded project list into routable records.

    Raises:
        ConfigFetchError: If *payload* is not a JSON array.
    """
    if not isinstance(payload, list):
        raise ConfigFetchError(
            f"Project list must be a JSON array, got {type(payload).__name__}"
        )

    records: list[ProjectRecord] = []
    for index, item in enumerate(payload):
        try:
            records.append(ProjectRecord.from_dict(item))
        except MalformedProjectRecord as exc:
            logger.warning("Skipping project #%d: %s", index, exc)
    return records


class RemoteRouteSource:
    """Fetches the project list over HTTP."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def fetch_projects(self) -> list[ProjectRecord]:
        """
        Download and parse the project list.

        Returns:
            The routable records, in document order.

        Raises:
            ConfigFetchError: On a transport failure, a non-200 status,
                a body that is not JSON, or JSON that is not an array.
        """
        try:
            response = requests.get(
                self.url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ConfigFetchError(f"Error fetching {self.url}: {exc}") from exc

        if response.status_code != 200:
            raise ConfigFetchError(
                f"Failed to fetch {self.url}: HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ConfigFetchError(f"{self.url} did not return JSON: {exc}") from exc

        return parse_projects(payload)


class StaticRouteSource:
    """
    A fixed prefix map.

    Pair it with an infinite cache TTL: it is fetched once and never
    changes for the lifetime of the process.
    """

    def __init__(
        self,
        routes: Mapping[str, str],
        redirects: Mapping[str, str] | None = None,
    ):
        self._payload = [
            {"labUrl": prefix, "pagesWorkerUrl": origin} for prefix, origin in routes.items()
        ]
        self._payload += [
            {"labUrl": prefix, "pagesWorkerUrl": origin, "isProxied": False}
            for prefix, origin in (redirects or {}).items()
        ]

    def fetch_projects(self) -> list[ProjectRecord]:
        return parse_projects(self._payload)
