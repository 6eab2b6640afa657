"""
Exception taxonomy for the labs router.

Configuration-layer errors (``ConfigFetchError``, ``MalformedProjectRecord``)
are absorbed before they reach a client: the route cache falls back to its
last good table and the route source skips bad records.  Forwarding-layer
errors (``UpstreamForwardError`` and its timeout flavour) are the only ones
that become user-visible, as a 502 Bad Gateway.
"""

from __future__ import annotations


class RouterError(Exception):
    """Base class for every error raised by the router."""


class ConfigFetchError(RouterError):
    """The routing document could not be fetched or was not a JSON array."""


class MalformedProjectRecord(RouterError, ValueError):
    """A single project record lacks a usable prefix or upstream."""


class UpstreamForwardError(RouterError):
    """The matched upstream could not be reached."""

    def __init__(self, message: str, *, target_url: str | None = None):
        super().__init__(message)
        self.target_url = target_url


class UpstreamTimeoutError(UpstreamForwardError):
    """The matched upstream did not answer within ``PROXY_TIMEOUT``."""
