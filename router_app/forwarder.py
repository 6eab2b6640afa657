"""
Upstream request forwarding.

``ProxyForwarder`` rebuilds an inbound request against the upstream origin
of its matched route and sends it with ``requests``.  Because the router
sits between the client and the upstream it handles a few HTTP concerns a
normal web application never sees:

  * **Hop-by-hop headers**: meaningful only for a single transport
    connection (RFC 7230 §6.1); never forwarded to the next hop.
  * **Host and Content-Length**: describe the inbound connection and are
    recomputed by ``requests`` from the target URL and the body.
  * **Redirects**: never followed.  An upstream 3xx reaches the client
    untouched so the browser, not the router, decides what to do with it.
  * **Timeouts**: every upstream call is bounded; a slow or unreachable
    upstream raises ``UpstreamForwardError`` instead of hanging a worker.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, unquote, urlsplit

import requests
from werkzeug.wrappers import Request

from router_app.dispatch import build_target_url, strip_prefix
from router_app.errors import UpstreamForwardError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

# Connection-scoped headers (RFC 2616 §13.5.1, RFC 7230 §6.1).
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# Characters left as-is when a decoded path has to be quoted again.
PATH_SAFE = "/:@!$&'()*+,;=~"


def filtered_request_headers(request: Request) -> dict[str, str]:
    """
    Build the header dict sent upstream.

    Drops hop-by-hop headers, ``Host`` and ``Content-Length``; everything
    else, cookies and authorization included, passes through unchanged.
    """
    headers: dict[str, str] = {}
    for name, value in request.headers.items():
        lower = name.lower()
        if lower in HOP_BY_HOP_HEADERS or lower == "host" or lower == "content-length":
            continue
        headers[name] = value
    return headers


def encoded_path(request: Request, prefix: str) -> str:
    """
    Return the request path as the client sent it, still percent-encoded.

    ``request.path`` is already decoded, so ``%2F``, ``%3F`` and ``%23``
    would turn into a real slash, query and fragment.  The raw request
    target (``RAW_URI`` from gunicorn and werkzeug, ``REQUEST_URI`` from
    uWSGI and mod_wsgi) keeps them.  When the server provides neither, or
    the raw target does not start with *prefix*, the decoded path is
    re-quoted instead.
    """
    raw = request.environ.get("RAW_URI") or request.environ.get("REQUEST_URI")
    if raw:
        path = raw.split("?", 1)[0] if raw.startswith("/") else urlsplit(raw).path
        root = quote(request.script_root, safe=PATH_SAFE)
        if root and path.startswith(root):
            path = path[len(root):]
        depth = prefix.count("/")
        head = "/".join(path.split("/", depth + 1)[: depth + 1])
        if unquote(head) == prefix:
            return path
    return quote(request.path, safe=PATH_SAFE)


def target_url_for(request: Request, prefix: str, origin: str) -> str:
    """Rewrite the request URL onto *origin* with *prefix* removed."""
    query = request.query_string.decode("utf-8", "replace")
    return build_target_url(origin, strip_prefix(encoded_path(request, prefix), prefix), query)


class ProxyForwarder:
    """
    Send requests to upstream origins.

    Args:
        timeout: Seconds to wait for the upstream to connect and to send
            each chunk of its response.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    def forward(self, request: Request, prefix: str, origin: str) -> requests.Response:
        """
        Forward *request* to *origin* and return the unread upstream response.

        The response is opened in streaming mode; the caller owns it and
        must close it once the body has been relayed.

        Raises:
            UpstreamTimeoutError: If the upstream did not answer in time.
            UpstreamForwardError: On any other transport-level failure
                (DNS resolution, connection refused, TLS error, ...).
        """
        target_url = target_url_for(request, prefix, origin)
        logger.info("Proxying %s %s -> %s", request.method, request.path, target_url)

        try:
            return requests.request(
                method=request.method,
                url=target_url,
                headers=filtered_request_headers(request),
                data=request.get_data(cache=False),
                allow_redirects=False,
                stream=True,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamTimeoutError(
                f"Upstream {target_url} timed out", target_url=target_url
            ) from exc
        except requests.RequestException as exc:
            raise UpstreamForwardError(
                f"Upstream {target_url} unavailable: {exc}", target_url=target_url
            ) from exc
