"""
Upstream response relaying.

Proxied apps are built to live at the root of their own origin, so their
HTML refers to ``/assets/app.js`` or ``styles.css`` relative to that
origin, not to the router's ``/<project>/`` prefix.  For HTML responses the
rewriter injects ``<base href="<upstream origin>">`` so the browser resolves
those references against the upstream host.  Every other response is
streamed to the client as raw, undecoded bytes.
"""

from __future__ import annotations

import codecs
import html
import logging
from collections.abc import Iterator

import requests
from flask import Response

from router_app.errors import UpstreamForwardError, UpstreamTimeoutError
from router_app.forwarder import HOP_BY_HOP_HEADERS

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024

# Headers that describe the upstream body as sent on the wire; dropped
# once the body has been decoded and rewritten.
_BODY_ENCODING_HEADERS = frozenset({"content-length", "content-encoding"})


def is_html(content_type: str | None) -> bool:
    return "text/html" in (content_type or "").lower()


def inject_base_tag(document: str, origin: str) -> str:
    """
    Insert ``<base href="origin">`` right after the first ``<head>`` tag.

    ``<head>`` is tried first, then ``<HEAD>``.  A document with neither
    gets the tag prepended.
    """
    base_tag = f'<base href="{html.escape(origin, quote=True)}">'
    for head in ("<head>", "<HEAD>"):
        if head in document:
            return document.replace(head, head + base_tag, 1)
    return base_tag + document


def body_codec(encoding: str | None) -> str:
    """
    Name the codec used to decode and re-encode an HTML body.

    Falls back to ISO-8859-1, which maps every byte to one character and
    back, when the upstream declares no charset or one Python does not know.
    """
    if not encoding:
        return "iso-8859-1"
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        logger.warning("Unknown charset %r in upstream HTML, relaying bytes as-is", encoding)
        return "iso-8859-1"


def _status(upstream: requests.Response) -> str | int:
    if upstream.reason:
        return f"{upstream.status_code} {upstream.reason}"
    return upstream.status_code


def _set_cookie_values(upstream: requests.Response) -> list[str]:
    # requests folds repeated headers into one value; the raw urllib3
    # headers keep every Set-Cookie line separately.
    raw_headers = getattr(getattr(upstream, "raw", None), "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    if "Set-Cookie" in upstream.headers:
        return [upstream.headers["Set-Cookie"]]
    return []


def _iter_raw(upstream: requests.Response) -> Iterator[bytes]:
    yield from upstream.raw.stream(STREAM_CHUNK_SIZE, decode_content=False)


class ResponseRewriter:
    """
    Turn an upstream ``requests`` response into a Flask response.

    Args:
        cors_allow_origin: When set, every relayed response carries
            ``Access-Control-Allow-Origin`` with this value.
    """

    def __init__(self, cors_allow_origin: str | None = None):
        self.cors_allow_origin = cors_allow_origin

    def rewrite(self, upstream: requests.Response, origin: str) -> Response:
        if is_html(upstream.headers.get("Content-Type")):
            return self._rewrite_html(upstream, origin)
        return self._passthrough(upstream)

    def _rewrite_html(self, upstream: requests.Response, origin: str) -> Response:
        target_url = upstream.url
        try:
            body = upstream.content
        except requests.Timeout as exc:
            raise UpstreamTimeoutError(
                f"Upstream {target_url} timed out while sending its body", target_url=target_url
            ) from exc
        except requests.RequestException as exc:
            raise UpstreamForwardError(
                f"Upstream {target_url} failed while sending its body: {exc}",
                target_url=target_url,
            ) from exc
        finally:
            upstream.close()

        encoding = body_codec(upstream.encoding)
        document = inject_base_tag(body.decode(encoding, "replace"), origin)
        logger.debug("Injected base href %s into HTML response", origin)

        response = Response(document.encode(encoding, "replace"), status=_status(upstream))
        self._copy_headers(response, upstream, skip=_BODY_ENCODING_HEADERS)
        return response

    def _passthrough(self, upstream: requests.Response) -> Response:
        response = Response(_iter_raw(upstream), status=_status(upstream))
        response.call_on_close(upstream.close)
        self._copy_headers(response, upstream)
        return response

    def _copy_headers(
        self,
        response: Response,
        upstream: requests.Response,
        skip: frozenset[str] = frozenset(),
    ) -> None:
        has_content_type = False
        for name, value in upstream.headers.items():
            lower = name.lower()
            if lower in HOP_BY_HOP_HEADERS or lower in skip or lower == "set-cookie":
                continue
            if lower == "content-type":
                has_content_type = True
            response.headers[name] = value

        if not has_content_type:
            # Flask fills in text/html by default; the upstream sent none.
            response.headers.pop("Content-Type", None)

        for cookie_header in _set_cookie_values(upstream):
            response.headers.add("Set-Cookie", cookie_header)

        if self.cors_allow_origin:
            response.headers["Access-Control-Allow-Origin"] = self.cors_allow_origin
