"""Fake ``requests`` responses shared by the router test suites."""

from __future__ import annotations

import json
from typing import Any

from requests.structures import CaseInsensitiveDict


class FakeRawHeaders:
    """Simulate ``urllib3`` raw headers with optional Set-Cookie support."""

    def __init__(self, set_cookies: list[str] | None = None):
        self._set_cookies = set_cookies or []

    def getlist(self, name: str) -> list[str]:
        if name.lower() == "set-cookie":
            return list(self._set_cookies)
        return []


class FakeRaw:
    """Stand-in for the ``urllib3`` response behind ``requests.Response.raw``."""

    def __init__(self, body: bytes, set_cookies: list[str] | None = None):
        self._body = body
        self.headers = FakeRawHeaders(set_cookies)
        self.decode_content_requested: list[bool] = []

    def stream(self, amt: int, decode_content: bool | None = None):
        self.decode_content_requested.append(decode_content)
        for start in range(0, len(self._body), amt):
            yield self._body[start:start + amt]


class FakeUpstreamResponse:
    """Configurable stand-in for a streamed ``requests.Response`` from an upstream."""

    def __init__(
        self,
        *,
        status_code: int = 200,
        reason: str = "OK",
        content: bytes = b'{"ok": true}',
        headers: dict[str, str] | None = None,
        set_cookies: list[str] | None = None,
        encoding: str | None = None,
        url: str = "https://upstream.test/",
        content_error: Exception | None = None,
    ):
        self.status_code = status_code
        self.reason = reason
        self.url = url
        self._content = content
        self._content_error = content_error
        self.encoding = encoding
        self.headers = CaseInsensitiveDict(
            headers if headers is not None else {"Content-Type": "application/json"}
        )
        self.raw = FakeRaw(content, set_cookies)
        self.closed = False

    @property
    def content(self) -> bytes:
        """Return the body, or raise *content_error* as a dropped connection would."""
        if self._content_error is not None:
            raise self._content_error
        return self._content

    def close(self) -> None:
        self.closed = True


class FakeJSONResponse:
    """Stand-in for the project list response fetched by the route source."""

    def __init__(self, payload: Any = None, *, status_code: int = 200, text: str | None = None):
        self.status_code = status_code
        self._text = text if text is not None else json.dumps(payload)

    def json(self) -> Any:
        return json.loads(self._text)


def project(lab_url: str, upstream: str, **extra: Any) -> dict[str, Any]:
    """Build one raw element of the labs project list."""
    record = {"labUrl": lab_url, "pagesWorkerUrl": upstream}
    record.update(extra)
    return record
