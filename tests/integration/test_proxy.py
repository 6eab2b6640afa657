"""
Integration tests for proxy request/response fidelity.

Verifies that headers, cookies, query strings, request bodies, status
codes and upstream redirects are carried between the client and the
upstream exactly as the router promises.

Key SDET Concepts Demonstrated:
- Header forwarding verification (Authorization, Set-Cookie)
- Multi-value header preservation (multiple Set-Cookie entries)
- Redirect transparency (upstream 3xx returned untouched)
- Parametrized tests for method and status-code propagation
"""

from __future__ import annotations

import pytest

from tests.helpers import FakeUpstreamResponse, project

pytestmark = pytest.mark.integration

UPSTREAM = "https://aic.pages.dev"


@pytest.fixture(autouse=True)
def projects(serve_projects):
    serve_projects([project("/aic", UPSTREAM)])


@pytest.fixture
def captured(monkeypatch):
    calls: dict = {}

    def _fake_request(**kwargs):
        calls.update(kwargs)
        return FakeUpstreamResponse(status_code=201 if kwargs["method"] == "POST" else 200)

    monkeypatch.setattr("router_app.forwarder.requests.request", _fake_request)
    return calls


def test_authorization_header_is_forwarded(client, captured):
    """Test that the Authorization header is passed through to the upstream."""
    response = client.get("/aic/api/me", headers={"Authorization": "Bearer abc.def.ghi"})

    assert response.status_code == 200
    assert captured["headers"]["Authorization"] == "Bearer abc.def.ghi"


def test_host_header_is_not_forwarded(client, captured):
    """Test that the router's own Host is not sent to the upstream."""
    client.get("/aic/")

    assert "Host" not in captured["headers"]


def test_query_string_is_forwarded_verbatim(client, captured):
    """Test that the raw query string, repeated keys included, reaches the upstream URL."""
    client.get("/aic/search?q=maps&tag=a&tag=b")

    assert captured["url"] == f"{UPSTREAM}/search?q=maps&tag=a&tag=b"


def test_request_body_is_forwarded(client, captured):
    """Test that the JSON request body is forwarded to the upstream."""
    response = client.post("/aic/api/notes", json={"title": "Forward me"})

    assert response.status_code == 201
    assert captured["method"] == "POST"
    assert b'"title": "Forward me"' in captured["data"]


@pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE", "OPTIONS"])
def test_method_is_forwarded(client, captured, method):
    """Test that every supported method is proxied as-is."""
    client.open("/aic/api/notes/1", method=method)

    assert captured["method"] == method


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/aic/notes/a%23b", f"{UPSTREAM}/notes/a%23b"),
        ("/aic/files/a%3Fb.txt?x=1", f"{UPSTREAM}/files/a%3Fb.txt?x=1"),
        ("/aic/a%2Fb", f"{UPSTREAM}/a%2Fb"),
    ],
)
def test_percent_encoded_path_reaches_upstream_unchanged(client, captured, path, expected):
    """Test that encoded #, ? and / in the path are not turned into URL syntax upstream."""
    response = client.get(path)

    assert response.status_code == 200
    assert captured["url"] == expected


@pytest.mark.parametrize("method", ["PROPFIND", "REPORT", "PURGE"])
def test_method_outside_the_common_set_is_forwarded(client, captured, method):
    """Test that methods Flask has no route for are still proxied, not rejected with 405."""
    response = client.open("/aic/dav/notes", method=method)

    assert response.status_code == 200
    assert captured["method"] == method
    assert captured["url"] == f"{UPSTREAM}/dav/notes"


def test_multiple_set_cookie_headers_are_preserved(client, monkeypatch):
    """Test that multiple Set-Cookie headers are all forwarded without merging."""
    # Arrange
    monkeypatch.setattr(
        "router_app.forwarder.requests.request",
        lambda **_: FakeUpstreamResponse(
            set_cookies=["session=abc123; Path=/; HttpOnly", "csrf_token=xyz789; Path=/"]
        ),
    )

    # Act
    response = client.post("/aic/login", data={"u": "p"})

    # Assert
    cookies = response.headers.getlist("Set-Cookie")
    assert "session=abc123; Path=/; HttpOnly" in cookies
    assert "csrf_token=xyz789; Path=/" in cookies
    assert len(cookies) == 2


@pytest.mark.parametrize(
    "location",
    ["/login", "https://aic.pages.dev/login", "https://accounts.example/authorize?x=1"],
)
def test_upstream_redirect_is_returned_untouched(client, monkeypatch, location):
    """Test that an upstream 3xx and its Location reach the client unchanged."""
    monkeypatch.setattr(
        "router_app.forwarder.requests.request",
        lambda **_: FakeUpstreamResponse(
            status_code=302, reason="Found", content=b"", headers={"Location": location}
        ),
    )

    response = client.get("/aic/account")

    assert response.status_code == 302
    assert response.headers["Location"] == location


@pytest.mark.parametrize("status_code", [304, 404, 500])
def test_upstream_status_code_is_propagated(client, monkeypatch, status_code):
    """Test that non-200 status codes from the upstream are returned as-is."""
    monkeypatch.setattr(
        "router_app.forwarder.requests.request",
        lambda **_: FakeUpstreamResponse(status_code=status_code, reason="", content=b""),
    )

    response = client.get("/aic/")

    assert response.status_code == status_code


def test_json_response_is_byte_identical(client, monkeypatch):
    """Test that a non-HTML body is relayed exactly, with its headers."""
    # Arrange
    body = b'{"a":1,  "b":[true,false]}\n'
    monkeypatch.setattr(
        "router_app.forwarder.requests.request",
        lambda **_: FakeUpstreamResponse(
            content=body,
            headers={"Content-Type": "application/json", "Content-Length": str(len(body)), "X-Build": "42"},
        ),
    )

    # Act
    response = client.get("/aic/data.json")

    # Assert
    assert response.data == body
    assert response.headers["Content-Type"] == "application/json"
    assert response.headers["Content-Length"] == str(len(body))
    assert response.headers["X-Build"] == "42"
