"""
Shared pytest fixtures for the labs router test suite.

Provides the reusable test infrastructure (Flask app, HTTP client and a
switchable project list) needed by the unit and integration suites.  The
router's only state is its in-memory route cache, so every test starts
from a cold cache and no test ever reaches the network: the project list
and the upstreams are both monkeypatched.

Key Concepts Demonstrated:
- Fixture scoping (session vs. function) for performance and isolation
- Environment variable overrides to inject a deterministic routes URL
- Isolating the system-under-test from the real project list
"""

from __future__ import annotations

import os

import pytest

os.environ["FLASK_ENV"] = "testing"
os.environ["TEST_ROUTES_SOURCE_URL"] = "http://routes.test/labs-projects.json"
os.environ["TEST_PROXY_TIMEOUT"] = "1"

from router_app import create_app
from tests.helpers import FakeJSONResponse


@pytest.fixture(scope="session")
def app():
    """
    Provide the Flask application instance for the entire test session.

    Creates the router once with the 'testing' config and reuses it
    across all tests to avoid repeated startup overhead.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """
    Provide a Flask test client scoped to a single test function.

    Opens a new test-client context for every test so that request
    state (cookies, headers) never leaks between tests.
    """
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def cold_route_cache(app):
    """Drop any routing table cached by a previous test."""
    cache = app.extensions["labs_router"].cache
    cache.invalidate()
    yield
    cache.invalidate()


@pytest.fixture
def serve_projects(monkeypatch):
    """
    Install a fake project list behind ``requests.get``.

    Returns a function taking the raw project list (and an optional
    status code); it returns the list of URLs fetched so far, so tests
    can count refreshes.
    """
    fetched: list[str] = []

    def _serve(projects, status_code: int = 200) -> list[str]:
        def _fake_get(url, **_):
            fetched.append(url)
            return FakeJSONResponse(projects, status_code=status_code)

        monkeypatch.setattr("router_app.sources.requests.get", _fake_get)
        return fetched

    return _serve
