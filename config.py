"""
Labs Router - Configuration.

Defines environment-specific configuration classes for the labs router.
Each class captures where the routing table comes from (a remote JSON
document or a static list), how long a fetched table stays fresh, and
operational settings such as upstream timeouts.  The ``get_config``
factory selects the right class based on the ``FLASK_ENV`` environment
variable (or an explicit key).

Key Concepts Demonstrated:
- Class-based configuration with inheritance for DRY defaults
- Environment-variable overrides for 12-factor app deployability
- Separate testing configuration with short timeouts and fake URLs
"""

from __future__ import annotations

import json
import os

# Built-in routes used when ``ROUTE_SOURCE`` is ``"static"`` and no
# ``STATIC_ROUTES`` override is set.
DEFAULT_STATIC_ROUTES: dict[str, str] = {
    "/timecapsule": "https://timecapsule-d3y.pages.dev",
    "/aic": "https://b625b9d0.atlasincontext.pages.dev",
}


class ConfigError(ValueError):
    """An environment variable holds a value the router cannot use."""


def json_env_mapping(name: str, default: dict[str, str]) -> dict[str, str]:
    """
    Read a JSON object of strings from environment variable *name*.

    Raises:
        ConfigError: If the value is not valid JSON or not an object
            mapping strings to strings.
    """
    raw = os.environ.get(name)
    if not raw:
        return dict(default)
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} is not valid JSON: {exc}") from exc
    if not isinstance(value, dict) or not all(
        isinstance(key, str) and isinstance(item, str) for key, item in value.items()
    ):
        raise ConfigError(
            f'{name} must be a JSON object like {{"/prefix": "https://upstream"}}'
        )
    return value


def _optional_env(name: str) -> str | None:
    return os.environ.get(name) or None


class Config:
    """
    Base (shared) configuration for the router.

    All environment-specific classes inherit from ``Config`` so that
    common defaults only need to be stated once.  Individual settings
    can be overridden by environment variables, following 12-factor
    app conventions.
    """

    # "remote" fetches the project list from ROUTES_SOURCE_URL; "static"
    # serves STATIC_ROUTES and never refreshes.
    ROUTE_SOURCE: str = os.environ.get("ROUTE_SOURCE", "remote")

    # JSON array of project records describing every routable lab.
    ROUTES_SOURCE_URL: str = os.environ.get(
        "ROUTES_SOURCE_URL", "https://srirams.me/labs-projects.json"
    )

    # Seconds a fetched routing table is served before a refresh is tried.
    ROUTES_CACHE_TTL: float = float(os.environ.get("ROUTES_CACHE_TTL", "300"))

    # Seconds to wait for the routing document before keeping the old table.
    ROUTES_FETCH_TIMEOUT: float = float(os.environ.get("ROUTES_FETCH_TIMEOUT", "5"))

    # Prefix -> upstream origin map for the static route source.
    STATIC_ROUTES: dict[str, str] = json_env_mapping("STATIC_ROUTES", DEFAULT_STATIC_ROUTES)

    # Maximum seconds the router will wait for an upstream response
    # before returning 502 Bad Gateway.
    PROXY_TIMEOUT: float = float(os.environ.get("PROXY_TIMEOUT", "5"))

    # When set, proxied responses carry Access-Control-Allow-Origin with
    # this value.
    PROXY_CORS_ALLOW_ORIGIN: str | None = _optional_env("PROXY_CORS_ALLOW_ORIGIN")

    # Directory served for paths that match no project.  Unset means the
    # router answers those paths with a JSON 404.
    STATIC_FALLBACK_DIR: str | None = _optional_env("STATIC_FALLBACK_DIR")

    # Landing page advertised in the "project not found" response.
    LABS_HOMEPAGE_URL: str = os.environ.get("LABS_HOMEPAGE_URL", "https://labs.srirams.me")


class DevelopmentConfig(Config):
    """
    Development-oriented overrides.

    Enables Flask debug mode for auto-reload and richer error pages
    while retaining the default routing source from ``Config``.
    """

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """
    Test-suite overrides.

    Points the routing source at a non-routable test host so that tests
    never accidentally hit the real project list.  Timeouts are reduced
    to 1 second so tests that simulate slow hosts complete quickly.
    """

    DEBUG: bool = True
    TESTING: bool = True
    ROUTE_SOURCE: str = os.environ.get("TEST_ROUTE_SOURCE", "remote")
    # Non-routable hostname ensures tests never leak real HTTP requests.
    ROUTES_SOURCE_URL: str = os.environ.get(
        "TEST_ROUTES_SOURCE_URL", "http://routes.test/labs-projects.json"
    )
    ROUTES_FETCH_TIMEOUT: float = float(os.environ.get("TEST_ROUTES_FETCH_TIMEOUT", "1"))
    PROXY_TIMEOUT: float = float(os.environ.get("TEST_PROXY_TIMEOUT", "1"))
    STATIC_FALLBACK_DIR: str | None = None


class ProductionConfig(Config):
    """
    Production-hardened overrides.

    Disables debug mode and testing flags.  All other values are
    expected to come from environment variables set by the deployment
    orchestrator.
    """

    DEBUG: bool = False
    TESTING: bool = False


# Lookup table mapping environment name strings to their config classes.
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Return the configuration class for the given environment.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When *None*, the ``FLASK_ENV``
            environment variable is consulted, falling back to
            ``"development"`` if unset.

    Returns:
        The ``Config`` subclass matching the requested environment,
        or ``DevelopmentConfig`` if the key is unrecognised.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
