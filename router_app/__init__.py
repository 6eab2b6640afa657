"""
Labs Router - Application Factory.

This module provides the Flask application factory for the labs router.
The router is the single public entry-point for lab projects: it maps the
first path segment of a request to a project's own deployment and either
redirects there or proxies the request, returning the upstream response
as if it came from the router itself.

Key Concepts Demonstrated:
- Application Factory pattern (create_app) for flexible configuration
- One route cache per application instance, never module-level state
- Environment-aware configuration loading via get_config
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

from flask import Flask

from config import get_config
from router_app.cache import RouteTableCache
from router_app.forwarder import ProxyForwarder
from router_app.handler import Fallthrough, RequestHandler
from router_app.rewriter import ResponseRewriter
from router_app.routes import EXTENSION_KEY, router_bp
from router_app.sources import RemoteRouteSource, StaticRouteSource

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_cache(settings: Mapping[str, Any]) -> RouteTableCache:
    """
    Build the route cache described by *settings*.

    A static source is fetched once and kept forever; a remote source is
    refreshed every ``ROUTES_CACHE_TTL`` seconds.
    """
    if settings["ROUTE_SOURCE"] == "static":
        return RouteTableCache(StaticRouteSource(settings["STATIC_ROUTES"]), ttl=math.inf)
    source = RemoteRouteSource(settings["ROUTES_SOURCE_URL"], timeout=settings["ROUTES_FETCH_TIMEOUT"])
    return RouteTableCache(source, ttl=settings["ROUTES_CACHE_TTL"])


def create_app(config_name: str | None = None) -> Flask:
    """
    Construct and configure the router Flask application.

    Args:
        config_name: Optional environment key ("development", "testing",
            "production").  When *None*, the FLASK_ENV environment
            variable is consulted, defaulting to "development".

    Returns:
        A Flask application with its routing pipeline registered under
        ``app.extensions["labs_router"]`` and the catch-all blueprint
        ready to serve.
    """
    # No static folder: every path, /static included, is routed.
    app = Flask(__name__, static_folder=None)
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    logger.info("Creating router app with config: %s", config_class.__name__)

    handler = RequestHandler(
        cache=build_cache(app.config),
        forwarder=ProxyForwarder(timeout=app.config["PROXY_TIMEOUT"]),
        rewriter=ResponseRewriter(cors_allow_origin=app.config["PROXY_CORS_ALLOW_ORIGIN"]),
        fallthrough=Fallthrough(
            static_dir=app.config["STATIC_FALLBACK_DIR"],
            homepage_url=app.config["LABS_HOMEPAGE_URL"],
        ),
    )

    app.extensions[EXTENSION_KEY] = handler
    app.register_blueprint(router_bp)
    return app
