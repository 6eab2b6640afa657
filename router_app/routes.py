"""
Router HTTP surface.

A single catch-all route hands every inbound request, whatever its method
or path, to the ``RequestHandler`` built by the application factory.  The
health check is the one path the router answers itself.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, jsonify, request
from werkzeug.exceptions import MethodNotAllowed

logger = logging.getLogger(__name__)

router_bp = Blueprint("router", __name__)

# OPTIONS is listed explicitly so preflight requests reach the upstream
# instead of being answered by Flask's automatic OPTIONS handler.
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

EXTENSION_KEY = "labs_router"


@router_bp.route("/_router/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """
    Shallow health check for the router itself.

    Reports how many routes are currently cached without triggering a
    refresh of the routing table.
    """
    cache = current_app.extensions[EXTENSION_KEY].cache
    record = cache.record
    routes = {"redirect": 0, "proxy": 0}
    if record is not None:
        routes = {"redirect": len(record.table.redirects), "proxy": len(record.table.proxies)}
    return jsonify({"status": "healthy", "service": "labs-router", "routes": routes}), 200


@router_bp.route("/", defaults={"path": ""}, methods=ALL_METHODS)
@router_bp.route("/<path:path>", methods=ALL_METHODS)
def route_request(path: str) -> Response:
    """Dispatch any other request through the routing pipeline."""
    return current_app.extensions[EXTENSION_KEY].handle(request)


# Flask routes need a fixed method list.  Any other method (WebDAV, REPORT,
# TRACE, ...) fails URL matching with a 405, which is routed here so it
# reaches the pipeline like every listed method.
@router_bp.app_errorhandler(MethodNotAllowed)
def route_unlisted_method(_: MethodNotAllowed) -> Response:
    return current_app.extensions[EXTENSION_KEY].handle(request)
