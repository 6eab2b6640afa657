"""
Request handling pipeline.

``RequestHandler`` is sequencing only: route table from the cache, dispatch,
then redirect, proxy or fall through.  All decisions live in the
collaborators it is built from.
"""

from __future__ import annotations

import logging
import os

from flask import Response, jsonify, redirect, send_from_directory
from werkzeug.exceptions import NotFound
from werkzeug.wrappers import Request

from router_app.cache import RouteTableCache
from router_app.dispatch import MatchKind, match
from router_app.errors import UpstreamForwardError, UpstreamTimeoutError
from router_app.forwarder import ProxyForwarder, target_url_for
from router_app.rewriter import ResponseRewriter
from router_app.table import RoutingTable

logger = logging.getLogger(__name__)


class Fallthrough:
    """
    Serve paths that belong to no project.

    With a *static_dir* the path is looked up as a file in that directory
    (``index.html`` for directory paths).  Without one, or when no file
    exists, the answer is a JSON 404 listing the available projects.
    """

    def __init__(self, static_dir: str | None, homepage_url: str):
        self.static_dir = static_dir
        self.homepage_url = homepage_url

    def __call__(self, request: Request, table: RoutingTable) -> Response:
        if self.static_dir:
            filename = request.path.lstrip("/")
            if not filename or filename.endswith("/"):
                filename += "index.html"
            try:
                return send_from_directory(os.path.abspath(self.static_dir), filename)
            except NotFound:
                logger.debug("No static file for %s", request.path)
        return self.not_found(table)

    def not_found(self, table: RoutingTable) -> Response:
        response = jsonify(
            {
                "error": "Project not found",
                "availableProjects": table.prefixes,
                "message": f"Visit {self.homepage_url} for a list of available projects",
            }
        )
        response.status_code = 404
        return response


class RequestHandler:
    def __init__(
        self,
        cache: RouteTableCache,
        forwarder: ProxyForwarder,
        rewriter: ResponseRewriter,
        fallthrough: Fallthrough,
    ):
        self.cache = cache
        self.forwarder = forwarder
        self.rewriter = rewriter
        self.fallthrough = fallthrough

    def handle(self, request: Request) -> Response:
        """
        Route *request* to its project.

        Returns:
            A 302 to the upstream for redirect routes, the relayed upstream
            response for proxy routes (502 JSON if the upstream cannot be
            reached), or the fallthrough response when nothing matches.
        """
        table = self.cache.get_table()
        result = match(request.path, table)

        if result.kind is MatchKind.REDIRECT:
            entry = result.entry
            location = target_url_for(request, entry.prefix, entry.upstream_origin)
            logger.info("Redirecting %s -> %s", request.path, location)
            return redirect(location, code=302)

        if result.kind is MatchKind.PROXY:
            entry = result.entry
            try:
                upstream = self.forwarder.forward(request, entry.prefix, entry.upstream_origin)
                return self.rewriter.rewrite(upstream, entry.upstream_origin)
            except UpstreamTimeoutError as exc:
                logger.error("%s", exc)
                return self._bad_gateway("Upstream request timed out")
            except UpstreamForwardError as exc:
                logger.error("%s", exc)
                return self._bad_gateway("Upstream service unavailable")

        return self.fallthrough(request, table)

    @staticmethod
    def _bad_gateway(message: str) -> Response:
        response = jsonify({"error": message})
        response.status_code = 502
        return response
