"""
Per-request decision between proxying and serving from the document root.
"""

import logging
from typing import Dict, Optional, Union

from .errors import ErrorKind, ErrorReporter
from .files import DirectoryIndexer, FileServer
from .models import HTTPRequest, HTTPResponse, Outcome, Served, NotFound, Failure
from .options import Options
from .proxy import ProxyDirector, UpstreamTransport
from .routing import LocalRouter, PathEscapeError, ProxyRoutes

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes each request to an upstream or to the local filesystem."""

    def __init__(self, root: str, proxy_routes: Optional[Dict[str, str]] = None,
                 options: Options = Options.NONE, timeout: float = 30):
        """
        Initialize the dispatcher.

        Args:
            root: Document root for local files
            proxy_routes: Dictionary mapping path prefixes to upstream URLs
            options: Behavior flags
            timeout: Upstream timeout in seconds
        """
        self._options = options
        self._routes = ProxyRoutes(proxy_routes) if proxy_routes else None
        self._director = ProxyDirector(UpstreamTransport(timeout), options)
        self._router = LocalRouter(root)
        self._files = FileServer(DirectoryIndexer(options))
        self._reporter = ErrorReporter()

    @property
    def options(self) -> Options:
        return self._options

    @property
    def reporter(self) -> ErrorReporter:
        return self._reporter

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Produce the response for a request.

        A matching proxy route is tried first; when the upstream does not
        have the resource, the request is served locally as if no route
        had matched.
        """
        if self._options.is_debug():
            logger.debug(f"{request.method} {request.path} headers={request.headers}")

        target = self._routes.resolve(request.url_path) if self._routes else None
        if target is not None:
            outcome = self._director.forward(request, target)
            if not isinstance(outcome, NotFound):
                return self._finish(outcome)
            logger.debug(f"Upstream has no {request.url_path}, trying local files")

        return self._finish(self._serve_local(request))

    def _serve_local(self, request: HTTPRequest) -> Outcome:
        try:
            route = self._router.route(request.url_path)
        except PathEscapeError:
            return Failure(ErrorKind.PATH_ESCAPE,
                           f"Resource is outside the document root: {request.url_path}")

        if self._options.is_verbose():
            logger.info(f"{request.method} {request.url_path} → {route.path}")

        outcome = self._files.serve(route.path, route.content_type, request.url_path)
        if isinstance(outcome, NotFound):
            return Failure(ErrorKind.LOCAL_NOT_FOUND, f"No such resource: {request.url_path}")
        return outcome

    def _finish(self, outcome: Union[Served, Failure]) -> HTTPResponse:
        if isinstance(outcome, Served):
            return outcome.response
        return self._reporter.report(outcome)
