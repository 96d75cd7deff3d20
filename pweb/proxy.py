import logging
from typing import Dict

import requests

from .errors import ErrorKind
from .models import HTTPRequest, HTTPResponse, Outcome, Served, NotFound, Failure
from .options import Options
from .routing import UpstreamTarget

logger = logging.getLogger(__name__)

# Headers that only make sense for a single connection
HOP_BY_HOP_HEADERS = frozenset({
    'connection',
    'keep-alive',
    'proxy-authenticate',
    'proxy-authorization',
    'proxy-connection',
    'te',
    'trailer',
    'trailers',
    'transfer-encoding',
    'upgrade',
})


def single_joining_slash(a: str, b: str) -> str:
    """Join two URL paths with exactly one '/' between them."""
    aslash = a.endswith('/')
    bslash = b.startswith('/')
    if aslash and bslash:
        return a + b[1:]
    if not aslash and not bslash:
        return a + '/' + b
    return a + b


def join_query(target_query: str, request_query: str) -> str:
    if target_query and request_query:
        return f"{target_query}&{request_query}"
    return target_query or request_query


class UpstreamTransport:
    """Forwards a request to an upstream URL and relays the answer."""

    def __init__(self, timeout: float = 30):
        """
        Args:
            timeout: Seconds to wait for the upstream to connect and answer
        """
        self._timeout = timeout

    def _forward_headers(self, request: HTTPRequest) -> Dict[str, str]:
        headers = {
            key: value for key, value in request.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
            and key.lower() not in ('host', 'content-length')
        }
        if request.client_address:
            prior = request.header('X-Forwarded-For')
            for key in [k for k in headers if k.lower() == 'x-forwarded-for']:
                del headers[key]
            headers['X-Forwarded-For'] = (
                f"{prior}, {request.client_address}" if prior else request.client_address
            )
        return headers

    def send(self, request: HTTPRequest, url: str) -> Outcome:
        """
        Send the request upstream.

        Returns:
            Served with the relayed response, NotFound when the upstream
            answers 404, or Failure for any transport error
        """
        try:
            upstream = requests.request(
                method=request.method,
                url=url,
                headers=self._forward_headers(request),
                data=request.body or None,
                allow_redirects=False,
                timeout=self._timeout,
            )
        except requests.exceptions.ConnectionError as e:
            return Failure(ErrorKind.UPSTREAM_UNREACHABLE, f"Upstream unreachable: {url}: {e}")
        except requests.exceptions.RequestException as e:
            return Failure(ErrorKind.UPSTREAM_FAILURE, f"Upstream request failed: {url}: {e}")

        logger.debug(f"Upstream {url} answered {upstream.status_code}")
        if upstream.status_code == 404:
            return NotFound(url)

        # Raw headers keep repeated fields such as Set-Cookie apart;
        # requests has already decoded any content encoding
        headers = [
            (key, value) for key, value in upstream.raw.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
            and key.lower() not in ('content-length', 'content-encoding')
        ]
        return Served(HTTPResponse(
            status_code=upstream.status_code,
            status_message=upstream.reason or None,
            headers=headers,
            body=upstream.content,
        ))


class ProxyDirector:
    """Rewrites requests to target their upstream and hands them to the transport."""

    def __init__(self, transport: UpstreamTransport, options: Options = Options.NONE):
        self._transport = transport
        self._options = options

    def direct(self, request: HTTPRequest, target: UpstreamTarget) -> str:
        """
        Build the upstream URL for a request.

        The matched prefix is removed from the request path and the
        remainder is joined onto the upstream's base path. Query strings
        from both sides are combined with '&'.
        """
        path = single_joining_slash(target.url.path, target.remainder(request.url_path))
        query = join_query(target.url.query, request.query)
        url = f"{target.url.scheme}://{target.url.netloc}{path}"
        if query:
            url = f"{url}?{query}"

        if self._options.is_verbose():
            logger.info(f"{request.method} {request.url_path} → {url}")
        return url

    def forward(self, request: HTTPRequest, target: UpstreamTarget) -> Outcome:
        return self._transport.send(request, self.direct(request, target))
