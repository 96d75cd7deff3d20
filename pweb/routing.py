import mimetypes
import os
import posixpath
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import SplitResult, unquote, urlsplit

DEFAULT_CONTENT_TYPE = "text/plain"


@dataclass(frozen=True)
class UpstreamTarget:
    """An upstream service selected for a request."""
    prefix: str
    url: SplitResult

    def remainder(self, path: str) -> str:
        """Part of the request path that follows the matched prefix."""
        return path[len(self.prefix):]


class ProxyRoutes:
    """
    Longest-prefix lookup over the configured proxy routes.

    Routes are ordered once, by descending prefix length and then
    lexicographically, so the first match is always the answer.
    """

    def __init__(self, routes: Dict[str, str]):
        """
        Args:
            routes: Dictionary mapping path prefixes to upstream base URLs
        """
        self._routes: List[Tuple[str, SplitResult]] = sorted(
            ((prefix, urlsplit(url)) for prefix, url in routes.items()),
            key=lambda route: (-len(route[0]), route[0])
        )

    def __len__(self) -> int:
        return len(self._routes)

    @staticmethod
    def matches(prefix: str, path: str) -> bool:
        """True if path equals prefix or continues it at a '/' boundary."""
        if not path.startswith(prefix):
            return False
        return len(path) == len(prefix) or path[len(prefix)] == "/"

    def resolve(self, path: str) -> Optional[UpstreamTarget]:
        """
        Find the upstream for a request path.

        Args:
            path: Request path, without query string

        Returns:
            The best matching target, or None if no route applies
        """
        for prefix, url in self._routes:
            if self.matches(prefix, path):
                return UpstreamTarget(prefix=prefix, url=url)
        return None


class PathEscapeError(ValueError):
    """Raised when a request path would resolve outside the document root."""


@dataclass(frozen=True)
class LocalRoute:
    path: str
    content_type: str


def content_type_for(path: str) -> str:
    """Content type from the file extension, text/plain when unknown."""
    ext = posixpath.splitext(path)[1]
    if not ext:
        return DEFAULT_CONTENT_TYPE
    mimetype, _ = mimetypes.guess_type("file" + ext, strict=False)
    return mimetype or DEFAULT_CONTENT_TYPE


class LocalRouter:
    """Maps request paths onto candidate files under the document root."""

    def __init__(self, root: str):
        self._root = os.path.abspath(root)

    @property
    def root(self) -> str:
        return self._root

    def route(self, request_path: str) -> LocalRoute:
        """
        Map a request path to a candidate path and content type.

        The file itself is not touched; whether it exists is discovered
        when it is opened.

        Raises:
            PathEscapeError: If '..' segments climb above the document root
        """
        relative = posixpath.normpath(unquote(request_path).lstrip("/"))
        if "\x00" in relative or relative == ".." or relative.startswith("../"):
            raise PathEscapeError(request_path)

        candidate = self._root if relative == "." else os.path.join(
            self._root, *relative.split("/"))
        candidate = os.path.normpath(candidate)
        if os.path.commonpath([self._root, candidate]) != self._root:
            raise PathEscapeError(request_path)

        return LocalRoute(path=candidate, content_type=content_type_for(relative))
