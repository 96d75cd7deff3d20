import html
import logging
import os
import stat
from typing import Iterable, Tuple
from urllib.parse import quote

from .errors import ErrorKind
from .models import HTTPResponse, Outcome, Served, NotFound, Failure
from .options import Options

logger = logging.getLogger(__name__)

INDEX_CONTENT_TYPE = "text/html"

INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body>
<ul>
{items}</ul>
</body>
</html>
"""


def render_index(entries: Iterable[Tuple[str, bool]], base: str = "") -> str:
    """
    Render a directory listing.

    Args:
        entries: (name, is_directory) pairs
        base: URL path of the directory; links are relative when empty

    Raises:
        UnicodeEncodeError: If a name cannot be escaped for use in an href
    """
    if base and not base.endswith("/"):
        base += "/"
    items = []
    for name, is_dir in entries:
        if is_dir:
            name += "/"
        href = html.escape(base + quote(name))
        items.append(f'<li><a href="{href}">{html.escape(name)}</a></li>\n')
    return INDEX_TEMPLATE.format(items="".join(items))


class DirectoryIndexer:
    """Lists directory contents as HTML unless strict mode forbids it."""

    def __init__(self, options: Options = Options.NONE):
        self._options = options

    def index(self, fd: int, path: str, url_path: str = "") -> Outcome:
        """
        Render the listing for an already opened directory.

        Args:
            fd: Open descriptor of the directory
            path: Filesystem path of the directory, for messages
            url_path: Request path of the directory, used to build links
        """
        if self._options.is_strict():
            return Failure(ErrorKind.STRICT_DIRECTORY,
                           f"Directory listing is forbidden: {path}")

        try:
            with os.scandir(fd) as it:
                entries = sorted((entry.name, entry.is_dir()) for entry in it)
            body = render_index(entries, url_path).encode("utf-8")
        except (OSError, UnicodeError):
            return Failure(ErrorKind.DIRECTORY_LISTING, f"Could not list directory: {path}")

        return Served(HTTPResponse(
            status_code=200,
            headers=[("Content-Type", INDEX_CONTENT_TYPE)],
            body=body,
        ))


class FileServer:
    """Serves regular files and hands directories to the indexer."""

    def __init__(self, indexer: DirectoryIndexer, chunk_size: int = 64 * 1024):
        self._indexer = indexer
        self._chunk_size = chunk_size

    def serve(self, path: str, content_type: str, url_path: str = "") -> Outcome:
        """
        Serve the file at a candidate path.

        Args:
            path: Candidate filesystem path
            content_type: Content type for a regular file
            url_path: Request path, for directory listing links

        Returns:
            Served, NotFound when nothing exists at the path, or Failure
        """
        try:
            fd = os.open(path, os.O_RDONLY)
        except (FileNotFoundError, NotADirectoryError):
            return NotFound(path)
        except OSError as e:
            logger.debug(f"Open of {path} failed: {e}")
            return Failure(ErrorKind.LOCAL_OPEN_FAILURE, f"Could not open file: {path}")

        try:
            try:
                fstat = os.fstat(fd)
            except OSError:
                return Failure(ErrorKind.LOCAL_STAT_FAILURE, f"Could not stat file: {path}")

            if stat.S_ISDIR(fstat.st_mode):
                return self._indexer.index(fd, path, url_path)

            body = bytearray()
            while True:
                chunk = os.read(fd, self._chunk_size)
                if not chunk:
                    break
                body.extend(chunk)
        except OSError:
            return Failure(ErrorKind.LOCAL_OPEN_FAILURE, f"Could not read file: {path}")
        finally:
            os.close(fd)

        return Served(HTTPResponse(
            status_code=200,
            headers=[("Content-Type", content_type)],
            body=bytes(body),
        ))
