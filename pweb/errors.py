"""
Mapping from internal failures to HTTP responses and log lines.
"""

import enum
import logging

from .models import Failure, HTTPResponse

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    UPSTREAM_UNREACHABLE = "upstream-unreachable"
    UPSTREAM_FAILURE = "upstream-failure"
    LOCAL_NOT_FOUND = "local-not-found"
    LOCAL_OPEN_FAILURE = "local-open-failure"
    LOCAL_STAT_FAILURE = "local-stat-failure"
    STRICT_DIRECTORY = "strict-directory"
    DIRECTORY_LISTING = "directory-listing"
    PATH_ESCAPE = "path-escape"
    BAD_REQUEST = "bad-request"
    INTERNAL = "internal"

    @property
    def status(self) -> int:
        return STATUS_CODES[self]


STATUS_CODES = {
    ErrorKind.UPSTREAM_UNREACHABLE: 502,
    ErrorKind.UPSTREAM_FAILURE: 502,
    ErrorKind.LOCAL_NOT_FOUND: 404,
    ErrorKind.LOCAL_OPEN_FAILURE: 500,
    ErrorKind.LOCAL_STAT_FAILURE: 400,
    ErrorKind.STRICT_DIRECTORY: 403,
    ErrorKind.DIRECTORY_LISTING: 400,
    ErrorKind.PATH_ESCAPE: 400,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.INTERNAL: 500,
}


class ErrorReporter:
    """Turns failures into a logged message and a plain-text response."""

    def report(self, failure: Failure) -> HTTPResponse:
        """
        Log a failure and build the response for it.

        Args:
            failure: The failure detected while handling a request

        Returns:
            Response carrying the failure's status and message
        """
        logger.error(f"ERROR: {failure.detail}")
        return HTTPResponse.create_error(failure.kind.status, failure.detail)

    def report_write_failure(self, error: Exception) -> None:
        """Log a response that could not be written; nothing else is sent."""
        logger.error(f"ERROR: Could not write response: {error}")
