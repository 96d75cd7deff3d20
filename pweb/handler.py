import socket
import select
import logging
from typing import Optional, Tuple

from .dispatcher import Dispatcher
from .errors import ErrorKind
from .models import HTTPRequest, HTTPResponse, Failure

logger = logging.getLogger(__name__)

MAX_HEADER_BYTES = 64 * 1024


class RequestHandler:
    """Handles processing of individual HTTP connections."""

    def __init__(self, dispatcher: Dispatcher, timeout: float = 30):
        """
        Initialize the request handler.

        Args:
            dispatcher: Decides how each request is answered
            timeout: Socket timeout in seconds
        """
        self._dispatcher = dispatcher
        self._timeout = timeout

    def handle_client(self, client_socket: socket.socket,
                      client_address: Tuple[str, int]) -> None:
        """
        Handle an individual client connection.

        Args:
            client_socket: Socket object for client connection
            client_address: Tuple of client's IP and port
        """
        client_socket.settimeout(self._timeout)

        try:
            request_data = self._read_request(client_socket)
            if not request_data:
                return

            request = HTTPRequest.from_raw_data(request_data)
            if request is None:
                response = self._dispatcher.reporter.report(
                    Failure(ErrorKind.BAD_REQUEST, "Malformed request"))
                include_body = True
            else:
                request.client_address = client_address[0]
                response = self._respond(request)
                include_body = request.method != 'HEAD'

            try:
                client_socket.sendall(response.to_bytes(include_body))
            except OSError as e:
                self._dispatcher.reporter.report_write_failure(e)

        except OSError as e:
            logger.error(f"Error handling client {client_address}: {e}")
        finally:
            client_socket.close()

    def _respond(self, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._dispatcher.dispatch(request)
        except Exception as e:
            logger.exception(f"Unexpected error handling {request.method} {request.path}")
            return self._dispatcher.reporter.report(
                Failure(ErrorKind.INTERNAL, f"Internal error: {e}"))

    def _read_request(self, client_socket: socket.socket) -> Optional[bytes]:
        """Read the complete HTTP request from the client socket."""
        request_data = bytearray()

        while True:
            ready = select.select([client_socket], [], [], self._timeout)
            if not ready[0]:  # Timeout
                break

            chunk = client_socket.recv(4096)
            if not chunk:
                break

            request_data.extend(chunk)
            header_end = request_data.find(b'\r\n\r\n')
            if header_end == -1:
                if len(request_data) > MAX_HEADER_BYTES:
                    break
                continue

            # Body follows the blank line; its size comes from Content-Length
            headers = request_data[:header_end].decode('iso-8859-1')
            total_length = header_end + 4
            for line in headers.split('\r\n'):
                if line.lower().startswith('content-length:'):
                    try:
                        total_length += int(line.split(':', 1)[1].strip())
                    except ValueError:
                        pass
                    break

            # Keep reading until we have the complete message
            while len(request_data) < total_length:
                chunk = client_socket.recv(4096)
                if not chunk:  # Connection closed
                    break
                request_data.extend(chunk)
            break

        return bytes(request_data) if request_data else None
