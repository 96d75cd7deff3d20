import socket
import threading
import logging
from typing import Dict, Optional

from .config import ServerConfig
from .dispatcher import Dispatcher
from .handler import RequestHandler
from .options import Options

logger = logging.getLogger(__name__)


class Server:
    """Listens for connections and serves each one on its own thread."""

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Initialize the server.

        Args:
            config: Server configuration; defaults plus PWEB_* environment if omitted
        """
        self._config = config or ServerConfig()
        self._host, self._port = self._config.bind_address
        self._options = self._config.options

        self._dispatcher = Dispatcher(
            root=self._config.docroot,
            proxy_routes=self._config.proxy_routes,
            options=self._options,
            timeout=self._config.timeout,
        )
        self._handler = RequestHandler(self._dispatcher, timeout=self._config.timeout)

        # Initialize server socket
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        self._bound = False
        self._running = False

    @property
    def host(self) -> str:
        """Get the host address."""
        return self._host

    @property
    def port(self) -> int:
        """Get the port number; the real port once bound to port 0."""
        return self._port

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def root(self) -> str:
        return self._config.docroot

    @property
    def options(self) -> Options:
        return self._options

    @property
    def proxy_routes(self) -> Dict[str, str]:
        """Get the proxy route configuration."""
        return self._config.proxy_routes

    @property
    def server_socket(self) -> socket.socket:
        """Get the server socket."""
        return self._server_socket

    def bind(self) -> None:
        """Bind and listen without accepting yet."""
        if self._bound:
            return
        self._server_socket.bind((self._host, self._port))
        self._server_socket.listen(128)
        self._port = self._server_socket.getsockname()[1]
        self._bound = True

    def start(self) -> None:
        """Start accepting connections; blocks until shutdown."""
        self._running = True
        try:
            self.bind()
            if not self._options.is_quiet():
                logger.info(f"Accepting connections on {self.address}")

            while self._running:
                try:
                    client_socket, client_address = self._server_socket.accept()
                    if not self._running:
                        client_socket.close()
                        break

                    # Handle each client in a separate thread
                    thread = threading.Thread(
                        target=self._handler.handle_client,
                        args=(client_socket, client_address)
                    )
                    thread.daemon = True
                    thread.start()
                except OSError as e:
                    if self._running:  # Only log if we're still meant to be running
                        logger.error(f"Server error: {e}")
                    if self._server_socket.fileno() == -1:
                        break

        finally:
            self._server_socket.close()

    def shutdown(self) -> None:
        """Shutdown the server gracefully."""
        self._running = False
        # Create a dummy connection to unblock accept()
        if self._bound:
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect((self._host or "127.0.0.1", self._port))
            except OSError:
                pass
        self._server_socket.close()
