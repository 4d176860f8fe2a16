"""
=============================================================================
CHAT SERVER
=============================================================================

The top-level server object: takes a ServerConfig, sets up logging, binds
the listener and runs the event loop.

    ChatServer.run()
        │
        ├──► _setup_logging()
        ├──► create_listener()        bind + listen (fatal on failure)
        ├──► EventLoop(listener, ConnectionTable(max_clients))
        │
        └──► loop.run()               BLOCKS until SIGINT/SIGTERM/shutdown()

All chat semantics live in core/; this class only wires it together.

=============================================================================
"""

import logging
import threading
from typing import Optional, Tuple

from .activity import ActivityLogger
from .address import create_listener
from .config import ServerConfig
from .core import ConnectionTable, EventLoop


logger = logging.getLogger(__name__)


class ChatServer:
    """
    Single-process, single-threaded chat relay.

    Usage:
        server = ChatServer(ServerConfig(host="0.0.0.0", port=5000))
        server.run()  # Blocks until Ctrl+C
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self.activity = ActivityLogger(log_format=self.config.log_format)
        self.table = ConnectionTable(self.config.max_clients)

        self._loop: Optional[EventLoop] = None
        self._ready = threading.Event()

    @property
    def address(self) -> Tuple:
        """Bound (host, port, ...) once the server is listening."""
        if self._loop is None:
            raise RuntimeError("Server is not listening")
        return self._loop.address

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> EventLoop:
        """
        Bind the listening socket and build the event loop.

        Called by run(); exposed so tests can learn the port before the
        loop starts.

        Raises:
            AddressResolutionError, SocketError: The server cannot start.
        """
        if self._loop is not None:
            return self._loop

        try:
            listener = create_listener(self.config.host, self.config.port, self.config.backlog)
        except Exception as e:
            logger.error(f"Failed to start server: {e}")
            raise

        self._loop = EventLoop(
            listener,
            self.table,
            activity=self.activity,
            buffer_size=self.config.buffer_size,
            max_line_length=self.config.max_line_length,
            select_timeout=self.config.select_timeout,
            install_signal_handlers=self.config.install_signal_handlers,
        )
        self._ready.set()
        return self._loop

    def run(self) -> None:
        """Start the server (blocking)."""
        self._setup_logging()
        loop = self.bind()

        logger.info(f"Chat server up, {self.config.max_clients} slots")
        try:
            loop.run()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

    def shutdown(self) -> None:
        """Stop the event loop; safe from any thread."""
        if self._loop is not None:
            self._loop.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait until the listener is bound."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        if self._loop is None:
            return True
        return self._loop.wait_for_shutdown(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("linechat").setLevel(level)
