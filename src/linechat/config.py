"""
=============================================================================
CONFIGURATION
=============================================================================

Centralized configuration for the chat server and client.

Both are plain dataclasses built from command-line arguments. Nothing is
read from the environment or from files; the CLI is the only source.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION FLOW                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   linechat server 127.0.0.1:5000 --max-clients 20                    │
    │        │                                                             │
    │        ▼                                                             │
    │   parse_address_spec()  ──►  ServerConfig(host, port, ...)           │
    │                                   │                                  │
    │                                   ▼                                  │
    │                              validate()   fail fast, before bind()   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional

from .activity import LOG_FORMATS
from .protocol.framing import DEFAULT_MAX_LINE_LENGTH


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _check_port(port: int, allow_zero: bool) -> None:
    low = 0 if allow_zero else 1
    if not low <= port < 65536:
        raise ValueError(f"Invalid port: {port}. Must be {low}-65535.")


def _check_log_level(level: str) -> None:
    if level.upper() not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {LOG_LEVELS}")


@dataclass
class ServerConfig:
    """
    Configuration for the chat server.

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, select_timeout

    CAPACITY
    - max_clients, max_line_length

    LOGGING
    - log_level, log_format
    """

    host: str = "127.0.0.1"
    """Host name or address to bind to. Resolved with getaddrinfo()."""

    port: int = 5000
    """Port to listen on. 0 lets the OS pick one (used by tests)."""

    max_clients: int = 100
    """Number of slots in the connection table."""

    backlog: int = 100
    """Queued connections the OS holds before accept()."""

    buffer_size: int = 1024
    """Bytes read per recv() call."""

    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    """Longest partial line a connection may buffer before it is dropped."""

    select_timeout: Optional[float] = None
    """
    Seconds per readiness wait.
    None = wait until something is readable (shutdown uses a wakeup socket).
    """

    install_signal_handlers: bool = True
    """Turn SIGINT/SIGTERM into a clean shutdown while the loop runs."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Activity log format: 'text' or 'json'."""

    def validate(self) -> None:
        """Raise ValueError on the first bad setting."""
        _check_port(self.port, allow_zero=True)

        if self.max_clients < 1:
            raise ValueError("max_clients must be >= 1")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        if self.max_line_length < self.buffer_size:
            raise ValueError("max_line_length must be >= buffer_size")

        if self.select_timeout is not None and self.select_timeout <= 0:
            raise ValueError("select_timeout must be > 0")

        _check_log_level(self.log_level)

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")


@dataclass
class ClientConfig:
    """Configuration for the interactive chat client."""

    host: str
    port: int
    nickname: str
    buffer_size: int = 1024
    log_level: str = "WARNING"

    def validate(self) -> None:
        _check_port(self.port, allow_zero=False)

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        _check_log_level(self.log_level)
