"""
=============================================================================
CONNECTION
=============================================================================

This module wraps one accepted client socket together with the protocol
state the server keeps for it.

=============================================================================
THE TWO PROTOCOL STATES
=============================================================================

    accept()
       │
       │  server sends "HELLO 1"
       ▼
    ┌────────────┐   NICK <valid name>   ┌────────────┐
    │ UNVERIFIED │ ────────────────────► │  VERIFIED  │
    └────────────┘        reply OK       └────────────┘
       │    ▲                                 │    ▲
       │    │ anything else                   │    │ anything but MSG
       └────┘ reply ERR Invalid name!         └────┘ reply ERR Invalid message!

    Either state ends when the socket hits EOF, a read error, or a failed
    send. There is no way back from VERIFIED.

The nickname is only meaningful once VERIFIED. verify() is the single
place that sets it, so "nickname set" and "state VERIFIED" cannot drift
apart.

=============================================================================
READING
=============================================================================

The event loop only calls recv_lines() after select() reported the socket
readable, so the single recv() inside will not block for long. Whatever
arrives goes through a LineBuffer; only complete lines come back out.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import ProtocolStateError, SocketError, ValidationError
from ..protocol.codec import Message, encode
from ..protocol.framing import LineBuffer, DEFAULT_MAX_LINE_LENGTH
from ..protocol.names import is_valid_name


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Handshake progress of a connection."""
    UNVERIFIED = "unverified"  # HELLO sent, waiting for an acceptable NICK
    VERIFIED = "verified"      # Nickname registered, may send MSG


@dataclass
class Connection:
    """
    A client connection owned by the server's event loop.

    Attributes:
        socket: The client socket.
        address: Peer address as returned by accept().
        id: Short identifier for log correlation.
        state: Handshake state.
        nickname: Registered name, None until VERIFIED.
        created_at: Timestamp when the connection was accepted.
        last_activity: Timestamp of the last successful read or write.
        lines_handled: Complete lines received so far.
    """

    # Required parameters
    socket: socket.socket
    address: Tuple = ("", 0)

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.UNVERIFIED
    nickname: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    lines_handled: int = 0

    # Configuration (passed from ServerConfig)
    buffer_size: int = 1024
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH

    # Internal state
    _lines: LineBuffer = field(init=False, repr=False)
    _closed: bool = field(default=False, repr=False)

    def __post_init__(self):
        # select() tells us when to read; the socket itself stays blocking
        self.socket.setblocking(True)
        self._lines = LineBuffer(max_line_length=self.max_line_length)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_verified(self) -> bool:
        return self.state is ConnectionState.VERIFIED

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def peer(self) -> str:
        """Printable peer address, e.g. "127.0.0.1:53122"."""
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address)

    def fileno(self) -> int:
        """Lets select() take the Connection directly."""
        return self.socket.fileno()

    # =========================================================================
    # STATE
    # =========================================================================

    def verify(self, name: str) -> None:
        """
        Register *name* and move to VERIFIED.

        Raises:
            ValidationError: If *name* is not an acceptable nickname.
            ProtocolStateError: If the connection is already verified.
        """
        if self.state is ConnectionState.VERIFIED:
            raise ProtocolStateError(f"[{self.id}] already verified as {self.nickname}")
        if not is_valid_name(name):
            raise ValidationError(f"Invalid nickname: {name!r}")
        self.nickname = name
        self.state = ConnectionState.VERIFIED

    # =========================================================================
    # READING
    # =========================================================================

    def recv_lines(self) -> Optional[List[bytes]]:
        """
        Read one chunk and return the complete lines it finished.

        Returns:
            A possibly empty list of lines, or None if the peer closed
            the connection.

        Raises:
            SocketError: If recv() fails.
        """
        try:
            chunk = self.socket.recv(self.buffer_size)
        except OSError as e:
            raise SocketError(f"[{self.id}] recv failed: {e}", operation="recv") from e

        if not chunk:
            return None

        self.last_activity = time.time()
        lines = self._lines.feed(chunk)
        self.lines_handled += len(lines)
        return lines

    def take_overflow(self) -> bool:
        """Return True once after an over-long partial line was discarded."""
        overflowed = self._lines.overflowed
        self._lines.overflowed = False
        return overflowed

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, message: Message) -> bool:
        """
        Encode and send one protocol message.

        Returns:
            True if the whole line was sent, False if the connection is
            gone. The caller decides whether that ends the connection.
        """
        return self.send_raw(encode(message))

    def send_raw(self, data: bytes) -> bool:
        """Send pre-encoded bytes; see send()."""
        if self._closed:
            return False
        try:
            # sendall() blocks until ALL data is sent or an error occurs
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.time()
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """Shut down and close the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        logger.debug(f"[{self.id}] Connection closed after {self.lines_handled} lines")
