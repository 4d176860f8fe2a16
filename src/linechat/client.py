"""
=============================================================================
CHAT CLIENT
=============================================================================

The client side of the protocol: connect, handshake, then shuttle lines
between the keyboard and the server.

=============================================================================
SESSION FLOW
=============================================================================

    connect()
       │
       ▼
    read "HELLO 1"  ── anything else ──► HandshakeError
       │
       ▼
    send "NICK <name>"
       │
       ▼
    read reply      ── "ERR ..." ──────► HandshakeError
       │ "OK"
       ▼
    ┌──────────────────── run() ─────────────────────┐
    │ select([input, socket])                        │
    │                                                │
    │  input ready   → "MSG <line>" to server        │
    │                  (input EOF ends the session)  │
    │                                                │
    │  socket ready  → "MSG <name> <text>"           │
    │                  name == ours? stay quiet      │
    │                  otherwise print name: text    │
    │                  (EOF / error → SocketError)   │
    └────────────────────────────────────────────────┘

The server echoes our own messages back to us; we recognise them by
nickname only, so another client using the same name is silenced too.

=============================================================================
"""

import os
import sys
import select
import socket
import logging
from collections import deque
from typing import Deque, Optional, TextIO

from .address import connect
from .config import ClientConfig
from .errors import HandshakeError, ParseError, SocketError, ValidationError
from .protocol.codec import (
    PROTOCOL_VERSION,
    MAX_MESSAGE_LENGTH,
    Broadcast,
    Err,
    Hello,
    Msg,
    Nick,
    Ok,
    decode_server_line,
    encode,
)
from .protocol.framing import LineBuffer


logger = logging.getLogger(__name__)


class ChatClient:
    """
    One chat session over an already-connected socket.

    Args:
        sock: Connected stream socket.
        nickname: Name to register with.
        input_stream: Where user lines come from (needs fileno()).
        output: Where chat lines and errors are printed.
        buffer_size: Bytes per read, for both sources.

    Usage:
        with ChatClient(sock, "alice") as client:
            client.handshake()
            client.run()
    """

    def __init__(
        self,
        sock: socket.socket,
        nickname: str,
        input_stream=None,
        output: Optional[TextIO] = None,
        buffer_size: int = 1024,
    ):
        self.sock = sock
        self.nickname = nickname
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        self.output = output if output is not None else sys.stdout
        self.buffer_size = buffer_size
        self.verified = False

        self._server_lines = LineBuffer()
        # "MSG " + text + "\n", anything longer cannot be sent anyway
        self._input_lines = LineBuffer(max_line_length=max(buffer_size, MAX_MESSAGE_LENGTH + 1))
        self._pending: Deque[bytes] = deque()

    @classmethod
    def connect(cls, config: ClientConfig, **kwargs) -> "ChatClient":
        """Open a connection described by *config*."""
        sock = connect(config.host, config.port)
        logger.info(f"Connected to {config.host}:{config.port}")
        return cls(sock, config.nickname, buffer_size=config.buffer_size, **kwargs)

    # =========================================================================
    # HANDSHAKE
    # =========================================================================

    def handshake(self) -> None:
        """
        Check the protocol version and register our nickname.

        Raises:
            HandshakeError: Wrong protocol, or the name was refused.
            SocketError: The connection failed mid-handshake.
        """
        line = self._read_line()
        try:
            hello = decode_server_line(line)
        except ParseError as e:
            raise HandshakeError(f"Unsupported protocol: {e}") from e
        if hello != Hello(PROTOCOL_VERSION):
            raise HandshakeError(f"Unsupported protocol: {line!r}")
        logger.debug("Protocol supported, sending nickname")

        try:
            data = encode(Nick(self.nickname))
        except ValidationError as e:
            raise HandshakeError(f"Name was not accepted: {e}") from e
        self._send(data)

        reply = self._read_line()
        try:
            message = decode_server_line(reply)
        except ParseError as e:
            raise HandshakeError(f"Unexpected reply to NICK: {reply!r}") from e

        if isinstance(message, Err):
            raise HandshakeError(f"Name was not accepted: {message.reason}")
        if not isinstance(message, Ok):
            raise HandshakeError(f"Unexpected reply to NICK: {reply!r}")

        self.verified = True
        logger.info(f"Name accepted: {self.nickname}")

    # =========================================================================
    # SESSION
    # =========================================================================

    def run(self) -> None:
        """
        Exchange chat lines until input ends.

        Raises:
            SocketError: The server closed the connection or I/O failed.
        """
        if not self.verified:
            raise HandshakeError("handshake() must succeed before run()")

        # Lines that arrived together with the OK
        while self._pending:
            self._display(self._pending.popleft())

        input_fd = self.input_stream.fileno()

        while True:
            try:
                readable, _, _ = select.select([input_fd, self.sock], [], [])
            except (OSError, ValueError) as e:
                raise SocketError(f"select failed: {e}", operation="select") from e

            if input_fd in readable and not self._pump_input(input_fd):
                logger.info("End of input, leaving chat")
                return

            if self.sock in readable:
                self._pump_socket()

    def _pump_input(self, fd: int) -> bool:
        """Send every complete input line. False once input is exhausted."""
        data = os.read(fd, self.buffer_size)
        if not data:
            return False

        for raw in self._input_lines.feed(data):
            text = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if not text:
                continue
            try:
                payload = encode(Msg(text))
            except ValidationError as e:
                self._error(f"Message not sent: {e}")
                continue
            self._send(payload)

        if self._input_lines.overflowed:
            self._input_lines.overflowed = False
            self._error(f"Message not sent: longer than {MAX_MESSAGE_LENGTH} characters")

        return True

    def _pump_socket(self) -> None:
        for line in self._server_lines.feed(self._recv()):
            self._display(line)

    def _display(self, line: bytes) -> None:
        try:
            message = decode_server_line(line)
        except ParseError:
            self._error("Failed to parse message from server")
            return

        if isinstance(message, Broadcast):
            if message.name == self.nickname:
                return  # Our own message coming back
            self._print(f"{message.name}: {message.text}")
        elif isinstance(message, Err):
            self._error(message.reason)
        else:
            self._error(f"Unexpected message from server: {line!r}")

    # =========================================================================
    # I/O HELPERS
    # =========================================================================

    def _recv(self) -> bytes:
        try:
            chunk = self.sock.recv(self.buffer_size)
        except OSError as e:
            raise SocketError(f"Failed to read from server: {e}", operation="recv") from e
        if not chunk:
            raise SocketError("Server closed the connection", operation="recv")
        return chunk

    def _read_line(self) -> bytes:
        while not self._pending:
            self._pending.extend(self._server_lines.feed(self._recv()))
        return self._pending.popleft()

    def _send(self, data: bytes) -> None:
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise SocketError(f"Failed to send to server: {e}", operation="send") from e

    def _print(self, text: str) -> None:
        print(text, file=self.output, flush=True)

    def _error(self, text: str) -> None:
        self._print(f"[ERROR] {text}")

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
