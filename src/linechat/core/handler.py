"""
=============================================================================
PROTOCOL HANDLER
=============================================================================

Per-line protocol logic. The event loop hands every complete line it
reads to handle_line(); this module decides what the line means for the
connection that sent it.

=============================================================================
DISPATCH BY STATE
=============================================================================

    ┌──────────────┬──────────────────┬────────────────────────────────────┐
    │ State        │ Line             │ Effect                              │
    ├──────────────┼──────────────────┼────────────────────────────────────┤
    │ UNVERIFIED   │ NICK <valid>     │ → VERIFIED, reply OK                │
    │ UNVERIFIED   │ anything else    │ reply ERR Invalid name!             │
    │ VERIFIED     │ MSG <text>       │ broadcast MSG <nick> <text> to ALL  │
    │ VERIFIED     │ anything else    │ reply ERR Invalid message!          │
    └──────────────┴──────────────────┴────────────────────────────────────┘

A reply that cannot be sent removes the connection. During a broadcast a
failed send removes only the connection it failed on; the remaining
connections still get the message.

=============================================================================
"""

import logging
from typing import Optional

from ..activity import ActivityLogger
from ..errors import ParseError, ValidationError
from ..protocol.codec import (
    INVALID_MESSAGE_REASON,
    INVALID_NAME_REASON,
    Broadcast,
    Err,
    Message,
    Msg,
    Nick,
    Ok,
    decode_client_line,
    encode,
)
from ..protocol.names import is_valid_name
from .connection import Connection
from .table import ConnectionTable


logger = logging.getLogger(__name__)


class ProtocolHandler:
    """
    Applies the handshake state machine and relays chat messages.

    The handler never owns connections; it only reads and mutates them
    through the table it was given, on the event loop's thread.
    """

    def __init__(self, table: ConnectionTable, activity: Optional[ActivityLogger] = None):
        self.table = table
        self.activity = activity or ActivityLogger()

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def handle_line(self, slot: int, line: bytes) -> None:
        """Process one complete line received on *slot*."""
        connection = self.table.get(slot)
        if connection is None:
            return  # Removed earlier in this iteration

        if connection.is_verified:
            self._handle_verified(slot, connection, line)
        else:
            self._handle_unverified(slot, connection, line)

    def handle_overflow(self, slot: int) -> None:
        """A partial line grew past the limit and was discarded."""
        connection = self.table.get(slot)
        if connection is None:
            return
        reason = INVALID_MESSAGE_REASON if connection.is_verified else INVALID_NAME_REASON
        self.activity.emit("refused", connection, slot, "line too long")
        self._reply(slot, connection, Err(reason))

    # =========================================================================
    # STATE: UNVERIFIED
    # =========================================================================

    def _handle_unverified(self, slot: int, connection: Connection, line: bytes) -> None:
        try:
            message = decode_client_line(line)
            if not isinstance(message, Nick):
                raise ParseError("Expected NICK")
            if not is_valid_name(message.name):
                raise ValidationError(f"Invalid nickname: {message.name!r}")
        except (ParseError, ValidationError) as e:
            self.activity.emit("refused", connection, slot, str(e))
            self._reply(slot, connection, Err(INVALID_NAME_REASON))
            return

        self.table.mark_verified(slot, message.name)
        self.activity.emit("verified", connection, slot)
        self._reply(slot, connection, Ok())

    # =========================================================================
    # STATE: VERIFIED
    # =========================================================================

    def _handle_verified(self, slot: int, connection: Connection, line: bytes) -> None:
        try:
            message = decode_client_line(line)
            if not isinstance(message, Msg):
                raise ParseError("Expected MSG")
            # encode() runs before any send, so a refused relay reaches nobody
            delivered = self.broadcast(Broadcast(connection.nickname, message.text))
        except (ParseError, ValidationError) as e:
            self.activity.emit("refused", connection, slot, str(e))
            self._reply(slot, connection, Err(INVALID_MESSAGE_REASON))
            return

        self.activity.emit("relayed", connection, slot, f"delivered={delivered}")

    def broadcast(self, message: Message) -> int:
        """
        Send *message* to every live connection, in slot order.

        Returns:
            Number of connections the line was delivered to.
        """
        data = encode(message)
        delivered = 0

        def deliver(slot: int, connection: Connection) -> None:
            nonlocal delivered
            if connection.send_raw(data):
                delivered += 1
            else:
                self._drop(slot, connection, "broadcast send failed")

        self.table.for_each_live(deliver)
        return delivered

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _reply(self, slot: int, connection: Connection, message: Message) -> bool:
        if connection.send(message):
            return True
        self._drop(slot, connection, "reply send failed")
        return False

    def _drop(self, slot: int, connection: Connection, reason: str) -> None:
        self.table.remove(slot)
        self.activity.emit("closed", connection, slot, reason)
