"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the chat service can report derives from ChatError, so
callers can catch "anything chat-related" in one place (the CLI does) and
still tell the cases apart when they need to.

=============================================================================
WHO IS FATAL, WHO IS NOT
=============================================================================

    ┌──────────────────────────┬───────────────────────────────────────┐
    │ Error                    │ Effect                                 │
    ├──────────────────────────┼───────────────────────────────────────┤
    │ AddressResolutionError   │ Startup fails, process exits          │
    │ SocketError (bind/listen)│ Startup fails, process exits          │
    │ SocketError (send/recv)  │ That one connection is torn down      │
    │ ParseError               │ ERR reply to the sender               │
    │ ValidationError          │ ERR reply to the sender               │
    │ CapacityError            │ The new socket is closed              │
    │ ProtocolStateError       │ Programming error in the handler      │
    │ HandshakeError           │ Client session ends                   │
    └──────────────────────────┴───────────────────────────────────────┘

=============================================================================
"""


class ChatError(Exception):
    """Base class for all linechat errors."""


class AddressResolutionError(ChatError):
    """Raised when a <host>:<port> spec is malformed or does not resolve."""


class SocketError(ChatError):
    """
    Raised when a socket operation fails.

    The failing operation ("bind", "accept", "send", ...) is kept on the
    exception so log lines can say what went wrong without string parsing.
    """

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class ParseError(ChatError):
    """Raised when a wire line does not match any expected message shape."""


class ValidationError(ChatError):
    """Raised when a field (nickname, message text) breaks its bounds."""


class CapacityError(ChatError):
    """Raised when the connection table has no free slot."""


class ProtocolStateError(ChatError):
    """Raised on an illegal handshake transition (e.g. verifying twice)."""


class HandshakeError(ChatError):
    """Raised by the client when the server refuses or garbles the handshake."""
