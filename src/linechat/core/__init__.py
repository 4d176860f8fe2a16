"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The server-side machinery, leaf first:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Wraps one client socket                                           │
    │  • Holds the handshake state (UNVERIFIED → VERIFIED) and nickname    │
    │  • Reassembles lines from the byte stream                            │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       CONNECTION TABLE                               │
    │  • Fixed number of slots, lowest free slot first                     │
    │  • Slot-ordered iteration for deterministic broadcast                │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       PROTOCOL HANDLER                               │
    │  • NICK while UNVERIFIED, MSG while VERIFIED, ERR for the rest       │
    │  • Broadcast fan-out through the table                               │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          EVENT LOOP                                  │
    │  • select() over listener + every live connection                    │
    │  • The ONLY thread that touches the table                            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState
from .table import ConnectionTable
from .handler import ProtocolHandler
from .event_loop import EventLoop

__all__ = [
    "Connection",
    "ConnectionState",
    "ConnectionTable",
    "ProtocolHandler",
    "EventLoop",
]
