"""
=============================================================================
LINECHAT - Single-Process Multi-Client Line Chat
=============================================================================

A chat relay built on raw sockets and select(). One server thread accepts
TCP connections, walks each through a two-step handshake, and relays
every accepted message to everyone connected.

=============================================================================
THE PROTOCOL IN ONE PICTURE
=============================================================================

    client                                   server
      │                                         │
      │ ◄──────────────────────────── HELLO 1   │  on accept
      │   NICK alice ─────────────────────────► │
      │ ◄───────────────────────────────── OK   │  (or ERR Invalid name!)
      │   MSG hi ─────────────────────────────► │
      │ ◄────────────────────── MSG alice hi    │  to EVERY connection
      │                                         │

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    linechat/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m linechat)
    ├── server.py            # ChatServer: config + logging + event loop
    ├── client.py            # ChatClient: handshake + session loop
    ├── config.py            # ServerConfig / ClientConfig dataclasses
    ├── address.py           # <host>:<port> parsing, bind, connect
    ├── activity.py          # Structured connection activity log
    ├── errors.py            # Exception hierarchy
    ├── core/                # Server machinery
    │   ├── connection.py    # One client socket + handshake state
    │   ├── table.py         # Fixed-capacity slot table
    │   ├── handler.py       # Per-line state machine and broadcast
    │   └── event_loop.py    # select() loop
    └── protocol/            # Pure protocol code, no sockets
        ├── codec.py         # Wire lines <-> message objects
        ├── names.py         # Nickname validation
        └── framing.py       # Byte stream -> lines

=============================================================================
QUICK START
=============================================================================

    from linechat import ChatServer, ServerConfig

    server = ChatServer(ServerConfig(host="0.0.0.0", port=5000))
    server.run()  # Blocks until Ctrl+C

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, ClientConfig
from .server import ChatServer
from .client import ChatClient

__all__ = ["ChatServer", "ChatClient", "ServerConfig", "ClientConfig", "__version__"]
