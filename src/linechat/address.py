"""
=============================================================================
ADDRESSES AND SOCKET SETUP
=============================================================================

Turns a "<host>:<port>" string into a listening or connected socket.

    "localhost:5000"      host "localhost", port "5000"
    "10.0.0.7:5000"       host "10.0.0.7",  port "5000"
    "[::1]:5000"          host "::1",       port "5000"   (IPv6 literal)

Resolution uses getaddrinfo() with AF_UNSPEC, so the same code path works
for DNS names, IPv4 and IPv6. Every returned candidate is tried in order
until one binds (server) or connects (client).

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Without it, restarting the server right after stopping it fails with
    "Address already in use" while old sockets sit in TIME_WAIT.

TCP_NODELAY:
    Chat lines are tiny. Nagle's algorithm would hold them back waiting
    for more data; we want each line on the wire immediately.

=============================================================================
"""

import socket
import logging
from typing import List, Tuple

from .errors import AddressResolutionError, SocketError


logger = logging.getLogger(__name__)

AddrInfo = Tuple[int, int, int, str, tuple]


def parse_address_spec(spec: str) -> Tuple[str, str]:
    """
    Split "<host>:<port>" into (host, port).

    The port is returned as a string; getaddrinfo() accepts service names
    as well as numbers.

    Raises:
        AddressResolutionError: If either part is missing.
    """
    if spec.startswith("["):
        host, sep, rest = spec[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise AddressResolutionError(f"Invalid address {spec!r}")
        port = rest[1:]
    else:
        host, sep, port = spec.rpartition(":")
        if not sep:
            raise AddressResolutionError(f"Invalid address {spec!r}")

    if not host or not port:
        raise AddressResolutionError(f"Invalid address {spec!r}")
    return host, port


def resolve(host: str, port, passive: bool = False) -> List[AddrInfo]:
    """
    Resolve *host* and *port* to stream-socket candidates.

    Raises:
        AddressResolutionError: If the resolver returns nothing usable.
    """
    flags = socket.AI_PASSIVE if passive else 0
    try:
        candidates = socket.getaddrinfo(
            host, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, flags
        )
    except (socket.gaierror, UnicodeError) as e:
        raise AddressResolutionError(f"Failed to resolve {host}:{port}: {e}") from e

    if not candidates:
        raise AddressResolutionError(f"No addresses for {host}:{port}")
    return candidates


def create_listener(host: str, port, backlog: int = 100) -> socket.socket:
    """
    Bind and listen on the first candidate address that works.

    Raises:
        AddressResolutionError: If the address does not resolve.
        SocketError: If no candidate can be bound, or listen() fails.
    """
    last_error = None

    for family, socktype, proto, _, sockaddr in resolve(host, port, passive=True):
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            last_error = e
            continue

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            # Accepted sockets inherit this on Linux and the BSDs
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.bind(sockaddr)
        except OSError as e:
            logger.debug(f"Bind to {sockaddr} failed: {e}")
            last_error = e
            sock.close()
            continue
        break
    else:
        raise SocketError(f"Failed to bind {host}:{port}: {last_error}", operation="bind")

    try:
        sock.listen(backlog)
    except OSError as e:
        sock.close()
        raise SocketError(f"Failed to listen on {host}:{port}: {e}", operation="listen") from e

    return sock


def connect(host: str, port) -> socket.socket:
    """
    Connect to the first candidate address that accepts.

    Raises:
        AddressResolutionError: If the address does not resolve.
        SocketError: If every candidate refuses.
    """
    last_error = None

    for family, socktype, proto, _, sockaddr in resolve(host, port):
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            last_error = e
            continue

        try:
            sock.connect(sockaddr)
        except OSError as e:
            logger.debug(f"Connect to {sockaddr} failed: {e}")
            last_error = e
            sock.close()
            continue

        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass  # Not fatal; lines just may be coalesced
        return sock

    raise SocketError(f"Failed to connect to {host}:{port}: {last_error}", operation="connect")
