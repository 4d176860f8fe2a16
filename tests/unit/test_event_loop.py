"""
Unit tests for the accept step of the event loop.

The listener is a stand-in whose accept() hands out socketpair ends or
fails on demand, so each recovery path can be driven directly.
"""

import logging
import socket

import pytest

from linechat.core import EventLoop


def read_line(sock: socket.socket, timeout: float = 2.0) -> bytes:
    """Read from *sock* up to and including the next newline."""
    sock.settimeout(timeout)
    data = b""
    while not data.endswith(b"\n"):
        chunk = sock.recv(1)
        if not chunk:
            break
        data += chunk
    return data


class FakeListener:
    """Listener whose accept() returns queued results in order."""

    def __init__(self):
        self.results = []
        self.closed = False

    def accept(self):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


@pytest.fixture
def loop_with_peers(table_with_peers):
    loops = []

    def build(n: int, capacity: int = 8):
        table, peers = table_with_peers(n, capacity)
        loop = EventLoop(FakeListener(), table, install_signal_handlers=False)
        loops.append(loop)
        return loop, peers

    yield build

    for loop in loops:
        loop._cleanup()


class TestAccept:
    """Tests for EventLoop._accept()."""

    def test_new_connection_greeted_and_stored(self, loop_with_peers, socket_pairs):
        loop, _ = loop_with_peers(1)
        server_side, client_side = socket_pairs()
        loop.listener.results.append((server_side, ("127.0.0.1", 4000)))

        slot = loop._accept()

        assert slot == 1
        assert read_line(client_side) == b"HELLO 1\n"
        assert loop.table.get(1).socket is server_side

    def test_accept_error_keeps_sessions(self, loop_with_peers, caplog):
        """A failed accept() is logged and existing sessions keep relaying."""
        loop, peers = loop_with_peers(2)
        loop.handler.handle_line(0, b"NICK alice\n")
        assert read_line(peers[0]) == b"OK\n"
        loop.listener.results.append(OSError("too many open files"))

        with caplog.at_level(logging.ERROR, logger="linechat.core.event_loop"):
            assert loop._accept() is None

        assert "Accept error" in caplog.text
        assert len(loop.table) == 2

        loop.handler.handle_line(0, b"MSG still here\n")
        assert read_line(peers[0]) == b"MSG alice still here\n"
        assert read_line(peers[1]) == b"MSG alice still here\n"

    def test_hello_failure_not_stored(self, loop_with_peers, socket_pairs):
        """A socket that cannot take the greeting is closed, never stored."""
        loop, _ = loop_with_peers(1)
        server_side, client_side = socket_pairs()
        client_side.close()
        loop.listener.results.append((server_side, ("127.0.0.1", 4001)))

        assert loop._accept() is None

        assert len(loop.table) == 1
        assert loop.table.slot_of(server_side) is None
        assert server_side.fileno() == -1

    def test_table_full_closes_new_socket(self, loop_with_peers, socket_pairs):
        loop, _ = loop_with_peers(2, capacity=2)
        server_side, client_side = socket_pairs()
        loop.listener.results.append((server_side, ("127.0.0.1", 4002)))

        assert loop._accept() is None

        assert read_line(client_side) == b"HELLO 1\n"
        assert client_side.recv(16) == b""
        assert len(loop.table) == 2
