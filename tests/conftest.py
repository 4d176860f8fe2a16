"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from collections import deque
from typing import Callable, Deque, Generator, List, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from linechat import ChatServer, ServerConfig
from linechat.core import Connection, ConnectionTable
from linechat.protocol import LineBuffer


def wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll *condition* until it holds or *timeout* expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def socket_pairs() -> Generator[Callable[[], Tuple[socket.socket, socket.socket]], None, None]:
    """Factory for connected socket pairs, all closed after the test."""
    created: List[socket.socket] = []

    def make() -> Tuple[socket.socket, socket.socket]:
        server_side, client_side = socket.socketpair()
        client_side.settimeout(2.0)
        created.extend((server_side, client_side))
        return server_side, client_side

    yield make

    for sock in created:
        sock.close()


@pytest.fixture
def table_with_peers(socket_pairs):
    """
    Build a ConnectionTable holding *n* connections.

    Returns (table, peers) where peers[i] is the far end of slot i.
    """
    def build(n: int, capacity: int = 8):
        table = ConnectionTable(capacity)
        peers = []
        for i in range(n):
            server_side, client_side = socket_pairs()
            slot = table.insert(Connection(socket=server_side, address=("peer", i)))
            assert slot == i
            peers.append(client_side)
        return table, peers

    return build


class ChatPeer:
    """Raw-socket test client that speaks the wire protocol by hand."""

    def __init__(self, port: int):
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=5.0)
        self._lines = LineBuffer()
        self._pending: Deque[bytes] = deque()

    def send(self, data: str) -> None:
        self.sock.sendall(data.encode())

    def read_line(self) -> str:
        while not self._pending:
            chunk = self.sock.recv(1024)
            if not chunk:
                raise ConnectionError("server closed the connection")
            self._pending.extend(self._lines.feed(chunk))
        return self._pending.popleft().decode()

    def is_closed_by_server(self) -> bool:
        try:
            return self.sock.recv(1024) == b""
        except ConnectionResetError:
            return True

    def register(self, name: str) -> "ChatPeer":
        assert self.read_line() == "HELLO 1\n"
        self.send(f"NICK {name}\n")
        assert self.read_line() == "OK\n"
        return self

    def close(self) -> None:
        self.sock.close()


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class despite the name

    def __init__(self, server: ChatServer):
        self.server = server
        self.server.bind()
        self.port = self.server.address[1]
        self._thread: threading.Thread = None
        self._peers: List[ChatPeer] = []

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        assert wait_for(lambda: self.server.is_running)

    def wait_for(self, condition: Callable[[], bool], timeout: float = 5.0) -> bool:
        return wait_for(condition, timeout)

    def connect(self) -> ChatPeer:
        peer = ChatPeer(self.port)
        self._peers.append(peer)
        return peer

    def stop(self):
        """Stop the server."""
        for peer in self._peers:
            peer.close()
        self.server.shutdown()
        self.server.wait_for_shutdown(timeout=5.0)

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def server_config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        max_clients=4,
        install_signal_handlers=False,
        log_level="WARNING",
    )


@pytest.fixture
def test_server(server_config: ServerConfig) -> Generator[TestServer, None, None]:
    """Create a running chat server."""
    test_srv = TestServer(ChatServer(server_config))
    test_srv.start()

    yield test_srv

    test_srv.stop()
