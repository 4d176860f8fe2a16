"""
Unit tests for the chat client.

The server side is the far end of a socketpair with its lines preloaded,
and user input comes from a pipe, so no real server is needed.
"""

import io
import os

import pytest

from linechat.client import ChatClient
from linechat.errors import HandshakeError, SocketError


@pytest.fixture
def pipe_input():
    """(input_stream, writer); bytes written to writer become the client's input."""
    r, w = os.pipe()
    stream = os.fdopen(r, "rb", buffering=0)
    writer = os.fdopen(w, "wb", buffering=0)
    yield stream, writer
    stream.close()
    if not writer.closed:
        writer.close()


@pytest.fixture
def make_client(socket_pairs, pipe_input):
    """Build a client over a socketpair; returns (client, server_side, writer, output)."""
    def build(nickname: str = "alice", preload: bytes = b""):
        server_side, client_side = socket_pairs()
        stream, writer = pipe_input
        output = io.StringIO()
        if preload:
            server_side.sendall(preload)
        client = ChatClient(client_side, nickname, input_stream=stream, output=output)
        return client, server_side, writer, output
    return build


def recv_all(sock, expected: bytes) -> bytes:
    data = b""
    sock.settimeout(2.0)
    while len(data) < len(expected):
        chunk = sock.recv(1024)
        if not chunk:
            break
        data += chunk
    return data


class TestHandshake:
    """Tests for ChatClient.handshake()."""

    def test_success(self, make_client):
        client, server_side, _, _ = make_client(preload=b"HELLO 1\nOK\n")

        client.handshake()

        assert client.verified is True
        assert recv_all(server_side, b"NICK alice\n") == b"NICK alice\n"

    def test_wrong_version(self, make_client):
        client, _, _, _ = make_client(preload=b"HELLO 2\n")

        with pytest.raises(HandshakeError):
            client.handshake()

    def test_garbled_greeting(self, make_client):
        client, _, _, _ = make_client(preload=b"WELCOME\n")

        with pytest.raises(HandshakeError):
            client.handshake()

    def test_name_refused(self, make_client):
        client, _, _, _ = make_client(preload=b"HELLO 1\nERR Invalid name!\n")

        with pytest.raises(HandshakeError, match="Invalid name!"):
            client.handshake()
        assert client.verified is False

    def test_invalid_local_name(self, make_client):
        """A name that could never pass is refused before it is sent."""
        client, _, _, _ = make_client(nickname="two words", preload=b"HELLO 1\n")

        with pytest.raises(HandshakeError):
            client.handshake()

    def test_server_closes(self, make_client):
        client, server_side, _, _ = make_client()
        server_side.close()

        with pytest.raises(SocketError):
            client.handshake()

    def test_run_requires_handshake(self, make_client):
        client, _, _, _ = make_client()

        with pytest.raises(HandshakeError):
            client.run()


class TestSession:
    """Tests for ChatClient.run()."""

    def test_input_lines_sent_as_msg(self, make_client):
        client, server_side, writer, _ = make_client(preload=b"HELLO 1\nOK\n")
        client.handshake()
        recv_all(server_side, b"NICK alice\n")

        writer.write(b"hello there\n\nsecond\n")
        writer.close()
        client.run()

        expected = b"MSG hello there\nMSG second\n"
        assert recv_all(server_side, expected) == expected

    def test_too_long_input_not_sent(self, make_client):
        client, server_side, writer, output = make_client(preload=b"HELLO 1\nOK\n")
        client.handshake()
        recv_all(server_side, b"NICK alice\n")

        writer.write(b"x" * 256 + b"\nshort\n")
        writer.close()
        client.run()

        assert recv_all(server_side, b"MSG short\n") == b"MSG short\n"
        assert "[ERROR] Message not sent" in output.getvalue()

    def test_broadcasts_displayed(self, make_client):
        """Other people's lines are printed; our own echo is not."""
        client, server_side, _, output = make_client(preload=b"HELLO 1\nOK\n")
        client.handshake()

        server_side.sendall(b"MSG bob hi there\nMSG alice my own\nERR Invalid message!\n")
        server_side.close()

        with pytest.raises(SocketError):
            client.run()

        assert output.getvalue() == "bob: hi there\n[ERROR] Invalid message!\n"

    def test_lines_arriving_with_ok(self, make_client):
        """A broadcast coalesced with the OK is still shown."""
        client, server_side, _, output = make_client(preload=b"HELLO 1\nOK\nMSG bob early\n")
        client.handshake()
        server_side.close()

        with pytest.raises(SocketError):
            client.run()

        assert output.getvalue() == "bob: early\n"

    def test_unparseable_server_line(self, make_client):
        client, server_side, _, output = make_client(preload=b"HELLO 1\nOK\n")
        client.handshake()

        server_side.sendall(b"MSG nospace\n")
        server_side.close()

        with pytest.raises(SocketError):
            client.run()

        assert output.getvalue() == "[ERROR] Failed to parse message from server\n"

    def test_server_closes(self, make_client):
        client, server_side, _, _ = make_client(preload=b"HELLO 1\nOK\n")
        client.handshake()
        server_side.close()

        with pytest.raises(SocketError, match="closed"):
            client.run()
