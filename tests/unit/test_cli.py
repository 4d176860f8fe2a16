"""
Unit tests for the command-line entry points.
"""

import socket

import pytest

from linechat import __version__
from linechat.__main__ import build_parser, client_main, main, server_main


class TestParser:
    """Tests for argument parsing."""

    def test_server_arguments(self):
        args = build_parser().parse_args(
            ["server", "0.0.0.0:5000", "--max-clients", "20", "--log-format", "json"]
        )

        assert args.command == "server"
        assert args.address == "0.0.0.0:5000"
        assert args.max_clients == 20
        assert args.log_level == "INFO"
        assert args.log_format == "json"

    def test_client_arguments(self):
        args = build_parser().parse_args(["client", "[::1]:5000", "bob"])

        assert args.command == "client"
        assert args.address == "[::1]:5000"
        assert args.nickname == "bob"

    def test_missing_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert __version__ in capsys.readouterr().out


class TestFailures:
    """Fatal errors print one [ERROR] line and exit 1."""

    def test_server_bad_address(self, capsys):
        assert main(["server", "localhost"]) == 1
        captured = capsys.readouterr()
        assert captured.err.startswith("[ERROR] ")
        assert captured.out == ""

    def test_server_bad_port(self, capsys):
        assert server_main(["127.0.0.1:notaport"]) == 1
        assert capsys.readouterr().err.startswith("[ERROR] ")

    def test_server_bad_max_clients(self, capsys):
        assert main(["server", "127.0.0.1:0", "--max-clients", "0"]) == 1
        assert "max_clients" in capsys.readouterr().err

    def test_server_port_in_use(self, capsys):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]

            assert main(["server", f"127.0.0.1:{port}"]) == 1

        assert capsys.readouterr().err.splitlines()[-1].startswith("[ERROR] Failed to bind")

    def test_client_connection_refused(self, free_port, capsys):
        assert client_main([f"127.0.0.1:{free_port}", "alice"]) == 1
        assert capsys.readouterr().err.splitlines()[-1].startswith("[ERROR] Failed to connect")

    def test_client_bad_address(self, capsys):
        assert main(["client", "nowhere", "alice"]) == 1
        assert capsys.readouterr().err.startswith("[ERROR] ")
