"""
=============================================================================
LINECHAT CLI ENTRY POINT
=============================================================================

    # Run a server on all interfaces, port 5000
    python -m linechat server 0.0.0.0:5000

    # Join it as "alice"
    python -m linechat client localhost:5000 alice

    # Installed console scripts do the same
    linechat-server 0.0.0.0:5000 --max-clients 20
    linechat-client [::1]:5000 bob

Any failure that ends the process prints a single "[ERROR] ..." line on
stderr and exits with status 1. These fatal lines go to stderr, not stdout.
In-session "[ERROR] ..." lines from the client stay on stdout with the chat.

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .address import parse_address_spec
from .client import ChatClient
from .config import LOG_LEVELS, ClientConfig, ServerConfig
from .errors import ChatError
from .server import ChatServer


def _fail(message: str) -> int:
    print(f"[ERROR] {message}", file=sys.stderr)
    return 1


def _add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "address",
        help="Address to listen on, as <DNS|IPv4|[IPv6]>:<port>"
    )
    parser.add_argument(
        "--max-clients", "-m",
        type=int,
        default=100,
        help="Number of simultaneous connections (default: 100)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Activity log format (default: text)"
    )


def _add_client_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "address",
        help="Server address, as <DNS|IPv4|[IPv6]>:<port>"
    )
    parser.add_argument(
        "nickname",
        help="Name to chat as: 1-12 of A-Z a-z 0-9 _"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging level (default: WARNING)"
    )


def run_server(args: argparse.Namespace) -> int:
    try:
        host, port = parse_address_spec(args.address)
        config = ServerConfig(
            host=host,
            port=int(port),
            max_clients=args.max_clients,
            log_level=args.log_level,
            log_format=args.log_format,
        )
        ChatServer(config).run()
    except (ChatError, ValueError) as e:
        return _fail(str(e))
    return 0


def run_client(args: argparse.Namespace) -> int:
    try:
        host, port = parse_address_spec(args.address)
        config = ClientConfig(host=host, port=int(port), nickname=args.nickname, log_level=args.log_level)
        config.validate()
    except (ChatError, ValueError) as e:
        return _fail(str(e))

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        with ChatClient.connect(config) as client:
            client.handshake()
            print(f"Connected as {config.nickname}. Type a message and press Enter.", flush=True)
            client.run()
    except ChatError as e:
        return _fail(str(e))
    except KeyboardInterrupt:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linechat",
        description="Minimal multi-client line-based chat",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"linechat {__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    server = commands.add_parser("server", help="Run the chat server")
    _add_server_arguments(server)
    server.set_defaults(func=run_server)

    client = commands.add_parser("client", help="Join a chat server")
    _add_client_arguments(client)
    client.set_defaults(func=run_client)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


def server_main(argv: Optional[List[str]] = None) -> int:
    """Console script: linechat-server."""
    parser = argparse.ArgumentParser(prog="linechat-server", description="Run the chat server")
    _add_server_arguments(parser)
    return run_server(parser.parse_args(argv))


def client_main(argv: Optional[List[str]] = None) -> int:
    """Console script: linechat-client."""
    parser = argparse.ArgumentParser(prog="linechat-client", description="Join a chat server")
    _add_client_arguments(parser)
    return run_client(parser.parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
