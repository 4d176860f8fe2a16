"""
=============================================================================
LINE PROTOCOL CODEC
=============================================================================

Converts between wire lines and typed message objects. No sockets here:
everything in this module is a pure function of its input, which is what
makes it easy to test exhaustively.

=============================================================================
THE WIRE FORMAT
=============================================================================

Every message is one line of text terminated by a single "\\n":

    Direction   Line                  Type
    ─────────   ───────────────────   ─────────
    S → C       HELLO 1               Hello
    C → S       NICK <name>           Nick
    S → C       OK                    Ok
    S → C       ERR <reason>          Err
    C → S       MSG <text>            Msg
    S → C       MSG <name> <text>     Broadcast

"MSG" means something different depending on who sent it, so decoding is
split by direction:

    decode_client_line()   what the SERVER reads  (Nick, Msg)
    decode_server_line()   what the CLIENT reads  (Hello, Ok, Err, Broadcast)

=============================================================================
BOUNDS
=============================================================================

    nickname   1-12 characters
    text       0-255 characters

Oversized input is rejected with ParseError. We never truncate a field,
because a truncated field can silently turn into a different message.

=============================================================================
"""

from dataclasses import dataclass
from typing import Union

from ..errors import ParseError, ValidationError
from .names import MAX_NICKNAME_LENGTH


PROTOCOL_VERSION = "1"
MAX_MESSAGE_LENGTH = 255
LINE_TERMINATOR = "\n"
ENCODING = "utf-8"

# Reasons the server puts in ERR replies
INVALID_NAME_REASON = "Invalid name!"
INVALID_MESSAGE_REASON = "Invalid message!"


# =============================================================================
# MESSAGE TYPES
# =============================================================================

@dataclass(frozen=True)
class Hello:
    """Protocol version announcement (server → client)."""
    version: str = PROTOCOL_VERSION


@dataclass(frozen=True)
class Nick:
    """Nickname registration attempt (client → server)."""
    name: str


@dataclass(frozen=True)
class Ok:
    """Registration accepted (server → client)."""


@dataclass(frozen=True)
class Err:
    """Request rejected (server → client)."""
    reason: str


@dataclass(frozen=True)
class Msg:
    """Chat message as sent by a client (client → server)."""
    text: str


@dataclass(frozen=True)
class Broadcast:
    """Chat message as relayed by the server (server → client)."""
    name: str
    text: str


Message = Union[Hello, Nick, Ok, Err, Msg, Broadcast]
ClientMessage = Union[Nick, Msg]
ServerMessage = Union[Hello, Ok, Err, Broadcast]


# =============================================================================
# ENCODING
# =============================================================================

def _check_field(value: str, what: str) -> None:
    if "\n" in value or "\r" in value:
        raise ValidationError(f"{what} must not contain a line break")


def _check_name(name: str) -> None:
    _check_field(name, "name")
    if not name or len(name) > MAX_NICKNAME_LENGTH or " " in name:
        raise ValidationError(
            f"name must be a single token of 1-{MAX_NICKNAME_LENGTH} characters"
        )


def _check_text(text: str) -> None:
    _check_field(text, "text")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"text is {len(text)} characters, limit is {MAX_MESSAGE_LENGTH}"
        )


def encode_line(message: Message) -> str:
    """
    Format *message* as a wire line, terminator included.

    Raises:
        ValidationError: If a field would not survive a round trip
                         (too long, embedded newline, empty name...).
    """
    if isinstance(message, Hello):
        _check_field(message.version, "version")
        line = f"HELLO {message.version}"
    elif isinstance(message, Nick):
        _check_name(message.name)
        line = f"NICK {message.name}"
    elif isinstance(message, Ok):
        line = "OK"
    elif isinstance(message, Err):
        _check_field(message.reason, "reason")
        line = f"ERR {message.reason}"
    elif isinstance(message, Msg):
        _check_text(message.text)
        line = f"MSG {message.text}"
    elif isinstance(message, Broadcast):
        _check_name(message.name)
        _check_text(message.text)
        line = f"MSG {message.name} {message.text}"
    else:
        raise TypeError(f"Not a protocol message: {message!r}")

    return line + LINE_TERMINATOR


def encode(message: Message) -> bytes:
    """Encode *message* as bytes ready for sendall()."""
    return encode_line(message).encode(ENCODING)


# =============================================================================
# DECODING
# =============================================================================

def _to_text(line: Union[str, bytes]) -> str:
    if isinstance(line, bytes):
        line = line.decode(ENCODING, errors="replace")
    # One terminator, optionally preceded by \r from telnet-style peers
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    if "\n" in line:
        raise ParseError("More than one line")
    if "\r" in line:
        raise ParseError("Carriage return inside a line")
    return line


def _decode_nick(body: str) -> Nick:
    tokens = body.split()
    if not tokens:
        raise ParseError("NICK without a name")
    if len(tokens) > 1:
        raise ParseError("NICK takes exactly one name")
    if len(tokens[0]) > MAX_NICKNAME_LENGTH:
        raise ParseError(f"Name longer than {MAX_NICKNAME_LENGTH} characters")
    return Nick(tokens[0])


def _decode_text(text: str) -> str:
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ParseError(f"Message longer than {MAX_MESSAGE_LENGTH} characters")
    return text


def decode_client_line(line: Union[str, bytes]) -> ClientMessage:
    """
    Decode a line sent by a client.

    Accepts "NICK <name>" and "MSG <text>".

    Raises:
        ParseError: If the line is neither, or breaks a length bound.
    """
    text = _to_text(line)

    if text.startswith("NICK "):
        return _decode_nick(text[len("NICK "):])
    if text == "NICK":
        raise ParseError("NICK without a name")
    if text.startswith("MSG "):
        return Msg(_decode_text(text[len("MSG "):]))

    raise ParseError(f"Unknown client message: {text[:20]!r}")


def decode_server_line(line: Union[str, bytes]) -> ServerMessage:
    """
    Decode a line sent by the server.

    Accepts "HELLO <version>", "OK", "ERR <reason>" and
    "MSG <name> <text>".

    Raises:
        ParseError: If the line matches none of them.
    """
    text = _to_text(line)

    if text == "OK":
        return Ok()

    if text.startswith("HELLO "):
        version = text[len("HELLO "):]
        if not version or " " in version:
            raise ParseError("Malformed HELLO")
        return Hello(version)

    if text.startswith("ERR "):
        return Err(text[len("ERR "):])

    if text.startswith("MSG "):
        # Name is the first token; the text is everything after ONE space,
        # so leading spaces inside the text are preserved.
        name, sep, body = text[len("MSG "):].partition(" ")
        if not sep or not name:
            raise ParseError("Broadcast without sender name")
        if len(name) > MAX_NICKNAME_LENGTH:
            raise ParseError(f"Name longer than {MAX_NICKNAME_LENGTH} characters")
        return Broadcast(name, _decode_text(body))

    raise ParseError(f"Unknown server message: {text[:20]!r}")
