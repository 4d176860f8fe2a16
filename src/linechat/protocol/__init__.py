"""
=============================================================================
PROTOCOL COMPONENTS
=============================================================================

Everything that knows what a chat line looks like, and nothing that
touches a socket:

    codec.py     Wire line <-> typed message
    names.py     Nickname format check
    framing.py   Byte stream -> complete lines

=============================================================================
"""

from .codec import (
    PROTOCOL_VERSION,
    MAX_MESSAGE_LENGTH,
    INVALID_NAME_REASON,
    INVALID_MESSAGE_REASON,
    Hello,
    Nick,
    Ok,
    Err,
    Msg,
    Broadcast,
    encode,
    encode_line,
    decode_client_line,
    decode_server_line,
)
from .names import MAX_NICKNAME_LENGTH, is_valid_name
from .framing import LineBuffer

__all__ = [
    "PROTOCOL_VERSION",
    "MAX_MESSAGE_LENGTH",
    "MAX_NICKNAME_LENGTH",
    "INVALID_NAME_REASON",
    "INVALID_MESSAGE_REASON",
    "Hello",
    "Nick",
    "Ok",
    "Err",
    "Msg",
    "Broadcast",
    "encode",
    "encode_line",
    "decode_client_line",
    "decode_server_line",
    "is_valid_name",
    "LineBuffer",
]
