"""
=============================================================================
LINE REASSEMBLY
=============================================================================

TCP is a byte stream, not a message protocol. One recv() can return half
a line, or three lines glued together:

    Client sends:
        send("NICK alice\\n")
        send("MSG hi\\n")

    Server might receive ANY of these:
        recv() → "NICK alice\\nMSG hi\\n"     (both combined)
        recv() → "NICK al"                   (partial)
        recv() → "ice\\nMSG hi\\n"             (rest of first + second)

LineBuffer accumulates chunks and hands back only complete lines. A
partial line stays buffered until its terminator arrives, up to
max_line_length bytes; beyond that the pending bytes are dropped and the
caller is told the line overflowed.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import List


DEFAULT_MAX_LINE_LENGTH = 1024


@dataclass
class LineBuffer:
    """
    Accumulates raw bytes and splits them into newline-terminated lines.

    Attributes:
        max_line_length: Longest partial line we are willing to hold.
        overflowed: Set by feed() when pending bytes were discarded.
                    The caller reads and resets it.
    """

    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    overflowed: bool = False
    _pending: bytearray = field(default_factory=bytearray, repr=False)

    def feed(self, chunk: bytes) -> List[bytes]:
        """
        Add *chunk* and return every line it completed.

        Returned lines keep their trailing b"\\n" so the codec sees
        exactly what was on the wire.
        """
        self._pending.extend(chunk)
        lines: List[bytes] = []

        while True:
            end = self._pending.find(b"\n")
            if end < 0:
                break
            lines.append(bytes(self._pending[:end + 1]))
            del self._pending[:end + 1]

        if len(self._pending) > self.max_line_length:
            self._pending.clear()
            self.overflowed = True

        return lines

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete line."""
        return len(self._pending)

    def clear(self) -> None:
        self._pending.clear()
        self.overflowed = False
