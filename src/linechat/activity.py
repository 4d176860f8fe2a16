"""
=============================================================================
CONNECTION ACTIVITY LOG
=============================================================================

One structured log entry per thing that happens to a connection:

    accepted     New socket, HELLO sent, slot assigned
    rejected     Accepted but not stored (table full, HELLO failed)
    verified     NICK accepted
    refused      NICK or MSG rejected with ERR
    relayed      MSG broadcast to N connections
    closed       Slot freed (EOF, read error, failed send, shutdown)

=============================================================================
LOGGER CONFIGURATION
=============================================================================

Entries go to a namespaced logger so they can be routed separately from
the diagnostic logs:

    logging.getLogger("linechat.activity").setLevel(logging.WARNING)
    logging.getLogger("linechat.activity").addHandler(file_handler)

Two formats:

    text   2026-01-01T12:00:00 verified [3f2a91c0] slot=0 127.0.0.1:53122 alice
    json   {"event": "verified", "connection_id": "3f2a91c0", ...}

Message bodies are never part of an entry.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .core.connection import Connection


logger = logging.getLogger("linechat.activity")

LOG_FORMATS = ("text", "json")


@dataclass
class ActivityLog:
    """Structured log entry for one connection event."""

    event: str
    connection_id: str
    peer: str
    slot: Optional[int]
    nickname: Optional[str]
    detail: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "event": self.event,
            "connection_id": self.connection_id,
            "peer": self.peer,
            "slot": self.slot,
            "nickname": self.nickname,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        parts = [self.timestamp, self.event, f"[{self.connection_id}]"]
        if self.slot is not None:
            parts.append(f"slot={self.slot}")
        parts.append(self.peer)
        if self.nickname:
            parts.append(self.nickname)
        if self.detail:
            parts.append(f"- {self.detail}")
        return " ".join(parts)


class ActivityLogger:
    """
    Emits ActivityLog entries for the server.

    Args:
        log_format: "text" (human readable) or "json" (one object per line).
        log_level: Level the entries are logged at.
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
        self.log_format = log_format
        self.log_level = log_level

    def build(
        self,
        event: str,
        connection: "Connection",
        slot: Optional[int] = None,
        detail: str = "",
    ) -> ActivityLog:
        return ActivityLog(
            event=event,
            connection_id=connection.id,
            peer=connection.peer,
            slot=slot,
            nickname=connection.nickname,
            detail=detail,
            timestamp=time.strftime("%Y-%m-%dT%H:%M:%S"),
        )

    def emit(
        self,
        event: str,
        connection: "Connection",
        slot: Optional[int] = None,
        detail: str = "",
    ) -> ActivityLog:
        entry = self.build(event, connection, slot, detail)
        if not logger.isEnabledFor(self.log_level):
            return entry

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
        return entry
