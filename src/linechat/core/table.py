"""
=============================================================================
CONNECTION TABLE
=============================================================================

Fixed-capacity registry of live connections, keyed by slot number.

    slot:   0        1        2        3        4      ...   N-1
          ┌──────┬────────┬──────┬────────┬──────┬─────┬──────┐
          │alice │  free  │ bob  │ (unver)│ free │ ... │ free │
          └──────┴────────┴──────┴────────┴──────┴─────┴──────┘

- insert() takes the LOWEST free slot.
- remove() closes the socket and frees the slot; removing a free slot
  does nothing.
- Iteration is always in slot order, so broadcast fan-out order depends
  only on connection history, never on timing.

=============================================================================
OWNERSHIP
=============================================================================

There is no lock in this class, on purpose. The event loop thread is the
only code that ever touches the table. Everything else (signal handlers,
test threads calling shutdown()) talks to the loop through its wakeup
socket instead.

=============================================================================
"""

import logging
import socket
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import CapacityError
from .connection import Connection


logger = logging.getLogger(__name__)


class ConnectionTable:
    """
    Slot-indexed collection of Connection objects.

    Usage:
        table = ConnectionTable(capacity=100)
        slot = table.insert(Connection(sock, addr))
        table.mark_verified(slot, "alice")
        table.for_each_live(lambda slot, conn: conn.send(...))
        table.remove(slot)
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._slots: Dict[int, Connection] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._slots) >= self._capacity

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, slot: int) -> bool:
        return slot in self._slots

    # =========================================================================
    # MUTATION
    # =========================================================================

    def insert(self, connection: Connection) -> int:
        """
        Store *connection* in the lowest free slot.

        Returns:
            The slot number.

        Raises:
            CapacityError: If every slot is occupied. The table is left
                           unchanged and the caller must close the socket.
            ValueError: If the socket is already in the table.
        """
        if self.is_full:
            raise CapacityError(f"Connection table full ({self._capacity} slots)")

        if self.slot_of(connection.socket) is not None:
            raise ValueError(f"[{connection.id}] socket already registered")

        slot = next(i for i in range(self._capacity) if i not in self._slots)
        self._slots[slot] = connection
        return slot

    def remove(self, slot: int) -> Optional[Connection]:
        """
        Close the connection in *slot* and free the slot.

        Returns:
            The removed connection, or None if the slot was already free.
        """
        connection = self._slots.pop(slot, None)
        if connection is None:
            return None
        connection.close()
        return connection

    def mark_verified(self, slot: int, name: str) -> Connection:
        """
        Move the connection in *slot* to VERIFIED under *name*.

        Raises:
            KeyError: If the slot is free.
            ValidationError: If the name is not acceptable.
            ProtocolStateError: If the connection is already verified.
        """
        connection = self._slots[slot]
        connection.verify(name)
        return connection

    def close_all(self) -> int:
        """Remove every connection. Returns how many were closed."""
        slots = sorted(self._slots)
        for slot in slots:
            self.remove(slot)
        return len(slots)

    # =========================================================================
    # LOOKUP AND ITERATION
    # =========================================================================

    def get(self, slot: int) -> Optional[Connection]:
        return self._slots.get(slot)

    def slot_of(self, sock: socket.socket) -> Optional[int]:
        """Find the slot holding *sock*, or None."""
        for slot, connection in self._slots.items():
            if connection.socket is sock:
                return slot
        return None

    def live(self) -> List[Tuple[int, Connection]]:
        """Snapshot of (slot, connection) pairs in slot order."""
        return sorted(self._slots.items())

    def for_each_live(self, fn: Callable[[int, Connection], None]) -> None:
        """
        Call fn(slot, connection) for every occupied slot, in slot order.

        Works on a snapshot: fn may remove connections (including the one
        it was called with). A connection removed before its turn is
        skipped.
        """
        for slot, connection in self.live():
            if self._slots.get(slot) is connection:
                fn(slot, connection)
