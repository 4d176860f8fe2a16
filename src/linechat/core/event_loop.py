"""
=============================================================================
MULTIPLEXED EVENT LOOP
=============================================================================

This module is the heart of the server: ONE thread services the listening
socket and every client socket, without ever blocking on a single one.

=============================================================================
READINESS MULTIPLEXING
=============================================================================

Instead of one thread per client, we ask the OS which sockets have
something to read and only touch those:

    select([wakeup, listener, conn0, conn1, conn2, ...])
        │
        └──► returns the subset that is readable
                │
                ├── listener readable?  → accept ONE connection
                │
                └── otherwise, for each readable conn (slot order):
                        recv() one chunk
                        ├── b""        → peer closed → remove
                        ├── OSError    → remove
                        └── data       → complete lines → ProtocolHandler

Because every state change happens on this one thread, the connection
table needs no locks. Keep it that way: anything that wants to influence
the loop from outside (signal handler, another thread) goes through the
wakeup socket, never through the table.

=============================================================================
WAKEUP SOCKET
=============================================================================

select() with no timeout can wait forever. shutdown() therefore writes a
byte into one end of a socketpair whose other end is always part of the
readiness set; the loop wakes up, sees the stop flag, and cleans up.

    shutdown()  ──► _wakeup_w.send(b"\\0")
                         │
                         ▼
    select() returns _wakeup_r readable ──► drain ──► stop flag set ──► exit

=============================================================================
FAILURE POLICY
=============================================================================

    accept() fails          log, keep serving existing sessions
    HELLO send fails        close the new socket, do not store it
    table full              close the new socket, existing sessions unaffected
    recv() fails / EOF      remove that one connection
    select() itself fails   fatal: raise SocketError

=============================================================================
"""

import select
import signal
import socket
import logging
import threading
from typing import List, Optional, Set, Tuple

from ..activity import ActivityLogger
from ..errors import CapacityError, SocketError
from ..protocol.codec import Hello
from ..protocol.framing import DEFAULT_MAX_LINE_LENGTH
from .connection import Connection
from .handler import ProtocolHandler
from .table import ConnectionTable


logger = logging.getLogger(__name__)


class EventLoop:
    """
    Single-threaded select() loop over a bound, listening socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        EventLoop Internals                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    run()              Blocks until shutdown()                        │
    │        │                                                             │
    │        ├──► _setup_signals()   SIGTERM/SIGINT → shutdown()           │
    │        │                                                             │
    │        └──► while not stopped:                                       │
    │                 run_once()                                           │
    │                     ├──► _wait()      select() on all sockets        │
    │                     ├──► _accept()    listener readable              │
    │                     └──► _service()   client sockets readable        │
    │                                                                      │
    │    _cleanup()         Close every connection, the listener,          │
    │                       the wakeup pair; restore signal handlers       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        loop = EventLoop(listener, ConnectionTable(100))
        loop.run()  # Blocks until shutdown
    """

    def __init__(
        self,
        listener: socket.socket,
        table: ConnectionTable,
        handler: Optional[ProtocolHandler] = None,
        activity: Optional[ActivityLogger] = None,
        buffer_size: int = 1024,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        select_timeout: Optional[float] = None,
        install_signal_handlers: bool = True,
    ):
        """
        Args:
            listener: Socket that is already bound and listening. The loop
                      takes ownership and closes it on exit.
            table: Connection table; owned by the loop from now on.
            handler: Protocol handler; built from the table if omitted.
            activity: Structured activity logger.
            buffer_size: Bytes per recv() call.
            max_line_length: Longest partial line a connection may buffer.
            select_timeout: Seconds per readiness wait. None waits until
                            something is readable.
            install_signal_handlers: Catch SIGINT/SIGTERM while running.
                                     Only honoured on the main thread.
        """
        self.listener = listener
        self.table = table
        self.activity = activity or ActivityLogger()
        self.handler = handler or ProtocolHandler(table, self.activity)
        self.buffer_size = buffer_size
        self.max_line_length = max_line_length
        self.select_timeout = select_timeout
        self.install_signal_handlers = install_signal_handlers

        self._running = False
        self._stop_requested = False
        self._stopped = threading.Event()
        self._original_handlers: dict = {}

        self._wakeup_r, self._wakeup_w = socket.socketpair()
        self._wakeup_r.setblocking(False)
        self._wakeup_w.setblocking(False)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple:
        """Address the listener is bound to."""
        return self.listener.getsockname()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """Serve until shutdown() is called. Always cleans up on exit."""
        self._running = True
        self._stopped.clear()

        if self.install_signal_handlers:
            self._setup_signals()

        host, port = self.address[:2]
        logger.info(f"Listening for incoming connections on {host}:{port}")

        try:
            while not self._stop_requested:
                self.run_once()
        finally:
            self._cleanup()

    def shutdown(self) -> None:
        """
        Ask the loop to stop.

        Safe to call from a signal handler or another thread, and more
        than once. Only touches the stop flag and the wakeup socket.
        """
        self._stop_requested = True
        try:
            self._wakeup_w.send(b"\0")
        except OSError:
            pass  # Buffer full or already closed; the loop is waking anyway

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Wait until run() has returned. False on timeout."""
        return self._stopped.wait(timeout)

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _cleanup(self):
        self._restore_signals()

        closed = self.table.close_all()
        if closed:
            logger.info(f"Closed {closed} client connection(s)")

        for sock in (self.listener, self._wakeup_r, self._wakeup_w):
            try:
                sock.close()
            except OSError:
                pass

        self._running = False
        self._stopped.set()
        logger.info("Server stopped")

    # =========================================================================
    # ONE ITERATION
    # =========================================================================

    def run_once(self) -> None:
        """Wait for readiness once and handle whatever became readable."""
        readable = self._wait()

        if self._wakeup_r in readable:
            self._drain_wakeup()
        if self._stop_requested:
            return

        # The listener goes first; clients still readable are picked up on
        # the next iteration since select() is level-triggered.
        if self.listener in readable:
            self._accept()
        else:
            self._service(readable)

    def _wait(self) -> Set[socket.socket]:
        rlist: List[socket.socket] = [self._wakeup_r, self.listener]
        rlist.extend(connection.socket for _, connection in self.table.live())

        try:
            readable, _, _ = select.select(rlist, [], [], self.select_timeout)
        except (OSError, ValueError) as e:
            logger.error(f"Readiness wait failed: {e}")
            raise SocketError(f"select failed: {e}", operation="select") from e

        return set(readable)

    def _drain_wakeup(self):
        try:
            while self._wakeup_r.recv(64):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    # =========================================================================
    # ACCEPT
    # =========================================================================

    def _accept(self) -> Optional[int]:
        """
        Accept one pending connection, greet it and store it.

        Returns:
            The slot the connection landed in, or None if it was dropped.
        """
        try:
            client_socket, client_address = self.listener.accept()
        except OSError as e:
            # One bad accept must not take down the sessions we already have
            logger.error(f"Accept error: {e}")
            return None

        connection = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.buffer_size,
            max_line_length=self.max_line_length,
        )
        logger.debug(f"[{connection.id}] Accepted connection from {connection.peer}")

        # HELLO goes out before the connection is stored
        if not connection.send(Hello()):
            self.activity.emit("rejected", connection, detail="HELLO send failed")
            connection.close()
            return None

        try:
            slot = self.table.insert(connection)
        except CapacityError as e:
            logger.warning(f"[{connection.id}] {e}, closing new connection")
            self.activity.emit("rejected", connection, detail="table full")
            connection.close()
            return None

        self.activity.emit("accepted", connection, slot)
        return slot

    # =========================================================================
    # CLIENT SOCKETS
    # =========================================================================

    def _service(self, readable: Set[socket.socket]) -> None:
        for slot, connection in self.table.live():
            if connection.socket not in readable:
                continue
            # A broadcast earlier in this pass may have removed it
            if self.table.get(slot) is not connection:
                continue
            self._read(slot, connection)

    def _read(self, slot: int, connection: Connection) -> None:
        try:
            lines = connection.recv_lines()
        except SocketError as e:
            logger.warning(str(e))
            self._remove(slot, connection, "read error")
            return

        if lines is None:
            self._remove(slot, connection, "peer closed")
            return

        for line in lines:
            if self.table.get(slot) is not connection:
                return
            self.handler.handle_line(slot, line)

        if connection.take_overflow() and self.table.get(slot) is connection:
            self.handler.handle_overflow(slot)

    def _remove(self, slot: int, connection: Connection, reason: str) -> None:
        self.table.remove(slot)
        self.activity.emit("closed", connection, slot, reason)
