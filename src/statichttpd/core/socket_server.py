"""
=============================================================================
ACCEPT LOOP
=============================================================================

The "ears" of the server: it waits for clients and hands every new
connection off to someone else. It never reads or writes a byte itself.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     Accept Loop Flow                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   while running:                                                     │
    │       │                                                              │
    │       ├──► listener.accept()                                         │
    │       │       ├── BLOCKS until a client connects                     │
    │       │       └── (or 1s poll timeout → loop again)                  │
    │       │                                                              │
    │       ├──► Connection(socket, address)                               │
    │       │                                                              │
    │       └──► submit(conn)   → ThreadPool queue                         │
    │                                                                      │
    │   accept() failed?  → log it, keep accepting                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BACKPRESSURE
=============================================================================

There is no queue here. Every accepted connection is submitted at once;
the thread pool decides when it actually runs. If all workers are busy, the
connection waits in the pool's queue. It is never dropped.

=============================================================================
"""

import socket
import logging
import threading
from typing import Callable, Optional

from .connection import Connection
from .transport import Listener


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Runs the accept loop over a Listener.

    Usage:
        def submit(conn: Connection):
            pool.submit(handle, args=(conn,))

        acceptor = SocketServer()
        acceptor.run(listener, submit)   # Blocks until shutdown()
    """

    def __init__(self):
        self._running = False
        self._listener: Optional[Listener] = None

        # Set once the loop has exited and the listener is closed.
        self._stopped_event = threading.Event()

    @property
    def is_running(self) -> bool:
        """Check if the accept loop is running."""
        return self._running

    def run(self, listener: Listener, submit: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        A single failed accept() (client reset during the TCP handshake,
        EMFILE, ...) is logged and the loop carries on.

        Args:
            listener: The bound listening socket. Closed when the loop exits.
            submit: Called with every accepted Connection.
        """
        self._listener = listener
        self._running = True
        self._stopped_event.clear()

        try:
            while self._running:
                try:
                    client_socket, client_address = listener.accept()
                except socket.timeout:
                    # Poll timeout: lets us notice shutdown()
                    continue
                except OSError as e:
                    if not self._running:
                        break  # Listener closed by shutdown()
                    logger.error(f"Accept error: {e}")
                    continue

                logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

                try:
                    conn = Connection(socket=client_socket, address=client_address)
                except OSError as e:
                    logger.error(f"Cannot set up connection from {client_address[0]}: {e}")
                    client_socket.close()
                    continue

                submit(conn)
        finally:
            self._running = False
            listener.close()
            self._stopped_event.set()
            logger.info("Accept loop stopped")

    def shutdown(self):
        """
        Ask the accept loop to stop.

        Takes effect within one poll interval. Safe to call from any thread
        and more than once.
        """
        self._running = False

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the accept loop to exit.

        Returns:
            True if the loop stopped, False on timeout.
        """
        return self._stopped_event.wait(timeout)
