"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking and concurrency plumbing of the server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       TRANSPORT FACTORY                              │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Loads the TLS key store once, at startup (secure mode only)      │
    │  • Creates the listening socket, plain or TLS-wrapped               │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Listener
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Runs the accept() loop on a single thread                        │
    │  • Wraps every client socket in a Connection                        │
    │  • Survives individual accept() failures                            │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ submit(connection)
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          THREAD POOL                                 │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Fixed number of worker threads                                    │
    │  • Unbounded queue: connections wait, they are never dropped        │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ worker runs the transaction loop
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Buffered line reader + buffered writer over the socket           │
    │  • TLS handshake on the worker thread                               │
    │  • Orderly close                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState, TransportError
from .transport import Listener, TransportFactory
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "Connection",        # Wrapper for client socket - streams and close
    "ConnectionState",   # Enum for connection lifecycle states
    "TransportError",    # I/O failure on one connection
    "Listener",          # Bound listening socket (plain or TLS)
    "TransportFactory",  # Builds the Listener from configuration
    "SocketServer",      # Accept loop
    "ThreadPool",        # Fixed-size worker pool
]
