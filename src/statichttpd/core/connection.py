"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted client socket with the stream-oriented API
the transaction loop needs.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A client that sends

    GET /a.txt HTTP/1.1\r\n\r\nGET /b.txt HTTP/1.1\r\n\r\n

may have it arrive in one recv(), in three, or split in the middle of a
request line. The server reads LINES, so we put a buffered file object on
top of the socket and let readline() do the reassembly:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Connection                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket ──► makefile("rb") ──► reader.readline()  (RequestParser)  │
    │                                                                      │
    │   socket ◄── makefile("wb") ◄── writer.write()     (ResponseWriter) │
    │                                  writer.flush()                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Leftover bytes after one request stay in the reader's buffer and are picked
up by the next readline(). That is all pipelining needs.

=============================================================================
TLS
=============================================================================

On a secure listener the accepted socket is an ssl.SSLSocket whose handshake
has NOT happened yet. handshake() performs it on the worker thread, so one
slow client can never stall the accept loop.

Every socket-level failure (reset, broken pipe, TLS alert) is reported as
TransportError. Callers only have to handle one exception type to abort a
connection.

=============================================================================
"""

import socket
import ssl
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid


logger = logging.getLogger(__name__)

# Upper bounds on reading leftover client input while closing.
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class TransportError(Exception):
    """
    I/O failure on a single connection (or when binding the listener).

    Raised for read, write and handshake failures. It aborts the one
    connection it happened on and nothing else.
    """


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    The transaction loop itself only distinguishes AWAITING_REQUEST and
    TERMINATED (CLOSED); the others exist for logging.
    """
    NEW = "new"                      # Accepted, handshake not done yet
    AWAITING_REQUEST = "awaiting"    # Waiting for the next request line
    WRITING = "writing"              # Sending a response
    CLOSING = "closing"              # Shutdown sequence in progress
    CLOSED = "closed"                # Socket released (TERMINATED)


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket (plain or ssl.SSLSocket).
        address: Client's (ip, port) tuple.
        id: Short unique identifier for log lines.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        requests_handled: Number of responses sent on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    _reader: Optional[BinaryIO] = field(default=None, repr=False)
    _writer: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        # No timeouts: a connection lives until the peer closes it,
        # sends garbage, or an I/O error occurs.
        self.socket.settimeout(None)

        self._reader = self.socket.makefile("rb")
        self._writer = self.socket.makefile("wb")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def peer(self) -> str:
        """"ip:port" of the client, for log lines."""
        return f"{self.address[0]}:{self.address[1]}"

    @property
    def is_secure(self) -> bool:
        return isinstance(self.socket, ssl.SSLSocket)

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def reader(self) -> BinaryIO:
        """Buffered input stream. Read errors surface as OSError."""
        return self._reader

    @property
    def writer(self) -> BinaryIO:
        """Buffered output stream. Nothing is sent until flush()."""
        return self._writer

    # =========================================================================
    # HANDSHAKE
    # =========================================================================

    def handshake(self) -> None:
        """
        Complete the TLS handshake. No-op for plain TCP.

        Raises:
            TransportError: If the handshake fails (bad client hello,
                            peer hung up, protocol mismatch).
        """
        if self.is_secure:
            try:
                self.socket.do_handshake()
            except OSError as e:
                raise TransportError(f"TLS handshake failed: {e}") from e
            logger.debug(f"[{self.id}] TLS handshake complete ({self.socket.version()})")
        self.state = ConnectionState.AWAITING_REQUEST

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        Sequence:

        1. Flush and close the file objects. socket.close() does not
           release the descriptor while makefile() objects are still open.
        2. shutdown(SHUT_WR): sends FIN so the client sees end-of-stream
           even if it keeps its side open.
        3. Drain what the client still has in flight, bounded by
           DRAIN_TIMEOUT and DRAIN_LIMIT.
        4. close(): release the file descriptor.

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        for stream in (self._writer, self._reader):
            try:
                stream.close()
            except OSError:
                pass  # Peer already gone; buffered output is lost anyway

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        self._drain()

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests "
            f"({self.age:.3f}s)"
        )

    def _drain(self):
        """
        Read and discard pending input before close().

        Closing with unread data in the kernel buffer turns our FIN into a
        RST, which can destroy a response the client has not read yet. A
        peer that keeps sending only gets DRAIN_TIMEOUT seconds in total,
        or DRAIN_LIMIT bytes, whichever runs out first.
        """
        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0

        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # socket.timeout is an OSError too

        if drained >= DRAIN_LIMIT:
            logger.debug(f"[{self.id}] Stopped draining after {drained} bytes")

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Context manager entry.

            with conn:
                conn.handshake()
                ...
            # Connection closed here, whatever happened inside
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        self.close()
        return False  # Don't suppress exceptions
