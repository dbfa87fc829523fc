"""
=============================================================================
STATIC FILE SERVER
=============================================================================

The orchestrator: wires transport, accept loop, thread pool and the HTTP
steps together, and owns the per-connection transaction loop.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                      ┌──────────────────┐                           │
    │                      │ StaticFileServer │                           │
    │                      └────────┬─────────┘                           │
    │                               │                                      │
    │         ┌─────────────────────┼─────────────────────┐               │
    │         ▼                     ▼                     ▼               │
    │  ┌──────────────┐     ┌──────────────┐     ┌──────────────┐        │
    │  │  Transport   │     │ SocketServer │     │  ThreadPool  │        │
    │  │  Factory     │     │ (accept loop)│     │  (workers)   │        │
    │  └──────────────┘     └──────────────┘     └──────┬───────┘        │
    │                                                    │                │
    │                                                    ▼                │
    │                                     ┌────────────────────────┐     │
    │                                     │   Transaction loop     │     │
    │                                     │ parse → resolve → write│     │
    │                                     └────────────────────────┘     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TRANSACTION LOOP
=============================================================================

One per connection, on a worker thread:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handshake (TLS only)                                               │
    │        │                                                             │
    │        ▼                                                             │
    │   AWAITING_REQUEST ◄─────────────────────────────┐                  │
    │        │                                          │                  │
    │        ├── RequestLine ──► resolve ──► write ─────┘                  │
    │        │                                                             │
    │        ├── end of input ───────────────┐                             │
    │        ├── MalformedRequestError ──────┤  (no response sent)         │
    │        └── TransportError ─────────────┤                             │
    │                                        ▼                             │
    │                                   TERMINATED (close)                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Whatever goes wrong on one connection ends that connection only.

=============================================================================
"""

import logging
from typing import Optional, Tuple

from .config import ServerConfiguration
from .core import Connection, ConnectionState, SocketServer, ThreadPool, TransportError, TransportFactory
from .http import (
    RequestParser, MalformedRequestError,
    ResponseWriter, resolve,
)


logger = logging.getLogger(__name__)


class StaticFileServer:
    """
    Static file HTTP server.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfiguration.from_properties("jhttpd.cfg")
        server = StaticFileServer(config)
        server.run()      # Blocks

    Embedding (tests do this):

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(
        self,
        config: ServerConfiguration,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize the server.

        Args:
            config: Server configuration.
            transport_factory: Builds the listening socket. Created from
                               config when omitted.

        Raises:
            ConfigurationError: If the configuration or the TLS key store
                                is unusable.
        """
        self.config = config
        self.config.validate()  # Fail-fast on invalid config

        self._transport = transport_factory or TransportFactory(config)
        self._socket_server = SocketServer()
        self._thread_pool = ThreadPool(worker_count=config.worker_count)

        self._parser = RequestParser()
        self._writer = ResponseWriter()

        self._address: Optional[Tuple[str, int]] = None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port) once run() is listening, else None."""
        return self._address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Returns only after shutdown() or KeyboardInterrupt.

        Raises:
            TransportError: If the listening socket cannot be bound.
        """
        self._setup_logging()

        listener = self._transport.create_listener()
        self._address = listener.address

        self._thread_pool.start()
        self._print_startup_banner()

        try:
            self._socket_server.run(listener, self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections. run() returns shortly after."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("statichttpd").setLevel(level)

    def _print_startup_banner(self):
        host, port = self._address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  statichttpd running on {self.config.scheme}://{host}:{port}")
        print(f"  Document root: {self.config.document_root}")
        print(f"  Workers: {self.config.worker_count} threads")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _shutdown(self):
        """
        Stop the worker pool.

        Connections that are still open keep their worker until the client
        hangs up; we give them a bounded amount of time.
        """
        logger.info("Shutting down server...")
        self._thread_pool.shutdown(wait=True, timeout=5.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a connection for the thread pool.

        Called on the accept thread. Never blocks: if every worker is
        busy, the connection waits in the pool's queue.
        """
        self._thread_pool.submit(self._process_connection, args=(conn,))

    def _process_connection(self, conn: Connection):
        """
        Run the transaction loop for one connection (worker thread).

        Args:
            conn: The client connection. Closed when this returns.
        """
        with conn:
            try:
                conn.handshake()

                while True:
                    if not self._process_transaction(conn):
                        break

            except MalformedRequestError as e:
                logger.warning(f"[{conn.id}] {conn.peer} malformed request, closing: {e}")

            except TransportError as e:
                logger.warning(f"[{conn.id}] {conn.peer} aborted: {e}")

            except Exception as e:
                # Bug in our code: log it, drop this one connection
                logger.exception(f"[{conn.id}] Connection error: {e}")

    def _process_transaction(self, conn: Connection) -> bool:
        """
        Serve one request.

        Returns:
            True if a response was sent and the next request may follow,
            False if the client closed the stream.

        Raises:
            MalformedRequestError: Request line failed to parse.
            TransportError: Reading or writing the socket failed.
        """
        try:
            request = self._parser.parse(conn.reader)
        except OSError as e:
            raise TransportError(f"Read failed: {e}") from e

        if request is None:
            logger.debug(f"[{conn.id}] End of input")
            return False

        target = resolve(request.requested_path, self.config.document_root)

        conn.state = ConnectionState.WRITING
        try:
            body_size = self._writer.write(target, conn.writer)
        except OSError as e:
            raise TransportError(f"Write failed: {e}") from e

        conn.requests_handled += 1
        conn.state = ConnectionState.AWAITING_REQUEST
        logger.info(
            f"{conn.peer} GET {request.requested_path} -> "
            f"{type(target).__name__} ({body_size} bytes)"
        )
        return True
