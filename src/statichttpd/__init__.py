"""
=============================================================================
STATICHTTPD - Minimal Static File Server
=============================================================================

Serves the files under one directory over HTTP/1.1 (optionally TLS), built
directly on sockets and threads.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    STATICHTTPD ARCHITECTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. TRANSPORT                                                       │
    │      - Plain TCP or TLS listener, chosen from configuration         │
    │      - Key store loaded once at startup                             │
    │                                                                      │
    │   2. CONCURRENCY                                                     │
    │      - Single accept thread                                          │
    │      - Fixed-size thread pool, unbounded queue                       │
    │      - One worker per open connection                                │
    │                                                                      │
    │   3. TRANSACTION LOOP                                                │
    │      - GET request line parsing, headers ignored                     │
    │      - Pipelined requests on one connection                          │
    │      - Directory listing, HTML file, plain file, not found           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    statichttpd/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m statichttpd)
    ├── server.py            # StaticFileServer + transaction loop
    ├── config.py            # ServerConfiguration + properties loader
    ├── core/                # Networking and concurrency
    │   ├── transport.py     # Plain/TLS listener factory
    │   ├── socket_server.py # Accept loop
    │   ├── connection.py    # Connection wrapper
    │   └── thread_pool.py   # Fixed-size thread pool
    └── http/                # Protocol
        ├── request.py       # Request line parsing
        ├── resolver.py      # Path → NotFound/Directory/HtmlFile/GenericFile
        └── response.py      # Response serialization

=============================================================================
QUICK START
=============================================================================

    from pathlib import Path
    from statichttpd import StaticFileServer, ServerConfiguration

    config = ServerConfiguration(port=8080, document_root=Path("./public"))
    StaticFileServer(config).run()

or, with a jhttpd.cfg in the working directory:

    python -m statichttpd

=============================================================================
"""

__version__ = "1.0.0"

from .server import StaticFileServer
from .config import ServerConfiguration, ConfigurationError

__all__ = ["StaticFileServer", "ServerConfiguration", "ConfigurationError", "__version__"]
