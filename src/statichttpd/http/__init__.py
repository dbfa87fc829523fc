"""
=============================================================================
HTTP PROTOCOL HANDLING
=============================================================================

The three steps of one transaction, in order:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST PARSER (request.py)                                         │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Input:   b"GET /docs/ HTTP/1.1\r\nHost: ...\r\n\r\n"                │
    │ Output:  RequestLine(requested_path="/docs/")                       │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ RESOLVER (resolver.py)                                              │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Input:   "/docs/" + document root                                   │
    │ Output:  NotFound | Directory | HtmlFile | GenericFile              │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ RESPONSE WRITER (response.py)                                       │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Input:   Directory(...)                                             │
    │ Output:  b"HTTP/1.1 200 OK\r\nContent-Length: ...\r\n..."           │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import (
    RequestLine,
    RequestParser,
    MalformedRequestError,
    parse_request,
)

from .resolver import (
    ResolvedTarget,
    NotFound,
    Directory,
    HtmlFile,
    GenericFile,
    resolve,
)

from .response import (
    ResponseHeader,
    ResponseWriter,
    CONTENT_TYPE_HTML,
    CONTENT_TYPE_TEXT,
)

__all__ = [
    # Request
    "RequestLine",
    "RequestParser",
    "MalformedRequestError",
    "parse_request",
    # Resolution
    "ResolvedTarget",
    "NotFound",
    "Directory",
    "HtmlFile",
    "GenericFile",
    "resolve",
    # Response
    "ResponseHeader",
    "ResponseWriter",
    "CONTENT_TYPE_HTML",
    "CONTENT_TYPE_TEXT",
]
