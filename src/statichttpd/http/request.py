r"""
=============================================================================
REQUEST LINE PARSING
=============================================================================

This server understands exactly one thing about a request: its first line.

    GET /docs/index.html HTTP/1.1\r\n      ← request line: parsed
    Host: localhost:8080\r\n               ← header: read and ignored
    User-Agent: curl/8.5.0\r\n             ← header: read and ignored
    \r\n                                   ← end of request

Headers are consumed so that the next request on the same connection
starts at the right place, but nothing in them changes the response.

=============================================================================
THE GRAMMAR
=============================================================================

    ^GET\s+(\S.*)\s+HTTP/\d+\.\d+$

        GET          Only method supported
        \s+          One or more ASCII whitespace characters
        (\S.*)       The path: starts with a non-space, may contain spaces
        \s+          Whitespace
        HTTP/\d+\.\d+  Any version number; it is not interpreted

The captured path is returned EXACTLY as sent (bytes decoded with
os.fsdecode, so they map back one to one): no URL-decoding, no "." or
".." handling, query strings included. What a path means is decided by
the resolver, not by the parser.

=============================================================================
THREE OUTCOMES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   RequestLine           matched the grammar → serve it               │
    │                                                                      │
    │   None                  stream ended before any request line         │
    │                         → peer is done, close quietly                │
    │                                                                      │
    │   MalformedRequestError anything else → abort, no response           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import io
import os
import re
from dataclasses import dataclass
from typing import BinaryIO, Optional


DEFAULT_MAX_LINE_LENGTH = 8192


class MalformedRequestError(Exception):
    """
    Raised when a request cannot be parsed.

    The connection it came from is closed without a response.

    Attributes:
        line: The offending line (possibly truncated), for logging.
    """

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


@dataclass(frozen=True)
class RequestLine:
    """
    A parsed GET request line.

    Attributes:
        raw_text: The line as received, without its line terminator.
        requested_path: The path captured from the line, verbatim.
    """
    raw_text: str
    requested_path: str


class RequestParser:
    """
    Reads one request from a connection's input stream.

    Usage:
        parser = RequestParser()
        while (request := parser.parse(conn.reader)) is not None:
            ...
    """

    REQUEST_LINE_PATTERN = re.compile(r"^GET\s+(\S.*)\s+HTTP/\d+\.\d+$", re.ASCII)

    def __init__(self, max_line_length: int = DEFAULT_MAX_LINE_LENGTH):
        """
        Args:
            max_line_length: Longest accepted line in bytes, terminator
                             included. Longer lines are malformed.
        """
        self.max_line_length = max_line_length

    def parse(self, stream: BinaryIO) -> Optional[RequestLine]:
        """
        Read one request from the stream.

        Blank lines before the request line are skipped. After the request
        line, every line up to the next blank line is discarded. If the
        stream ends after the request line but before the blank line, the
        request line is still served.

        Args:
            stream: Binary stream with readline() (socket.makefile("rb")).

        Returns:
            The parsed RequestLine, or None if the stream ended before any
            request line arrived.

        Raises:
            MalformedRequestError: If the request line does not match the
                                   grammar or a line is too long.
            OSError: If reading from the stream fails.
        """
        candidate: Optional[str] = None

        while True:
            line = self._read_line(stream)

            if line is None:
                # End of stream
                if candidate is None:
                    return None
                break

            if not line:
                if candidate is None:
                    continue  # Stray blank line before the request
                break         # End of headers

            if candidate is None:
                candidate = line
            # else: a header line, ignored

        match = self.REQUEST_LINE_PATTERN.match(candidate)
        if not match:
            raise MalformedRequestError(f"Invalid request line: {candidate[:200]!r}", candidate[:200])

        return RequestLine(raw_text=candidate, requested_path=match.group(1))

    def _read_line(self, stream: BinaryIO) -> Optional[str]:
        """
        Read one line and strip its terminator.

        Returns:
            The line text ("" for a blank line), or None at end of stream.
        """
        raw = stream.readline(self.max_line_length + 1)
        if not raw:
            return None

        if len(raw) > self.max_line_length:
            raise MalformedRequestError(
                f"Line exceeds {self.max_line_length} bytes",
                os.fsdecode(raw[:200]),
            )

        # Filesystem codec with surrogateescape: os.stat() turns the path back
        # into exactly the bytes the client sent.
        return os.fsdecode(raw).rstrip("\r\n")


def parse_request(data: bytes) -> Optional[RequestLine]:
    """
    Parse a request from raw bytes.

    Convenience wrapper for tests and one-off use:

        parse_request(b"GET / HTTP/1.1\\r\\n\\r\\n").requested_path  # "/"
    """
    return RequestParser().parse(io.BytesIO(data))
