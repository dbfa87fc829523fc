"""
=============================================================================
RESPONSE WRITING
=============================================================================

Turns a ResolvedTarget into bytes on the connection.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\r\n              ← Status line (always 200, see below)
    Content-Length: 1234\r\n         ← Exact body size, known up front
    Content-Type: text/plain\r\n     ← text/html or text/plain, nothing else
    \r\n                             ← Empty line (separator)
    <1234 bytes of body>

Content-Length is computed BEFORE the first byte is written. There is no
chunked encoding, so a client on a pipelined connection can always find
where one response ends and the next begins.

=============================================================================
PER TARGET
=============================================================================

    ┌─────────────────┬─────────────┬───────────────────────────────────────┐
    │ Target          │ Type        │ Body                                  │
    ├─────────────────┼─────────────┼───────────────────────────────────────┤
    │ NotFound        │ text/html   │ Fixed page naming the requested path  │
    │ Directory       │ text/html   │ Generated listing, one link per entry │
    │ HtmlFile        │ text/html   │ File contents, streamed in chunks     │
    │ GenericFile     │ text/plain  │ File contents, streamed in chunks     │
    └─────────────────┴─────────────┴───────────────────────────────────────┘

Generated pages are built in memory (they are small) and encoded with the
filesystem codec, so every listed name and link is the on-disk byte
sequence, which is what a request for it must contain. Files are streamed
1024 bytes at a time, so serving a large file costs a constant amount of
memory.

"Not found" is sent with status 200, not 404. Every response this server
produces carries the same status line.

The output stream is flushed once per response, after header and body are
queued. TLS sockets buffer records, and without the flush the tail of a
response could sit in the buffer until the next request.

=============================================================================
"""

import html
import logging
import os
from dataclasses import dataclass
from http import HTTPStatus
from typing import BinaryIO

from ..core.connection import TransportError
from .resolver import (
    ResolvedTarget, NotFound, Directory, HtmlFile, GenericFile,
)


logger = logging.getLogger(__name__)


HTTP_VERSION = "HTTP/1.1"

CONTENT_TYPE_HTML = "text/html"
CONTENT_TYPE_TEXT = "text/plain"

DEFAULT_CHUNK_SIZE = 1024

NOT_FOUND_TEMPLATE = """<html>
<head><title>Not Found</title></head>
<body>
<h1>Not Found</h1>
<p>The requested URL {path} was not found on this server.</p>
</body>
</html>
"""

DIRECTORY_TEMPLATE = """<html>
<head><title>Index of {path}</title></head>
<body>
<h1>Index of {path}</h1>
<ul>
{entries}</ul>
</body>
</html>
"""

DIRECTORY_ENTRY_TEMPLATE = '<li><a href="{href}">{name}</a></li>\n'


@dataclass(frozen=True)
class ResponseHeader:
    """
    Status line plus the two headers this server sends.

    Attributes:
        content_type: CONTENT_TYPE_HTML or CONTENT_TYPE_TEXT.
        content_length: Exact number of body bytes that follow.
        status: Always 200 OK.
    """
    content_type: str
    content_length: int
    status: HTTPStatus = HTTPStatus.OK

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 200 OK"."""
        return f"{HTTP_VERSION} {self.status.value} {self.status.phrase}"

    def to_bytes(self) -> bytes:
        """Serialize, including the empty line that ends the header block."""
        lines = [
            self.status_line,
            f"Content-Length: {self.content_length}",
            f"Content-Type: {self.content_type}",
            "",
            "",
        ]
        return "\r\n".join(lines).encode("ascii")


class ResponseWriter:
    """
    Writes one complete response per call.

    Usage:
        writer = ResponseWriter()
        body_size = writer.write(resolve(path, root), conn.writer)
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def write(self, target: ResolvedTarget, out: BinaryIO) -> int:
        """
        Write the response for a resolved target and flush.

        Args:
            target: The resolved target.
            out: Buffered binary output stream.

        Returns:
            Number of body bytes written.

        Raises:
            TransportError: If a file shrank between resolution and
                            sending, so the promised Content-Length
                            cannot be delivered.
            OSError: If writing to the stream fails.
            TypeError: If target is not a ResolvedTarget.
        """
        if isinstance(target, NotFound):
            written = self._write_page(out, render_not_found(target.requested_path))
        elif isinstance(target, Directory):
            written = self._write_directory(target, out)
        elif isinstance(target, HtmlFile):
            written = self._write_file(target, CONTENT_TYPE_HTML, out)
        elif isinstance(target, GenericFile):
            written = self._write_file(target, CONTENT_TYPE_TEXT, out)
        else:
            raise TypeError(f"Not a resolved target: {target!r}")

        out.flush()
        return written

    def _write_page(self, out: BinaryIO, page: str) -> int:
        # Same codec the request path was decoded with: names that are not
        # valid UTF-8 come back out as their original bytes.
        body = os.fsencode(page)
        out.write(ResponseHeader(CONTENT_TYPE_HTML, len(body)).to_bytes())
        out.write(body)
        return len(body)

    def _write_directory(self, target: Directory, out: BinaryIO) -> int:
        try:
            page = render_directory_listing(target.absolute_path, target.requested_path)
        except OSError as e:
            # Vanished or unreadable since resolution: same as not there
            logger.debug(f"Cannot list {target.absolute_path}: {e}")
            page = render_not_found(target.requested_path)
        return self._write_page(out, page)

    def _write_file(self, target: HtmlFile | GenericFile, content_type: str, out: BinaryIO) -> int:
        # Open BEFORE writing the header: if the file is gone, the client
        # still gets a well-formed (not found) response.
        try:
            f = open(target.absolute_path, "rb")
        except OSError as e:
            logger.debug(f"Cannot open {target.absolute_path}: {e}")
            return self._write_page(out, render_not_found(target.requested_path or target.absolute_path.name))

        with f:
            out.write(ResponseHeader(content_type, target.size).to_bytes())

            remaining = target.size
            while remaining > 0:
                chunk = f.read(min(self.chunk_size, remaining))
                if not chunk:
                    raise TransportError(
                        f"{target.absolute_path} shrank while being sent "
                        f"({target.size - remaining} of {target.size} bytes)"
                    )
                out.write(chunk)
                remaining -= len(chunk)

        return target.size


def render_not_found(requested_path: str) -> str:
    """HTML page for a path that does not exist."""
    return NOT_FOUND_TEMPLATE.format(path=html.escape(requested_path))


def render_directory_listing(directory: os.PathLike, requested_path: str) -> str:
    """
    HTML page linking every direct child of a directory.

    Links are the requested path joined with the entry name, so they work
    no matter whether the request had a trailing slash. Sub-directories get
    a trailing "/". Entries appear in the order the filesystem returns
    them.

    Raises:
        OSError: If the directory cannot be read.
    """
    base = requested_path if requested_path.endswith("/") else requested_path + "/"

    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            name = entry.name
            try:
                if entry.is_dir():
                    name += "/"
            except OSError:
                pass  # Broken entry: list it as a plain name
            entries.append(DIRECTORY_ENTRY_TEMPLATE.format(
                href=html.escape(base + name, quote=True),
                name=html.escape(name),
            ))

    return DIRECTORY_TEMPLATE.format(
        path=html.escape(requested_path),
        entries="".join(entries),
    )
