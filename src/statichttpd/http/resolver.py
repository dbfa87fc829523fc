"""
=============================================================================
RESPONSE RESOLUTION
=============================================================================

Decides WHAT to send for a requested path. Exactly one of four outcomes:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   document_root + requested_path                                     │
    │          │                                                           │
    │          ▼                                                           │
    │   stat() fails? ──────yes──────► NotFound(requested_path)            │
    │          │                                                           │
    │          no                                                          │
    │          ▼                                                           │
    │   directory? ─────────yes──────► Directory(path, requested_path)     │
    │          │                                                           │
    │          no                                                          │
    │          ▼                                                           │
    │   regular file? ───────no──────► NotFound(requested_path)            │
    │          │                                                           │
    │          yes                                                         │
    │          ▼                                                           │
    │   name ends with "html"? ─yes──► HtmlFile(path, size)                │
    │   (any case)                                                         │
    │          │                                                           │
    │          no                                                          │
    │          ▼                                                           │
    │   GenericFile(path, size)                                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The decision is purely name- and metadata-based: no content sniffing, and
no caching. The filesystem is consulted on every request.

"Ends with html" is a suffix match on the name, not an extension check:
"page.html", "PAGE.HTML", "page.xhtml" and even "notreallyhtml" all count.

=============================================================================
KNOWN LIMITATION: PATH TRAVERSAL
=============================================================================

The requested path is appended to the document root as-is. A request for
"/../etc/passwd" resolves OUTSIDE the document root. This server is meant
for demonstration and trusted networks; do not expose it publicly.

=============================================================================
"""

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Union


HTML_SUFFIX = "html"


@dataclass(frozen=True)
class NotFound:
    """Nothing usable exists at the requested path."""
    requested_path: str


@dataclass(frozen=True)
class Directory:
    """The requested path is a directory; its entries get listed."""
    absolute_path: Path
    requested_path: str


@dataclass(frozen=True)
class HtmlFile:
    """A regular file served as text/html."""
    absolute_path: Path
    size: int
    requested_path: str = ""


@dataclass(frozen=True)
class GenericFile:
    """Any other file, served as text/plain."""
    absolute_path: Path
    size: int
    requested_path: str = ""


ResolvedTarget = Union[NotFound, Directory, HtmlFile, GenericFile]


def resolve(requested_path: str, document_root: Union[str, Path]) -> ResolvedTarget:
    """
    Classify a requested path.

    Args:
        requested_path: Path from the request line, verbatim.
        document_root: Directory that request paths are relative to.

    Returns:
        One of NotFound, Directory, HtmlFile, GenericFile.

    Note:
        Any stat() failure (missing file, permission denied, a path
        component that is not a directory, a NUL byte in the name) counts
        as NotFound, and so does anything that is neither a directory nor
        a regular file.
    """
    absolute_path = Path(f"{document_root}/{requested_path}")

    try:
        st = os.stat(absolute_path)
    except (OSError, ValueError):
        return NotFound(requested_path)

    if stat.S_ISDIR(st.st_mode):
        return Directory(absolute_path, requested_path)

    if not stat.S_ISREG(st.st_mode):
        # FIFOs, sockets, devices: open() could block or never end
        return NotFound(requested_path)

    if absolute_path.name.lower().endswith(HTML_SUFFIX):
        return HtmlFile(absolute_path, st.st_size, requested_path)

    return GenericFile(absolute_path, st.st_size, requested_path)
