"""
pytest configuration and fixtures.
"""

import dataclasses
import os
import shutil
import socket
import ssl
import subprocess
import threading
import time
from typing import BinaryIO, Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from statichttpd import StaticFileServer, ServerConfiguration


KEY_STORE_PASSPHRASE = "changeit"


@pytest.fixture
def docroot(tmp_path: Path) -> Path:
    """
    Document root with a bit of everything:

        hello.txt
        index.html
        PAGE.HTML
        notreallyhtml
        big.bin          (several chunks long)
        sub/
            a.txt
            b/
    """
    root = tmp_path / "www"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"Hello, World!\n")
    (root / "index.html").write_bytes(b"<html><body><h1>Home</h1></body></html>\n")
    (root / "PAGE.HTML").write_bytes(b"<html><body>upper case</body></html>\n")
    (root / "notreallyhtml").write_bytes(b"suffix match only\n")
    (root / "big.bin").write_bytes(bytes(range(256)) * 40 + b"tail")
    sub = root / "sub"
    sub.mkdir()
    (sub / "a.txt").write_bytes(b"a\n")
    (sub / "b").mkdir()
    return root


@pytest.fixture
def odd_names(docroot: Path) -> Path:
    """
    docroot/odd/ holding names outside ASCII:

        café.txt         (valid UTF-8)
        bad\\xff.txt      (not valid UTF-8)
    """
    odd = docroot / "odd"
    odd.mkdir()
    (odd / "café.txt").write_bytes(b"cafe\n")
    try:
        with open(os.path.join(os.fsencode(odd), b"bad\xff.txt"), "wb") as f:
            f.write(b"undecodable\n")
    except OSError:
        pytest.skip("filesystem rejects names that are not valid UTF-8")
    return odd


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def config(docroot: Path, free_port: int) -> ServerConfiguration:
    """Default test server configuration."""
    return ServerConfiguration(
        host="127.0.0.1",
        port=free_port,
        document_root=docroot,
        worker_count=4,
        log_level="WARNING",
    )


@pytest.fixture
def key_store(tmp_path: Path) -> Path:
    """
    Self-signed PEM key store (certificate + encrypted key).

    Generated with the openssl CLI; tests needing it are skipped without it.
    """
    if shutil.which("openssl") is None:
        pytest.skip("openssl CLI not available")

    key_path = tmp_path / "key.pem"
    cert_path = tmp_path / "cert.pem"
    subprocess.run(
        [
            "openssl", "req", "-x509", "-newkey", "rsa:2048",
            "-keyout", str(key_path), "-out", str(cert_path),
            "-days", "1", "-subj", "/CN=localhost",
            "-passout", f"pass:{KEY_STORE_PASSPHRASE}",
        ],
        check=True,
        capture_output=True,
    )

    store = tmp_path / "server.pem"
    store.write_bytes(cert_path.read_bytes() + key_path.read_bytes())
    return store


@pytest.fixture
def key_passphrase() -> str:
    return KEY_STORE_PASSPHRASE


@pytest.fixture
def secure_config(config: ServerConfiguration, key_store: Path, key_passphrase: str) -> ServerConfiguration:
    """The default configuration switched to TLS with the test key store."""
    return dataclasses.replace(
        config,
        secure=True,
        key_file=key_store,
        key_passphrase=key_passphrase,
    )


@pytest.fixture
def tls_client_context() -> ssl.SSLContext:
    """Client context that accepts the self-signed test certificate."""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class ServerThread:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: StaticFileServer):
        self.server = server
        self.port = server.config.port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        # Wait for the accept loop to be up
        for _ in range(50):  # 5 seconds max
            if self.server.is_running:
                return
            time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock


@pytest.fixture
def server_factory() -> Generator:
    """Start servers for arbitrary configurations; all stopped at teardown."""
    started = []

    def start(config: ServerConfiguration) -> ServerThread:
        srv = ServerThread(StaticFileServer(config))
        srv.start()
        started.append(srv)
        return srv

    yield start

    for srv in started:
        srv.stop()


@pytest.fixture
def test_server(config: ServerConfiguration, server_factory) -> ServerThread:
    """A running plain-TCP server over the docroot fixture."""
    return server_factory(config)


def read_response(stream: BinaryIO) -> Optional[dict]:
    """
    Read one framed response from a client-side stream.

    Returns:
        {"status_line", "headers", "body"}, or None if the server closed the
        connection before sending anything.
    """
    status_line = stream.readline()
    if not status_line:
        return None

    headers = {}
    while True:
        line = stream.readline()
        if line in (b"\r\n", b""):
            break
        name, value = line.decode("ascii").rstrip("\r\n").split(":", 1)
        headers[name.strip()] = value.strip()

    body = stream.read(int(headers["Content-Length"]))
    return {
        "status_line": status_line.decode("ascii").rstrip("\r\n"),
        "headers": headers,
        "body": body,
    }


@pytest.fixture
def fetch(test_server: ServerThread):
    """GET one path over a fresh connection and return the parsed response."""

    def _fetch(path: str) -> dict:
        with test_server.connect() as sock:
            sock.sendall(f"GET {path} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("iso-8859-1"))
            with sock.makefile("rb") as stream:
                return read_response(stream)

    return _fetch


@pytest.fixture
def response_reader():
    """Expose read_response to test modules."""
    return read_response
