"""
Unit tests for the connection wrapper.
"""

import socket
import threading
import time

import pytest

from statichttpd.core.connection import Connection, ConnectionState, DRAIN_TIMEOUT


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(5.0)
    yield server_side, client_side
    client_side.close()
    server_side.close()


class TestConnection:
    """Tests for Connection."""

    def test_initial_state(self, socket_pair):
        server_side, _ = socket_pair

        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))

        assert conn.state == ConnectionState.NEW
        assert conn.peer == "127.0.0.1:5555"
        assert conn.client_ip == "127.0.0.1"
        assert conn.is_secure is False
        assert len(conn.id) == 8
        conn.close()

    def test_plain_handshake_is_noop(self, socket_pair):
        server_side, _ = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))

        conn.handshake()

        assert conn.state == ConnectionState.AWAITING_REQUEST
        conn.close()

    def test_reader_and_writer(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))

        client_side.sendall(b"line one\r\nline two\r\n")
        assert conn.reader.readline() == b"line one\r\n"
        assert conn.reader.readline() == b"line two\r\n"

        conn.writer.write(b"reply")
        conn.writer.flush()
        assert client_side.recv(16) == b"reply"
        conn.close()

    def test_close_sends_eof(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))

        conn.close()

        assert client_side.recv(16) == b""
        assert conn.state == ConnectionState.CLOSED

    def test_close_flushes_pending_output(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))

        conn.writer.write(b"buffered")
        conn.close()

        assert client_side.recv(16) == b"buffered"

    def test_close_twice(self, socket_pair):
        server_side, _ = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes(self, socket_pair):
        server_side, client_side = socket_pair

        with pytest.raises(RuntimeError):
            with Connection(socket=server_side, address=("127.0.0.1", 5555)) as conn:
                raise RuntimeError("handler bug")

        assert conn.state == ConnectionState.CLOSED
        assert client_side.recv(16) == b""

    @pytest.mark.parametrize("chunk,pause", [
        (b"x", 0.01),          # slow trickle
        (b"x" * 65536, 0.0),   # flood
    ])
    def test_close_with_client_still_sending(self, socket_pair, chunk: bytes, pause: float):
        """A client that never stops sending cannot hold close() open."""
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))
        stop = threading.Event()

        def keep_sending():
            while not stop.is_set():
                try:
                    client_side.sendall(chunk)
                except OSError:
                    return
                time.sleep(pause)

        sender = threading.Thread(target=keep_sending, daemon=True)
        sender.start()
        try:
            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started
        finally:
            stop.set()

        assert conn.state == ConnectionState.CLOSED
        assert elapsed < DRAIN_TIMEOUT + 1.5
        sender.join(timeout=5.0)
