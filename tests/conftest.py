from __future__ import annotations

import socket
import threading
import time
from collections.abc import Iterator

import pytest


class CarbonServer:
    """Local TCP listener standing in for a Carbon daemon."""

    def __init__(self) -> None:
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen()
        self._listener.settimeout(0.05)
        self.port = self._listener.getsockname()[1]
        self.connections = 0
        self._buffers: list[bytearray] = []
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        threading.Thread(target=self._accept_loop, daemon=True).start()

    def _accept_loop(self) -> None:
        while not self._stopped.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with self._lock:
                self.connections += 1
                buf = bytearray()
                self._buffers.append(buf)
            threading.Thread(target=self._read_loop, args=(conn, buf), daemon=True).start()

    def _read_loop(self, conn: socket.socket, buf: bytearray) -> None:
        conn.settimeout(0.05)
        with conn:
            while not self._stopped.is_set():
                try:
                    chunk = conn.recv(4096)
                except socket.timeout:
                    continue
                except OSError:
                    return
                if not chunk:
                    return
                with self._lock:
                    buf += chunk

    def received(self) -> bytes:
        with self._lock:
            return b"".join(bytes(b) for b in self._buffers)

    def wait_for(self, size: int, timeout: float = 2.0) -> bytes:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            data = self.received()
            if len(data) >= size:
                return data
            time.sleep(0.01)
        return self.received()

    def close(self) -> None:
        self._stopped.set()
        self._listener.close()


@pytest.fixture
def carbon_server() -> Iterator[CarbonServer]:
    server = CarbonServer()
    try:
        yield server
    finally:
        server.close()
