import os
import queue
import re
import signal
import socket
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
READY_PATTERN = re.compile(r"App running on port (\d+)")
STARTUP_TIMEOUT_SECONDS = 20

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals required")


class ServerProcess:
    """``natours.server`` in a child process, with its output collected line by line."""

    def __init__(self, tmp_path: Path) -> None:
        env = {
            key: value
            for key, value in os.environ.items()
            if key not in ("REDIS_URL", "DATABASE", "DATABASE_PASSWORD", "PORT", "HOST", "LOG_JSON")
        }
        env.update(
            {
                "NODE_ENV": "production",
                "DATABASE": f"sqlite:///{tmp_path / 'natours.db'}",
                "HOST": "127.0.0.1",
                "PORT": "0",
                "LOG_LEVEL": "INFO",
                "PYTHONUNBUFFERED": "1",
                "PYTHONPATH": str(PROJECT_ROOT),
            }
        )
        self.process = subprocess.Popen(
            [sys.executable, "-m", "natours.server"],
            cwd=tmp_path,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        self.lines: list[str] = []
        self._pending: queue.Queue[str] = queue.Queue()
        self._reader = threading.Thread(target=self._collect, daemon=True)
        self._reader.start()

    def _collect(self) -> None:
        for line in self.process.stdout:
            self.lines.append(line)
            self._pending.put(line)

    def wait_until_ready(self) -> int:
        deadline = time.monotonic() + STARTUP_TIMEOUT_SECONDS
        while time.monotonic() < deadline:
            try:
                line = self._pending.get(timeout=0.2)
            except queue.Empty:
                if self.process.poll() is not None:
                    break
                continue
            match = READY_PATTERN.search(line)
            if match is not None:
                return int(match.group(1))
        self.stop()
        pytest.fail("server did not become ready:\n" + self.output)

    def wait(self) -> int:
        code = self.process.wait(timeout=STARTUP_TIMEOUT_SECONDS)
        self._reader.join(timeout=5)
        return code

    def stop(self) -> None:
        if self.process.poll() is None:
            self.process.kill()
        self.wait()

    @property
    def output(self) -> str:
        return "".join(self.lines)


@pytest.fixture
def server_process(tmp_path):
    process = ServerProcess(tmp_path)
    yield process
    process.stop()


def read_response(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def test_sigterm_drains_in_flight_request_and_exits_zero(server_process):
    """
    Validate graceful shutdown on SIGTERM.

    1. Start the server process and wait for readiness.
    2. Open a request whose JSON body is only partly sent.
    3. Send SIGTERM, then finish the body.
    4. Validate the in-flight request still answers 200.
    5. Validate exit code is zero and termination is logged.
    """
    port = server_process.wait_until_ready()
    with socket.create_connection(("127.0.0.1", port), timeout=10) as sock:
        sock.sendall(
            b"GET /api/v1/ping HTTP/1.1\r\n"
            b"Host: 127.0.0.1\r\n"
            b"Content-Type: application/json\r\n"
            b"Content-Length: 2\r\n"
            b"\r\n{"
        )
        time.sleep(0.5)
        server_process.process.send_signal(signal.SIGTERM)
        time.sleep(0.5)
        sock.sendall(b"}")
        response = read_response(sock)

    assert response.startswith(b"HTTP/1.1 200")
    assert server_process.wait() == 0
    output = server_process.output
    assert "SIGTERM RECEIVED. Shutting down gracefully" in output
    assert "Process terminated!" in output
    assert "UNCAUGHT EXCEPTION" not in output


def test_sigint_is_a_graceful_shutdown(server_process):
    """
    Validate SIGINT is handled like SIGTERM.

    1. Start the server process and wait for readiness.
    2. Send SIGINT.
    3. Validate exit code is zero and no uncaught fault is reported.
    """
    server_process.wait_until_ready()
    server_process.process.send_signal(signal.SIGINT)

    assert server_process.wait() == 0
    output = server_process.output
    assert "Process terminated!" in output
    assert "UNCAUGHT EXCEPTION" not in output
    assert "KeyboardInterrupt" not in output
