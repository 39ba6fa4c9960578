import asyncio
import signal
import socket
import sys
import threading
import time

import httpx
import uvicorn

from natours.server import APP_IMPORT_PATH, GracefulServer, ProcessSupervisor
from tests.helpers.settings import build_test_settings


class FakeServer:
    """Stands in for uvicorn: serves until asked to exit."""

    def __init__(self, on_start=None) -> None:
        self.should_exit = False
        self.started = False
        self._on_start = on_start

    async def serve(self) -> None:
        self.started = True
        if self._on_start is not None:
            self._on_start(self)
        while not self.should_exit:
            await asyncio.sleep(0.01)


async def slow_app(scope, receive, send):
    if scope["type"] != "http":
        return
    await asyncio.sleep(0.5)
    await send({"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"text/plain")]})
    await send({"type": "http.response.body", "body": b"drained"})


def test_graceful_shutdown_exits_with_zero():
    """
    Validate termination signal handling.

    1. Run the supervisor with a server that is told to exit once started.
    2. Validate the supervisor returns exit code zero.
    """

    def request_exit(srv) -> None:
        srv.should_exit = True

    supervisor = ProcessSupervisor(slow_app, build_test_settings(), server=FakeServer(on_start=request_exit))
    assert supervisor.run() == 0


def test_sigterm_asks_server_to_stop():
    """
    Validate SIGTERM handling on the server.

    1. Build a server.
    2. Deliver SIGTERM to its exit handler.
    3. Validate the server is marked to stop without forcing exit.
    """
    server = GracefulServer(uvicorn.Config(slow_app, log_config=None))
    server.handle_exit(signal.SIGTERM, None)
    assert server.should_exit is True
    assert server.force_exit is False


def test_unhandled_async_fault_exits_with_one():
    """
    Validate unhandled asynchronous fault policy.

    1. Run the supervisor with a server whose loop reports an unhandled task error.
    2. Validate the server is asked to drain and stop.
    3. Validate exit code is one.
    """

    def report_fault(srv) -> None:
        asyncio.get_running_loop().call_exception_handler(
            {"message": "Task exception was never retrieved", "exception": RuntimeError("lost task")}
        )

    fake = FakeServer(on_start=report_fault)
    supervisor = ProcessSupervisor(slow_app, build_test_settings(), server=fake)
    assert supervisor.run() == 1
    assert fake.should_exit is True


def test_loop_messages_without_exception_are_not_fatal():
    """
    Validate non-fatal loop messages.

    1. Report a loop message without exception to the handler.
    2. Validate the default handler receives it.
    3. Validate exit code and server state are untouched.
    """
    received = []

    class RecordingLoop:
        def default_exception_handler(self, context):
            received.append(context)

    fake = FakeServer()
    supervisor = ProcessSupervisor(slow_app, build_test_settings(), server=fake)
    supervisor.handle_unhandled_rejection(RecordingLoop(), {"message": "slow callback"})
    assert received == [{"message": "slow callback"}]
    assert supervisor.exit_code == 0
    assert fake.should_exit is False


def test_uncaught_exception_exits_immediately_with_one():
    """
    Validate uncaught synchronous fault policy.

    1. Build a supervisor with a recording exit function.
    2. Report an uncaught exception.
    3. Validate the process exit is requested with code one.
    """
    exits = []
    supervisor = ProcessSupervisor(slow_app, build_test_settings(), server=FakeServer(), exit_process=exits.append)
    try:
        raise ValueError("broken invariant")
    except ValueError as exc:
        supervisor.handle_uncaught_exception(type(exc), exc, exc.__traceback__)
    assert exits == [1]


def test_graceful_server_drains_in_flight_request():
    """
    Validate in-flight requests complete during shutdown.

    1. Start a real server on an ephemeral port.
    2. Start a slow request and send SIGTERM while it runs.
    3. Validate the request still completes successfully.
    4. Validate the server stops.
    5. Validate readiness reports the bound port.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    server = GracefulServer(uvicorn.Config(slow_app, log_config=None, lifespan="off"))
    server_thread = threading.Thread(target=lambda: asyncio.run(server.serve(sockets=[sock])), daemon=True)
    server_thread.start()

    deadline = time.monotonic() + 5
    while not server.started and time.monotonic() < deadline:
        time.sleep(0.01)
    assert server.started
    assert server.bound_port == port

    result = {}

    def call() -> None:
        result["response"] = httpx.get(f"http://127.0.0.1:{port}/", timeout=5)

    client_thread = threading.Thread(target=call)
    client_thread.start()
    time.sleep(0.2)
    server.handle_exit(signal.SIGTERM, None)

    client_thread.join(timeout=5)
    server_thread.join(timeout=5)
    assert result["response"].status_code == 200
    assert result["response"].text == "drained"
    assert not server_thread.is_alive()


def test_application_is_loaded_by_the_server_after_fault_hooks():
    """
    Validate application loading order.

    1. Build the supervisor with its defaults.
    2. Validate the server receives the application import path, not a loaded app.
    3. Validate the fault hooks are installed.
    """
    supervisor = ProcessSupervisor(settings=build_test_settings())
    assert supervisor.server.config.app == APP_IMPORT_PATH
    assert supervisor.server.config.loaded is False
    previous_hooks = (sys.excepthook, threading.excepthook)
    try:
        supervisor.install_exception_hooks()
        assert sys.excepthook == supervisor.handle_uncaught_exception
    finally:
        sys.excepthook, threading.excepthook = previous_hooks
