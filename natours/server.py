"""
Process supervisor.

Runs the application under uvicorn and owns the process-level fault policy:

- SIGTERM / SIGINT: stop accepting connections, drain in-flight requests,
  close the database handle and exit 0.
- An unhandled exception escaping an asyncio task: drain the same way and
  exit 1.
- An uncaught exception on any thread: log it and exit 1 immediately, since
  the process state can no longer be trusted.

The fault hooks are installed before the application module is imported, so
a fault while loading the app is covered too.
"""

import asyncio
import contextlib
import os
import signal
import sys
import threading
from collections.abc import Callable, Iterator
from types import FrameType
from typing import Any

import uvicorn

from natours.config import Settings, settings as default_settings
from natours.infrastructure.logging import configure_logging, get_logger

logger = get_logger(__name__)

APP_IMPORT_PATH = "natours.main:app"
TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulServer(uvicorn.Server):
    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if not self.should_exit:
            logger.info("sigterm_received", message="SIGTERM RECEIVED. Shutting down gracefully", signal=sig)
        super().handle_exit(sig, frame)

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            logger.info("app_ready", message=f"App running on port {self.bound_port}...")

    @property
    def bound_port(self) -> int:
        for server in getattr(self, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return self.config.port


class ProcessSupervisor:
    def __init__(
        self,
        app: Any = APP_IMPORT_PATH,
        settings: Settings = default_settings,
        server: uvicorn.Server | None = None,
        exit_process: Callable[[int], Any] = os._exit,
    ) -> None:
        self.settings = settings
        self.server = server or GracefulServer(
            uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None, lifespan="on")
        )
        self.exit_code = 0
        self._exit_process = exit_process
        self._loop: asyncio.AbstractEventLoop | None = None

    def handle_uncaught_exception(self, exc_type, exc_value, exc_traceback) -> None:
        logger.critical(
            "uncaught_exception",
            message="UNCAUGHT EXCEPTION! Shutting down...",
            error=f"{exc_type.__name__}: {exc_value}",
            exc_info=(exc_type, exc_value, exc_traceback),
        )
        self._exit_process(1)

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        self.handle_uncaught_exception(args.exc_type, args.exc_value, args.exc_traceback)

    def handle_unhandled_rejection(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is None:
            loop.default_exception_handler(context)
            return
        logger.error(
            "unhandled_rejection",
            message="UNHANDLED REJECTION! Shutting down...",
            error=f"{type(exc).__name__}: {exc}",
            exc_info=exc,
        )
        self.exit_code = 1
        self.server.should_exit = True

    def _handle_termination_signal(self, sig: int, frame: FrameType | None) -> None:
        self.server.should_exit = True

    @contextlib.contextmanager
    def _termination_signals_handled(self) -> Iterator[None]:
        # uvicorn re-raises the signals it caught once it has drained; they land here
        # instead of on the default handlers.
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        previous = {sig: signal.signal(sig, self._handle_termination_signal) for sig in TERMINATION_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    async def serve(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._loop.set_exception_handler(self.handle_unhandled_rejection)
        logger.info("app_starting", host=self.settings.host, port=self.settings.port, env=self.settings.node_env)
        with self._termination_signals_handled():
            await self.server.serve()
        if not self.server.started:
            logger.error("app_startup_failed")
            self.exit_code = 1
        elif self.exit_code == 0:
            logger.info("process_terminated", message="Process terminated!")

    def install_exception_hooks(self) -> None:
        sys.excepthook = self.handle_uncaught_exception
        threading.excepthook = self._handle_thread_exception

    def run(self) -> int:
        asyncio.run(self.serve())
        return self.exit_code


def main() -> None:
    configure_logging(default_settings)
    supervisor = ProcessSupervisor(APP_IMPORT_PATH, default_settings)
    supervisor.install_exception_hooks()
    raise SystemExit(supervisor.run())


if __name__ == "__main__":
    main()
