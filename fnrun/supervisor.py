from __future__ import annotations

import signal
import threading
from typing import Any

import httpx
import uvicorn

from .api import create_app
from .builder import ImageBuilder
from .config import Config
from .engine import DockerEngine, Engine
from .errors import StopError
from .events import EventLog
from .reconciler import Reconciler
from .router import Router
from .runtime import FunctionTable
from .settings import Settings

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownRequested(Exception):
    def __init__(self, signum: int):
        self.signum = signum
        self.signame = signal.Signals(signum).name
        super().__init__(f"Received {self.signame}")


def _raise_shutdown(signum: int, frame: Any) -> None:
    raise ShutdownRequested(signum)


def _install_stop_handlers() -> dict[int, Any]:
    """Route SIGINT/SIGTERM to ShutdownRequested.

    uvicorn captures these while serving and re-raises the captured signal
    once the listener is closed, so the re-raise lands here instead of
    killing the process.
    """
    if threading.current_thread() is not threading.main_thread():
        return {}
    previous: dict[int, Any] = {}
    for sig in STOP_SIGNALS:
        previous[sig] = signal.getsignal(sig)
        signal.signal(sig, _raise_shutdown)
    return previous


def _restore_handlers(previous: dict[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
    previous.clear()


class Supervisor:
    """Owns the process phases: build, reconcile, serve, tear down.

    Reconciliation and serving never overlap: the listener starts only after
    startup() returned and containers are stopped only after it closed.
    """

    def __init__(
        self,
        config: Config,
        settings: Settings | None = None,
        engine: Engine | None = None,
        events: EventLog | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.settings = settings or Settings()
        self.events = events or EventLog(self.settings.events_db_path or None)
        self.engine = engine or DockerEngine()
        self.table = FunctionTable(config.to_functions())
        self.builder = ImageBuilder(self.engine, self.table, self.settings, self.events)
        self.reconciler = Reconciler(self.engine, self.table, self.settings, self.events)
        self.router = Router(self.table, self.events, timeout_s=self.settings.invoke_timeout_s, transport=transport)
        self.app = create_app(self.table, self.router, self.events)

    def startup(self) -> None:
        self.builder.build_all()
        self.events.info("Starting runtime")
        self.reconciler.start()
        self.events.info(f"Runtime started with {len(self.table)} function(s)")

    def serve(self, host: str, port: int) -> None:
        config = uvicorn.Config(
            self.app,
            host=host,
            port=int(port),
            # in-flight requests are abandoned after this
            timeout_graceful_shutdown=self.settings.shutdown_timeout_s,
            log_level=self.settings.log_level.lower(),
        )
        server = uvicorn.Server(config)
        self.events.info(f"HTTP server listening on {host}:{port}")
        server.run()
        self.events.info("Server stopped")

    def shutdown(self) -> None:
        try:
            self.reconciler.stop()
        finally:
            self.router.close()
        self.events.info("Runtime stopped")

    def run(self, host: str, port: int) -> None:
        """Start up, serve until SIGINT/SIGTERM, then stop every container.

        A stop signal is a normal shutdown and returns; any other error is
        re-raised after teardown.
        """
        previous = _install_stop_handlers()
        try:
            try:
                self.startup()
                self.serve(host, port)
            finally:
                # A second signal during teardown gets the default behaviour.
                _restore_handlers(previous)
        except ShutdownRequested as e:
            self.events.info(f"Received {e.signame}, shutting down")
        except BaseException:
            # Do not let a teardown failure mask the original error.
            try:
                self.shutdown()
            except StopError as e:
                self.events.error(str(e))
            raise
        self.shutdown()
