from __future__ import annotations

from typing import Callable

from .engine import ContainerNotFound, ContainerSummary, Engine, EngineError
from .errors import ReconcileError, StopError
from .events import EventLog
from .health import wait_ready
from .runtime import Function, FunctionTable
from .settings import Settings

LABEL_FUNCTION = "fnrun.function"
LABEL_MANAGED = "fnrun.managed"

Probe = Callable[[str, float], "tuple[bool, str, float | None]"]


class Reconciler:
    """Brings the engine to "every configured function has exactly one running container".

    Functions are processed one at a time in configuration order. Engine
    errors abort the pass with ReconcileError; there is no retry.
    """

    def __init__(
        self,
        engine: Engine,
        table: FunctionTable,
        settings: Settings,
        events: EventLog,
        probe: Probe | None = None,
    ):
        self.engine = engine
        self.table = table
        self.settings = settings
        self.events = events
        self.probe = probe or wait_ready

    def _matches(self, fn: Function, c: ContainerSummary) -> bool:
        if c.labels.get(LABEL_FUNCTION) == fn.name and c.labels.get(LABEL_MANAGED) == "true":
            return True
        return bool(fn.image) and c.image == fn.image

    def observe(self) -> dict[str, list[str]]:
        """Record which functions already have running containers.

        Returns function name -> ids of every matching container.
        """
        try:
            containers = self.engine.list_containers()
        except EngineError as e:
            raise ReconcileError(None, f"cannot list containers: {e}") from e

        observed: dict[str, list[str]] = {}
        for fn in self.table.snapshots():
            ids = [c.id for c in containers if self._matches(fn, c)]
            what = f"Image {fn.image}" if fn.image else "Function"
            if ids:
                self.table.mark_observed(fn.name, ids[-1])
                observed[fn.name] = ids
                self.events.info(f"{what} is running as {', '.join(ids)}", function=fn.name)
            else:
                self.table.mark_stopped(fn.name)
                self.events.info(f"{what} is not running", function=fn.name)
        return observed

    def start(self) -> None:
        """Run one reconciliation pass: observe, stop everything found, start one container per function.

        If a function fails to start, functions already started in this pass
        are stopped again before the error is raised.
        """
        observed = self.observe()

        for name, ids in observed.items():
            self.events.info(f"Stopping {len(ids)} existing container(s)", function=name)
            for container_id in ids:
                self._stop_container(name, container_id)
            self.table.mark_stopped(name)

        started: list[str] = []
        try:
            for fn in self.table.snapshots():
                self._start_function(fn)
                started.append(fn.name)
        except ReconcileError as e:
            self._rollback(started, e)
            raise

    def _start_function(self, fn: Function) -> None:
        if not fn.image:
            raise ReconcileError(fn.name, "image has not been built")

        port = self.settings.function_port
        host = self.settings.loopback_host
        labels = {LABEL_FUNCTION: fn.name, LABEL_MANAGED: "true"}

        self.events.info(f"Starting container from {fn.image}", function=fn.name)
        try:
            container_id = self.engine.create_container(fn.image, port, host, labels)
        except EngineError as e:
            self.events.error(f"Cannot create container: {e}", function=fn.name)
            raise ReconcileError(fn.name, f"cannot create container: {e}") from e

        try:
            self.engine.start_container(container_id)
            # The daemon picks the host port; it is only known after start.
            host_port = self.engine.host_port(container_id, port)
        except EngineError as e:
            self.events.error(f"Cannot start container {container_id}: {e}", function=fn.name)
            self._discard(fn.name, container_id)
            raise ReconcileError(fn.name, f"cannot start container {container_id}: {e}") from e

        self.table.mark_running(fn.name, container_id, host, host_port)
        self.events.info(
            f"Started as container {container_id} with mapping {host}:{host_port}->{port}/tcp",
            function=fn.name,
        )

        if self.settings.ready_timeout_s > 0:
            endpoint = f"http://{host}:{host_port}/"
            ok, msg, latency = self.probe(endpoint, self.settings.ready_timeout_s)
            if ok:
                self.events.info(f"Ready ({msg}, {latency} ms)", function=fn.name)
            else:
                self.events.warn(f"Not ready after {self.settings.ready_timeout_s}s: {msg}", function=fn.name)

    def _stop_container(self, name: str, container_id: str) -> None:
        try:
            self.engine.stop_container(container_id, timeout=self.settings.stop_timeout_s)
        except ContainerNotFound:
            self.events.info(f"Container {container_id} already gone", function=name)
            return
        except EngineError as e:
            self.events.error(f"Cannot stop container {container_id}: {e}", function=name)
            raise ReconcileError(name, f"cannot stop container {container_id}: {e}") from e
        self.events.info(f"Stopped container {container_id}", function=name)

        if not self.settings.remove_stopped:
            return
        try:
            self.engine.remove_container(container_id)
        except ContainerNotFound:
            pass
        except EngineError as e:
            # The container is already stopped; a leftover only costs disk space.
            self.events.warn(f"Cannot remove stopped container {container_id}: {e}", function=name)

    def _discard(self, name: str, container_id: str) -> None:
        try:
            self._stop_container(name, container_id)
        except ReconcileError as e:
            self.events.warn(f"Leaving container {container_id} behind: {e}", function=name)

    def _rollback(self, started: list[str], err: ReconcileError) -> None:
        for name in reversed(started):
            fn = self.table.snapshot(name)
            if fn is None or not fn.container_id:
                continue
            self.events.warn("Rolling back start", function=name)
            try:
                self._stop_container(name, fn.container_id)
            except ReconcileError as e:
                err.rollback_failures[name] = e
                continue
            self.table.mark_stopped(name)

    def stop(self) -> None:
        """Stop every running function, attempting all of them.

        Raises StopError listing every failure once all stops were attempted.
        """
        failures: dict[str, Exception] = {}
        for fn in self.table.running():
            self.events.info(f"Stopping container {fn.container_id}", function=fn.name)
            try:
                self._stop_container(fn.name, fn.container_id or "")
            except ReconcileError as e:
                failures[fn.name] = e
                continue
            self.table.mark_stopped(fn.name)

        if failures:
            raise StopError(failures)
