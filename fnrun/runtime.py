from __future__ import annotations

from dataclasses import dataclass, replace
from threading import Lock
from typing import Iterable, Iterator


@dataclass
class Function:
    name: str
    build_dir: str

    # Set by the image builder.
    image: str | None = None

    # Set by the reconciler; endpoint is defined iff running.
    container_id: str | None = None
    host_port: int | None = None
    endpoint: str | None = None
    running: bool = False


class FunctionTable:
    """In-memory state of the configured functions, in configuration order.

    Runtime fields are always updated together under the lock so readers
    never observe ``running`` without a matching ``endpoint``.
    """

    def __init__(self, functions: Iterable[Function]) -> None:
        self.lock = Lock()
        self._functions: dict[str, Function] = {}
        for fn in functions:
            if fn.name in self._functions:
                raise ValueError(f"Duplicate function name '{fn.name}'.")
            self._functions[fn.name] = fn

    def __iter__(self) -> Iterator[Function]:
        return iter(list(self._functions.values()))

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def names(self) -> list[str]:
        return list(self._functions)

    def get(self, name: str) -> Function | None:
        return self._functions.get(name)

    def snapshot(self, name: str) -> Function | None:
        """Return a consistent copy of one function's state."""
        with self.lock:
            fn = self._functions.get(name)
            return replace(fn) if fn else None

    def snapshots(self) -> list[Function]:
        with self.lock:
            return [replace(fn) for fn in self._functions.values()]

    def set_image(self, name: str, image: str | None) -> None:
        with self.lock:
            self._functions[name].image = image

    def mark_running(self, name: str, container_id: str, host: str, host_port: int) -> None:
        with self.lock:
            fn = self._functions[name]
            fn.container_id = container_id
            fn.host_port = int(host_port)
            fn.endpoint = f"http://{host}:{int(host_port)}"
            fn.running = True

    def mark_observed(self, name: str, container_id: str) -> None:
        # A container found by listing has no known endpoint, so it is not routable.
        with self.lock:
            fn = self._functions[name]
            fn.container_id = container_id
            fn.host_port = None
            fn.endpoint = None
            fn.running = False

    def mark_stopped(self, name: str) -> None:
        with self.lock:
            fn = self._functions[name]
            fn.container_id = None
            fn.host_port = None
            fn.endpoint = None
            fn.running = False

    def running(self) -> list[Function]:
        with self.lock:
            return [replace(fn) for fn in self._functions.values() if fn.running]
