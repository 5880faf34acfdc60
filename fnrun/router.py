from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from .errors import FunctionNotFound, FunctionNotRunning, InvocationError
from .events import EventLog
from .runtime import FunctionTable


@dataclass(frozen=True)
class Invocation:
    function: str
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)


def normalize_path(path: str) -> str:
    # Keep it a path (not a URL) so the router cannot be used as a proxy.
    path = path or "/"
    if not path.startswith("/"):
        path = "/" + path
    if "://" in path or ".." in path.split("?", 1)[0].split("/"):
        raise ValueError("path must be a simple absolute path (no scheme, no '..').")
    return path


class Router:
    """Forwards invocations to the running container of a function.

    Lookups only read the function table; the HTTP call happens outside the
    table lock, so concurrent invocations are fine.
    """

    def __init__(
        self,
        table: FunctionTable,
        events: EventLog,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.table = table
        self.events = events
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=False, transport=transport)

    def close(self) -> None:
        self._client.close()

    def endpoint(self, name: str) -> str:
        fn = self.table.snapshot(name)
        if fn is None:
            self.events.warn("Unknown function requested", function=name)
            raise FunctionNotFound(name)
        if not fn.running or not fn.endpoint:
            raise FunctionNotRunning(name)
        return fn.endpoint

    def invoke(
        self,
        name: str,
        path: str,
        method: str = "GET",
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: str | None = None,
    ) -> Invocation:
        base = self.endpoint(name)
        url = base + normalize_path(path)
        if params:
            url = f"{url}?{params}"
        try:
            resp = self._client.request(method, url, content=body, headers=headers)
        except httpx.HTTPError as e:
            self.events.error(f"Error calling function: {type(e).__name__}: {e}", function=name)
            raise InvocationError(name, f"Error calling function '{name}': {e}") from e
        return Invocation(
            function=name,
            status_code=resp.status_code,
            content=resp.content,
            headers=dict(resp.headers),
        )

    def invoke_bytes(self, name: str, path: str) -> bytes:
        return self.invoke(name, path).content
