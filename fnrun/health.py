from __future__ import annotations

import time

import httpx


def check_ready(url: str, timeout_s: float = 2.0, transport: httpx.BaseTransport | None = None) -> tuple[bool, str, float | None]:
    """Probe a function endpoint once.

    Any HTTP response counts as ready; the status code is the function's business.
    Returns (is_ready, message, latency_ms).
    """
    start = time.time()
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False, transport=transport) as client:
            resp = client.get(url)
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return True, f"HTTP {resp.status_code}", latency_ms
    except (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout, httpx.RemoteProtocolError):
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, "No response", latency_ms
    except httpx.HTTPError as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms


def wait_ready(
    url: str,
    timeout_s: float,
    interval_s: float = 0.2,
    transport: httpx.BaseTransport | None = None,
) -> tuple[bool, str, float | None]:
    """Poll ``url`` until it answers or ``timeout_s`` elapses."""
    deadline = time.time() + max(0.0, timeout_s)
    ok, msg, latency = False, "Not probed", None
    while True:
        remaining = deadline - time.time()
        ok, msg, latency = check_ready(url, timeout_s=max(0.1, min(2.0, remaining)), transport=transport)
        if ok or time.time() + interval_s >= deadline:
            return ok, msg, latency
        time.sleep(interval_s)
