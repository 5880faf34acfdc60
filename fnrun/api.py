from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from .api_models import ErrorOut, EventOut, FunctionStatus
from .errors import FunctionNotFound, FunctionNotRunning, InvocationError
from .events import EventLog
from .router import Router
from .runtime import FunctionTable

INVOKE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Not forwarded from a function response; content framing is recomputed here.
DROPPED_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "content-encoding",
    }
)

INVOKE_ERRORS = {
    400: {"model": ErrorOut, "description": "Invalid invocation path"},
    404: {"model": ErrorOut, "description": "Function not configured"},
    502: {"model": ErrorOut, "description": "Function unreachable"},
    503: {"model": ErrorOut, "description": "Function not running"},
}


def response_headers(headers) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in DROPPED_RESPONSE_HEADERS}


def create_app(table: FunctionTable, router: Router, events: EventLog) -> FastAPI:
    app = FastAPI(title="fnrun")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/functions", response_model=list[FunctionStatus])
    def list_functions() -> list[FunctionStatus]:
        return [FunctionStatus.from_function(fn) for fn in table.snapshots()]

    @app.get("/functions/{name}", response_model=FunctionStatus)
    def get_function(name: str) -> FunctionStatus:
        fn = table.snapshot(name)
        if fn is None:
            raise HTTPException(status_code=404, detail=f"Function '{name}' not found.")
        return FunctionStatus.from_function(fn)

    @app.get("/events", response_model=list[EventOut])
    def latest_events(limit: int = Query(100, ge=1, le=1000)) -> list[dict]:
        return events.latest(limit)

    async def _invoke(name: str, path: str, request: Request) -> Response:
        body = await request.body()
        headers = {}
        if "content-type" in request.headers:
            headers["content-type"] = request.headers["content-type"]
        try:
            result = await run_in_threadpool(
                router.invoke,
                name,
                "/" + path,
                request.method,
                body or None,
                headers,
                request.url.query or None,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except FunctionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except FunctionNotRunning as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except InvocationError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        return Response(
            content=result.content,
            status_code=result.status_code,
            headers=response_headers(result.headers),
        )

    @app.api_route("/invoke/{name}", methods=INVOKE_METHODS, responses=INVOKE_ERRORS)
    async def invoke_root(name: str, request: Request) -> Response:
        return await _invoke(name, "", request)

    @app.api_route("/invoke/{name}/{path:path}", methods=INVOKE_METHODS, responses=INVOKE_ERRORS)
    async def invoke_path(name: str, path: str, request: Request) -> Response:
        return await _invoke(name, path, request)

    return app
