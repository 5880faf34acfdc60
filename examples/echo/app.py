from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

GREETING = os.getenv("GREETING", "echo")

app = FastAPI(title="echo")


@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE"])
async def echo(path: str, request: Request) -> PlainTextResponse:
    body = await request.body()
    # Echo the request path, then the body if any.
    text = f"{GREETING} /{path}"
    if body:
        text += "\n" + body.decode("utf-8", errors="replace")
    return PlainTextResponse(text)
