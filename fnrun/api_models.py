from __future__ import annotations

from pydantic import BaseModel, Field

from .runtime import Function


class FunctionStatus(BaseModel):
    name: str
    image: str | None = Field(None, description="Image tag, set once built")
    running: bool
    endpoint: str | None = Field(None, description="Loopback URL of the running container")
    container_id: str | None = None

    @classmethod
    def from_function(cls, fn: Function) -> "FunctionStatus":
        return cls(
            name=fn.name,
            image=fn.image,
            running=fn.running,
            endpoint=fn.endpoint,
            container_id=fn.container_id,
        )


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    function: str | None = None
    message: str


class ErrorOut(BaseModel):
    detail: str
