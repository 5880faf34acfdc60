import itertools
import os
import sys
import tarfile

import httpx
import pytest

# Ensure project root is importable (so `import fnrun` / `import main` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fnrun.engine import ContainerNotFound, ContainerSummary, ImageNotFound  # noqa: E402
from fnrun.events import EventLog  # noqa: E402
from fnrun.runtime import Function, FunctionTable  # noqa: E402
from fnrun.settings import Settings  # noqa: E402


class FakeEngine:
    """In-memory stand-in for the Docker daemon.

    ``fail`` maps "op" or "op:function-or-tag" to an exception raised by that call.
    """

    def __init__(self) -> None:
        self.images: set[str] = set()
        self.containers: dict[str, dict] = {}
        self.builds: list[tuple[str, list[str]]] = []
        self.removed_images: list[str] = []
        self.stopped: list[tuple[str, int]] = []
        self.fail: dict[str, Exception] = {}
        self.build_error: str | None = None
        self._ids = itertools.count(1)
        self._ports = itertools.count(49153)

    def _maybe_fail(self, op: str, arg: str | None = None) -> None:
        exc = self.fail.get(f"{op}:{arg}") or self.fail.get(op)
        if exc is not None:
            raise exc

    def _function_of(self, container_id: str) -> str | None:
        c = self.containers.get(container_id)
        return c["labels"].get("fnrun.function") if c else None

    def remove_image(self, tag, force=True, prune_children=True):
        self._maybe_fail("remove_image", tag)
        if tag not in self.images:
            raise ImageNotFound(f"No such image: {tag}")
        self.images.discard(tag)
        self.removed_images.append(tag)

    def build_image(self, context, tag):
        self._maybe_fail("build_image", tag)
        with tarfile.open(fileobj=context, mode="r") as tar:
            names = tar.getnames()
        self.builds.append((tag, names))
        return self._stream(tag)

    def _stream(self, tag):
        yield {"stream": "Step 1/2 : FROM python:3.12-slim\n"}
        if self.build_error:
            yield {"errorDetail": {"message": self.build_error}, "error": self.build_error}
            return
        yield {"stream": f"Successfully tagged {tag}\n"}
        # Only reached when the caller drains the stream.
        self.images.add(tag)

    def add_container(self, image, labels=None, running=True):
        cid = f"c{next(self._ids)}"
        self.containers[cid] = {
            "image": image,
            "labels": dict(labels or {}),
            "running": running,
            "host_ip": "127.0.0.1",
            "port": None,
        }
        return cid

    def list_containers(self):
        self._maybe_fail("list_containers")
        return [
            ContainerSummary(id=cid, image=c["image"], labels=dict(c["labels"]))
            for cid, c in self.containers.items()
            if c["running"]
        ]

    def create_container(self, image, container_port, host_ip, labels):
        self._maybe_fail("create_container", labels.get("fnrun.function"))
        if image not in self.images:
            raise ImageNotFound(f"No such image: {image}")
        cid = self.add_container(image, labels, running=False)
        self.containers[cid]["host_ip"] = host_ip
        self.containers[cid]["container_port"] = container_port
        return cid

    def start_container(self, container_id):
        self._maybe_fail("start_container", self._function_of(container_id))
        if container_id not in self.containers:
            raise ContainerNotFound(container_id)
        c = self.containers[container_id]
        c["running"] = True
        c["port"] = next(self._ports)

    def host_port(self, container_id, container_port):
        self._maybe_fail("host_port", self._function_of(container_id))
        return self.containers[container_id]["port"]

    def stop_container(self, container_id, timeout=0):
        self._maybe_fail("stop_container", self._function_of(container_id))
        if container_id not in self.containers:
            raise ContainerNotFound(container_id)
        self.containers[container_id]["running"] = False
        self.stopped.append((container_id, timeout))

    def remove_container(self, container_id):
        self._maybe_fail("remove_container", self._function_of(container_id))
        if container_id not in self.containers:
            raise ContainerNotFound(container_id)
        del self.containers[container_id]

    def running_for(self, name):
        return [
            cid
            for cid, c in self.containers.items()
            if c["running"] and c["labels"].get("fnrun.function") == name
        ]


def echo_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text=f"echo {request.url.path}", headers={"content-type": "text/plain"})


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        image_prefix="fnrun-",
        function_port=80,
        loopback_host="127.0.0.1",
        ready_timeout_s=0,
        remove_stopped=True,
        events_db_path=str(tmp_path / "events.db"),
    )


@pytest.fixture
def events(settings):
    return EventLog(settings.events_db_path)


@pytest.fixture
def make_build_dir(tmp_path):
    def _make(name: str) -> str:
        d = tmp_path / "src" / name
        d.mkdir(parents=True)
        (d / "Dockerfile").write_text("FROM python:3.12-slim\nCOPY app.py .\n")
        (d / "app.py").write_text(f"print('{name}')\n")
        return str(d)

    return _make


@pytest.fixture
def table(make_build_dir):
    return FunctionTable(
        [
            Function(name="echo", build_dir=make_build_dir("echo")),
            Function(name="hello", build_dir=make_build_dir("hello")),
        ]
    )
