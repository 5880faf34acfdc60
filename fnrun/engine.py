"""Container engine interface.

The reconciler and image builder talk to the engine only through the
``Engine`` protocol. ``DockerEngine`` implements it over docker-py and
translates docker errors into the typed errors below, so callers never have
to inspect error text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import IO, Any, Iterator, Protocol

import docker
from docker.errors import DockerException, ImageNotFound as DockerImageNotFound, NotFound


class EngineError(Exception):
    pass


class ImageNotFound(EngineError):
    pass


class ContainerNotFound(EngineError):
    pass


@dataclass(frozen=True)
class ContainerSummary:
    id: str
    image: str
    labels: dict[str, str] = field(default_factory=dict)


class Engine(Protocol):
    def remove_image(self, tag: str, force: bool = True, prune_children: bool = True) -> None: ...

    def build_image(self, context: IO[bytes], tag: str) -> Iterator[dict[str, Any]]: ...

    def list_containers(self) -> list[ContainerSummary]: ...

    def create_container(self, image: str, container_port: int, host_ip: str, labels: dict[str, str]) -> str: ...

    def start_container(self, container_id: str) -> None: ...

    def host_port(self, container_id: str, container_port: int) -> int: ...

    def stop_container(self, container_id: str, timeout: int = 0) -> None: ...

    def remove_container(self, container_id: str) -> None: ...


def _port_key(container_port: int) -> str:
    return f"{int(container_port)}/tcp"


class DockerEngine:
    """Engine backed by the local Docker daemon (configured from the environment)."""

    def __init__(self, client: docker.DockerClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise EngineError(f"Docker is not available: {e}") from e
        return self._client

    def remove_image(self, tag: str, force: bool = True, prune_children: bool = True) -> None:
        try:
            self.client.images.remove(image=tag, force=force, noprune=not prune_children)
        except DockerImageNotFound as e:
            raise ImageNotFound(str(e)) from e
        except DockerException as e:
            raise EngineError(f"Cannot remove image {tag}: {e}") from e

    def build_image(self, context: IO[bytes], tag: str) -> Iterator[dict[str, Any]]:
        """Submit a tar build context; returns the decoded build output stream.

        The daemon only finishes the build while the client reads the stream,
        so callers must drain it.
        """
        try:
            stream = self.client.api.build(
                fileobj=context,
                custom_context=True,
                tag=tag,
                rm=True,
                decode=True,
            )
        except DockerException as e:
            raise EngineError(f"Cannot build image {tag}: {e}") from e
        return self._relay(stream, tag)

    @staticmethod
    def _relay(stream: Iterator[dict[str, Any]], tag: str) -> Iterator[dict[str, Any]]:
        try:
            yield from stream
        except DockerException as e:
            raise EngineError(f"Build stream for {tag} failed: {e}") from e

    def list_containers(self) -> list[ContainerSummary]:
        try:
            # sparse listing keeps the summary "Image" field (the name used at create time)
            containers = self.client.containers.list(sparse=True)
        except DockerException as e:
            raise EngineError(f"Cannot list containers: {e}") from e
        return [
            ContainerSummary(id=c.id, image=c.attrs.get("Image", ""), labels=dict(c.attrs.get("Labels") or {}))
            for c in containers
        ]

    def create_container(self, image: str, container_port: int, host_ip: str, labels: dict[str, str]) -> str:
        try:
            container = self.client.containers.create(
                image,
                detach=True,
                labels=labels,
                # host port None: the daemon allocates a free ephemeral port
                ports={_port_key(container_port): (host_ip, None)},
                restart_policy={"Name": "no"},
            )
        except DockerImageNotFound as e:
            raise ImageNotFound(str(e)) from e
        except DockerException as e:
            raise EngineError(f"Cannot create container from {image}: {e}") from e
        return container.id

    def _get(self, container_id: str) -> Any:
        try:
            return self.client.containers.get(container_id)
        except NotFound as e:
            raise ContainerNotFound(str(e)) from e
        except DockerException as e:
            raise EngineError(f"Cannot get container {container_id}: {e}") from e

    def start_container(self, container_id: str) -> None:
        cont = self._get(container_id)
        try:
            cont.start()
        except NotFound as e:
            raise ContainerNotFound(str(e)) from e
        except DockerException as e:
            raise EngineError(f"Cannot start container {container_id}: {e}") from e

    def host_port(self, container_id: str, container_port: int) -> int:
        cont = self._get(container_id)
        try:
            cont.reload()
        except DockerException as e:
            raise EngineError(f"Cannot inspect container {container_id}: {e}") from e
        ports = cont.attrs.get("NetworkSettings", {}).get("Ports") or {}
        bindings = ports.get(_port_key(container_port)) or []
        if not bindings or not bindings[0].get("HostPort"):
            raise EngineError(f"Container {container_id} has no host binding for {_port_key(container_port)}")
        try:
            return int(bindings[0]["HostPort"])
        except ValueError as e:
            raise EngineError(f"Container {container_id} reported invalid host port {bindings[0]['HostPort']!r}") from e

    def stop_container(self, container_id: str, timeout: int = 0) -> None:
        cont = self._get(container_id)
        try:
            cont.stop(timeout=timeout)
        except NotFound as e:
            raise ContainerNotFound(str(e)) from e
        except DockerException as e:
            raise EngineError(f"Cannot stop container {container_id}: {e}") from e

    def remove_container(self, container_id: str) -> None:
        cont = self._get(container_id)
        try:
            cont.remove(force=True)
        except NotFound as e:
            raise ContainerNotFound(str(e)) from e
        except DockerException as e:
            raise EngineError(f"Cannot remove container {container_id}: {e}") from e
