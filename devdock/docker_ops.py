from __future__ import annotations

import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

import docker
import requests
from docker.errors import APIError, ContainerError, DockerException, ImageNotFound, NotFound

from .errors import ContainerNotFound, ContainerOperationError, RuntimeUnavailable
from .settings import Settings, settings as default_settings


CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]{0,127}$")

ROLE_LABEL = "devdock.role"


def validate_container_name(name: str) -> None:
    if not CONTAINER_NAME_RE.match(name):
        raise ValueError("Invalid container name. Use letters, numbers and _.- starting with a letter or number.")


@dataclass(frozen=True)
class ContainerSpec:
    """Everything needed to create a service container from scratch."""

    name: str
    image: str
    command: list[str] | None = None
    ports: dict[str, int] = field(default_factory=dict)
    volumes: dict[str, dict[str, str]] = field(default_factory=dict)
    environment: dict[str, str] = field(default_factory=dict)
    cap_add: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


def _explain(e: Exception) -> str:
    if isinstance(e, APIError) and e.explanation:
        return str(e.explanation)
    if isinstance(e, ContainerError):
        stderr = e.stderr.decode(errors="replace").strip() if isinstance(e.stderr, bytes) else e.stderr
        return stderr or f"exit status {e.exit_status}"
    return str(e)


@contextmanager
def _translate_errors(action: str, name: str) -> Iterator[None]:
    try:
        yield
    except NotFound as e:
        # ImageNotFound is a NotFound too, but it is about the image not the container.
        if isinstance(e, ImageNotFound):
            raise ContainerOperationError(f"{action} {name}: {_explain(e)}") from e
        raise ContainerNotFound(f"Container '{name}' does not exist.") from e
    except (ContainerError, APIError) as e:
        raise ContainerOperationError(f"{action} {name}: {_explain(e)}") from e
    except (DockerException, requests.exceptions.RequestException) as e:
        raise RuntimeUnavailable(f"Docker is not available ({type(e).__name__}: {e}).") from e


class ContainerRuntime:
    """Thin, stateless wrapper over the Docker engine.

    Each call builds its own client, so no connection state lives between
    calls and every answer reflects the engine as it is right now.
    """

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    def _client(self) -> docker.DockerClient:
        try:
            c = docker.from_env(timeout=self.settings.docker_timeout_s)
            c.ping()
            return c
        except (DockerException, requests.exceptions.RequestException) as e:
            raise RuntimeUnavailable(
                "Docker is not available. Start Docker Desktop / docker daemon and try again."
            ) from e

    def available(self) -> bool:
        try:
            self._client()
            return True
        except RuntimeUnavailable:
            return False

    def status(self, name: str) -> str | None:
        """Engine status of the named container ("running", "exited", ...) or None if absent."""
        c = self._client()
        try:
            with _translate_errors("inspect", name):
                cont = c.containers.get(name)
                return cont.status
        except ContainerNotFound:
            return None

    def container_id(self, name: str) -> str | None:
        c = self._client()
        try:
            with _translate_errors("inspect", name):
                return c.containers.get(name).id
        except ContainerNotFound:
            return None

    def run(self, spec: ContainerSpec) -> str:
        """Create and start a container from spec, returning its id."""
        validate_container_name(spec.name)
        c = self._client()
        with _translate_errors("run", spec.name):
            container = c.containers.run(
                spec.image,
                command=spec.command,
                detach=True,
                name=spec.name,
                ports=spec.ports or None,
                volumes=spec.volumes or None,
                environment=spec.environment,
                cap_add=spec.cap_add or None,
                labels=spec.labels,
                restart_policy={"Name": "no"},
            )
        return container.id

    def resume(self, name: str) -> None:
        c = self._client()
        with _translate_errors("start", name):
            c.containers.get(name).start()

    def unpause(self, name: str) -> None:
        c = self._client()
        with _translate_errors("unpause", name):
            c.containers.get(name).unpause()

    def stop(self, name: str) -> None:
        c = self._client()
        with _translate_errors("stop", name):
            c.containers.get(name).stop(timeout=self.settings.stop_timeout_s)

    def remove(self, name: str) -> None:
        c = self._client()
        with _translate_errors("remove", name):
            c.containers.get(name).remove()

    def run_once(self, image: str, command: list[str], volumes: dict[str, dict[str, str]], environment: dict[str, str] | None = None) -> str:
        """Run a throwaway container to completion and return its output.

        A non-zero exit surfaces as ContainerOperationError with the
        container's stderr.
        """
        c = self._client()
        with _translate_errors("run", image):
            out: Any = c.containers.run(
                image,
                command=command,
                volumes=volumes,
                environment=environment or {},
                remove=True,
                stdout=True,
                stderr=True,
            )
        if isinstance(out, bytes):
            return out.decode(errors="replace")
        return str(out)
