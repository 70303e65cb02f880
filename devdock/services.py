from __future__ import annotations

from pathlib import Path

from .db import log_event
from .docker_ops import ROLE_LABEL, ContainerRuntime, ContainerSpec
from .errors import ContainerNotFound, ContainerOperationError, KeyFileNotFound, PreconditionFailed
from .settings import Settings, settings as default_settings


LIVE_STATES = frozenset({"running", "paused", "restarting"})


class Service:
    """One named infrastructure container with a uniform control contract.

    Subclasses only describe their container; the lifecycle logic is shared.
    Every decision re-reads the container state from the runtime first.
    start/stop/delete return True on success and raise a DevdockError
    describing the failure otherwise.
    """

    role = ""
    name = ""

    def __init__(self, runtime: ContainerRuntime, settings: Settings = default_settings):
        self.runtime = runtime
        self.settings = settings

    def container_name(self) -> str:
        return self.name

    def container_spec(self) -> ContainerSpec:
        raise NotImplementedError

    def prepare_host(self) -> None:
        """Hook for host-side setup needed before the container is created."""

    def running(self) -> bool:
        return self.runtime.status(self.container_name()) == "running"

    def start(self) -> bool:
        name = self.container_name()
        state = self.runtime.status(name)
        if state == "running":
            return True

        if state is None:
            self.prepare_host()
            self.runtime.run(self.container_spec())
            log_event("INFO", f"Created container {name}", service_name=self.role, step="start", cfg=self.settings)
        elif state == "paused":
            self.runtime.unpause(name)
            log_event("INFO", f"Unpaused container {name}", service_name=self.role, step="start", cfg=self.settings)
        else:
            self.runtime.resume(name)
            log_event("INFO", f"Resumed container {name} (was {state})", service_name=self.role, step="start", cfg=self.settings)

        if not self.running():
            raise ContainerOperationError(f"Container '{name}' is not running after start.")
        return True

    def stop(self) -> bool:
        name = self.container_name()
        # A paused or restarting container still holds its ports.
        if self.runtime.status(name) not in LIVE_STATES:
            return True
        self.runtime.stop(name)
        log_event("INFO", f"Stopped container {name}", service_name=self.role, step="stop", cfg=self.settings)
        return True

    def delete(self) -> bool:
        name = self.container_name()
        state = self.runtime.status(name)
        if state is None:
            raise ContainerNotFound(f"Container '{name}' does not exist.")
        if state in LIVE_STATES:
            raise ContainerOperationError(f"Container '{name}' is still running.")
        self.runtime.remove(name)
        log_event("INFO", f"Removed container {name}", service_name=self.role, step="delete", cfg=self.settings)
        return True

    def _labels(self) -> dict[str, str]:
        return {ROLE_LABEL: self.role}


class DnsmasqService(Service):
    """Answers every name under the managed domains with the configured address."""

    role = "dnsmasq"
    name = "devdock_dnsmasq"

    def container_spec(self) -> ContainerSpec:
        command: list[str] = []
        for domain in self.settings.domains:
            command.extend([domain, self.settings.dns_address])
        return ContainerSpec(
            name=self.name,
            image=self.settings.dns_image,
            command=command,
            ports={"53/tcp": 53, "53/udp": 53},
            cap_add=["NET_ADMIN"],
            labels=self._labels(),
        )


class HttpProxyService(Service):
    """Reverse proxy that routes by virtual host to other local containers."""

    role = "http-proxy"
    name = "devdock_http_proxy"

    def certs_dir(self) -> Path:
        return Path(self.settings.proxy_certs_dir).expanduser()

    def prepare_host(self) -> None:
        # Otherwise the engine creates the bind-mount source as root.
        self.certs_dir().mkdir(parents=True, exist_ok=True)

    def container_spec(self) -> ContainerSpec:
        return ContainerSpec(
            name=self.name,
            image=self.settings.proxy_image,
            ports={"80/tcp": 80, "443/tcp": 443, "19322/udp": 19322},
            volumes={
                self.settings.docker_socket: {"bind": "/tmp/docker.sock", "mode": "ro"},
                str(self.certs_dir()): {"bind": "/etc/nginx/certs", "mode": "ro"},
            },
            environment={
                "CONTAINER_NAME": self.name,
                "DOMAIN_TLD": self.settings.domains[0],
            },
            labels=self._labels(),
        )


AGENT_SOCKET_DIR = "/ssh-agent"


class SshAgentService(Service):
    """Long-lived ssh-agent whose socket lives in a shared named volume."""

    role = "ssh-agent"
    name = "devdock_ssh_agent"

    def agent_environment(self) -> dict[str, str]:
        return {"SSH_AUTH_SOCK": f"{AGENT_SOCKET_DIR}/socket"}

    def container_spec(self) -> ContainerSpec:
        return ContainerSpec(
            name=self.name,
            image=self.settings.ssh_agent_image,
            volumes={self.settings.ssh_agent_volume: {"bind": AGENT_SOCKET_DIR, "mode": "rw"}},
            environment=self.agent_environment(),
            labels=self._labels(),
        )


class KeyInjector:
    """Loads an SSH private key into the running agent container."""

    def __init__(self, agent: SshAgentService, runtime: ContainerRuntime, settings: Settings = default_settings):
        self.agent = agent
        self.runtime = runtime
        self.settings = settings

    def default_key_path(self) -> Path:
        return Path(self.settings.ssh_key_path).expanduser()

    def add_key(self, path: str | Path | None = None) -> bool:
        if not self.agent.running():
            raise PreconditionFailed(f"{self.agent.container_name()} is not running.")

        key = Path(path).expanduser() if path else self.default_key_path()
        if not key.is_file():
            raise KeyFileNotFound(f"SSH key '{key}' does not exist.")
        key = key.resolve()

        # ssh-add is idempotent for a key the agent already holds.
        self.runtime.run_once(
            image=self.settings.ssh_agent_image,
            command=["ssh-add", f"/ssh/{key.name}"],
            volumes={
                str(key.parent): {"bind": "/ssh", "mode": "ro"},
                self.settings.ssh_agent_volume: {"bind": AGENT_SOCKET_DIR, "mode": "rw"},
            },
            environment=self.agent.agent_environment(),
        )
        log_event("INFO", f"Added key {key}", service_name=self.agent.role, step="addkey", cfg=self.settings)
        return True
