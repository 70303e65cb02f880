from __future__ import annotations

import os
import sys
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    items = tuple(x.strip() for x in raw.split(",") if x.strip())
    return items or default


def _state_dir() -> str:
    base = os.getenv("XDG_STATE_HOME") or os.path.join(os.path.expanduser("~"), ".local", "state")
    return os.path.join(base, "devdock")


def _is_macos() -> bool:
    return sys.platform == "darwin"


DEFAULT_DOMAINS = _env_list("DEVDOCK_DOMAINS", ("docker",))


def _default_resolv_path() -> str:
    # macOS consults one file per domain under /etc/resolver.
    if _is_macos():
        return f"/etc/resolver/{DEFAULT_DOMAINS[0]}"
    return "/etc/resolv.conf"


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("DEVDOCK_DB_PATH", os.path.join(_state_dir(), "events.db"))
    event_log: bool = _env_bool("DEVDOCK_EVENT_LOG", True)
    docker_timeout_s: int = _env_int("DEVDOCK_DOCKER_TIMEOUT_S", 60)
    stop_timeout_s: int = _env_int("DEVDOCK_STOP_TIMEOUT_S", 10)

    # DNS
    domains: tuple[str, ...] = DEFAULT_DOMAINS
    dns_address: str = os.getenv("DEVDOCK_DNS_ADDRESS", "127.0.0.1")
    dns_image: str = os.getenv("DEVDOCK_DNS_IMAGE", "freedomben/dory-dnsmasq:1.1.0")

    # HTTP proxy
    proxy_image: str = os.getenv("DEVDOCK_PROXY_IMAGE", "codekitchen/dinghy-http-proxy:latest")
    proxy_certs_dir: str = os.getenv("DEVDOCK_PROXY_CERTS_DIR", "~/.devdock/certs")
    docker_socket: str = os.getenv("DEVDOCK_DOCKER_SOCKET", "/var/run/docker.sock")

    # SSH agent
    ssh_agent_image: str = os.getenv("DEVDOCK_SSH_AGENT_IMAGE", "whilp/ssh-agent:latest")
    ssh_agent_volume: str = os.getenv("DEVDOCK_SSH_AGENT_VOLUME", "devdock_ssh_agent")
    ssh_key_path: str = os.getenv("DEVDOCK_SSH_KEY_PATH", "~/.ssh/id_rsa")

    # Host resolver file
    resolv_path: str = os.getenv("DEVDOCK_RESOLV_PATH", _default_resolv_path())
    # When set, devdock owns the whole file: create it if missing, delete it once empty.
    resolv_manage_file: bool = _env_bool("DEVDOCK_RESOLV_MANAGE_FILE", _is_macos())


settings = Settings()
