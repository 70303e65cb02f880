import docker
import pytest
import requests
from docker.errors import APIError, ContainerError, DockerException, ImageNotFound, NotFound

from devdock.docker_ops import ContainerRuntime, ContainerSpec, validate_container_name
from devdock.errors import ContainerNotFound, ContainerOperationError, RuntimeUnavailable
from devdock.settings import Settings


class _Container:
    def __init__(self, name, status="running"):
        self.id = f"id-{name}"
        self.name = name
        self.status = status
        self.stop_timeout = None

    def start(self):
        self.status = "running"

    def unpause(self):
        self.status = "running"

    def stop(self, timeout=None):
        self.stop_timeout = timeout
        self.status = "exited"

    def remove(self):
        if self.status == "running":
            raise APIError("conflict", explanation="You cannot remove a running container")


class _Containers:
    def __init__(self):
        self.by_name = {}
        self.run_kwargs = []
        self.run_error = None

    def get(self, name):
        if name not in self.by_name:
            raise NotFound(f"No such container: {name}")
        return self.by_name[name]

    def run(self, image, **kwargs):
        self.run_kwargs.append({"image": image, **kwargs})
        if self.run_error:
            raise self.run_error
        if kwargs.get("remove"):
            return b"Identity added: /ssh/id_rsa\n"
        c = _Container(kwargs["name"])
        self.by_name[c.name] = c
        return c


class _Client:
    def __init__(self):
        self.containers = _Containers()
        self.reachable = True

    def ping(self):
        if not self.reachable:
            raise requests.exceptions.ConnectionError("connection refused")
        return True


@pytest.fixture
def client(monkeypatch):
    c = _Client()
    monkeypatch.setattr(docker, "from_env", lambda timeout=None: c)
    return c


@pytest.fixture
def runtime():
    return ContainerRuntime(Settings(stop_timeout_s=3))


def test_status_of_missing_and_existing_container(client, runtime):
    assert runtime.status("devdock_dnsmasq") is None
    client.containers.by_name["devdock_dnsmasq"] = _Container("devdock_dnsmasq", "exited")
    assert runtime.status("devdock_dnsmasq") == "exited"
    assert runtime.container_id("devdock_dnsmasq") == "id-devdock_dnsmasq"


def test_run_passes_spec(client, runtime):
    spec = ContainerSpec(
        name="devdock_dnsmasq",
        image="freedomben/dory-dnsmasq:1.1.0",
        command=["docker", "127.0.0.1"],
        ports={"53/udp": 53},
        cap_add=["NET_ADMIN"],
        labels={"devdock.role": "dnsmasq"},
    )
    assert runtime.run(spec) == "id-devdock_dnsmasq"

    kw = client.containers.run_kwargs[0]
    assert kw["image"] == "freedomben/dory-dnsmasq:1.1.0"
    assert kw["detach"] is True
    assert kw["ports"] == {"53/udp": 53}
    assert kw["volumes"] is None
    assert kw["cap_add"] == ["NET_ADMIN"]
    assert kw["restart_policy"] == {"Name": "no"}


def test_run_conflict_is_operation_error(client, runtime):
    client.containers.run_error = APIError("500", explanation="Bind for 0.0.0.0:80 failed: port is already allocated")
    with pytest.raises(ContainerOperationError, match="port is already allocated"):
        runtime.run(ContainerSpec(name="devdock_http_proxy", image="proxy"))


def test_missing_image_is_operation_error_not_missing_container(client, runtime):
    client.containers.run_error = ImageNotFound("No such image: nope")
    with pytest.raises(ContainerOperationError) as exc:
        runtime.run(ContainerSpec(name="devdock_http_proxy", image="nope"))
    assert not isinstance(exc.value, ContainerNotFound)


def test_stop_uses_grace_period_and_missing_container(client, runtime):
    c = _Container("devdock_ssh_agent")
    client.containers.by_name[c.name] = c
    runtime.stop(c.name)
    assert c.status == "exited"
    assert c.stop_timeout == 3

    with pytest.raises(ContainerNotFound):
        runtime.stop("devdock_dnsmasq")


def test_remove_running_container_rejected(client, runtime):
    client.containers.by_name["devdock_dnsmasq"] = _Container("devdock_dnsmasq")
    with pytest.raises(ContainerOperationError, match="cannot remove a running container"):
        runtime.remove("devdock_dnsmasq")


def test_resume_and_unpause(client, runtime):
    c = _Container("devdock_dnsmasq", "exited")
    client.containers.by_name[c.name] = c
    runtime.resume(c.name)
    assert c.status == "running"

    c.status = "paused"
    runtime.unpause(c.name)
    assert c.status == "running"


def test_unreachable_engine(client, runtime):
    client.reachable = False
    assert runtime.available() is False
    with pytest.raises(RuntimeUnavailable):
        runtime.status("devdock_dnsmasq")


def test_from_env_failure_is_unavailable(monkeypatch, runtime):
    def broken(timeout=None):
        raise DockerException("Error while fetching server API version")

    monkeypatch.setattr(docker, "from_env", broken)
    with pytest.raises(RuntimeUnavailable):
        runtime.stop("devdock_dnsmasq")


def test_run_once_returns_output_and_maps_exit_status(client, runtime):
    out = runtime.run_once("whilp/ssh-agent:latest", ["ssh-add", "/ssh/id_rsa"], volumes={})
    assert out.startswith("Identity added")
    assert client.containers.run_kwargs[0]["remove"] is True

    client.containers.run_error = ContainerError(
        "c", 1, "ssh-add /ssh/id_rsa", "whilp/ssh-agent:latest", b"Error loading key: invalid format\n"
    )
    with pytest.raises(ContainerOperationError, match="invalid format"):
        runtime.run_once("whilp/ssh-agent:latest", ["ssh-add", "/ssh/id_rsa"], volumes={})


def test_validate_container_name():
    validate_container_name("devdock_http_proxy")
    with pytest.raises(ValueError):
        validate_container_name("-bad name")
