from __future__ import annotations

from pathlib import Path
from typing import Callable

from .db import log_event
from .docker_ops import ContainerRuntime
from .errors import DevdockError, PreconditionFailed
from .models import ResolverStatus, ServiceStatus, StatusReport, StepOutcome, StepStatus
from .resolver import HostResolverConfig
from .services import DnsmasqService, HttpProxyService, KeyInjector, Service, SshAgentService
from .settings import Settings, settings as default_settings


class Orchestrator:
    """Brings the infrastructure services up and down as one unit.

    Steps run strictly in order and never abort the sequence: each step's
    error is caught at its boundary and reported as a StepOutcome. The only
    ordering rule enforced is that a container is deleted only after its
    own stop succeeded.
    """

    def __init__(
        self,
        runtime: ContainerRuntime | None = None,
        resolver: HostResolverConfig | None = None,
        settings: Settings = default_settings,
    ):
        self.settings = settings
        self.runtime = runtime or ContainerRuntime(settings)
        self.resolver = resolver or HostResolverConfig.from_settings(settings)

        self.dnsmasq = DnsmasqService(self.runtime, settings)
        self.proxy = HttpProxyService(self.runtime, settings)
        self.ssh_agent = SshAgentService(self.runtime, settings)
        self.key_injector = KeyInjector(self.ssh_agent, self.runtime, settings)

    @property
    def services(self) -> tuple[Service, ...]:
        return (self.dnsmasq, self.proxy, self.ssh_agent)

    def _step(self, step: str, action: Callable[[], bool], service_name: str | None = None) -> StepOutcome:
        try:
            ok = action()
            outcome = StepOutcome(step=step, status=StepStatus.ok if ok else StepStatus.failed)
        except PreconditionFailed as e:
            outcome = StepOutcome(step=step, status=StepStatus.skipped, detail=str(e))
        except DevdockError as e:
            outcome = StepOutcome(step=step, status=StepStatus.failed, detail=str(e))

        level = {StepStatus.ok: "INFO", StepStatus.skipped: "WARN", StepStatus.failed: "ERROR"}[outcome.status]
        message = f"{step}: {outcome.status.value}"
        if outcome.detail:
            message += f" ({outcome.detail})"
        log_event(level, message, service_name=service_name, step=step, cfg=self.settings)
        return outcome

    def up(self) -> list[StepOutcome]:
        outcomes = [self._step(f"start {s.role}", s.start, s.role) for s in self.services]
        outcomes.append(self.add_key())
        outcomes.append(self._step("configure resolver", self.resolver.configure))
        return outcomes

    def down(self, destroy: bool = False) -> list[StepOutcome]:
        outcomes = [self._step("clean resolver", self.resolver.clean)]
        for s in (self.dnsmasq, self.ssh_agent, self.proxy):
            stopped = self._step(f"stop {s.role}", s.stop, s.role)
            outcomes.append(stopped)
            if not destroy:
                continue
            if stopped.succeeded:
                outcomes.append(self._step(f"delete {s.role}", s.delete, s.role))
            else:
                outcomes.append(
                    StepOutcome(step=f"delete {s.role}", status=StepStatus.skipped, detail="stop did not succeed")
                )
        return outcomes

    def restart(self, destroy: bool = False) -> list[StepOutcome]:
        return self.down(destroy=destroy) + self.up()

    def add_key(self, path: str | Path | None = None) -> StepOutcome:
        return self._step("add ssh key", lambda: self.key_injector.add_key(path), self.ssh_agent.role)

    def status(self) -> StatusReport:
        services: list[ServiceStatus] = []
        for s in self.services:
            try:
                name = s.container_name()
                services.append(
                    ServiceStatus(
                        role=s.role, container_name=name, running=s.running(), container_id=self.runtime.container_id(name)
                    )
                )
            except DevdockError as e:
                services.append(
                    ServiceStatus(role=s.role, container_name=s.container_name(), running=False, detail=str(e))
                )

        line = self.resolver.file_nameserver_line()
        try:
            resolver = ResolverStatus(
                path=str(self.resolver.path), has_our_nameserver=self.resolver.has_our_nameserver(), nameserver_line=line
            )
        except DevdockError as e:
            resolver = ResolverStatus(path=str(self.resolver.path), has_our_nameserver=False, nameserver_line=line, detail=str(e))

        return StatusReport(services=services, resolver=resolver)
