from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, computed_field


class StepStatus(str, Enum):
    ok = "ok"
    failed = "failed"
    skipped = "skipped"  # precondition not met, never attempted


class StepOutcome(BaseModel):
    step: str = Field(..., description="Human readable step name, e.g. 'start dnsmasq'")
    status: StepStatus
    detail: str | None = Field(None, description="Why the step failed or was skipped")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def succeeded(self) -> bool:
        return self.status is StepStatus.ok


class ServiceStatus(BaseModel):
    role: str
    container_name: str
    running: bool
    container_id: str | None = None
    detail: str | None = None


class ResolverStatus(BaseModel):
    path: str
    has_our_nameserver: bool
    nameserver_line: str
    detail: str | None = None


class StatusReport(BaseModel):
    services: list[ServiceStatus]
    resolver: ResolverStatus

    @computed_field  # type: ignore[prop-decorator]
    @property
    def complete(self) -> bool:
        """True when every query returned an answer."""
        return all(s.detail is None for s in self.services) and self.resolver.detail is None
