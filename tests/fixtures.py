"""Shared test doubles: an in-memory cluster and a virtual clock."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from src.captain.config import CaptainSettings
from src.captain.errors import RequestNotFoundError
from src.captain.interfaces import EventKind
from src.captain.models import (
    DeploymentRequest,
    DeploymentStatus,
    EncodedPackageRecord,
    Phase,
    RequestIdentity,
)


class FakeClock:
    """Virtual clock: sleeping advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@dataclass
class RecordedEvent:
    kind: EventKind
    reason: str
    message: str
    subject: RequestIdentity


@dataclass
class FakeCluster:
    """In-memory implementation of every cluster collaborator protocol.

    ``phases`` scripts the phase returned by successive status fetches; the
    last entry repeats once the script runs out.
    """

    requests: dict[RequestIdentity, DeploymentRequest] = field(default_factory=dict)
    config_maps: dict[tuple[str, str], dict[str, str]] = field(default_factory=dict)
    releases: dict[tuple[str, str], EncodedPackageRecord] = field(
        default_factory=dict
    )
    phases: list[Phase] = field(default_factory=lambda: [Phase.SYNCED])
    diagnostics: list[str] = field(default_factory=list)
    status_error: Exception | None = None
    diagnostics_error: Exception | None = None
    emit_error: Exception | None = None
    events: list[RecordedEvent] = field(default_factory=list)
    status_fetches: int = 0
    writes: int = 0
    closed: bool = False

    def close(self) -> None:
        self.closed = True

    # StatusAccessor

    def fetch_status(self, identity: RequestIdentity) -> DeploymentStatus:
        self.status_fetches += 1
        if self.status_error is not None:
            raise self.status_error
        index = min(self.status_fetches, len(self.phases)) - 1
        return DeploymentStatus(phase=self.phases[index])

    def fetch_diagnostics(self, identity: RequestIdentity) -> list[str]:
        if self.diagnostics_error is not None:
            raise self.diagnostics_error
        return list(self.diagnostics)

    # EventSink

    def emit(
        self,
        kind: EventKind,
        reason: str,
        message: str,
        subject: RequestIdentity,
    ) -> None:
        if self.emit_error is not None:
            raise self.emit_error
        self.events.append(RecordedEvent(kind, reason, message, subject))

    # RequestStore

    def get_request(self, identity: RequestIdentity) -> DeploymentRequest:
        try:
            return self.requests[identity]
        except KeyError:
            raise RequestNotFoundError(f"helmrequest {identity} not found") from None

    def create_request(self, request: DeploymentRequest) -> DeploymentRequest:
        self.writes += 1
        created = request.model_copy(update={"uid": f"uid-{request.name}"})
        self.requests[request.identity] = created
        return created

    def update_request(self, request: DeploymentRequest) -> DeploymentRequest:
        self.get_request(request.identity)
        self.writes += 1
        self.requests[request.identity] = request
        return request

    # ValueSourceStore

    def get_value_source(self, name: str, namespace: str) -> dict[str, str]:
        try:
            return self.config_maps[(name, namespace)]
        except KeyError:
            raise RequestNotFoundError(
                f"configmap {namespace}/{name} not found"
            ) from None

    # ReleaseStore

    def get_deployed_release(
        self, release_name: str, namespace: str
    ) -> EncodedPackageRecord:
        try:
            return self.releases[(release_name, namespace)]
        except KeyError:
            raise RequestNotFoundError(
                f"cannot find deployed release {release_name} in namespace {namespace}"
            ) from None


@pytest.fixture
def fake_clock() -> FakeClock:
    """Virtual clock starting at zero."""
    return FakeClock()


@pytest.fixture
def fake_cluster() -> FakeCluster:
    """Empty in-memory cluster whose requests sync on the first poll."""
    return FakeCluster()


@pytest.fixture
def settings() -> CaptainSettings:
    """Default settings."""
    return CaptainSettings()
