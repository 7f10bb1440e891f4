"""Collaborator contracts consumed by the captain core.

The cluster layer (see ``src.infra.k8s``) satisfies all of these; tests use
in-memory fakes.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from .models import (
    DeploymentRequest,
    DeploymentStatus,
    EncodedPackageRecord,
    RequestIdentity,
)


class EventKind(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"


class StatusAccessor(Protocol):
    """Reads the controller-reported status of a request."""

    def fetch_status(self, identity: RequestIdentity) -> DeploymentStatus: ...

    def fetch_diagnostics(self, identity: RequestIdentity) -> list[str]: ...


class EventSink(Protocol):
    """Emits audit events about a request. Best-effort."""

    def emit(
        self,
        kind: EventKind,
        reason: str,
        message: str,
        subject: RequestIdentity,
    ) -> None: ...


class RequestStore(Protocol):
    """System of record for deployment requests."""

    def get_request(self, identity: RequestIdentity) -> DeploymentRequest: ...

    def create_request(self, request: DeploymentRequest) -> DeploymentRequest: ...

    def update_request(self, request: DeploymentRequest) -> DeploymentRequest: ...


class ValueSourceStore(Protocol):
    """Config maps that can feed values into a request."""

    def get_value_source(self, name: str, namespace: str) -> dict[str, str]: ...


class ReleaseStore(Protocol):
    """Stored release records written by the controller."""

    def get_deployed_release(
        self, release_name: str, namespace: str
    ) -> EncodedPackageRecord: ...


class Cluster(
    StatusAccessor, EventSink, RequestStore, ValueSourceStore, ReleaseStore, Protocol
):
    """Everything the request operations need from the cluster."""
