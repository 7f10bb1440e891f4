"""Abstract cluster controller interface.

Defines the contract for the cluster operations captain needs, plus a
blocking facade that adapts the async controller to the synchronous
collaborator protocols used by ``src.captain``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import Any

from src.captain.interfaces import EventKind
from src.captain.models import (
    DeploymentRequest,
    DeploymentStatus,
    EncodedPackageRecord,
    RequestIdentity,
)

# =============================================================================
# Abstract Controller
# =============================================================================


class CaptainController(ABC):
    """Abstract base class for HelmRequest related cluster operations.

    All methods are async. Use ``CaptainControllerSync`` to call them from
    synchronous code.
    """

    # =========================================================================
    # Cluster Context
    # =========================================================================

    @abstractmethod
    async def default_namespace(self) -> str:
        """Get the namespace of the current kubeconfig context.

        Returns:
            Namespace name, "default" if the context does not set one
        """
        ...

    # =========================================================================
    # HelmRequest Operations
    # =========================================================================

    @abstractmethod
    async def get_request(self, name: str, namespace: str) -> DeploymentRequest:
        """Get a HelmRequest.

        Raises:
            RequestNotFoundError: If it does not exist
            TransportError: If the API call fails
        """
        ...

    @abstractmethod
    async def create_request(self, request: DeploymentRequest) -> DeploymentRequest:
        """Create a HelmRequest.

        Returns:
            The created resource as returned by the API server
        """
        ...

    @abstractmethod
    async def update_request(self, request: DeploymentRequest) -> DeploymentRequest:
        """Replace the spec and annotations of an existing HelmRequest.

        Returns:
            The updated resource as returned by the API server
        """
        ...

    # =========================================================================
    # Value Sources and Releases
    # =========================================================================

    @abstractmethod
    async def get_value_source(self, name: str, namespace: str) -> dict[str, str]:
        """Get the data of a ConfigMap.

        Raises:
            RequestNotFoundError: If the ConfigMap does not exist
        """
        ...

    @abstractmethod
    async def get_deployed_release(
        self, release_name: str, namespace: str
    ) -> EncodedPackageRecord:
        """Get the deployed Release for a release name.

        There is at most one deployed release per HelmRequest.

        Raises:
            RequestNotFoundError: If no deployed release exists
        """
        ...

    # =========================================================================
    # Events
    # =========================================================================

    @abstractmethod
    async def list_event_messages(self, identity: RequestIdentity) -> list[str]:
        """Get the messages of all events about a HelmRequest, oldest first."""
        ...

    @abstractmethod
    async def create_event(
        self,
        kind: EventKind,
        reason: str,
        message: str,
        request: DeploymentRequest,
    ) -> None:
        """Record an event about a HelmRequest."""
        ...


class CaptainControllerSync:
    """Blocking facade over a CaptainController.

    Implements every collaborator protocol of ``src.captain.interfaces``.

    Example:
        from src.infra.k8s import get_controller_sync

        cluster = get_controller_sync()
        status = cluster.fetch_status(RequestIdentity("foo", "default"))
        cluster.close()
    """

    def __init__(self, controller: CaptainController) -> None:
        self.controller = controller
        # one loop for the lifetime of the facade so the controller can keep
        # its API client between calls
        self._runner = asyncio.Runner()

    def _run[T](self, coro: Coroutine[Any, Any, T]) -> T:
        return self._runner.run(coro)

    def close(self) -> None:
        """Close the event loop used to drive the controller."""
        self._runner.close()

    def default_namespace(self) -> str:
        return self._run(self.controller.default_namespace())

    # StatusAccessor

    def fetch_status(self, identity: RequestIdentity) -> DeploymentStatus:
        return self.get_request(identity).status

    def fetch_diagnostics(self, identity: RequestIdentity) -> list[str]:
        return self._run(self.controller.list_event_messages(identity))

    # RequestStore

    def get_request(self, identity: RequestIdentity) -> DeploymentRequest:
        return self._run(
            self.controller.get_request(identity.name, identity.namespace)
        )

    def create_request(self, request: DeploymentRequest) -> DeploymentRequest:
        return self._run(self.controller.create_request(request))

    def update_request(self, request: DeploymentRequest) -> DeploymentRequest:
        return self._run(self.controller.update_request(request))

    # ValueSourceStore / ReleaseStore

    def get_value_source(self, name: str, namespace: str) -> dict[str, str]:
        return self._run(self.controller.get_value_source(name, namespace))

    def get_deployed_release(
        self, release_name: str, namespace: str
    ) -> EncodedPackageRecord:
        return self._run(
            self.controller.get_deployed_release(release_name, namespace)
        )

    # EventSink

    def emit(
        self,
        kind: EventKind,
        reason: str,
        message: str,
        subject: RequestIdentity,
    ) -> None:
        request = self.get_request(subject)
        self._run(self.controller.create_event(kind, reason, message, request))
