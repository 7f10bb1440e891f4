"""Kr8s-based implementation of CaptainController.

Uses the kr8s library for native async Kubernetes operations.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import httpx
import kr8s
from kr8s.asyncio.objects import ConfigMap, Event, new_class
from loguru import logger

from src.captain.errors import RequestNotFoundError, TransportError
from src.captain.interfaces import EventKind
from src.captain.models import (
    DeploymentRequest,
    EncodedPackageRecord,
    RequestIdentity,
)
from src.infra.constants import DEFAULT_CONSTANTS

from .controller import CaptainController

HelmRequest = new_class(
    kind=DEFAULT_CONSTANTS.HELM_REQUEST_KIND,
    version=DEFAULT_CONSTANTS.API_VERSION,
    namespaced=True,
)
Release = new_class(
    kind=DEFAULT_CONSTANTS.RELEASE_KIND,
    version=DEFAULT_CONSTANTS.API_VERSION,
    namespaced=True,
)


@asynccontextmanager
async def _api_errors(what: str) -> AsyncIterator[None]:
    """Translate kr8s and transport errors into captain errors."""
    try:
        yield
    except kr8s.NotFoundError as e:
        raise RequestNotFoundError(f"{what} not found", details=str(e)) from e
    except kr8s.ServerError as e:
        raise TransportError(f"{what} failed", details=str(e)) from e
    except httpx.HTTPError as e:
        raise TransportError(
            f"{what} failed: cannot reach the cluster", details=str(e)
        ) from e


class Kr8sController(CaptainController):
    """Cluster controller using the kr8s library.

    The kr8s API client is tied to the event loop it was created on, so it
    is kept only for as long as calls arrive on that same loop.
    """

    def __init__(self, component: str = DEFAULT_CONSTANTS.EVENT_COMPONENT) -> None:
        """Initialize the kr8s controller.

        Args:
            component: Source component recorded on created events
        """
        self.component = component
        self._api: Any = None
        self._api_loop: asyncio.AbstractEventLoop | None = None

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Return a kr8s API client bound to the running event loop."""
        loop = asyncio.get_running_loop()
        if self._api is None or self._api_loop is not loop:
            self._api = await kr8s.asyncio.api()
            self._api_loop = loop
        return self._api

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def default_namespace(self) -> str:
        """Get the namespace of the current kubeconfig context."""
        async with _api_errors("kubeconfig"):
            api = await self._get_api()
            return api.namespace or "default"

    # =========================================================================
    # HelmRequest Operations
    # =========================================================================

    async def get_request(self, name: str, namespace: str) -> DeploymentRequest:
        """Get a HelmRequest."""
        async with _api_errors(f"helmrequest {namespace}/{name}"):
            api = await self._get_api()
            obj = await HelmRequest.get(name, namespace=namespace, api=api)
            return DeploymentRequest.from_resource(obj.raw)

    async def create_request(self, request: DeploymentRequest) -> DeploymentRequest:
        """Create a HelmRequest."""
        async with _api_errors(f"create helmrequest {request.identity}"):
            api = await self._get_api()
            obj = HelmRequest(request.to_resource(), api=api)
            await obj.create()
            return DeploymentRequest.from_resource(obj.raw)

    async def update_request(self, request: DeploymentRequest) -> DeploymentRequest:
        """Replace spec and annotations with a single JSON patch."""
        async with _api_errors(f"update helmrequest {request.identity}"):
            api = await self._get_api()
            obj = await HelmRequest.get(
                request.name, namespace=request.namespace, api=api
            )
            await obj.patch(
                [
                    {
                        "op": "add",
                        "path": "/metadata/annotations",
                        "value": dict(request.annotations),
                    },
                    {"op": "replace", "path": "/spec", "value": request.spec.to_wire()},
                ],
                type="json",
            )
            return DeploymentRequest.from_resource(obj.raw)

    # =========================================================================
    # Value Sources and Releases
    # =========================================================================

    async def get_value_source(self, name: str, namespace: str) -> dict[str, str]:
        """Get the data of a ConfigMap."""
        async with _api_errors(f"configmap {namespace}/{name}"):
            api = await self._get_api()
            cm = await ConfigMap.get(name, namespace=namespace, api=api)
            return dict(cm.raw.get("data") or {})

    async def get_deployed_release(
        self, release_name: str, namespace: str
    ) -> EncodedPackageRecord:
        """Get the deployed Release for a release name."""
        async with _api_errors(f"release {namespace}/{release_name}"):
            api = await self._get_api()
            releases = [
                r
                async for r in Release.list(
                    namespace=namespace,
                    label_selector=DEFAULT_CONSTANTS.deployed_release_selector(
                        release_name
                    ),
                    api=api,
                )
            ]

        if not releases:
            raise RequestNotFoundError(
                f"cannot find deployed release {release_name} in namespace {namespace}"
            )
        if len(releases) > 1:
            logger.warning(
                f"Found {len(releases)} deployed releases for {release_name}, "
                f"using {releases[0].name}"
            )
        return EncodedPackageRecord.from_resource(releases[0].raw)

    # =========================================================================
    # Events
    # =========================================================================

    async def list_event_messages(self, identity: RequestIdentity) -> list[str]:
        """Get the messages of all events about a HelmRequest."""
        field_selector = (
            f"involvedObject.name={identity.name},"
            f"involvedObject.kind={DEFAULT_CONSTANTS.HELM_REQUEST_KIND}"
        )
        async with _api_errors(f"events of helmrequest {identity}"):
            api = await self._get_api()
            events = [
                e.raw
                async for e in Event.list(
                    namespace=identity.namespace,
                    field_selector=field_selector,
                    api=api,
                )
            ]

        events.sort(key=lambda e: e.get("lastTimestamp") or "")
        return [e.get("message", "") for e in events if e.get("message")]

    async def create_event(
        self,
        kind: EventKind,
        reason: str,
        message: str,
        request: DeploymentRequest,
    ) -> None:
        """Record an event about a HelmRequest."""
        now = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        involved: dict[str, Any] = {
            "kind": DEFAULT_CONSTANTS.HELM_REQUEST_KIND,
            "namespace": request.namespace,
            "name": request.name,
            "apiVersion": DEFAULT_CONSTANTS.API_VERSION,
        }
        if request.uid:
            involved["uid"] = request.uid
        if request.resource_version:
            involved["resourceVersion"] = request.resource_version

        async with _api_errors(f"create event for helmrequest {request.identity}"):
            api = await self._get_api()
            event = Event(
                {
                    "apiVersion": "v1",
                    "kind": "Event",
                    "metadata": {
                        "name": f"{request.name}.{uuid.uuid4().hex[:10]}",
                        "namespace": request.namespace,
                    },
                    "type": kind.value,
                    "reason": reason,
                    "message": message,
                    "source": {"component": self.component},
                    "involvedObject": involved,
                    "firstTimestamp": now,
                    "lastTimestamp": now,
                },
                api=api,
            )
            await event.create()
