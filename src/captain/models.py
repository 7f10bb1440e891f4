"""Resource models for deployment requests and deployed release records.

The shapes mirror the ``app.alauda.io`` custom resources. Field names are
snake_case in Python and camelCase on the wire, except for helm hook
descriptors which helm itself serializes with snake_case keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.infra.constants import DEFAULT_CONSTANTS

# =============================================================================
# Identity
# =============================================================================


@dataclass(frozen=True)
class RequestIdentity:
    """Name and namespace of a deployment request."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# =============================================================================
# Deployment request (HelmRequest)
# =============================================================================


class Phase(str, Enum):
    """Lifecycle phase reported by the remote controller."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SYNCED = "Synced"
    FAILED = "Failed"

    @classmethod
    def parse(cls, value: object) -> Phase:
        """Parse a wire value; anything unrecognised is treated as pending."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.PENDING
        normalized = value.replace("-", "").replace("_", "").lower()
        for phase in cls:
            if normalized == phase.value.lower():
                return phase
        return cls.PENDING


class ChartSourceHTTP(_WireModel):
    url: str
    secret_ref: str | None = None


class ChartSourceOCI(_WireModel):
    repo: str
    secret_ref: str | None = None


class ChartSource(_WireModel):
    """Alternative chart location (plain HTTP endpoint or OCI registry)."""

    http: ChartSourceHTTP | None = None
    oci: ChartSourceOCI | None = None


class ConfigMapKeyRef(_WireModel):
    name: str
    key: str
    optional: bool = False


class ValuesFromSource(_WireModel):
    config_map_key_ref: ConfigMapKeyRef | None = None


class DeploymentRequestSpec(_WireModel):
    """Desired state of a deployment request."""

    chart: str = ""
    version: str = ""
    namespace: str = ""
    release_name: str = ""
    values: dict[str, Any] = Field(default_factory=dict)
    values_from: list[ValuesFromSource] = Field(default_factory=list)
    source: ChartSource | None = None

    @field_validator("values", mode="before")
    @classmethod
    def _null_values(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_wire(self) -> dict[str, Any]:
        """Render the spec as it is stored in the cluster."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # exclude_none must not strip explicit nulls inside the value tree
        data["values"] = self.values
        if not self.values_from:
            data.pop("valuesFrom", None)
        return data


class DeploymentStatus(_WireModel):
    """Status written by the remote controller; never written by captain."""

    phase: Phase = Phase.PENDING
    reason: str | None = None
    notes: str | None = None
    version: str | None = None

    @field_validator("phase", mode="before")
    @classmethod
    def _parse_phase(cls, value: Any) -> Phase:
        return Phase.parse(value)


class DeploymentRequest(BaseModel):
    """A HelmRequest resource."""

    name: str
    namespace: str
    annotations: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    uid: str | None = None
    resource_version: str | None = None
    spec: DeploymentRequestSpec = Field(default_factory=DeploymentRequestSpec)
    status: DeploymentStatus = Field(default_factory=DeploymentStatus)

    @property
    def identity(self) -> RequestIdentity:
        return RequestIdentity(self.name, self.namespace)

    @classmethod
    def from_resource(cls, raw: dict[str, Any]) -> DeploymentRequest:
        """Build a request from a raw Kubernetes resource dict."""
        metadata = raw.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            annotations=metadata.get("annotations") or {},
            labels=metadata.get("labels") or {},
            uid=metadata.get("uid"),
            resource_version=metadata.get("resourceVersion"),
            spec=DeploymentRequestSpec.model_validate(raw.get("spec") or {}),
            status=DeploymentStatus.model_validate(raw.get("status") or {}),
        )

    def to_resource(self) -> dict[str, Any]:
        """Render the request as a raw Kubernetes resource dict (without status)."""
        metadata: dict[str, Any] = {"name": self.name, "namespace": self.namespace}
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": DEFAULT_CONSTANTS.API_VERSION,
            "kind": DEFAULT_CONSTANTS.HELM_REQUEST_KIND,
            "metadata": metadata,
            "spec": self.spec.to_wire(),
        }


# =============================================================================
# Deployed release record (Release)
# =============================================================================


class ReleaseInfo(_WireModel):
    status: str = ""
    description: str = ""
    notes: str = ""
    first_deployed: str | None = None
    last_deployed: str | None = None


class EncodedPackageRecord(_WireModel):
    """A stored release whose payload fields are base64 encoded."""

    name: str
    namespace: str
    version: int = 0
    info: ReleaseInfo = Field(default_factory=ReleaseInfo)
    chart_data: str = ""
    config_data: str = ""
    hooks_data: str = ""
    manifest_data: str = ""

    @classmethod
    def from_resource(cls, raw: dict[str, Any]) -> EncodedPackageRecord:
        metadata = raw.get("metadata") or {}
        spec = raw.get("spec") or {}
        return cls(
            name=spec.get("name") or metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            version=spec.get("version") or 0,
            info=ReleaseInfo.model_validate(raw.get("status") or {}),
            chart_data=spec.get("chartData", ""),
            config_data=spec.get("configData", ""),
            hooks_data=spec.get("hooksData", ""),
            manifest_data=spec.get("manifestData", ""),
        )


class ChartMetadata(_WireModel):
    name: str = ""
    version: str = ""
    app_version: str | None = None
    description: str | None = None


class ChartFile(_WireModel):
    name: str
    data: str = ""


class ChartDefinition(_WireModel):
    """A packaged chart as serialized by helm."""

    metadata: ChartMetadata = Field(default_factory=ChartMetadata)
    templates: list[ChartFile] = Field(default_factory=list)
    files: list[ChartFile] = Field(default_factory=list)
    values: dict[str, Any] = Field(default_factory=dict)
    json_schema: str | None = Field(default=None, alias="schema")


class Hook(BaseModel):
    """A lifecycle hook descriptor; keys follow helm's snake_case JSON tags."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    kind: str = ""
    path: str = ""
    manifest: str = ""
    events: list[str] = Field(default_factory=list)
    last_run: dict[str, Any] | None = None
    weight: int = 0
    delete_policies: list[str] = Field(default_factory=list)


class PackageRecord(BaseModel):
    """Decoded form of a deployed release. Only built by the codec."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    version: int
    info: ReleaseInfo = Field(default_factory=ReleaseInfo)
    chart: ChartDefinition = Field(default_factory=ChartDefinition)
    config: dict[str, Any] = Field(default_factory=dict)
    hooks: list[Hook] = Field(default_factory=list)
    manifest: str = ""

    @property
    def storage_key(self) -> str:
        return f"{self.name}.v{self.version}"
