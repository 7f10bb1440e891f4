"""Deployment request operations.

These are the flows behind the ``create``, ``upgrade`` and ``get-manifest``
commands. They only talk to the cluster through the collaborator protocols
in ``interfaces`` so they can be exercised against in-memory fakes.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial

from loguru import logger

from src.infra.constants import DEFAULT_CONSTANTS

from .codec import decode_release
from .config import CaptainSettings
from .errors import ConfigurationError, ReferenceNotFoundError, RequestNotFoundError
from .interfaces import Cluster, ValueSourceStore
from .models import (
    ChartSource,
    ChartSourceHTTP,
    ChartSourceOCI,
    ConfigMapKeyRef,
    DeploymentRequest,
    DeploymentRequestSpec,
    RequestIdentity,
    ValuesFromSource,
)
from .values import Fetcher, ValueOptions, ValueTree, fetch_url, merge_values
from .watcher import Clock, ReconciliationWatcher, WatchResult


@dataclass
class RequestOptions:
    """Options shared by create and upgrade."""

    version: str = ""
    values: list[str] = field(default_factory=list)
    value_files: list[str] = field(default_factory=list)
    config_map: str | None = None
    source_type: str = ""
    source_address: str = ""
    source_secret_ref: str = ""
    wait: bool = False
    timeout: int = 0
    failure_tolerance: int | None = None

    @property
    def value_options(self) -> ValueOptions:
        return ValueOptions(
            values=list(self.values), value_files=list(self.value_files)
        )


@dataclass
class CreateOptions(RequestOptions):
    chart: str = ""


@dataclass
class UpgradeOptions(RequestOptions):
    # a different chart repository for the same chart
    repo: str = ""
    replace_values: bool = False


def build_source(
    source_type: str, address: str, secret_ref: str = ""
) -> ChartSource | None:
    """Build the chart source for ``--source-type``.

    Returns:
        A ChartSource for ``oci`` or ``http``, None for the default chart repo

    Raises:
        ConfigurationError: For an unknown source type
    """
    kind = source_type.strip().lower()
    if kind in ("", "chart"):
        return None
    if not address:
        raise ConfigurationError(
            f"--source-address is required for source type {kind}"
        )
    if kind == "oci":
        return ChartSource(
            oci=ChartSourceOCI(repo=address, secret_ref=secret_ref or None)
        )
    if kind == "http":
        return ChartSource(
            http=ChartSourceHTTP(url=address, secret_ref=secret_ref or None)
        )
    raise ConfigurationError(
        f"Unknown source type {source_type!r}, expected one of CHART, HTTP, OCI"
    )


def resolve_values_from(
    store: ValueSourceStore,
    name: str,
    namespace: str,
    key: str = DEFAULT_CONSTANTS.VALUES_KEY,
) -> list[ValuesFromSource]:
    """Check that a config map exists and reference it as a value source.

    Raises:
        ReferenceNotFoundError: If the config map does not exist
    """
    try:
        store.get_value_source(name, namespace)
    except RequestNotFoundError as e:
        raise ReferenceNotFoundError(
            f"ref configmap {name} does not exist in namespace {namespace}",
            details=e.message,
        ) from e

    return [
        ValuesFromSource(
            config_map_key_ref=ConfigMapKeyRef(
                name=name,
                key=key,
                optional=False,
            )
        )
    ]


def _merged_values(options: RequestOptions, fetch: Fetcher) -> ValueTree:
    try:
        return options.value_options.merge(fetch)
    except ConfigurationError as e:
        raise ConfigurationError(
            f"failed parsing values: {e.message}", e.details
        ) from e


def create_request(
    store: Cluster,
    name: str,
    namespace: str,
    options: CreateOptions,
    *,
    values_key: str = DEFAULT_CONSTANTS.VALUES_KEY,
    fetch: Fetcher = fetch_url,
) -> DeploymentRequest:
    """Build a new deployment request and submit it.

    Args:
        store: Cluster collaborator (request store and value-source store)
        name: Request name
        namespace: Request namespace
        options: Create options
        values_key: Config map key holding the values document
        fetch: Downloader for URL value files

    Returns:
        The request as stored by the cluster
    """
    spec = DeploymentRequestSpec(
        chart=options.chart,
        version=options.version,
        namespace=namespace,
    )
    if options.config_map:
        spec.values_from = resolve_values_from(
            store, options.config_map, namespace, values_key
        )
    spec.values = _merged_values(options, fetch)
    spec.source = build_source(
        options.source_type, options.source_address, options.source_secret_ref
    )

    request = DeploymentRequest(name=name, namespace=namespace, spec=spec)
    created = store.create_request(request)
    logger.info(f"Created helmrequest {created.identity}")
    return created


def upgrade_request(
    store: Cluster,
    name: str,
    namespace: str,
    options: UpgradeOptions,
    *,
    values_key: str = DEFAULT_CONSTANTS.VALUES_KEY,
    now: Callable[[], datetime] = partial(datetime.now, UTC),
    fetch: Fetcher = fetch_url,
) -> DeploymentRequest:
    """Apply changes to an existing deployment request.

    The previous spec is stashed in the ``last-spec`` annotation and a resync
    marker is set so the controller always reconciles the update.

    Args:
        store: Cluster collaborator (request store and value-source store)
        name: Request name
        namespace: Request namespace
        options: Upgrade options
        values_key: Config map key holding the values document
        now: Time source for the resync marker
        fetch: Downloader for URL value files

    Returns:
        The request as stored by the cluster
    """
    request = store.get_request(RequestIdentity(name, namespace))
    spec = request.spec.model_copy(deep=True)

    annotations = dict(request.annotations)
    annotations[DEFAULT_CONSTANTS.LAST_SPEC_ANNOTATION] = json.dumps(
        request.spec.to_wire(), separators=(",", ":")
    )
    annotations[DEFAULT_CONSTANTS.RESYNC_ANNOTATION] = now().isoformat()

    if options.version:
        spec.version = options.version

    if options.repo:
        if not DEFAULT_CONSTANTS.CHART_PATTERN.match(spec.chart):
            raise ConfigurationError(
                f"cannot change repo of chart {spec.chart!r}, expected <repo>/<chart>"
            )
        spec.chart = f"{options.repo}/{spec.chart.split('/', 1)[1]}"

    if options.config_map:
        spec.values_from = resolve_values_from(
            store, options.config_map, namespace, values_key
        )

    values = _merged_values(options, fetch)
    if not options.replace_values:
        values = merge_values(request.spec.values, values)
    spec.values = values

    source = build_source(
        options.source_type, options.source_address, options.source_secret_ref
    )
    if source is not None:
        spec.source = source

    updated = request.model_copy(update={"spec": spec, "annotations": annotations})
    stored = store.update_request(updated)
    logger.info(f"Updated helmrequest {stored.identity}")
    return stored


def get_manifest(
    store: Cluster,
    name: str,
    namespace: str,
) -> str:
    """Return the rendered manifest of a request's deployed release."""
    request = store.get_request(RequestIdentity(name, namespace))
    release_name = request.spec.release_name or request.name
    release_namespace = request.spec.namespace or request.namespace

    record = store.get_deployed_release(release_name, release_namespace)
    return decode_release(record).manifest


def wait_for_sync(
    cluster: Cluster,
    request: DeploymentRequest,
    options: RequestOptions,
    settings: CaptainSettings,
    *,
    clock: Clock | None = None,
) -> WatchResult:
    """Wait for a submitted request to be synced.

    A ``timeout`` of 0 means no deadline.
    """
    watcher = ReconciliationWatcher(
        cluster,
        events=cluster,
        clock=clock,
        poll_interval=settings.poll_interval,
        timeout=options.timeout or None,
        failure_tolerance=options.failure_tolerance or settings.failure_tolerance,
    )
    return watcher.watch(
        request.identity,
        version=request.spec.version,
        overrides=options.values,
    )
