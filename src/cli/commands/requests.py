"""HelmRequest commands.

This module provides the commands that create and upgrade HelmRequests,
optionally waiting for the controller to sync them, and the command that
prints the manifest of a deployed release.
"""

from functools import partial
from typing import Annotated

import typer

from src.captain.models import DeploymentRequest
from src.captain.operations import (
    CreateOptions,
    RequestOptions,
    UpgradeOptions,
    create_request,
    get_manifest,
    upgrade_request,
    wait_for_sync,
)
from src.captain.values import fetch_url
from src.cli.context import CLIContext, get_cli_context
from src.cli.shared.console import with_error_handling

# ---------------------------------------------------------------------------
# Shared Options
# ---------------------------------------------------------------------------

NameArg = Annotated[str, typer.Argument(help="HelmRequest name")]
VersionOpt = Annotated[
    str,
    typer.Option("--version", "-v", help="Chart version, latest if empty"),
]
SetOpt = Annotated[
    list[str] | None,
    typer.Option(
        "--set",
        "-s",
        help="Set values on the command line (a.b=1,c[0]=x), may be repeated",
    ),
]
ValuesOpt = Annotated[
    list[str] | None,
    typer.Option(
        "--values",
        "-f",
        help="Values YAML file or URL, may be repeated (later files win)",
    ),
]
ConfigMapOpt = Annotated[
    str | None,
    typer.Option("--configmap", help="ConfigMap holding a values.yaml key"),
]
SourceTypeOpt = Annotated[
    str,
    typer.Option("--source-type", help="Chart source type: CHART, HTTP or OCI"),
]
SourceAddressOpt = Annotated[
    str,
    typer.Option("--source-address", help="Chart URL or OCI repository"),
]
SourceSecretOpt = Annotated[
    str,
    typer.Option("--source-secret-ref", help="Secret with chart source credentials"),
]
WaitOpt = Annotated[
    bool,
    typer.Option("--wait", "-w", help="Wait until the HelmRequest is synced"),
]
TimeoutOpt = Annotated[
    int,
    typer.Option(
        "--timeout", "-t", min=0, help="Seconds to wait with --wait, 0 waits forever"
    ),
]
ToleranceOpt = Annotated[
    int | None,
    typer.Option(
        "--failure-tolerance",
        min=1,
        help="Failed observations tolerated with --wait before giving up",
    ),
]


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------


def _wait(
    cli_ctx: CLIContext, request: DeploymentRequest, options: RequestOptions
) -> None:
    """Block until the request is synced, rendering a spinner meanwhile."""
    with cli_ctx.console.status(
        f"[bold cyan]Waiting for helmrequest {request.identity} to be synced..."
    ):
        result = wait_for_sync(cli_ctx.cluster, request, options, cli_ctx.settings)
    cli_ctx.console.ok(
        f"helmrequest {result.identity} synced "
        f"({result.polls} poll(s), {result.elapsed:.1f}s)"
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@with_error_handling
def create(
    ctx: typer.Context,
    name: NameArg,
    chart: Annotated[
        str,
        typer.Option("--chart", "-c", help="Chart name, <repo>/<chart>"),
    ],
    version: VersionOpt = "",
    values: SetOpt = None,
    value_files: ValuesOpt = None,
    configmap: ConfigMapOpt = None,
    source_type: SourceTypeOpt = "",
    source_address: SourceAddressOpt = "",
    source_secret_ref: SourceSecretOpt = "",
    wait: WaitOpt = False,
    timeout: TimeoutOpt = 0,
    failure_tolerance: ToleranceOpt = None,
) -> None:
    """Create a HelmRequest.

    Examples:
        captain create nginx --chart stable/nginx-ingress -v 1.26.2
        captain create nginx --chart stable/nginx-ingress -s image.tag=1.2 -w
        captain -n apps create nginx --chart stable/nginx-ingress -f values.yaml
    """
    cli_ctx = get_cli_context(ctx)
    options = CreateOptions(
        chart=chart,
        version=version,
        values=values or [],
        value_files=value_files or [],
        config_map=configmap,
        source_type=source_type,
        source_address=source_address,
        source_secret_ref=source_secret_ref,
        wait=wait,
        timeout=timeout,
        failure_tolerance=failure_tolerance,
    )

    request = create_request(
        cli_ctx.cluster,
        name,
        cli_ctx.namespace,
        options,
        values_key=cli_ctx.settings.values_key,
        fetch=partial(fetch_url, timeout=cli_ctx.settings.values_fetch_timeout),
    )
    cli_ctx.console.ok(f"Created helmrequest {request.identity}")
    cli_ctx.console.print_request(request)

    if wait:
        _wait(cli_ctx, request, options)


@with_error_handling
def upgrade(
    ctx: typer.Context,
    name: NameArg,
    version: VersionOpt = "",
    repo: Annotated[
        str,
        typer.Option("--repo", "-r", help="Switch the chart to another repository"),
    ] = "",
    values: SetOpt = None,
    value_files: ValuesOpt = None,
    replace_values: Annotated[
        bool,
        typer.Option(
            "--replace-values",
            help="Replace the stored values instead of merging into them",
        ),
    ] = False,
    configmap: ConfigMapOpt = None,
    source_type: SourceTypeOpt = "",
    source_address: SourceAddressOpt = "",
    source_secret_ref: SourceSecretOpt = "",
    wait: WaitOpt = False,
    timeout: TimeoutOpt = 0,
    failure_tolerance: ToleranceOpt = None,
) -> None:
    """Upgrade a HelmRequest.

    The previous spec is kept in the last-spec annotation so it can be
    rolled back.

    Examples:
        captain upgrade nginx -v 1.27.0
        captain upgrade nginx -s replicaCount=3 -w -t 300
        captain upgrade nginx -r incubator
    """
    cli_ctx = get_cli_context(ctx)
    options = UpgradeOptions(
        version=version,
        repo=repo,
        values=values or [],
        value_files=value_files or [],
        replace_values=replace_values,
        config_map=configmap,
        source_type=source_type,
        source_address=source_address,
        source_secret_ref=source_secret_ref,
        wait=wait,
        timeout=timeout,
        failure_tolerance=failure_tolerance,
    )

    request = upgrade_request(
        cli_ctx.cluster,
        name,
        cli_ctx.namespace,
        options,
        values_key=cli_ctx.settings.values_key,
        fetch=partial(fetch_url, timeout=cli_ctx.settings.values_fetch_timeout),
    )
    cli_ctx.console.ok(f"Updated helmrequest {request.identity}")
    cli_ctx.console.print_request(request)

    if wait:
        _wait(cli_ctx, request, options)


@with_error_handling
def manifest(ctx: typer.Context, name: NameArg) -> None:
    """Print the manifest of a HelmRequest's deployed release.

    Examples:
        captain get-manifest nginx > nginx.yaml
    """
    cli_ctx = get_cli_context(ctx)
    typer.echo(get_manifest(cli_ctx.cluster, name, cli_ctx.namespace), nl=False)
