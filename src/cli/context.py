"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import click
import typer

from src.captain.config import CaptainSettings, load_settings
from src.cli.shared.console import CLIConsole, console
from src.infra.k8s import get_controller_sync
from src.infra.k8s.controller import CaptainControllerSync


@dataclass(frozen=True)
class CLIOptions:
    """Global options given before the command name."""

    namespace: str | None = None
    config_path: Path | None = None


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    cluster: CaptainControllerSync
    settings: CaptainSettings
    namespace: str


def build_cli_context(
    namespace: str | None = None, config_path: Path | None = None
) -> CLIContext:
    """Build a fresh CLIContext.

    The returned cluster facade owns an event loop; close it when done.

    Args:
        namespace: Target namespace; the kubeconfig context's namespace if None
        config_path: Explicit settings file
    """
    settings = load_settings(config_path)
    cluster = get_controller_sync(settings.event_component)

    try:
        namespace = namespace or cluster.default_namespace()
    except Exception:
        cluster.close()
        raise

    return CLIContext(
        console=console,
        cluster=cluster,
        settings=settings,
        namespace=namespace,
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, building it on first use."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj

    options = CLIOptions()
    if context and isinstance(context.obj, CLIOptions):
        options = context.obj

    cli_ctx = build_cli_context(options.namespace, options.config_path)
    if context:
        context.obj = cli_ctx
        context.call_on_close(cli_ctx.cluster.close)
    return cli_ctx
