"""Main CLI application module.

This module provides the main entry point for the captain CLI, a client
for HelmRequest resources managed by the captain controller.

Commands:
- create: Create a HelmRequest
- upgrade: Upgrade a HelmRequest
- get-manifest: Print the manifest of a deployed release
- version: Print the captain version
"""

import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from .commands import create, manifest, upgrade, version
from .context import CLIOptions

# Create the main CLI application
app = typer.Typer(
    help="⎈ captain - Manage HelmRequests from the command line",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def configure_logging(verbose: bool) -> None:
    """Route loguru records to stderr, debug level only when verbose."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.callback()
def main_callback(
    ctx: typer.Context,
    namespace: Annotated[
        str | None,
        typer.Option(
            "--namespace",
            "-n",
            help="HelmRequest namespace, defaults to the kubeconfig context",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            help="Settings file, $CAPTAIN_CONFIG or ~/.config/captain/config.yaml",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logs"),
    ] = False,
) -> None:
    configure_logging(verbose)
    ctx.obj = CLIOptions(namespace=namespace, config_path=config)


# Register commands
app.command()(create)
app.command()(upgrade)
app.command("get-manifest")(manifest)
app.command()(version)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
