"""Console output for CLI commands.

Everything a command shows the user goes through ``CLIConsole``; errors
raised by captain are rendered by ``with_error_handling``.
"""

from collections.abc import Callable
from functools import wraps

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.status import Status
from rich.table import Table
from rich.text import Text

from src.captain.errors import CaptainError, WatchError
from src.captain.models import DeploymentRequest


class CLIConsole:
    """Rich console wrapper for consistent CLI output."""

    def __init__(self) -> None:
        self.console = Console()

    def status(self, status: str) -> Status:
        return self.console.status(status)

    def ok(self, msg: str) -> None:
        self.console.print(f"[green]✅[/green] {escape(msg)}")

    def error(self, msg: str) -> None:
        self.console.print(f"[red]❌[/red] [bold red]{escape(msg)}[/bold red]")

    def print_request(self, request: DeploymentRequest) -> None:
        """Print the submitted spec of a HelmRequest."""
        spec = request.spec
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column()
        table.add_row("Chart", spec.chart)
        table.add_row("Version", spec.version or "latest")
        table.add_row("Namespace", spec.namespace or request.namespace)
        if spec.release_name:
            table.add_row("Release", spec.release_name)
        for source in spec.values_from:
            if source.config_map_key_ref is not None:
                ref = source.config_map_key_ref
                table.add_row("Values from", f"configmap {ref.name} ({ref.key})")
        if spec.source is not None and spec.source.oci is not None:
            table.add_row("Source", f"oci {spec.source.oci.repo}")
        elif spec.source is not None and spec.source.http is not None:
            table.add_row("Source", f"http {spec.source.http.url}")
        self.console.print(table)

    def report_error(self, error: CaptainError) -> None:
        """Print an error message, its details and, for watch errors, the request."""
        self.error(error.message)

        if isinstance(error, WatchError):
            table = Table(show_header=False, box=None, padding=(0, 2))
            table.add_column(style="dim")
            table.add_column()
            table.add_row("Request", str(error.identity))
            table.add_row("Version", error.version or "<unchanged>")
            table.add_row("Values", ", ".join(error.overrides) or "<unchanged>")
            self.console.print(table)

        if error.details:
            self.console.print(
                Panel(Text(error.details), title="Details", border_style="red")
            )


def with_error_handling(func: Callable[..., None]) -> Callable[..., None]:
    """Decorator that turns captain errors into a failed command.

    Args:
        func: The command function to wrap

    Returns:
        Wrapped function exiting with code 1 on captain errors and 130 on Ctrl-C
    """

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> None:
        try:
            func(*args, **kwargs)
        except CaptainError as e:
            console.report_error(e)
            raise typer.Exit(1) from None
        except KeyboardInterrupt:
            console.console.print("\n[dim]Operation cancelled by user.[/dim]")
            raise typer.Exit(130) from None

    return wrapper


# Shared console instance for consistent output
console = CLIConsole()
