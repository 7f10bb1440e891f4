"""Version command."""

import typer

from src.captain import __version__


def version() -> None:
    """Print the captain version."""
    typer.echo(f"captain: v{__version__}")
