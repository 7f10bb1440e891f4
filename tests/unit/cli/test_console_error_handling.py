import pytest
import typer

from src.captain.errors import ConfigurationError, WatchTimeoutError
from src.captain.models import RequestIdentity
from src.cli.shared.console import with_error_handling


def test_with_error_handling_handles_captain_error():
    @with_error_handling
    def _command() -> None:
        raise ConfigurationError("Boom", details="extra")

    with pytest.raises(typer.Exit) as excinfo:
        _command()

    assert excinfo.value.exit_code == 1


def test_with_error_handling_handles_watch_error():
    @with_error_handling
    def _command() -> None:
        raise WatchTimeoutError(RequestIdentity("nginx", "apps"), 30, version="[1.0]")

    with pytest.raises(typer.Exit) as excinfo:
        _command()

    assert excinfo.value.exit_code == 1


def test_with_error_handling_handles_keyboard_interrupt():
    @with_error_handling
    def _command() -> None:
        raise KeyboardInterrupt

    with pytest.raises(typer.Exit) as excinfo:
        _command()

    assert excinfo.value.exit_code == 130


def test_with_error_handling_lets_other_errors_through():
    @with_error_handling
    def _command() -> None:
        raise RuntimeError("unexpected")

    with pytest.raises(RuntimeError, match="unexpected"):
        _command()
