"""Error hierarchy for captain.

Every error carries a short ``message`` and optional multi-line ``details``
so the CLI can render both consistently.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RequestIdentity


class CaptainError(Exception):
    """Base class for all errors raised by captain."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(CaptainError):
    """Raised for invalid user input (bad --set syntax, unreadable value files)."""


class ReferenceNotFoundError(ConfigurationError):
    """Raised when a referenced value source does not exist."""


class TransportError(CaptainError):
    """Raised when the cluster API cannot be reached or rejects a call."""


class RequestNotFoundError(TransportError):
    """Raised when a requested resource does not exist in the cluster."""


class RecordField(str, Enum):
    """Encoded fields of a stored release record."""

    CHART = "chart"
    CONFIG = "config"
    HOOKS = "hooks"
    MANIFEST = "manifest"


class DecodeError(CaptainError):
    """Raised when one field of an encoded release record cannot be decoded."""

    def __init__(self, field: RecordField, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"failed to decode release {field.value} data: {reason}")


class WatchError(CaptainError):
    """Base class for non-successful watch outcomes."""

    def __init__(
        self,
        message: str,
        identity: RequestIdentity,
        *,
        version: str = "",
        overrides: Sequence[str] = (),
        details: str | None = None,
    ):
        self.identity = identity
        self.version = version
        self.overrides = list(overrides)
        super().__init__(message, details)


class ReconciliationFailedError(WatchError):
    """Raised when the remote controller keeps reporting a failed phase."""

    def __init__(
        self,
        identity: RequestIdentity,
        failures: int,
        *,
        version: str = "",
        overrides: Sequence[str] = (),
        diagnostics: Sequence[str] = (),
    ):
        self.failures = failures
        self.diagnostics = list(diagnostics)
        message = (
            f"deployment request {identity} failed after {failures} failed "
            f"observation(s) (version: {version or '<unchanged>'}, "
            f"values: {list(overrides)})"
        )
        details = "\n".join(self.diagnostics) if self.diagnostics else None
        super().__init__(
            message,
            identity,
            version=version,
            overrides=overrides,
            details=details,
        )


class WatchTimeoutError(WatchError):
    """Raised when the deadline passes before the request reaches a terminal phase."""

    def __init__(
        self,
        identity: RequestIdentity,
        timeout: float,
        *,
        version: str = "",
        overrides: Sequence[str] = (),
        last_phase: str | None = None,
    ):
        self.timeout = timeout
        self.last_phase = last_phase
        message = (
            f"timed out after {timeout:g}s waiting for deployment request "
            f"{identity} to be synced (version: {version or '<unchanged>'}, "
            f"values: {list(overrides)})"
        )
        details = f"Last observed phase: {last_phase}" if last_phase else None
        super().__init__(
            message,
            identity,
            version=version,
            overrides=overrides,
            details=details,
        )
