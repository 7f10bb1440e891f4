"""Cluster constants and configuration.

This module centralizes the API identifiers, annotation keys and default
values used when talking to the captain controller's resources.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CaptainConstants:
    """Constants for the HelmRequest / Release custom resources.

    All attributes are class-level and immutable.
    """

    # Custom resource identifiers
    API_GROUP: str = "app.alauda.io"
    API_GROUP_VERSION: str = "v1"
    HELM_REQUEST_KIND: str = "HelmRequest"
    RELEASE_KIND: str = "Release"

    # Annotations stashed on a request before it is upgraded
    LAST_SPEC_ANNOTATION: str = "last-spec"
    RESYNC_ANNOTATION: str = "kubectl-captain.resync"

    # Value sources
    VALUES_KEY: str = "values.yaml"

    # Events
    EVENT_COMPONENT: str = "kubectl-captain"
    EVENT_REASON_SYNCED: str = "Synced"
    EVENT_REASON_FAILED: str = "FailedSync"

    # Watch defaults
    DEFAULT_POLL_INTERVAL: float = 1.0
    DEFAULT_FAILURE_TOLERANCE: int = 75
    DEFAULT_VALUES_FETCH_TIMEOUT: float = 30.0

    # Config file locations
    CONFIG_ENV_VAR: str = "CAPTAIN_CONFIG"
    CONFIG_SECTION: str = "captain"

    # Chart references look like <repo>/<chart>
    CHART_PATTERN: re.Pattern[str] = re.compile(r"^[^/\s]+/[^/\s]+$")

    @property
    def API_VERSION(self) -> str:
        """Full apiVersion of the custom resources."""
        return f"{self.API_GROUP}/{self.API_GROUP_VERSION}"

    @property
    def default_config_path(self) -> Path:
        """Get the per-user config file path."""
        return Path.home() / ".config" / "captain" / "config.yaml"

    def deployed_release_selector(self, release_name: str) -> str:
        """Label selector matching the deployed release of a request."""
        return f"name={release_name},status=deployed"


DEFAULT_CONSTANTS = CaptainConstants()
