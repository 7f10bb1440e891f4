"""Settings loading with environment variable substitution."""

import os
import re
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.infra.constants import DEFAULT_CONSTANTS

from .errors import ConfigurationError


class CaptainSettings(BaseModel):
    """Tunables for talking to the cluster and waiting on requests."""

    poll_interval: float = Field(default=DEFAULT_CONSTANTS.DEFAULT_POLL_INTERVAL, gt=0)
    failure_tolerance: int = Field(
        default=DEFAULT_CONSTANTS.DEFAULT_FAILURE_TOLERANCE, ge=1
    )
    values_fetch_timeout: float = Field(
        default=DEFAULT_CONSTANTS.DEFAULT_VALUES_FETCH_TIMEOUT, gt=0
    )
    event_component: str = DEFAULT_CONSTANTS.EVENT_COMPONENT
    values_key: str = DEFAULT_CONSTANTS.VALUES_KEY


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message
    """

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)

        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = os.getenv(var_name)
            if value is None:
                raise ConfigurationError(
                    f"Required environment variable {var_name}: {error_msg}"
                )
            return value

        value = os.getenv(var_expr)
        if value is None:
            raise ConfigurationError(
                f"Required environment variable {var_expr} not set"
            )
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def resolve_config_path(file_path: Path | None = None) -> tuple[Path, bool]:
    """Locate the settings file.

    Returns:
        The path and whether it was requested explicitly (explicit paths
        must exist, the per-user default may be absent)
    """
    if file_path is not None:
        return file_path, True
    env_path = os.getenv(DEFAULT_CONSTANTS.CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path), True
    return DEFAULT_CONSTANTS.default_config_path, False


def load_settings(file_path: Path | None = None) -> CaptainSettings:
    """
    Load captain settings from YAML.

    The file must contain a top-level ``captain:`` key. Environment variable
    placeholders are substituted before parsing.

    Args:
        file_path: Explicit settings file; otherwise $CAPTAIN_CONFIG or
                   ~/.config/captain/config.yaml

    Returns:
        CaptainSettings, defaults when no settings file is present

    Raises:
        ConfigurationError: If the file is missing (when explicit), cannot be
                            parsed, or fails validation
    """
    path, explicit = resolve_config_path(file_path)
    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Settings file {path} does not exist")
        logger.debug(f"No settings file at {path}, using defaults")
        return CaptainSettings()

    logger.info(f"Loading settings from {path}")
    content = substitute_env_vars(path.read_text(encoding="utf-8"))

    try:
        loaded = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML: {path}", details=str(e)) from e

    if not isinstance(loaded, dict) or DEFAULT_CONSTANTS.CONFIG_SECTION not in loaded:
        raise ConfigurationError(
            f"Invalid settings file {path}: missing "
            f"'{DEFAULT_CONSTANTS.CONFIG_SECTION}' key"
        )

    try:
        return CaptainSettings(**(loaded[DEFAULT_CONSTANTS.CONFIG_SECTION] or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}", details=str(e)) from e
