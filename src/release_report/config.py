"""Configuration for the Jira connection and report pipeline.

Configuration is read once at process start and passed explicitly into the
client. Nothing below the CLI reads the environment.

Sources, lowest precedence first:
1. Field defaults on JiraConfig
2. An optional YAML settings file (non-secret tuning only)
3. Environment variables, after loading a .env file if one is present

Environment variables:
    JIRA_URL           Base URL of the Jira instance (required)
    JIRA_USERNAME      Basic-auth username (required)
    JIRA_TOKEN         API token used as the basic-auth password (required)
    JIRA_TEAM_FIELD    Custom field holding the owning team
    JIRA_TIMEOUT       Per-request timeout in seconds

Example settings file:

    team_field: customfield_10001
    application_type: bitbucket
    timeout: 30
    max_concurrency: 8
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator

ENV_VARS = {
    "url": "JIRA_URL",
    "username": "JIRA_USERNAME",
    "token": "JIRA_TOKEN",
    "team_field": "JIRA_TEAM_FIELD",
    "timeout": "JIRA_TIMEOUT",
}
REQUIRED_FIELDS = ("url", "username", "token")


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""


class JiraConfig(BaseModel):
    """Connection and tuning settings for the Jira client.

    Attributes:
        url: Jira base URL, without trailing slash
        username: Basic-auth username
        token: Basic-auth password / API token
        team_field: Custom field id holding the owning team
        application_type: Development-status integration to query
        data_type: Development-status data type to query
        timeout: Per-request timeout in seconds
        page_size: maxResults used when paging through search results
        max_concurrency: Upper bound on in-flight commit lookups
            (None means no bound)
    """

    url: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1, repr=False)
    team_field: str = "customfield_10001"
    application_type: str = "bitbucket"
    data_type: str = "repository"
    timeout: float = Field(30.0, gt=0)
    page_size: int = Field(50, gt=0)
    max_concurrency: int | None = Field(None, gt=0)

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class ReportSettings(BaseModel):
    """Non-secret settings accepted from the YAML settings file."""

    team_field: str | None = None
    application_type: str | None = None
    data_type: str | None = None
    timeout: float | None = None
    page_size: int | None = None
    max_concurrency: int | None = None


def load_settings(path: str | Path) -> ReportSettings:
    """Load and validate a YAML settings file.

    Args:
        path: Path to the YAML settings file.

    Returns:
        Validated settings. Returns empty settings if the file doesn't exist.

    Raises:
        ConfigError: If the file cannot be read, or the YAML content is
            invalid or fails validation.
    """
    settings_path = Path(path)
    if not settings_path.exists():
        return ReportSettings()

    try:
        text = settings_path.read_text()
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        return ReportSettings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc


def load_config(
    env_file: str | Path | None = None,
    settings_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> JiraConfig:
    """Build the JiraConfig for this run.

    Args:
        env_file: .env file to read. Defaults to ./.env when present.
        settings_path: Optional YAML settings file.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        A validated JiraConfig

    Raises:
        ConfigError: If a required variable is missing or a value is invalid.
    """
    env: dict[str, str] = {}
    dotenv_path = Path(env_file) if env_file is not None else Path(".env")
    if dotenv_path.is_file():
        env.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
    env.update(os.environ if environ is None else environ)

    values: dict[str, object] = {}
    if settings_path is not None:
        settings = load_settings(settings_path)
        values.update(settings.model_dump(exclude_none=True))

    for field_name, var in ENV_VARS.items():
        if env.get(var):
            values[field_name] = env[var]

    missing = [ENV_VARS[name] for name in REQUIRED_FIELDS if not values.get(name)]
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    try:
        return JiraConfig.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
