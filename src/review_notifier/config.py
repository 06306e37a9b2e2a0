"""Configuration loading and validation."""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_ASSIGNED_QUERY = "is:open is:pr archived:false user-review-requested:@me draft:false"
DEFAULT_POLL_INTERVAL = 180
DEFAULT_MAX_RESULTS = 30
DEFAULT_REQUEST_TIMEOUT = 15


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class Config:
    """Application configuration."""

    github_token: str
    assigned_query: str = DEFAULT_ASSIGNED_QUERY
    author: str | None = None
    cache_file: Path | None = None
    poll_interval: int = DEFAULT_POLL_INTERVAL
    max_results: int = DEFAULT_MAX_RESULTS
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT


def get_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".config" / "review-notifier"


def get_config_path() -> Path:
    """Return the default configuration file path."""
    return get_config_dir() / "config.yaml"


def resolve_github_token() -> str | None:
    """Return a GitHub token from the environment or the gh CLI session.

    Resolution order: GITHUB_TOKEN, GH_TOKEN, then `gh auth token`.
    Returns None when no source yields a token.
    """
    for var in ("GITHUB_TOKEN", "GH_TOKEN"):
        token = os.environ.get(var)
        if token:
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None

    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session")
        return result.stdout.strip()
    return None


def _positive_int(data: dict, field: str, default: int) -> int:
    value = data.get(field, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{field} must be a positive integer (got: {value!r})")
    return value


def _optional_str(data: dict, field: str) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{field} must be a non-empty string")
    return value.strip()


def load_config(config_path: Path, required: bool = True) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the config.yaml file.
        required: When False, a missing file is treated as an empty mapping.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If config file is missing or invalid, or no GitHub token
            can be resolved.
    """
    if config_path.exists():
        try:
            with config_path.open() as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}")
        if data is None:
            data = {}
    elif required:
        raise ConfigError(f"Config file not found: {config_path}")
    else:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Config must be a YAML mapping")

    github_token = _optional_str(data, "github_token") or resolve_github_token()
    if not github_token:
        raise ConfigError(
            "Missing required field: github_token "
            "(or set GITHUB_TOKEN, or log in with `gh auth login`)"
        )

    assigned_query = _optional_str(data, "assigned_query") or DEFAULT_ASSIGNED_QUERY

    cache_file = _optional_str(data, "cache_file")

    return Config(
        github_token=github_token,
        assigned_query=assigned_query,
        author=_optional_str(data, "author"),
        cache_file=Path(cache_file).expanduser() if cache_file else None,
        poll_interval=_positive_int(data, "poll_interval", DEFAULT_POLL_INTERVAL),
        max_results=_positive_int(data, "max_results", DEFAULT_MAX_RESULTS),
        request_timeout=_positive_int(data, "request_timeout", DEFAULT_REQUEST_TIMEOUT),
    )
