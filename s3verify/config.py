"""Configuration loading for the S3 compliance verifier.

Supports two configuration sources:
1. Environment variables (for CI/CD) - takes priority
2. config.json file (for local development)

Environment Variables:
    S3VERIFY_ENDPOINT=https://play.min.io
    S3VERIFY_ACCESS_KEY=xxx
    S3VERIFY_SECRET_KEY=xxx
    S3VERIFY_REGION=us-east-1            (optional)
    S3VERIFY_ADDRESSING_STYLE=path       (optional, path or virtual)
    S3VERIFY_WORKERS=8                   (optional)
    S3VERIFY_VERIFY_SSL=true             (optional)

config.json:
    {
        "endpoint_url": "https://play.min.io",
        "access_key": "xxx",
        "secret_key": "xxx",
        "region": "us-east-1",
        "addressing_style": "path"
    }
"""

import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from s3verify.errors import S3VerifyError
from s3verify.models import ServerConfig


class ConfigError(S3VerifyError):
    """Raised when configuration loading fails."""

    pass


# Environment variable -> ServerConfig field
ENV_FIELDS = {
    "S3VERIFY_ENDPOINT": "endpoint_url",
    "S3VERIFY_ACCESS_KEY": "access_key",
    "S3VERIFY_SECRET_KEY": "secret_key",
    "S3VERIFY_REGION": "region",
    "S3VERIFY_ADDRESSING_STYLE": "addressing_style",
    "S3VERIFY_WORKERS": "workers",
    "S3VERIFY_VERIFY_SSL": "verify_ssl",
}

REQUIRED_FIELDS = ["endpoint_url", "access_key", "secret_key"]

ADDRESSING_STYLES = ("path", "virtual")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {value!r}")


def _parse_workers(value: Any) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid worker count: {value!r}") from e
    if workers < 1:
        raise ConfigError(f"Worker count must be at least 1, got {workers}")
    return workers


def build_config(values: Mapping[str, Any], source: str) -> ServerConfig:
    """Validate raw settings and build a ServerConfig.

    Args:
        values: Settings keyed by ServerConfig field name.
        source: Where the settings came from, for error messages.

    Raises:
        ConfigError: If a required field is missing or a value is invalid.
    """
    for name in REQUIRED_FIELDS:
        if not values.get(name):
            raise ConfigError(f"Missing required field '{name}' in {source}")

    kwargs: dict[str, Any] = {name: values[name] for name in REQUIRED_FIELDS}

    if values.get("region"):
        kwargs["region"] = values["region"]

    style = values.get("addressing_style")
    if style:
        if style not in ADDRESSING_STYLES:
            raise ConfigError(
                f"Invalid addressing_style '{style}' in {source}; "
                f"expected one of {', '.join(ADDRESSING_STYLES)}"
            )
        kwargs["addressing_style"] = style

    if values.get("workers") not in (None, ""):
        kwargs["workers"] = _parse_workers(values["workers"])

    if values.get("verify_ssl") not in (None, ""):
        kwargs["verify_ssl"] = _parse_bool("verify_ssl", values["verify_ssl"])

    if values.get("timeout") not in (None, ""):
        try:
            kwargs["timeout"] = float(values["timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid timeout in {source}: {values['timeout']!r}") from e

    return ServerConfig(**kwargs)


def load_from_json(config_path: str) -> ServerConfig:
    """Load the server configuration from a JSON file.

    Args:
        config_path: Path to the config.json file.

    Raises:
        ConfigError: If the file doesn't exist, contains invalid JSON,
                    or is missing required fields.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a JSON object: {config_path}")

    return build_config(data, config_path)


def has_env_config() -> bool:
    """Check if the endpoint is configured through the environment."""
    return bool(os.environ.get("S3VERIFY_ENDPOINT"))


def load_from_env() -> ServerConfig:
    """Load the server configuration from S3VERIFY_* environment variables.

    Raises:
        ConfigError: If a required variable is missing or a value is invalid.
    """
    values = {
        field_name: os.environ.get(env_name)
        for env_name, field_name in ENV_FIELDS.items()
    }
    return build_config(values, "environment")


def load_config(config_path: Optional[str] = "config.json") -> ServerConfig:
    """Load the server configuration with environment priority.

    Priority order:
    1. Environment variables (if S3VERIFY_ENDPOINT is set)
    2. config.json file

    Raises:
        ConfigError: If neither source is available or the one used is invalid.
    """
    if has_env_config():
        return load_from_env()
    if config_path and Path(config_path).exists():
        return load_from_json(config_path)

    raise ConfigError(
        "No endpoint configured. Set the S3VERIFY_ENDPOINT, S3VERIFY_ACCESS_KEY "
        "and S3VERIFY_SECRET_KEY environment variables or create a config.json file."
    )
