"""
Configuration management for the MessagePack-RPC endpoint.

This module implements the AppConfig Pydantic model and configuration loading.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (/etc/msgpack-rpc/config.yml or --config path)
3. Environment variables (MSGPACK_RPC_* prefix, __ for nesting)
4. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path("/etc/msgpack-rpc/config.yml")
DEFAULT_ENV_PREFIX = "MSGPACK_RPC_"

ERROR_POLICIES = ("raise", "close", "skip")

# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """Connection server settings.

    Attributes:
        read_size: Maximum bytes requested from the stream per read call.
        max_buffer_size: Maximum bytes buffered for a single message.
        on_error: What the serve loop does when a cycle fails.
    """

    read_size: int = Field(
        default=64 * 1024,
        description="Maximum number of bytes requested per read call",
        ge=1,
    )
    max_buffer_size: int = Field(
        default=100 * 1024 * 1024,
        description="Maximum number of bytes buffered for one message",
        ge=1024,
    )
    on_error: str = Field(
        default="raise",
        description="Serve loop error policy: 'raise', 'close' or 'skip'",
    )

    @field_validator("on_error")
    @classmethod
    def validate_on_error(cls, v: str) -> str:
        """Validate and normalize the error policy."""
        v_lower = v.lower()
        if v_lower not in ERROR_POLICIES:
            raise ValueError(
                f"Invalid error policy: {v}. Must be one of: {', '.join(ERROR_POLICIES)}"
            )
        return v_lower


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        json_format: Whether to emit JSON log lines.
        stream: Output stream for log lines.
    """

    level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error, critical",
    )
    json_format: bool = Field(
        default=True,
        description="Emit structured JSON log lines",
    )
    stream: str = Field(
        default="stderr",
        description="Log output stream: 'stderr' or 'stdout'",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"debug", "info", "warn", "warning", "error", "critical"}
        v_lower = v.lower()
        if v_lower not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        # Normalize 'warn' to 'warning'
        if v_lower == "warn":
            return "warning"
        return v_lower

    @field_validator("stream")
    @classmethod
    def validate_stream(cls, v: str) -> str:
        """Validate the log output stream."""
        v_lower = v.lower()
        if v_lower not in {"stderr", "stdout"}:
            raise ValueError(f"Invalid log stream: {v}. Must be 'stderr' or 'stdout'")
        return v_lower


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    Attributes:
        server: Connection server settings.
        logging: Logging configuration.
    """

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Connection server settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to appropriate Python type.

    Args:
        value: String value from environment variable.

    Returns:
        Parsed value (bool, int, float, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _load_env_config(prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """
    Load configuration from environment variables.

    Nested keys use a double underscore separator, e.g.
    ``MSGPACK_RPC_SERVER__ON_ERROR=skip``.

    Args:
        prefix: Environment variable prefix.

    Returns:
        Dictionary with configuration values.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = key[len(prefix) :].lower().split("__")

        current = result
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        current[parts[-1]] = _parse_env_value(value)

    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="MessagePack-RPC endpoint",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )

    parser.add_argument(
        "--on-error",
        type=str,
        choices=list(ERROR_POLICIES),
        help="Serve loop error policy",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging in plain-text format",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    if parsed.log_level:
        result["logging"] = {"level": parsed.log_level}

    if parsed.on_error:
        result["server"] = {"on_error": parsed.on_error}

    if parsed.debug:
        result.setdefault("logging", {})
        result["logging"]["level"] = "debug"
        result["logging"]["json_format"] = False

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Later sources override earlier ones: defaults, YAML file, environment
    variables, command-line arguments.

    Args:
        config_path: Path to YAML configuration file. If None, uses the
            --config argument or the default path when it exists.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        >>> config = load_config(cli_args=[])
        >>> config.server.on_error
        'raise'
    """
    config_dict: dict[str, Any] = {}

    # CLI args first, they may name the config file
    cli_config = _parse_cli_args(cli_args)
    cli_config_path = cli_config.pop("_config_path", None)

    if config_path is None:
        if cli_config_path is not None:
            config_path = Path(cli_config_path)
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    elif isinstance(config_path, str):
        config_path = Path(config_path)

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(config_path))

    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))
    config_dict = _deep_merge(config_dict, cli_config)

    return AppConfig(**config_dict)
