"""
Tests for the configuration module.

This test module validates:
- Configuration loading from YAML files
- Environment variable overrides
- CLI argument overrides
- Configuration precedence (defaults < YAML < env vars < CLI args)
- Pydantic model validation with invalid inputs
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from msgpack_rpc.config import (
    AppConfig,
    LoggingConfig,
    ServerConfig,
    _deep_merge,
    _load_env_config,
    _load_yaml_config,
    _parse_cli_args,
    _parse_env_value,
    load_config,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_yaml_config() -> dict[str, Any]:
    """Sample YAML configuration for testing."""
    return {
        "server": {
            "read_size": 4096,
            "on_error": "skip",
        },
        "logging": {
            "level": "warn",
            "json_format": False,
        },
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_yaml_config: dict[str, Any]) -> Path:
    """Write the sample configuration to a temporary file."""
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(sample_yaml_config))
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove MSGPACK_RPC_* variables from the environment (autouse fixture)."""
    for key in list(os.environ):
        if key.startswith("MSGPACK_RPC_"):
            monkeypatch.delenv(key)


# =============================================================================
# Tests for Default Configuration
# =============================================================================


class TestDefaultConfiguration:
    """Tests for default configuration values."""

    def test_app_config_defaults(self) -> None:
        """Test that AppConfig has sensible defaults."""
        config = AppConfig()

        assert config.server.read_size == 64 * 1024
        assert config.server.max_buffer_size == 100 * 1024 * 1024
        assert config.server.on_error == "raise"
        assert config.logging.level == "info"
        assert config.logging.json_format is True
        assert config.logging.stream == "stderr"


# =============================================================================
# Tests for Configuration Validation
# =============================================================================


class TestConfigurationValidation:
    """Tests for configuration validation."""

    def test_on_error_valid(self) -> None:
        """Test valid error policies are accepted and normalized."""
        for policy in ["raise", "close", "skip", "SKIP"]:
            assert ServerConfig(on_error=policy).on_error == policy.lower()

    def test_on_error_invalid(self) -> None:
        """Test unknown error policies are rejected."""
        with pytest.raises(ValueError, match="Invalid error policy"):
            ServerConfig(on_error="retry")

    def test_read_size_must_be_positive(self) -> None:
        """Test that a zero read size is rejected."""
        with pytest.raises(ValidationError):
            ServerConfig(read_size=0)

    def test_log_level_valid(self) -> None:
        """Test valid log levels are accepted."""
        for level in ["debug", "info", "warn", "warning", "error", "DEBUG"]:
            config = LoggingConfig(level=level)
            if level.lower() == "warn":
                assert config.level == "warning"
            else:
                assert config.level == level.lower()

    def test_log_level_invalid(self) -> None:
        """Test invalid log levels are rejected."""
        with pytest.raises(ValueError, match="Invalid log level"):
            LoggingConfig(level="verbose")

    def test_log_stream_invalid(self) -> None:
        """Test that only stdout and stderr are accepted."""
        with pytest.raises(ValueError, match="Invalid log stream"):
            LoggingConfig(stream="syslog")


# =============================================================================
# Tests for Loading Helpers
# =============================================================================


class TestLoadingHelpers:
    """Tests for the configuration loading helpers."""

    def test_deep_merge(self) -> None:
        """Test that nested dictionaries are merged."""
        base = {"server": {"read_size": 1, "on_error": "raise"}, "x": 1}
        override = {"server": {"on_error": "skip"}}

        assert _deep_merge(base, override) == {
            "server": {"read_size": 1, "on_error": "skip"},
            "x": 1,
        }
        assert base["server"]["on_error"] == "raise"

    def test_load_yaml_config(
        self, config_file: Path, sample_yaml_config: dict[str, Any]
    ) -> None:
        """Test loading a YAML file."""
        assert _load_yaml_config(config_file) == sample_yaml_config

    def test_load_empty_yaml(self, tmp_path: Path) -> None:
        """Test that an empty file yields an empty dict."""
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert _load_yaml_config(path) == {}

    def test_load_missing_yaml(self, tmp_path: Path) -> None:
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            _load_yaml_config(tmp_path / "missing.yml")

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", True),
            ("off", False),
            ("4096", 4096),
            ("1.5", 1.5),
            ("skip", "skip"),
        ],
    )
    def test_parse_env_value(self, raw: str, expected: Any) -> None:
        """Test environment value coercion."""
        assert _parse_env_value(raw) == expected

    def test_load_env_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested keys from environment variables."""
        monkeypatch.setenv("MSGPACK_RPC_SERVER__ON_ERROR", "close")
        monkeypatch.setenv("MSGPACK_RPC_SERVER__READ_SIZE", "512")
        monkeypatch.setenv("MSGPACK_RPC_LOGGING__JSON_FORMAT", "false")

        assert _load_env_config() == {
            "server": {"on_error": "close", "read_size": 512},
            "logging": {"json_format": False},
        }

    def test_parse_cli_args(self) -> None:
        """Test command-line overrides."""
        result = _parse_cli_args(["--log-level", "error", "--on-error", "skip"])

        assert result == {
            "logging": {"level": "error"},
            "server": {"on_error": "skip"},
        }

    def test_parse_cli_debug(self) -> None:
        """Test that --debug switches to plain-text debug logging."""
        result = _parse_cli_args(["--debug"])

        assert result == {"logging": {"level": "debug", "json_format": False}}


# =============================================================================
# Tests for load_config()
# =============================================================================


class TestLoadConfig:
    """Tests for layered configuration loading."""

    def test_defaults_only(self) -> None:
        """Test loading without any source."""
        config = load_config(cli_args=[])

        assert config.server.on_error == "raise"

    def test_yaml_file(self, config_file: Path) -> None:
        """Test loading from an explicit YAML path."""
        config = load_config(config_path=config_file, cli_args=[])

        assert config.server.read_size == 4096
        assert config.server.on_error == "skip"
        assert config.logging.level == "warning"
        assert config.logging.json_format is False

    def test_yaml_path_from_cli(self, config_file: Path) -> None:
        """Test that --config names the YAML file."""
        config = load_config(cli_args=["--config", str(config_file)])

        assert config.server.read_size == 4096

    def test_precedence(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test defaults < YAML < env vars < CLI args."""
        monkeypatch.setenv("MSGPACK_RPC_SERVER__ON_ERROR", "close")
        monkeypatch.setenv("MSGPACK_RPC_SERVER__READ_SIZE", "1024")

        config = load_config(
            config_path=str(config_file),
            cli_args=["--on-error", "raise"],
        )

        assert config.server.read_size == 1024
        assert config.server.on_error == "raise"
        assert config.server.max_buffer_size == 100 * 1024 * 1024

    def test_invalid_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that invalid values fail validation."""
        monkeypatch.setenv("MSGPACK_RPC_SERVER__ON_ERROR", "explode")

        with pytest.raises(ValidationError):
            load_config(cli_args=[])
