"""
================================================================================
Configuration Loader
================================================================================

YAML-based configuration management for the license API test harness.

Features:
    - Committed base file merged with an optional, git-ignored local override
    - Environment variable override for non-secret keys
      (API_BASE_URL overrides api.base_url)
    - Secrets read exclusively from the environment, never from files
    - Immutable ``Settings`` value built once per test session

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from loguru import logger


CONFIG_DIR = Path(__file__).parent.parent.parent / "config"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"
DEFAULT_LOCAL_CONFIG_PATH = CONFIG_DIR / "config.local.yaml"

# Secrets are only ever taken from the process environment
ORG_ADMIN_KEY_ENV = "ORG_ADMIN_API_KEY"
TEAM_ADMIN_KEY_ENV = "TEAM_ADMIN_API_KEY"

REQUIRED_KEYS = (
    "api.base_url",
    "api.customer_code",
    "teams.source_team_id",
    "teams.target_team_id",
    "test_data.user_email",
)


class ConfigurationError(Exception):
    """Raised when configuration loading or access fails."""
    pass


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration for one test run.

    Constructed once and passed explicitly to the API client, the license
    fixture and the test cases.
    """
    base_url: str
    customer_code: str
    source_team_id: int
    target_team_id: int
    test_user_email: str
    org_admin_key: str
    team_admin_key: Optional[str] = None
    foreign_license_id: Optional[str] = None
    timeout: float = 30.0
    retry_count: int = 3
    retry_backoff: float = 0.5
    retry_max_wait: float = 5.0


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigLoader:
    """
    Configuration loader with YAML and environment variable support.

    Configuration hierarchy (highest to lowest priority):
        1. Environment variables (API_BASE_URL)
        2. Local override file (config.local.yaml, git-ignored)
        3. Base configuration file (config.yaml, committed)
        4. Default values

    Usage:
        >>> loader = ConfigLoader()
        >>> loader.get("api.base_url")
        'https://account.example.com/api/v1'
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        local_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Initialize configuration loader.

        Args:
            config_path: Base YAML file. Uses DEFAULT_CONFIG_PATH if not specified.
            local_path: Optional override YAML file. Uses
                        DEFAULT_LOCAL_CONFIG_PATH if not specified.
            environ: Environment mapping, ``os.environ`` by default.
        """
        self._config_path = config_path or DEFAULT_CONFIG_PATH
        self._local_path = local_path or DEFAULT_LOCAL_CONFIG_PATH
        self._environ = os.environ if environ is None else environ
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {path} must contain a mapping at top level"
            )
        return data

    def _load_config(self) -> None:
        """Load the base file and merge the local override on top."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}. "
                f"The committed base config is required."
            )

        config = self._read_yaml(self._config_path)
        logger.debug(f"Loaded configuration from: {self._config_path}")

        if self._local_path.exists():
            config = _deep_merge(config, self._read_yaml(self._local_path))
            logger.debug(f"Merged local override: {self._local_path}")

        self._config = config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        First checks environment variables, then the merged YAML config,
        then the default.

        Args:
            key: Dot-notation path (e.g., "api.base_url")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        env_key = key.upper().replace(".", "_")
        env_value = self._environ.get(env_key)
        if env_value is not None:
            return self._convert_type(env_value, default)

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                value = None

            if value is None:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section, or an empty dict."""
        return self._config.get(section, {})

    def require(self, key: str) -> Any:
        """Get a configuration value that must be present and non-blank."""
        value = self.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ConfigurationError(
                f"Required config key '{key}' not found in "
                f"{self._config_path.name} or {self._local_path.name}."
            )
        return value

    def secret(self, env_var: str, required: bool = True) -> Optional[str]:
        """
        Read a secret from the environment.

        Blank values count as absent.
        """
        value = self._environ.get(env_var)
        if value is not None and value.strip():
            return value
        if required:
            raise ConfigurationError(
                f"Required secret '{env_var}' is missing. "
                f"Set it as an environment variable; secrets are never read from config files."
            )
        return None

    def reload(self) -> None:
        """Reload configuration from the files."""
        self._load_config()
        logger.info(f"Configuration reloaded from: {self._config_path}")

    def _convert_type(self, value: str, reference: Any) -> Any:
        """
        Convert string value to match reference type.

        Used for environment variables which are always strings.
        """
        if reference is None:
            return value

        if isinstance(reference, bool):
            return value.lower() in ("true", "1", "yes", "on")
        if isinstance(reference, int):
            try:
                return int(value)
            except ValueError:
                return value
        if isinstance(reference, float):
            try:
                return float(value)
            except ValueError:
                return value

        return value


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Config key '{key}' must be an integer, got {value!r}") from e


def load_settings(loader: Optional[ConfigLoader] = None) -> Settings:
    """
    Build the immutable ``Settings`` for this run.

    Raises:
        ConfigurationError: If a required key or secret is absent.
    """
    loader = loader or ConfigLoader()

    for key in REQUIRED_KEYS:
        loader.require(key)

    foreign_license_id = loader.get("test_data.foreign_license_id")
    if isinstance(foreign_license_id, str) and not foreign_license_id.strip():
        foreign_license_id = None

    settings = Settings(
        base_url=str(loader.require("api.base_url")).rstrip("/"),
        customer_code=str(loader.require("api.customer_code")),
        source_team_id=_as_int("teams.source_team_id", loader.require("teams.source_team_id")),
        target_team_id=_as_int("teams.target_team_id", loader.require("teams.target_team_id")),
        test_user_email=str(loader.require("test_data.user_email")),
        org_admin_key=loader.secret(ORG_ADMIN_KEY_ENV),
        team_admin_key=loader.secret(TEAM_ADMIN_KEY_ENV, required=False),
        foreign_license_id=str(foreign_license_id) if foreign_license_id is not None else None,
        timeout=float(loader.get("api.timeout", 30.0)),
        retry_count=int(loader.get("api.retry_count", 3)),
        retry_backoff=float(loader.get("api.retry_backoff", 0.5)),
        retry_max_wait=float(loader.get("api.retry_max_wait", 5.0)),
    )
    logger.info(
        f"Settings loaded: base_url={settings.base_url} "
        f"source_team={settings.source_team_id} target_team={settings.target_team_id}"
    )
    return settings


__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "Settings",
    "load_settings",
]
