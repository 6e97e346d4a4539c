"""
Configuration Management System for Odyssea

Centralized configuration with a 4-tier precedence hierarchy:
environment → project → user → system defaults.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from odyssea.shared.core.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULTS_DIR = Path(__file__).resolve().parent.parent / "config" / "settings"


class ValidationLevel(Enum):
    """Configuration validation strictness levels"""
    STRICT = "strict"      # Fail fast on validation errors
    LENIENT = "lenient"    # Log warnings, use defaults


class RemoteConfig(BaseModel):
    """Remote document store, blob storage and identity provider"""
    model_config = ConfigDict(extra='forbid')

    backend: Literal["memory", "firebase"] = Field(default="memory", description="Remote backend implementation")
    project_id: Optional[str] = Field(default=None, description="Firebase project id")
    credentials_path: Optional[str] = Field(default=None, description="Service account JSON path")
    storage_bucket: Optional[str] = Field(default=None, description="Blob storage bucket name")
    api_key: Optional[str] = Field(default=None, description="Web API key for the identity REST endpoints")
    identity_base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Identity Toolkit REST base URL",
    )
    request_timeout: float = Field(default=15.0, ge=1.0, le=120.0, description="HTTP timeout (seconds)")


class PersistenceConfig(BaseModel):
    """Local key-value cache configuration"""
    model_config = ConfigDict(extra='forbid')

    enabled: bool = Field(default=True, description="Persist store projections on device")
    db_path: str = Field(default="data/odyssea_cache.duckdb", description="DuckDB cache file path")


class SyncConfig(BaseModel):
    """Optimistic write retry policy"""
    model_config = ConfigDict(extra='forbid')

    write_max_retries: int = Field(default=2, ge=0, le=10, description="Retries before an optimistic write is reverted")
    write_retry_delay: float = Field(default=0.5, ge=0.0, le=60.0, description="Initial retry delay (seconds)")
    retry_backoff: float = Field(default=2.0, ge=1.0, le=10.0, description="Backoff multiplier between retries")


class UIConfig(BaseModel):
    """Preferences consumed by the view layer"""
    model_config = ConfigDict(extra='forbid')

    theme_mode: Literal["light", "dark"] = Field(default="light", description="Initial theme mode")


class LoggingConfig(BaseModel):
    """Logging configuration"""
    model_config = ConfigDict(extra='forbid')

    level: str = Field(default="INFO", description="Root/file log level")
    file: Optional[str] = Field(default="data/logs/odyssea.log", description="Rotating log file, None to disable")
    console_level: str = Field(default="WARNING", description="Console handler level")


class SystemConfig(BaseModel):
    """Complete system configuration"""
    model_config = ConfigDict(extra='forbid')

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Metadata
    schema_version: int = Field(default=1, description="Configuration schema version")


# env var -> (section, key)
ENV_MAP: Dict[str, tuple] = {
    'ODYSSEA_BACKEND': ('remote', 'backend'),
    'ODYSSEA_PROJECT_ID': ('remote', 'project_id'),
    'GOOGLE_APPLICATION_CREDENTIALS': ('remote', 'credentials_path'),
    'ODYSSEA_STORAGE_BUCKET': ('remote', 'storage_bucket'),
    'FIREBASE_API_KEY': ('remote', 'api_key'),
    'ODYSSEA_REQUEST_TIMEOUT': ('remote', 'request_timeout'),
    'ODYSSEA_PERSISTENCE_ENABLED': ('persistence', 'enabled'),
    'ODYSSEA_DB_PATH': ('persistence', 'db_path'),
    'ODYSSEA_WRITE_MAX_RETRIES': ('sync', 'write_max_retries'),
    'ODYSSEA_WRITE_RETRY_DELAY': ('sync', 'write_retry_delay'),
    'ODYSSEA_THEME_MODE': ('ui', 'theme_mode'),
    'LOG_LEVEL': ('logging', 'level'),
}

_INT_KEYS = {'write_max_retries'}
_FLOAT_KEYS = {'write_retry_delay', 'request_timeout'}
_BOOL_KEYS = {'enabled'}


class ConfigManager:
    """Centralized configuration manager with 4-tier precedence hierarchy"""

    def __init__(self, project_root: Optional[Path] = None, config_dir: Optional[Path] = None):
        self.project_root = project_root or Path.cwd()
        self.config_dir = config_dir or self.project_root / ".odyssea"
        self._system_config: Optional[SystemConfig] = None
        self._user_config: Optional[Dict[str, Any]] = None
        self._project_config: Optional[Dict[str, Any]] = None

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """Load YAML configuration file"""
        if not file_path.exists():
            return {}

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to load {file_path}: {e}")
            return {}

    def _save_yaml_file(self, file_path: Path, data: Dict[str, Any]) -> bool:
        """Save configuration to YAML file"""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save {file_path}: {e}")
            return False

    def _load_system_defaults(self) -> SystemConfig:
        """Load system default configuration shipped with the package"""
        if self._system_config is None:
            defaults_dict = self._load_yaml_file(DEFAULTS_DIR / "defaults.yaml")

            try:
                self._system_config = SystemConfig(**defaults_dict)
            except ValidationError as e:
                logger.warning(f"System defaults validation failed: {e}")
                self._system_config = SystemConfig()

        return self._system_config

    def _load_user_config(self) -> Dict[str, Any]:
        """Load user-level configuration"""
        if self._user_config is None:
            self._user_config = self._load_yaml_file(self.config_dir / "user.yaml")
        return self._user_config

    def _load_project_config(self) -> Dict[str, Any]:
        """Load project-specific configuration"""
        if self._project_config is None:
            self._project_config = self._load_yaml_file(self.config_dir / "project.yaml")
        return self._project_config

    def _merge_configs(self) -> Dict[str, Any]:
        """Merge configurations with precedence: env → project → user → system"""
        merged = self._load_system_defaults().model_dump()

        self._deep_merge(merged, self._load_user_config())
        self._deep_merge(merged, self._load_project_config())
        self._deep_merge(merged, self._get_env_overrides())

        return merged

    def _deep_merge(self, base: Dict[str, Any], updates: Dict[str, Any]) -> None:
        """Deep merge configuration dictionaries"""
        for key, value in updates.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _get_env_overrides(self) -> Dict[str, Any]:
        """Extract configuration overrides from environment variables"""
        overrides: Dict[str, Any] = {}
        for env_key, (section, config_key) in ENV_MAP.items():
            value = os.getenv(env_key)
            if value is None:
                continue

            if config_key in _INT_KEYS:
                try:
                    converted: Any = int(value)
                except ValueError:
                    logger.warning(f"Ignoring non-integer {env_key}={value!r}")
                    continue
            elif config_key in _FLOAT_KEYS:
                try:
                    converted = float(value)
                except ValueError:
                    logger.warning(f"Ignoring non-numeric {env_key}={value!r}")
                    continue
            elif config_key in _BOOL_KEYS:
                converted = value.lower() in ('true', '1', 'yes', 'on')
            else:
                converted = value

            overrides.setdefault(section, {})[config_key] = converted

        return overrides

    def get_config(self, validation_level: ValidationLevel = ValidationLevel.STRICT) -> SystemConfig:
        """Get merged configuration with validation"""
        merged_config = self._merge_configs()

        try:
            return SystemConfig(**merged_config)
        except ValidationError as e:
            if validation_level == ValidationLevel.STRICT:
                raise ConfigurationError(f"Configuration validation failed: {e}") from e
            logger.warning(f"Configuration validation failed, using defaults: {e}")
            return SystemConfig()

    def save_project_config(self, config_updates: Dict[str, Any]) -> bool:
        """Save project-specific configuration updates"""
        project_path = self.config_dir / "project.yaml"

        existing_config = self._load_yaml_file(project_path)
        self._deep_merge(existing_config, config_updates)

        success = self._save_yaml_file(project_path, existing_config)
        if success:
            # Force reload on next access
            self._project_config = None

        return success

    def reload_config(self) -> None:
        """Clear cached configurations and reload from files"""
        self._system_config = None
        self._user_config = None
        self._project_config = None


def load_config(
    project_root: Optional[Path] = None,
    validation_level: ValidationLevel = ValidationLevel.STRICT,
) -> SystemConfig:
    """Build a ConfigManager for ``project_root`` and return its merged config."""
    return ConfigManager(project_root).get_config(validation_level)
