"""
Configuration loading with schema validation.
Settings are plain values handed to constructors; nothing here is global.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

CONFIG_ENV_VAR = "ACCOUNT_SECURITY_CONFIG"


class SecuritySettings(BaseModel):
    max_attempts: int = Field(default=5, ge=1)
    attempt_window_seconds: int = Field(default=15 * 60, gt=0)
    lockout_seconds: int = Field(default=30 * 60, gt=0)
    verification_token_ttl_seconds: int = Field(default=24 * 60 * 60, gt=0)
    reset_token_ttl_seconds: int = Field(default=24 * 60 * 60, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    password_min_length: int = Field(default=8, ge=1)
    default_source: str = "unknown"  # placeholder source identifier for attempts


class StorageSettings(BaseModel):
    backend: Literal["json", "memory"] = "json"
    data_dir: str = "data"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} and ${VAR:default} placeholders"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load and validate settings from YAML.

    Uses ``path`` if given, else the file named by ACCOUNT_SECURITY_CONFIG,
    else built-in defaults.
    """
    if path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if not env_path:
            return Settings()
        path = env_path

    settings_path = Path(path)
    if not settings_path.exists():
        raise ConfigError(f"Settings file not found: {settings_path}")

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read settings from {settings_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise ConfigError(f"Settings file must contain a mapping: {settings_path}")

    try:
        settings = Settings(**_substitute_env_vars(raw_data))
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {settings_path}: {e}") from e

    logger.debug("Settings loaded", path=str(settings_path))
    return settings
