from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from src.utils.logger import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config.json"
VECTOR_STORE_PREFIX = "vs_"


class ConfigError(Exception):
    """Raised when config.json or the environment is missing or invalid."""


class FileConfig(BaseModel):
    vectorStoreId: str

    @field_validator("vectorStoreId")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value.startswith(VECTOR_STORE_PREFIX):
            raise ValueError(f"vectorStoreId in config.json must start with {VECTOR_STORE_PREFIX}")
        return value


class OpenAIEnvSettings(BaseSettings):
    """Environment inputs: OPENAI_API_KEY (required) and DEBUG_OPENAI (optional)."""

    openai_api_key: str = Field(default="", validate_default=True)
    debug_openai: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("openai_api_key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        if not value:
            raise ValueError("OPENAI_API_KEY environment variable is not set or empty")
        return value


@dataclass(frozen=True)
class AppConfig:
    """Validated, read-only settings shared by every invocation."""
    vector_store_id: str
    openai_api_key: str
    debug_openai: bool = False

    def masked_api_key(self) -> str:
        key = self.openai_api_key
        if len(key) <= 8:
            return "*" * len(key)
        return f"{key[:3]}...{key[-4:]}"


def parse_debug_flag(value: Optional[str]) -> bool:
    """True when the value is "true" or "1" (case-insensitive)."""
    return (value or "").lower() in ("true", "1")


def _format_errors(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'root'}: {e['msg']}"
        for e in error.errors()
    )


def load_file_config(path: Union[str, Path]) -> FileConfig:
    """Load and validate config.json (JSON or YAML content)."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Failed to load or parse {path.name}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to load or parse {path.name}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} validation failed: expected an object, got {type(raw).__name__}")
    try:
        file_cfg = FileConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"{path.name} validation failed: {_format_errors(e)}") from e
    logger.info(f"{path.name} loaded and validated successfully.")
    return file_cfg


def load_env_settings(env_file: Optional[Union[str, Path]] = ".env") -> OpenAIEnvSettings:
    try:
        return OpenAIEnvSettings(_env_file=env_file)
    except ValidationError as e:
        raise ConfigError(f"Environment variable validation failed: {_format_errors(e)}") from e


def load_app_config(
    path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = ".env",
) -> AppConfig:
    """Combine config.json and the environment into an AppConfig.

    Raises:
        ConfigError: if either source is missing or invalid.
    """
    file_cfg = load_file_config(path or DEFAULT_CONFIG_PATH)
    env = load_env_settings(env_file)
    logger.info("Environment variables validated successfully.")

    debug_openai = parse_debug_flag(env.debug_openai)
    if env.debug_openai is not None:
        logger.info(f"DEBUG_OPENAI flag set to: {debug_openai}")
    else:
        logger.info("DEBUG_OPENAI flag not set, defaulting to false.")

    return AppConfig(
        vector_store_id=file_cfg.vectorStoreId,
        openai_api_key=env.openai_api_key,
        debug_openai=debug_openai,
    )
