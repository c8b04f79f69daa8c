import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vitehost.core.logging import get_logger

from .core import LoggingSettings, ServerSettings
from .vite import ViteSettings


__all__ = ["Settings", "ConfigurationError", "get_settings"]


_NESTED_SECTIONS = ("server", "logging", "vite")

# Top-level keys that more than one environment variable may override
_ENV_ALIASES: dict[str, tuple[str, ...]] = {
    "environment": ("ENVIRONMENT", "NODE_ENV"),
}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class Settings(BaseSettings):
    """
    Configuration settings for a vitehost application.

    Settings are loaded from environment variables, .env files, and an optional
    TOML configuration file. Environment variables take precedence over values
    from the TOML file. Nested values use ``__`` as delimiter, e.g.
    ``SERVER__PORT=8080`` or ``VITE__SCAFFOLD_DIR=build/.vite``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Centralized logging configuration",
    )

    vite: ViteSettings = Field(
        default_factory=ViteSettings,
        description="Scaffold and build layout configuration",
    )

    environment: Literal["development", "production"] = Field(
        default="development",
        validation_alias=AliasChoices("environment", "NODE_ENV"),
        description="Deployment environment; 'production' serves prebuilt assets",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls,
        config_path: Path | str | None = None,
        cli_context: dict[str, Any] | None = None,
    ) -> "Settings":
        """Create Settings from environment, an optional TOML file and CLI overrides.

        Precedence, highest first: CLI context, environment variables, TOML file,
        field defaults.
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        config_data: dict[str, Any] = {}
        if config_path is not None:
            if config_path.suffix.lower() != ".toml":
                raise ConfigurationError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)
            get_logger(__name__).info(
                "config_file_loaded", path=str(config_path), category="config"
            )

        settings = cls()
        data = settings.model_dump()

        for key, value in config_data.items():
            if key not in data:
                continue
            if key in _NESTED_SECTIONS and isinstance(value, dict):
                for nested_key, nested_value in value.items():
                    env_key = f"{key.upper()}__{nested_key.upper()}"
                    if os.getenv(env_key) is None:
                        data[key][nested_key] = nested_value
            elif not any(
                os.getenv(env_key) is not None
                for env_key in _ENV_ALIASES.get(key, (key.upper(),))
            ):
                data[key] = value

        if cli_context:
            for cli_key, (section, field) in {
                "host": ("server", "host"),
                "port": ("server", "port"),
                "log_level": ("logging", "level"),
            }.items():
                if cli_context.get(cli_key) is not None:
                    data[section][field] = cli_context[cli_key]

        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


@lru_cache
def get_settings(config_path: Path | str | None = None) -> Settings:
    """Get cached settings, loading the TOML file once per path."""
    return Settings.from_config(config_path)
