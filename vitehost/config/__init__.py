"""Configuration module for vitehost."""

from .core import LoggingSettings, ServerSettings
from .settings import ConfigurationError, Settings, get_settings
from .vite import ViteSettings


__all__ = [
    "ConfigurationError",
    "LoggingSettings",
    "ServerSettings",
    "Settings",
    "ViteSettings",
    "get_settings",
]
