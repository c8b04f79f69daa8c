"""Core configuration settings - server and logging."""

from pydantic import BaseModel, Field, field_validator


# === Server Configuration ===


class ServerSettings(BaseModel):
    """Server-specific configuration settings."""

    host: str = Field(
        default="127.0.0.1",
        description="Server host address",
    )

    port: int = Field(
        default=3000,
        description="Server port number",
        ge=1,
        le=65535,
    )


# === Logging Configuration ===


class LoggingSettings(BaseModel):
    """Centralized logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    format: str = Field(
        default="auto",
        description="Logging output format: 'rich' for development, 'json' for production, 'auto' for automatic selection",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize the log level."""
        upper = v.upper()
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if upper not in valid:
            raise ValueError(f"Invalid log level: {v}. Must be one of {sorted(valid)}")
        return upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate the log output format."""
        lower = v.lower()
        if lower not in {"auto", "rich", "json"}:
            raise ValueError(f"Invalid log format: {v}. Must be auto, rich or json")
        return lower

    def use_json(self, is_production: bool) -> bool:
        """Whether logs should be rendered as JSON lines."""
        if self.format == "auto":
            return is_production
        return self.format == "json"
