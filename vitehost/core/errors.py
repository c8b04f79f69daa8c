"""Exceptions raised by vitehost."""

from typing import Any


class VitehostError(Exception):
    """Base exception for vitehost errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SetupError(VitehostError):
    """Unrecoverable failure during a mode transition (dev start, build, preview)."""


class MaterializationError(SetupError):
    """Writing the scaffold environment failed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write scaffold file {path}: {reason}",
            details={"path": path},
        )
        self.path = path


class BuildToolError(SetupError):
    """The build tool failed to start, build, or load a module."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Build tool {operation} failed: {reason}",
            details={"operation": operation},
        )
        self.operation = operation


class TemplateError(VitehostError):
    """The HTML shell is missing a placeholder token."""

    def __init__(self, token: str) -> None:
        super().__init__(
            f"HTML template is missing placeholder {token}", details={"token": token}
        )
        self.token = token


__all__ = [
    "VitehostError",
    "SetupError",
    "MaterializationError",
    "BuildToolError",
    "TemplateError",
]
