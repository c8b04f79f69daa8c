"""Plugin lifecycle orchestration for Vite-powered server-rendered apps."""

from ._version import __version__


__all__ = ["__version__"]
