"""HTTP host for vitehost plugins."""

from .app import AppPlugin


__all__ = ["AppPlugin"]
