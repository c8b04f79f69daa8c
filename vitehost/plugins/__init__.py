"""Plugin host runtime and hook protocols."""

from .host import init_plugins
from .protocol import (
    AppHooks,
    BaseHooks,
    Plugin,
    ViteHooks,
    call_hook,
    get_hook,
    plugin_name,
)


__all__ = [
    "AppHooks",
    "BaseHooks",
    "Plugin",
    "ViteHooks",
    "call_hook",
    "get_hook",
    "init_plugins",
    "plugin_name",
]
