"""Host-side plugin runtime.

Runs the two-phase ``init`` / ``post_init`` lifecycle over a process-wide
ordered plugin list. Hooks run sequentially in registration order and an
exception aborts the remaining hooks of the phase.
"""

from vitehost.core.logging import get_logger

from .protocol import Plugin, call_hook, get_hook, plugin_name


logger = get_logger(__name__)


async def init_plugins(plugins: list[Plugin]) -> list[Plugin]:
    """Initialize every plugin, then post-initialize every plugin.

    The same list object is handed to each ``init`` hook so plugins observe
    later additions to it (e.g. hot-reloaded instances).

    Args:
        plugins: Ordered plugin list, shared with all plugins

    Returns:
        The same plugin list
    """
    for plugin in list(plugins):
        hook = get_hook(plugin, "init")
        if hook is None:
            continue
        logger.debug("plugin_init", plugin=plugin_name(plugin), category="plugin")
        await call_hook(hook, plugins)

    for plugin in list(plugins):
        hook = get_hook(plugin, "post_init")
        if hook is None:
            continue
        logger.debug("plugin_post_init", plugin=plugin_name(plugin), category="plugin")
        await call_hook(hook)

    logger.info("plugins_initialized", total_plugins=len(plugins), category="plugin")
    return plugins
