"""HTTP host plugin.

``AppPlugin`` owns the FastAPI application. After every plugin has been
initialized it drives the ``init_app`` / ``post_init_app`` hooks so other
plugins can mount middleware and routes, then serves the app with uvicorn
unless a plugin asked it to stop.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from vitehost import __version__
from vitehost.config.settings import Settings, get_settings
from vitehost.core.logging import get_logger
from vitehost.plugins.protocol import Plugin, call_hook, get_hook, plugin_name


logger = get_logger(__name__)


class AppPlugin:
    """Plugin hosting the ASGI application."""

    name = "app"

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.app = FastAPI(
            title="vitehost",
            version=__version__,
            lifespan=self._lifespan,
        )
        self.stopped = False
        self._plugins: list[Plugin] = []

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncGenerator[None, None]:
        logger.debug("app_startup", category="lifecycle")
        yield
        for plugin in reversed(list(self._plugins)):
            hook = get_hook(plugin, "shutdown_app")
            if hook is None:
                continue
            try:
                await call_hook(hook)
            except Exception as e:
                logger.error(
                    "plugin_shutdown_failed",
                    plugin=plugin_name(plugin),
                    error=str(e),
                    exc_info=e,
                    category="lifecycle",
                )
        logger.debug("app_shutdown_completed", category="lifecycle")

    def get_port(self) -> int:
        return self.settings.server.port

    def stop(self) -> None:
        """Ask the host not to serve; used after a production build."""
        self.stopped = True
        logger.info("app_stop_requested", category="lifecycle")

    async def init(self, plugins: list[Plugin]) -> None:
        self._plugins = plugins

    async def post_init(self) -> None:
        for plugin in list(self._plugins):
            hook = get_hook(plugin, "init_app")
            if hook is not None:
                await call_hook(hook, self.app, self.stop)

        for plugin in list(self._plugins):
            hook = get_hook(plugin, "post_init_app")
            if hook is not None:
                await call_hook(hook)

    async def serve(self) -> None:
        """Run uvicorn until interrupted; no-op once stopped."""
        if self.stopped:
            logger.debug("app_serve_skipped", reason="stopped", category="lifecycle")
            return

        server_settings = self.settings.server
        config = uvicorn.Config(
            self.app,
            host=server_settings.host,
            port=server_settings.port,
            log_config=None,
        )
        logger.info(
            "server_starting",
            url=self.settings.server_url,
            category="lifecycle",
        )
        await uvicorn.Server(config).serve()
