"""Vite plugin lifecycle orchestrator.

``VitePlugin`` is itself a plugin. The host calls ``init`` with the shared
plugin list and, once its application exists, ``init_app`` and
``post_init_app``. From there the orchestrator folds ``configure_vite``
contributions into a build configuration, writes the scaffold, starts the
dev server or runs the builds or mounts production serving, and manages one
generation at a time of hot-reloadable client and server plugin instances.
"""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from starlette.middleware.gzip import GZipMiddleware

from vitehost.config.settings import Settings, get_settings
from vitehost.core.errors import BuildToolError, SetupError
from vitehost.core.logging import get_logger
from vitehost.plugins.protocol import Plugin, call_hook, get_hook, plugin_name

from .buildtool import BuildTool, DevServer
from .config import (
    CLIENT_REGISTRY,
    HTML_SHELL,
    SERVER_REGISTRY,
    BuildConfig,
    BuildTarget,
    default_build_config,
    fold_configure_hooks,
)
from .environment import materialize
from .middleware import DevServerMiddleware, StaticAssetsMiddleware
from .mode import LaunchOptions, Mode
from .preload import DependencyResolver, load_manifest
from .runtime import HTMLTemplates, RuntimeContext


if TYPE_CHECKING:
    from fastapi import FastAPI


logger = get_logger(__name__)

DEV_CLIENT_REGISTRY_URL = "/" + CLIENT_REGISTRY
DEV_SERVER_REGISTRY_URL = "/" + SERVER_REGISTRY
BUILT_CLIENT_REGISTRY = "clientPlugins.js"
BUILT_SERVER_REGISTRY = "server.js"


class OrchestratorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURING = "configuring"
    DEV_RUNNING = "dev_running"
    BUILDING = "building"
    PREVIEW_SERVING = "preview_serving"
    STOPPED = "stopped"


@dataclass(frozen=True)
class InjectedPlugin:
    """Record of a plugin instance the orchestrator put in the plugin list."""

    instance: Plugin
    side: Literal["client", "server"]


def _registry_factory(module: Any, source: str) -> Callable[[], Any]:
    if isinstance(module, Mapping):
        factory = module.get("default")
    else:
        factory = getattr(module, "default", None)
    if not callable(factory):
        raise BuildToolError(
            "load_module", f"{source} does not export a default plugin factory"
        )
    return factory  # type: ignore[no-any-return]


class VitePlugin:
    """Plugin that wires every other plugin's Vite hooks together."""

    name = "vite"

    def __init__(
        self,
        build_tool: BuildTool,
        settings: Settings | None = None,
        launch: LaunchOptions | None = None,
    ) -> None:
        self.build_tool = build_tool
        self.settings = settings or get_settings()
        self.launch = launch or LaunchOptions.from_settings(self.settings)
        self.state = OrchestratorState.UNINITIALIZED

        self._mode = self.launch.mode
        self._plugins: list[Plugin] = []
        self._app: FastAPI | None = None
        self._stop: Callable[[], None] | None = None
        self._server: DevServer | None = None
        self._injected: list[InjectedPlugin] = []
        self._generation = 0
        self._reload_lock = asyncio.Lock()
        self._built_registries: tuple[Any, Any] | None = None

        vite = self.settings.vite
        self.resolver = DependencyResolver(self._get_mode, self._get_server)
        self.templates = HTMLTemplates(
            shell_path=vite.scaffold_dir / HTML_SHELL,
            built_shell_path=vite.client_dist_dir / HTML_SHELL,
            get_mode=self._get_mode,
            get_server=self._get_server,
        )
        self.context: RuntimeContext | None = None

    # Accessors handed out to the runtime context and middleware

    def _get_mode(self) -> Mode:
        return self._mode

    def _get_server(self) -> DevServer | None:
        return self._server

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def server(self) -> DevServer | None:
        return self._server

    @property
    def generation(self) -> int:
        """Number of reloads performed so far."""
        return self._generation

    @property
    def client_plugins(self) -> list[Plugin]:
        return [p.instance for p in self._injected if p.side == "client"]

    @property
    def server_plugins(self) -> list[Plugin]:
        return [p.instance for p in self._injected if p.side == "server"]

    # Host lifecycle

    async def init(self, plugins: list[Plugin]) -> None:
        self._plugins = plugins

    async def post_init(self) -> None:
        pass

    async def init_app(self, app: "FastAPI", stop: Callable[[], None]) -> None:
        """Capture the host application and stop callback; build the context."""
        self._app = app
        self._stop = stop
        self.state = OrchestratorState.CONFIGURING

        if self.context is None:
            self.context = RuntimeContext(
                get_mode=self._get_mode,
                get_server=self._get_server,
                templates=self.templates,
                resolve_deps=self.resolver,
                port=await self._derive_port(),
                get_client_plugins=lambda: self.client_plugins,
                get_server_plugins=lambda: self.server_plugins,
            )

    async def post_init_app(self) -> None:
        """Enter the build, dev or production-serving mode."""
        app, stop = self._app, self._stop
        if app is None or stop is None or self.context is None:
            raise SetupError("post_init_app called before init_app")

        if self.launch.build:
            await self._run_builds(stop)
            return

        if self._mode is Mode.DEV:
            await self._start_dev_server(app)
        else:
            await self._mount_production(app)

        await self.reload()

        for plugin in list(self._plugins):
            hook = get_hook(plugin, "init_vite")
            if hook is not None:
                await call_hook(hook, self.context)

        for plugin in list(self._plugins):
            hook = get_hook(plugin, "post_init_vite")
            if hook is not None:
                await call_hook(hook)

        logger.info(
            "vite_plugin_ready",
            mode=self._mode.value,
            port=self.context.port,
            category="lifecycle",
        )

    async def shutdown_app(self) -> None:
        """Close the dev server, if one is running."""
        server, self._server = self._server, None
        if server is not None:
            await server.close()
            logger.debug("dev_server_closed", category="lifecycle")
        self.state = OrchestratorState.STOPPED

    # Mode transitions

    async def _derive_port(self) -> int:
        for plugin in self._plugins:
            if plugin is self:
                continue
            get_port = get_hook(plugin, "get_port")
            if get_port is not None:
                return int(await call_hook(get_port))
        return self.settings.vite.default_port

    async def _configure(self, mode: Mode, target: BuildTarget) -> BuildConfig:
        vite = self.settings.vite
        config = await fold_configure_hooks(
            self._plugins, default_build_config(vite.scaffold_dir, mode, target)
        )
        await asyncio.to_thread(
            materialize,
            config.server_plugin_modules,
            config.client_plugin_modules,
            vite.scaffold_dir,
            vite.client_runtime_module,
        )
        return config

    async def _run_builds(self, stop: Callable[[], None]) -> None:
        self.state = OrchestratorState.BUILDING

        for target in (BuildTarget.CLIENT, BuildTarget.SSR):
            config = await self._configure(Mode.PROD, target)
            logger.info("vite_build_started", target=target.value, category="build")
            try:
                await self.build_tool.build(config.config)
            except Exception as e:
                logger.error(
                    "vite_build_failed",
                    target=target.value,
                    error=str(e),
                    exc_info=e,
                    category="build",
                )
                raise BuildToolError("build", str(e)) from e
            logger.info("vite_build_completed", target=target.value, category="build")

        self.state = OrchestratorState.STOPPED
        stop()

    async def _start_dev_server(self, app: "FastAPI") -> None:
        config = await self._configure(Mode.DEV, BuildTarget.DEV)
        try:
            self._server = await self.build_tool.create_dev_server(
                config.config, self._handle_hot_update
            )
        except Exception as e:
            raise BuildToolError("create_dev_server", str(e)) from e

        app.add_middleware(DevServerMiddleware, get_server=self._get_server)
        self.state = OrchestratorState.DEV_RUNNING
        logger.info(
            "dev_server_started",
            scaffold_dir=str(self.settings.vite.scaffold_dir),
            category="lifecycle",
        )

    async def _mount_production(self, app: "FastAPI") -> None:
        vite = self.settings.vite
        self.resolver.manifest = await asyncio.to_thread(
            load_manifest, vite.manifest_path, vite.scaffold_dir
        )

        # Starlette wraps in reverse order: compression ends up outermost
        app.add_middleware(StaticAssetsMiddleware, directory=vite.client_dist_dir)
        app.add_middleware(GZipMiddleware)
        self.state = OrchestratorState.PREVIEW_SERVING
        logger.info(
            "production_assets_mounted",
            directory=str(vite.client_dist_dir),
            preview=self.launch.preview,
            category="lifecycle",
        )

    # Hot-reloadable plugin generations

    async def _handle_hot_update(self, *args: Any, **kwargs: Any) -> None:
        logger.info("hot_update_received", category="lifecycle")
        try:
            await self.reload()
        except Exception as e:
            logger.error(
                "hot_reload_failed", error=str(e), exc_info=e, category="lifecycle"
            )
            raise

    async def _load_registries(self) -> tuple[Any, Any]:
        if self._mode is Mode.DEV:
            server = self._server
            if server is None:
                raise SetupError("dev server is not running")
            try:
                return (
                    await server.load_module(DEV_CLIENT_REGISTRY_URL),
                    await server.load_module(DEV_SERVER_REGISTRY_URL),
                )
            except Exception as e:
                raise BuildToolError("load_module", str(e)) from e

        if self._built_registries is None:
            dist = self.settings.vite.server_dist_dir
            try:
                self._built_registries = (
                    await self.build_tool.load_built_module(
                        dist / BUILT_CLIENT_REGISTRY
                    ),
                    await self.build_tool.load_built_module(
                        dist / BUILT_SERVER_REGISTRY
                    ),
                )
            except Exception as e:
                raise BuildToolError("load_built_module", str(e)) from e
        return self._built_registries

    async def reload(self) -> None:
        """Replace the injected client and server plugins with a fresh generation.

        The previous generation is removed from the shared plugin list before
        the new one is added, so the two never coexist. Every new instance's
        ``init`` runs before any ``post_init``.
        """
        async with self._reload_lock:
            stale = {id(record.instance) for record in self._injected}
            self._plugins[:] = [p for p in self._plugins if id(p) not in stale]
            self._injected = []

            client_module, server_module = await self._load_registries()
            client = list(_registry_factory(client_module, CLIENT_REGISTRY)())
            server = list(_registry_factory(server_module, SERVER_REGISTRY)())

            self._generation += 1
            self._injected = [InjectedPlugin(p, "client") for p in client] + [
                InjectedPlugin(p, "server") for p in server
            ]
            self._plugins.extend(client)
            self._plugins.extend(server)

            for plugin in (*client, *server):
                hook = get_hook(plugin, "init")
                if hook is not None:
                    await call_hook(hook, self._plugins, self.context)

            for plugin in (*client, *server):
                hook = get_hook(plugin, "post_init")
                if hook is not None:
                    await call_hook(hook)

            logger.info(
                "plugins_reloaded",
                generation=self._generation,
                client_plugins=[plugin_name(p) for p in client],
                server_plugins=[plugin_name(p) for p in server],
                category="lifecycle",
            )
