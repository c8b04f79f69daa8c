"""Build configuration threaded through ``configure_vite`` hooks."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from vitehost.core.logging import get_logger
from vitehost.plugins.protocol import Plugin, call_hook, get_hook, plugin_name

from .mode import Mode


logger = get_logger(__name__)

CLIENT_ENTRY = "client.ts"
CLIENT_REGISTRY = "clientPlugins.ts"
SERVER_REGISTRY = "server.ts"
HTML_SHELL = "index.html"
CONFIG_STUB = "vite.config.js"


class BuildTarget(str, Enum):
    """What the configuration is being assembled for."""

    DEV = "dev"
    CLIENT = "client"
    SSR = "ssr"


class BuildConfig(BaseModel):
    """Inline Vite options plus the ordered plugin module lists.

    Instances are immutable; hooks return a modified copy. Module order is
    import and instantiation order in the generated registries.
    """

    model_config = ConfigDict(frozen=True)

    config: dict[str, Any] = Field(default_factory=dict)
    client_plugin_modules: tuple[str, ...] = ()
    server_plugin_modules: tuple[str, ...] = ()
    mode: Mode = Mode.DEV
    target: BuildTarget = BuildTarget.DEV

    def with_client_modules(self, *modules: str) -> "BuildConfig":
        """Append client plugin module specifiers."""
        return self.model_copy(
            update={"client_plugin_modules": (*self.client_plugin_modules, *modules)}
        )

    def with_server_modules(self, *modules: str) -> "BuildConfig":
        """Append server plugin module specifiers."""
        return self.model_copy(
            update={"server_plugin_modules": (*self.server_plugin_modules, *modules)}
        )

    def with_options(self, **options: Any) -> "BuildConfig":
        """Deep-merge Vite options into a copy of the inline config."""
        return self.model_copy(
            update={"config": _deep_merge(self.config, options)}
        )


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_build_config(
    scaffold_dir: Path, mode: Mode, target: BuildTarget
) -> BuildConfig:
    """Base configuration every fold starts from."""
    options: dict[str, Any] = {
        "server": {"middlewareMode": True},
        "appType": "custom",
        "root": str(scaffold_dir),
        "base": "/",
        "optimizeDeps": {"exclude": []},
        "plugins": [],
    }

    if target is BuildTarget.CLIENT:
        options["build"] = {
            "outDir": "dist/client",
            "ssrManifest": True,
            "emptyOutDir": True,
        }
    elif target is BuildTarget.SSR:
        options["build"] = {
            "ssr": True,
            "outDir": "dist/server",
            "emptyOutDir": True,
            "rollupOptions": {
                "input": [
                    str(scaffold_dir / CLIENT_ENTRY),
                    str(scaffold_dir / CLIENT_REGISTRY),
                    str(scaffold_dir / SERVER_REGISTRY),
                ]
            },
        }

    return BuildConfig(config=options, mode=mode, target=target)


async def fold_configure_hooks(
    plugins: list[Plugin], initial: BuildConfig
) -> BuildConfig:
    """Left-fold ``initial`` through every plugin's ``configure_vite`` hook.

    Each hook receives a deep copy of the previous result so no hook can
    mutate a value another hook already returned.

    Raises:
        TypeError: If a hook returns something other than a BuildConfig
    """
    config = initial
    for plugin in list(plugins):
        hook = get_hook(plugin, "configure_vite")
        if hook is None:
            continue
        result = await call_hook(hook, config.model_copy(deep=True))
        if not isinstance(result, BuildConfig):
            raise TypeError(
                f"configure_vite of plugin {plugin_name(plugin)} returned "
                f"{type(result).__name__}, expected BuildConfig"
            )
        config = result
        logger.debug(
            "vite_config_contributed",
            plugin=plugin_name(plugin),
            target=config.target.value,
            category="build",
        )
    return config
