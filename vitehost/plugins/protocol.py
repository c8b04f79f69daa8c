"""Hook protocols for vitehost plugins.

A plugin is any object. Every hook is optional: the host probes for a
callable attribute with the hook's name and skips plugins that lack it.
Hooks may be plain functions or coroutine functions.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, TypeVar, runtime_checkable


if TYPE_CHECKING:
    from fastapi import FastAPI

    from vitehost.vite.config import BuildConfig
    from vitehost.vite.runtime import RuntimeContext


T = TypeVar("T")

MaybeAwaitable: TypeAlias = T | Awaitable[T]

# Plugins are opaque; capabilities are discovered by probing.
Plugin: TypeAlias = Any


@runtime_checkable
class BaseHooks(Protocol):
    """Lifecycle hooks driven by :func:`vitehost.plugins.host.init_plugins`.

    Hot-reloadable client and server plugins created by the Vite orchestrator
    implement the same pair; they receive the runtime context as a second
    argument to ``init``.
    """

    def init(self, plugins: list[Plugin]) -> MaybeAwaitable[None]: ...

    def post_init(self) -> MaybeAwaitable[None]: ...


@runtime_checkable
class AppHooks(Protocol):
    """Hooks driven by the HTTP host plugin once its application exists."""

    def init_app(self, app: "FastAPI", stop: Callable[[], None]) -> MaybeAwaitable[None]: ...

    def post_init_app(self) -> MaybeAwaitable[None]: ...


@runtime_checkable
class ViteHooks(Protocol):
    """Hooks driven by the Vite orchestrator."""

    def configure_vite(self, config: "BuildConfig") -> MaybeAwaitable["BuildConfig"]: ...

    def init_vite(self, vite: "RuntimeContext") -> MaybeAwaitable[None]: ...

    def post_init_vite(self) -> MaybeAwaitable[None]: ...


def get_hook(plugin: Plugin, hook_name: str) -> Callable[..., Any] | None:
    """Return the plugin's hook if it has a callable attribute of that name."""
    hook = getattr(plugin, hook_name, None)
    if callable(hook):
        return hook  # type: ignore[no-any-return]
    return None


async def call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    """Call a hook and await its result when it is awaitable."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def plugin_name(plugin: Plugin) -> str:
    """Best-effort display name for logging."""
    name = getattr(plugin, "name", None)
    if isinstance(name, str):
        return name
    return type(plugin).__name__
