"""Interface to the external bundler.

vitehost never transforms or bundles modules itself. It drives an adapter
implementing :class:`BuildTool`, which in development hands back a
:class:`DevServer` exposing the live module graph.
"""

from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from starlette.types import ASGIApp, Receive, Scope, Send


HotUpdateHandler = Callable[..., Awaitable[None]]


@runtime_checkable
class ModuleNode(Protocol):
    """A module in the dev server's graph."""

    @property
    def id(self) -> str | None: ...

    @property
    def imported_modules(self) -> Iterable["ModuleNode"]: ...


@runtime_checkable
class ModuleGraph(Protocol):
    """Read-only view of the dev server's module graph. May contain cycles."""

    def get_module_by_id(self, module_id: str) -> ModuleNode | None: ...


@runtime_checkable
class DevServer(Protocol):
    """A running development server."""

    @property
    def module_graph(self) -> ModuleGraph: ...

    async def handle(
        self, scope: Scope, receive: Receive, send: Send, call_next: ASGIApp
    ) -> None:
        """Serve the request, or pass it on to ``call_next``."""
        ...

    async def transform_index_html(self, url: str, html: str) -> str:
        """Apply dev-only HTML transforms such as the HMR client script."""
        ...

    async def load_module(self, url: str) -> Any:
        """Load a module through the dev pipeline, always fresh after a hot update."""
        ...

    async def close(self) -> None: ...


@runtime_checkable
class BuildTool(Protocol):
    """Factory for dev servers and production builds."""

    async def create_dev_server(
        self, config: dict[str, Any], on_hot_update: HotUpdateHandler
    ) -> DevServer: ...

    async def build(self, config: dict[str, Any]) -> None: ...

    async def load_built_module(self, path: Path) -> Any:
        """Load a module from a production build output directory."""
        ...
