"""ASGI middleware mounted by the Vite orchestrator."""

from collections.abc import Callable
from pathlib import Path

from starlette.exceptions import HTTPException
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send

from .buildtool import DevServer


class DevServerMiddleware:
    """Route HTTP requests through the current dev server.

    The server is looked up on every request, so a replaced dev server takes
    over without remounting. Without a server requests go straight to the app.
    """

    def __init__(
        self, app: ASGIApp, get_server: Callable[[], DevServer | None]
    ) -> None:
        self.app = app
        self.get_server = get_server

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        server = self.get_server() if scope["type"] == "http" else None
        if server is None:
            await self.app(scope, receive, send)
            return
        await server.handle(scope, receive, send, self.app)


class StaticAssetsMiddleware:
    """Serve files from a build output directory, falling through on misses.

    Directory requests are never answered here (``html`` is off), so page
    routes such as ``/`` reach the application. A missing directory simply
    serves nothing.
    """

    def __init__(self, app: ASGIApp, directory: Path | str) -> None:
        self.app = app
        self.static = StaticFiles(directory=directory, check_dir=False)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            response = await self.static.get_response(
                self.static.get_path(scope), scope
            )
        except HTTPException as e:
            if e.status_code in (404, 405):
                await self.app(scope, receive, send)
                return
            raise

        await response(scope, receive, send)
