"""Runtime context handed to plugins once the Vite orchestrator is set up."""

import asyncio
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from vitehost.core.errors import TemplateError
from vitehost.core.logging import get_logger
from vitehost.plugins.protocol import Plugin

from .buildtool import DevServer
from .environment import BODY_PLACEHOLDER, HEAD_PLACEHOLDER
from .mode import Mode


logger = get_logger(__name__)

BASE_HEAD_TAGS = (
    '<meta charset="UTF-8" />\n'
    '    <meta name="viewport" content="width=device-width, initial-scale=1.0" />\n'
    "    "
)

_HEAD_RE = re.compile(r"<head\b[^>]*>.*?</head>", re.IGNORECASE | re.DOTALL)


def render_template(template: str, head: str, body: str) -> str:
    """Splice head and body content into an HTML shell.

    Baseline head tags (charset, viewport) are placed ahead of ``head``.

    Raises:
        TemplateError: If either placeholder is missing
    """
    before_head, token, rest = template.partition(HEAD_PLACEHOLDER)
    if not token:
        raise TemplateError(HEAD_PLACEHOLDER)
    between, token, after = rest.partition(BODY_PLACEHOLDER)
    if not token:
        raise TemplateError(BODY_PLACEHOLDER)
    return f"{before_head}{BASE_HEAD_TAGS}{head}{between}{body}{after}"


def extract_head(html: str) -> str:
    """The ``<head>...</head>`` element of a document, or an empty string."""
    match = _HEAD_RE.search(html)
    return match.group(0) if match else ""


class HTMLTemplates:
    """Produces page HTML from the scaffold shell.

    In development the raw shell is re-read on every call and passed through
    the dev server's HTML transform. In production the built shell is read
    once and cached for the life of the process.
    """

    def __init__(
        self,
        shell_path: Path,
        built_shell_path: Path,
        get_mode: Callable[[], Mode],
        get_server: Callable[[], DevServer | None],
    ) -> None:
        self.shell_path = shell_path
        self.built_shell_path = built_shell_path
        self._get_mode = get_mode
        self._get_server = get_server
        self._built_shell: str | None = None

    async def _read(self, path: Path) -> str:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def load(self, url: str) -> str:
        """Shell HTML for ``url`` before placeholders are filled."""
        if self._get_mode() is Mode.DEV:
            raw = await self._read(self.shell_path)
            server = self._get_server()
            if server is None:
                return raw
            return await server.transform_index_html(url, raw)

        if self._built_shell is None:
            self._built_shell = await self._read(self.built_shell_path)
            logger.debug(
                "built_shell_cached",
                path=str(self.built_shell_path),
                category="lifecycle",
            )
        return self._built_shell

    async def generate(self, url: str, head: str, body: str) -> str:
        return render_template(await self.load(url), head, body)

    async def head_content(self, url: str = "/") -> str:
        return extract_head(await self.generate(url, "", ""))


class RuntimeContext:
    """Capabilities exposed to plugins through ``init_vite`` and ``init``.

    ``mode`` and ``server`` are live views: they always reflect the
    orchestrator's current state rather than a snapshot taken at creation.
    """

    def __init__(
        self,
        *,
        get_mode: Callable[[], Mode],
        get_server: Callable[[], DevServer | None],
        templates: HTMLTemplates,
        resolve_deps: Callable[[Iterable[str]], list[str]],
        port: int,
        get_client_plugins: Callable[[], list[Plugin]],
        get_server_plugins: Callable[[], list[Plugin]],
    ) -> None:
        self._get_mode = get_mode
        self._get_server = get_server
        self._templates = templates
        self._resolve_deps = resolve_deps
        self._get_client_plugins = get_client_plugins
        self._get_server_plugins = get_server_plugins
        self.port = port

    @property
    def mode(self) -> Mode:
        return self._get_mode()

    @property
    def server(self) -> DevServer | None:
        """The running dev server; ``None`` outside development."""
        return self._get_server()

    async def generate_html_template(self, url: str, head: str, body: str) -> str:
        """Full page HTML with ``head`` and ``body`` spliced into the shell."""
        return await self._templates.generate(url, head, body)

    async def generate_head_content(self) -> str:
        """Only the ``<head>`` element of an otherwise empty page."""
        return await self._templates.head_content()

    def get_deps(self, modules: Iterable[str]) -> list[str]:
        """Asset URLs to preload for the given entry modules."""
        return self._resolve_deps(modules)

    def get_client_plugins(self) -> list[Plugin]:
        """Current generation of hot-reloadable client plugin instances."""
        return self._get_client_plugins()

    def get_server_plugins(self) -> list[Plugin]:
        """Current generation of hot-reloadable server plugin instances."""
        return self._get_server_plugins()
