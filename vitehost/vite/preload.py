"""Resolve which asset URLs a page must preload for a set of entry modules.

In development the dev server's live module graph is walked; in production
the SSR manifest written by the client build is consulted. Both paths return
a deduplicated list in first-occurrence order.
"""

import json
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from vitehost.core.logging import get_logger

from .buildtool import DevServer, ModuleGraph
from .mode import Mode


logger = get_logger(__name__)

Manifest = dict[str, list[str]]

FS_PREFIX = "/@fs/"
ID_PREFIX = "/@id/"
FILE_SCHEME = "file://"
OPTIMIZED_DEPS_ROOT = "/node_modules/.vite/deps"
OPTIMIZED_DEPS_MARKER = ".vite/deps"
NODE_MODULES = "node_modules/"


def normalize_module_id(module: str) -> str:
    """Strip the ``/@fs`` or ``file://`` prefix so URL and path forms match.

    The leading slash of ``/@fs/abs/path`` is kept, yielding ``/abs/path``.
    """
    if module.startswith(FS_PREFIX):
        return module[len(FS_PREFIX) - 1 :]
    if module.startswith(FILE_SCHEME):
        return module[len(FILE_SCHEME) :]
    return module


def extract_package_key(module_id: str) -> str | None:
    """Package key of the innermost ``node_modules`` package, if any.

    Scoped packages are flattened: ``@scope/name`` becomes ``@scope_name``.
    """
    index = module_id.rfind(NODE_MODULES)
    if index == -1:
        return None

    parts = module_id[index + len(NODE_MODULES) :].split("/")
    if not parts[0]:
        return None
    if parts[0].startswith("@"):
        if len(parts) > 1 and parts[1]:
            return f"{parts[0]}_{parts[1]}"
        return parts[0]
    return parts[0]


def optimized_url(module_id: str) -> str:
    """Rewrite a module graph id to a URL the dev server can serve."""
    if module_id.startswith((ID_PREFIX, FS_PREFIX, OPTIMIZED_DEPS_ROOT + "/")):
        return module_id

    if OPTIMIZED_DEPS_MARKER in module_id:
        return module_id

    if "node_modules" in module_id:
        package_key = extract_package_key(module_id)
        if package_key:
            return f"{OPTIMIZED_DEPS_ROOT}/{package_key}.js"

    return FS_PREFIX + module_id.lstrip("/")


def collect_dev_modules(
    graph: ModuleGraph, entry_id: str, seen: set[str] | None = None
) -> list[str]:
    """Depth-first walk of the module graph from ``entry_id``.

    Uses an explicit stack so deep graphs cannot exhaust the recursion limit.
    Ids already in ``seen`` are not re-entered; ``seen`` itself is left
    untouched so a caller can discard a partial walk.

    Returns:
        Newly visited module ids in pre-order
    """
    seen = seen if seen is not None else set()
    visited: set[str] = set()
    collected: list[str] = []

    stack = [entry_id]
    while stack:
        module_id = stack.pop()
        if module_id in seen or module_id in visited:
            continue

        node = graph.get_module_by_id(module_id)
        if node is None or not node.id:
            continue
        if node.id in seen or node.id in visited:
            continue

        visited.add(node.id)
        collected.append(node.id)

        children = [dep.id for dep in node.imported_modules if dep.id]
        stack.extend(reversed(children))

    return collected


def load_manifest(manifest_path: Path, base_dir: Path) -> Manifest:
    """Load the SSR manifest, keying entries by absolute module path.

    A missing file is an empty manifest. Malformed content is logged and
    also treated as an empty manifest.

    Args:
        manifest_path: Path to ``ssr-manifest.json``
        base_dir: Directory the manifest's relative keys are resolved against
    """
    if not manifest_path.exists():
        logger.debug(
            "ssr_manifest_not_found", path=str(manifest_path), category="preload"
        )
        return {}

    try:
        raw = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(
            "ssr_manifest_parse_failed",
            path=str(manifest_path),
            error=str(e),
            category="preload",
        )
        return {}

    if not isinstance(raw, dict):
        logger.warning(
            "ssr_manifest_parse_failed",
            path=str(manifest_path),
            error=f"expected a JSON object, got {type(raw).__name__}",
            category="preload",
        )
        return {}

    base = str(base_dir.resolve())
    manifest: Manifest = {}
    for key, assets in raw.items():
        if not isinstance(assets, list) or not all(isinstance(a, str) for a in assets):
            logger.warning(
                "ssr_manifest_entry_skipped",
                path=str(manifest_path),
                module=key,
                category="preload",
            )
            continue
        manifest[os.path.normpath(os.path.join(base, key))] = list(assets)

    logger.debug(
        "ssr_manifest_loaded",
        path=str(manifest_path),
        entries=len(manifest),
        category="preload",
    )
    return manifest


def _dedupe(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(urls))


def resolve_deps(
    modules: Iterable[str],
    mode: Mode,
    *,
    module_graph: ModuleGraph | None = None,
    manifest: Manifest | None = None,
) -> list[str]:
    """Asset URLs the given entry modules transitively require.

    Entries that are unknown, or whose graph walk fails, contribute nothing.

    Args:
        modules: Entry module ids, in URL form or path form
        mode: ``Mode.PROD`` reads ``manifest``; ``Mode.DEV`` walks ``module_graph``
        module_graph: Live module graph (development only)
        manifest: Loaded SSR manifest (production only)
    """
    urls: list[str] = []
    seen: set[str] = set()

    for module in (normalize_module_id(m) for m in modules):
        if mode is Mode.PROD:
            urls.extend((manifest or {}).get(module, ()))
            continue

        if module_graph is None:
            continue

        try:
            collected = collect_dev_modules(module_graph, module, seen)
        except Exception as e:
            logger.warning(
                "preload_collect_failed",
                module=module,
                error=str(e),
                category="preload",
            )
            continue

        seen.update(collected)
        urls.extend(optimized_url(module_id) for module_id in collected)

    return _dedupe(urls)


class DependencyResolver:
    """``resolve_deps`` bound to the live mode, dev server and manifest.

    The mode and server are read through accessors on every call so a
    replaced dev server is picked up without rebinding.
    """

    def __init__(
        self,
        get_mode: Callable[[], Mode],
        get_server: Callable[[], DevServer | None],
        manifest: Manifest | None = None,
    ) -> None:
        self._get_mode = get_mode
        self._get_server = get_server
        self.manifest: Manifest = manifest or {}

    def __call__(self, modules: Iterable[str]) -> list[str]:
        mode = self._get_mode()
        server = self._get_server()
        return resolve_deps(
            modules,
            mode,
            module_graph=server.module_graph if server is not None else None,
            manifest=self.manifest,
        )
