"""Scaffold files the build tool needs.

``materialize`` is a pure function of the plugin module lists: it always
rewrites the same set of files, so running it twice with the same input
leaves the directory unchanged.
"""

import json
from collections.abc import Sequence
from pathlib import Path

from vitehost.core.errors import MaterializationError
from vitehost.core.logging import get_logger

from .config import (
    CLIENT_ENTRY,
    CLIENT_REGISTRY,
    CONFIG_STUB,
    HTML_SHELL,
    SERVER_REGISTRY,
)


logger = get_logger(__name__)

HEAD_PLACEHOLDER = "<!--app-head-->"
BODY_PLACEHOLDER = "<!--app-html-->"

INDEX_HTML = f"""<!DOCTYPE html>
<html lang="en">
  <head>
    {HEAD_PLACEHOLDER}
  </head>
  <body>
    <div id="app">{BODY_PLACEHOLDER}</div>
    <script type="module" src="./{CLIENT_ENTRY}"></script>
  </body>
</html>
"""

CONFIG_STUB_JS = "export default {};\n"


def render_registry(modules: Sequence[str], factory_name: str) -> str:
    """Render a module that imports each plugin module and instantiates them.

    Each module gets the alias ``plugin<index>`` so duplicate or oddly named
    specifiers never collide. The factory only constructs instances; running
    their lifecycle hooks is left to the orchestrator.
    """
    imports = "\n".join(
        f"import plugin{index} from {json.dumps(module)};"
        for index, module in enumerate(modules)
    )
    instances = ", ".join(f"plugin{index}()" for index in range(len(modules)))
    header = f"{imports}\n\n" if imports else ""
    return (
        f"{header}export default function {factory_name}() {{\n"
        f"  return [{instances}];\n"
        "}\n"
    )


def render_client_entry(client_runtime_module: str) -> str:
    """Render the browser bootstrap handing client plugins to ``initPlugins``."""
    return (
        f"import {{ initPlugins }} from {json.dumps(client_runtime_module)};\n"
        f"import createClientPlugins from {json.dumps('./' + CLIENT_REGISTRY)};\n"
        "\n"
        "const clientPlugins = createClientPlugins();\n"
        "await initPlugins(clientPlugins);\n"
        "\n"
        "export default clientPlugins;\n"
    )


def scaffold_files(
    server_plugin_modules: Sequence[str],
    client_plugin_modules: Sequence[str],
    client_runtime_module: str = "base-plugin-system",
) -> dict[str, str]:
    """File name to content for every scaffold artifact."""
    return {
        CONFIG_STUB: CONFIG_STUB_JS,
        HTML_SHELL: INDEX_HTML,
        CLIENT_ENTRY: render_client_entry(client_runtime_module),
        CLIENT_REGISTRY: render_registry(client_plugin_modules, "createClientPlugins"),
        SERVER_REGISTRY: render_registry(server_plugin_modules, "createServerPlugins"),
    }


def materialize(
    server_plugin_modules: Sequence[str],
    client_plugin_modules: Sequence[str],
    scaffold_dir: Path,
    client_runtime_module: str = "base-plugin-system",
) -> None:
    """Write the scaffold into ``scaffold_dir``, creating it if needed.

    Raises:
        MaterializationError: If the directory or any file cannot be written
    """
    try:
        scaffold_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise MaterializationError(str(scaffold_dir), str(e)) from e

    files = scaffold_files(
        server_plugin_modules, client_plugin_modules, client_runtime_module
    )
    for name, content in files.items():
        path = scaffold_dir / name
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error(
                "scaffold_write_failed",
                path=str(path),
                error=str(e),
                exc_info=e,
                category="build",
            )
            raise MaterializationError(str(path), str(e)) from e

    logger.info(
        "scaffold_materialized",
        scaffold_dir=str(scaffold_dir),
        client_plugins=len(client_plugin_modules),
        server_plugins=len(server_plugin_modules),
        category="build",
    )
