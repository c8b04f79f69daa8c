"""Main entry point for the vitehost command line."""

import asyncio
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from uvicorn.importer import ImportFromStringError, import_from_string

from vitehost import __version__
from vitehost.api.app import AppPlugin
from vitehost.config.settings import ConfigurationError, Settings
from vitehost.core.errors import VitehostError
from vitehost.core.logging import get_logger, setup_logging
from vitehost.plugins.host import init_plugins
from vitehost.plugins.protocol import Plugin
from vitehost.vite.buildtool import BuildTool
from vitehost.vite.mode import LaunchOptions
from vitehost.vite.orchestrator import VitePlugin


console = Console(stderr=True)
logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"vitehost {__version__}")
        raise typer.Exit()


def validate_port(
    ctx: typer.Context, param: typer.CallbackParam, value: int | None
) -> int | None:
    """Validate port number."""
    if value is None:
        return None

    if value < 1 or value > 65535:
        raise typer.BadParameter("Port must be between 1 and 65535")

    return value


def validate_log_level(
    ctx: typer.Context, param: typer.CallbackParam, value: str | None
) -> str | None:
    """Validate log level."""
    if value is None:
        return None

    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if value.upper() not in valid_levels:
        raise typer.BadParameter(f"Log level must be one of: {', '.join(valid_levels)}")

    return value.upper()


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)


@app.callback()
def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a TOML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Run a plugin-based, server-rendered Vite application."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


def _load_factory(import_string: str, what: str) -> Any:
    try:
        factory = import_from_string(import_string)
    except ImportFromStringError as e:
        raise typer.BadParameter(f"Cannot import {what} {import_string!r}: {e}") from e
    if not callable(factory):
        raise typer.BadParameter(f"{what} {import_string!r} is not callable")
    return factory()


async def run(
    settings: Settings,
    launch: LaunchOptions,
    build_tool: BuildTool,
    user_plugins: list[Plugin],
) -> AppPlugin:
    """Initialize the host, the Vite orchestrator and user plugins, then serve."""
    app_plugin = AppPlugin(settings)
    vite_plugin = VitePlugin(build_tool, settings=settings, launch=launch)
    await init_plugins([app_plugin, vite_plugin, *user_plugins])
    await app_plugin.serve()
    return app_plugin


@app.command()
def serve(
    ctx: typer.Context,
    application: str = typer.Argument(
        ...,
        help="Import string 'module:attribute' of a callable returning the plugin list",
    ),
    build_tool: str = typer.Option(
        ...,
        "--build-tool",
        help="Import string 'module:attribute' of a callable returning the build tool adapter",
    ),
    build: bool = typer.Option(
        False, "--build", help="Build client and SSR bundles, then exit"
    ),
    preview: bool = typer.Option(
        False, "--preview", help="Serve previously built production assets"
    ),
    host: str | None = typer.Option(
        None, "--host", help="Host to bind the server to"
    ),
    port: int | None = typer.Option(
        None, "--port", "-p", help="Port to run the server on", callback=validate_port
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        callback=validate_log_level,
    ),
) -> None:
    """Start the dev server, build for production, or serve a production build."""
    config_path = ctx.obj.get("config_path") if ctx.obj else None
    try:
        settings = Settings.from_config(
            config_path,
            cli_context={"host": host, "port": port, "log_level": log_level},
        )
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1) from e

    setup_logging(
        json_logs=settings.logging.use_json(settings.is_production),
        log_level_name=settings.logging.level,
    )

    launch = LaunchOptions.from_settings(settings, build=build, preview=preview)
    plugins = list(_load_factory(application, "application"))
    tool = _load_factory(build_tool, "build tool")

    logger.info(
        "vitehost_starting",
        version=__version__,
        mode=launch.mode.value,
        build=launch.build,
        preview=launch.preview,
        category="lifecycle",
    )

    try:
        asyncio.run(run(settings, launch, tool, plugins))
    except VitehostError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(1) from e


def main() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
