"""Tests for the Vite plugin lifecycle orchestrator."""

import asyncio
from typing import Any
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware
from structlog.testing import capture_logs

from tests.helpers.build_tool import FakeBuildTool, FakeModuleGraph
from tests.helpers.plugins import PlainPlugin, SubLifecyclePlugin, ViteTestingPlugin
from vitehost.config.settings import Settings
from vitehost.config.vite import ViteSettings
from vitehost.core.errors import BuildToolError, MaterializationError, SetupError
from vitehost.vite.config import BuildConfig, BuildTarget
from vitehost.vite.middleware import DevServerMiddleware, StaticAssetsMiddleware
from vitehost.vite.mode import LaunchOptions, Mode
from vitehost.vite.orchestrator import OrchestratorState, VitePlugin


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def build_tool(events: list[str], module_graph: FakeModuleGraph) -> FakeBuildTool:
    return FakeBuildTool(
        client_factory=lambda: [SubLifecyclePlugin("client", events)],
        server_factory=lambda: [SubLifecyclePlugin("server", events)],
        module_graph=module_graph,
    )


@pytest.fixture
def vite(build_tool, settings) -> VitePlugin:
    return VitePlugin(build_tool, settings=settings)


async def start(
    vite: VitePlugin, *others: Any, app: FastAPI | None = None, stop: Mock | None = None
) -> list[Any]:
    plugins = [vite, *others]
    await vite.init(plugins)
    await vite.init_app(app or FastAPI(), stop or Mock())
    await vite.post_init_app()
    return plugins


def injected_names(plugins: list[Any]) -> list[str]:
    return [p.name for p in plugins if isinstance(p, SubLifecyclePlugin)]


class TestConfigureFold:
    async def test_contributions_fold_in_plugin_order(self, vite, scaffold_dir):
        first = ViteTestingPlugin("first", server_modules=("server-a",))
        second = ViteTestingPlugin(
            "second", client_modules=("client-b",), server_modules=("server-b",)
        )

        await start(vite, first, second)

        server_ts = (scaffold_dir / "server.ts").read_text()
        assert server_ts.index('"server-a"') < server_ts.index('"server-b"')
        assert '"client-b"' in (scaffold_dir / "clientPlugins.ts").read_text()
        assert second.received_configs[0].server_plugin_modules == ("server-a",)

    async def test_hooks_receive_dev_target(self, vite):
        plugin = ViteTestingPlugin()

        await start(vite, plugin)

        config = plugin.received_configs[0]
        assert config.mode is Mode.DEV
        assert config.target is BuildTarget.DEV
        assert config.config["server"] == {"middlewareMode": True}
        assert config.config["appType"] == "custom"

    async def test_hook_mutation_does_not_leak_into_previous_result(self, vite):
        class Mutating:
            name = "mutating"

            def configure_vite(self, config: BuildConfig) -> BuildConfig:
                config.config["plugins"].append("sneaky")
                return config

        observer = ViteTestingPlugin()
        before = ViteTestingPlugin("before")

        await start(vite, before, Mutating(), observer)

        assert before.received_configs[0].config["plugins"] == []
        assert observer.received_configs[0].config["plugins"] == ["sneaky"]

    async def test_non_config_return_value_raises(self, vite):
        class Broken:
            def configure_vite(self, config: BuildConfig) -> dict[str, Any]:
                return {}

        with pytest.raises(TypeError, match="Broken"):
            await start(vite, Broken())


class TestDevStartup:
    async def test_starts_server_and_mounts_middleware(self, vite, build_tool):
        app = FastAPI()

        await start(vite, app=app)

        assert len(build_tool.dev_servers) == 1
        assert vite.server is build_tool.dev_servers[0]
        assert vite.state is OrchestratorState.DEV_RUNNING
        assert [m.cls for m in app.user_middleware] == [DevServerMiddleware]

    async def test_dev_server_receives_folded_config(self, vite, build_tool, scaffold_dir):
        await start(vite)

        assert build_tool.dev_servers[0].config["root"] == str(scaffold_dir)

    async def test_scaffold_exists_before_server_starts(self, vite, scaffold_dir):
        await start(vite)

        assert (scaffold_dir / "index.html").is_file()

    async def test_registries_are_loaded_through_dev_server(self, vite, build_tool):
        await start(vite)

        assert build_tool.dev_servers[0].loaded == ["/clientPlugins.ts", "/server.ts"]

    async def test_server_failure_is_wrapped(self, settings):
        tool = FakeBuildTool(fail_on="create_dev_server")
        vite = VitePlugin(tool, settings=settings)

        with pytest.raises(BuildToolError) as exc_info:
            await start(vite)

        assert exc_info.value.operation == "create_dev_server"
        assert isinstance(exc_info.value.__cause__, OSError)

    async def test_post_init_app_requires_init_app(self, vite):
        with pytest.raises(SetupError):
            await vite.post_init_app()


class TestHookOrdering:
    async def test_full_dev_sequence(self, vite, events):
        plugin = ViteTestingPlugin(events=events)

        await start(vite, plugin)

        assert events == [
            "vite_testing.configure_vite",
            "client.init",
            "server.init",
            "client.post_init",
            "server.post_init",
            "vite_testing.init_vite",
            "vite_testing.post_init_vite",
        ]

    async def test_init_vite_receives_context(self, vite):
        plugin = ViteTestingPlugin()

        await start(vite, plugin)

        assert plugin.received_context is vite.context
        assert plugin.post_init_vite_called

    async def test_plugins_without_hooks_are_skipped(self, vite):
        plugins = await start(vite, PlainPlugin())

        assert plugins[1].name == "plain"


class TestPort:
    async def test_taken_from_plugin_exposing_get_port(self, vite):
        class Server:
            def get_port(self) -> int:
                return 8080

        await start(vite, Server())

        assert vite.context.port == 8080

    async def test_async_get_port_is_awaited(self, vite):
        class AsyncServer:
            async def get_port(self) -> int:
                return 4321

        await vite.init([vite, AsyncServer()])
        await vite.init_app(FastAPI(), Mock())

        assert vite.context.port == 4321

    async def test_defaults_without_server_plugin(self, vite):
        await start(vite)

        assert vite.context.port == 3000


class TestReload:
    async def test_injects_client_then_server_after_existing_plugins(self, vite):
        plugins = await start(vite, PlainPlugin())

        assert [getattr(p, "name", None) for p in plugins] == [
            "vite",
            "plain",
            "client",
            "server",
        ]
        assert vite.generation == 1

    async def test_every_init_precedes_every_post_init(self, vite):
        plugins = await start(vite)

        client = vite.client_plugins[0]
        assert client.siblings_at_post_init == ["vite", "client", "server"]
        assert client.init_args[0] is plugins
        assert client.init_args[1] is vite.context

    async def test_repeated_reloads_never_accumulate(self, vite):
        plugins = await start(vite, PlainPlugin())
        first_client = vite.client_plugins[0]

        for _ in range(5):
            await vite.reload()

        assert injected_names(plugins) == ["client", "server"]
        assert len(plugins) == 4
        assert first_client not in plugins
        assert vite.generation == 6

    async def test_context_lists_current_generation(self, vite):
        await start(vite)
        await vite.reload()

        assert vite.context.get_client_plugins() == vite.client_plugins
        assert vite.context.get_server_plugins() == vite.server_plugins
        assert vite.client_plugins[0] in vite._plugins

    async def test_hot_update_triggers_reload(self, vite, build_tool):
        await start(vite)

        await build_tool.dev_servers[0].trigger_hot_update()

        assert vite.generation == 2

    async def test_concurrent_reloads_are_serialized(self, vite, build_tool):
        plugins = await start(vite)
        server = build_tool.dev_servers[0]
        original = server.load_module

        async def slow_load(url: str) -> Any:
            await asyncio.sleep(0)
            return await original(url)

        server.load_module = slow_load

        await asyncio.gather(vite.reload(), vite.reload(), vite.reload())

        assert injected_names(plugins) == ["client", "server"]
        assert vite.generation == 4

    async def test_registry_without_default_export_fails(self, vite, build_tool):
        await start(vite)
        build_tool.dev_servers[0].modules["/server.ts"] = {}

        with pytest.raises(BuildToolError) as exc_info:
            await vite.reload()

        assert exc_info.value.operation == "load_module"

    async def test_failed_hot_update_is_logged_and_raised(self, vite, build_tool):
        await start(vite)
        server = build_tool.dev_servers[0]
        del server.modules["/clientPlugins.ts"]

        with capture_logs() as logs:
            with pytest.raises(BuildToolError):
                await server.trigger_hot_update()

        assert "hot_reload_failed" in [log["event"] for log in logs]


class TestProduction:
    @pytest.fixture
    def vite(self, build_tool, production_settings) -> VitePlugin:
        return VitePlugin(build_tool, settings=production_settings)

    async def test_mounts_static_assets_with_compression(self, vite, build_tool):
        app = FastAPI()

        await start(vite, app=app)

        assert [m.cls for m in app.user_middleware] == [
            GZipMiddleware,
            StaticAssetsMiddleware,
        ]
        assert build_tool.dev_servers == []
        assert vite.state is OrchestratorState.PREVIEW_SERVING
        assert vite.context.mode is Mode.PROD
        assert vite.context.server is None

    async def test_manifest_is_read_off_the_event_loop(
        self, vite, production_settings
    ):
        manifest_path = production_settings.vite.manifest_path
        manifest_path.parent.mkdir(parents=True)
        manifest_path.write_text('{"client.ts": ["/assets/a.js"]}')

        with patch(
            "vitehost.vite.orchestrator.asyncio.to_thread", wraps=asyncio.to_thread
        ) as to_thread:
            await start(vite)

        assert to_thread.call_args_list[0].args[0].__name__ == "load_manifest"
        entry = str((production_settings.vite.scaffold_dir / "client.ts").resolve())
        assert vite.context.get_deps([entry]) == ["/assets/a.js"]

    async def test_built_registries_are_loaded_once(
        self, vite, build_tool, production_settings
    ):
        plugins = await start(vite)
        await vite.reload()
        await vite.reload()

        server_dist = production_settings.vite.server_dist_dir
        assert build_tool.built_modules_loaded == [
            server_dist / "clientPlugins.js",
            server_dist / "server.js",
        ]
        assert injected_names(plugins) == ["client", "server"]

    async def test_serving_does_not_rewrite_scaffold(self, vite, scaffold_dir):
        await start(vite)

        assert not scaffold_dir.exists()

    async def test_preview_forces_production_mode(self, build_tool, settings):
        launch = LaunchOptions.from_settings(settings, preview=True)
        vite = VitePlugin(build_tool, settings=settings, launch=launch)

        await start(vite)

        assert vite.mode is Mode.PROD
        assert build_tool.dev_servers == []


class TestBuild:
    @pytest.fixture
    def vite(self, build_tool, settings) -> VitePlugin:
        launch = LaunchOptions.from_settings(settings, build=True)
        return VitePlugin(build_tool, settings=settings, launch=launch)

    async def test_builds_client_then_ssr_then_stops(self, vite, build_tool, events):
        stop = Mock()
        plugin = ViteTestingPlugin(events=events)

        await start(vite, plugin, stop=stop)

        client_build, ssr_build = build_tool.builds
        assert client_build["build"]["outDir"] == "dist/client"
        assert client_build["build"]["ssrManifest"] is True
        assert ssr_build["build"]["ssr"] is True
        assert ssr_build["build"]["outDir"] == "dist/server"
        stop.assert_called_once_with()
        assert vite.state is OrchestratorState.STOPPED

    async def test_each_build_folds_and_materializes(self, vite, build_tool, events):
        plugin = ViteTestingPlugin(server_modules=("server-a",), events=events)

        await start(vite, plugin)

        assert [c.target for c in plugin.received_configs] == [
            BuildTarget.CLIENT,
            BuildTarget.SSR,
        ]
        assert all(c.mode is Mode.PROD for c in plugin.received_configs)
        assert len(build_tool.scaffold_snapshots) == 2
        for snapshot in build_tool.scaffold_snapshots:
            assert '"server-a"' in snapshot["server.ts"]

    async def test_ssr_inputs_are_scaffold_entries(self, vite, build_tool, scaffold_dir):
        await start(vite)

        assert build_tool.builds[1]["build"]["rollupOptions"]["input"] == [
            str(scaffold_dir / "client.ts"),
            str(scaffold_dir / "clientPlugins.ts"),
            str(scaffold_dir / "server.ts"),
        ]

    async def test_no_server_and_no_vite_runtime_hooks(self, vite, build_tool, events):
        await start(vite, ViteTestingPlugin(events=events))

        assert build_tool.dev_servers == []
        assert vite.context is not None
        assert events == ["vite_testing.configure_vite", "vite_testing.configure_vite"]

    async def test_build_failure_is_wrapped_and_does_not_stop(self, settings):
        tool = FakeBuildTool(fail_on="build")
        launch = LaunchOptions.from_settings(settings, build=True)
        vite = VitePlugin(tool, settings=settings, launch=launch)
        stop = Mock()

        with pytest.raises(BuildToolError) as exc_info:
            await start(vite, stop=stop)

        assert exc_info.value.operation == "build"
        stop.assert_not_called()


class TestShutdown:
    async def test_closes_dev_server(self, vite, build_tool):
        await start(vite)
        server = build_tool.dev_servers[0]

        await vite.shutdown_app()

        assert server.closed
        assert vite.server is None
        assert vite.state is OrchestratorState.STOPPED

    async def test_without_server_only_marks_stopped(self, vite):
        await vite.shutdown_app()

        assert vite.state is OrchestratorState.STOPPED


class ExplodingPlugin:
    """Injected plugin whose ``init`` fails."""

    name = "exploding"

    def __init__(self, events: list[str]) -> None:
        self.events = events

    async def init(self, plugins: list[Any], vite: Any = None) -> None:
        self.events.append("exploding.init")
        raise RuntimeError("init exploded")

    async def post_init(self) -> None:
        self.events.append("exploding.post_init")


class TestFailures:
    async def test_failing_init_skips_every_post_init(self, vite, build_tool, events):
        await start(vite)
        events.clear()
        build_tool.client_factory = lambda: [ExplodingPlugin(events)]

        with pytest.raises(RuntimeError, match="init exploded"):
            await vite.reload()

        assert events == ["exploding.init"]

    async def test_next_reload_clears_failed_generation(self, vite, build_tool, events):
        plugins = await start(vite, PlainPlugin())
        build_tool.client_factory = lambda: [ExplodingPlugin(events)]
        with pytest.raises(RuntimeError):
            await vite.reload()
        assert any(isinstance(p, ExplodingPlugin) for p in plugins)

        build_tool.client_factory = lambda: [SubLifecyclePlugin("client", events)]
        await vite.reload()

        assert not any(isinstance(p, ExplodingPlugin) for p in plugins)
        assert [getattr(p, "name", None) for p in plugins] == [
            "vite",
            "plain",
            "client",
            "server",
        ]

    async def test_failing_init_vite_skips_post_init_vite(self, vite, events):
        class BrokenInitVite:
            name = "broken"

            def init_vite(self, vite: Any) -> None:
                raise RuntimeError("init_vite exploded")

        later = ViteTestingPlugin(events=events)

        with pytest.raises(RuntimeError, match="init_vite exploded"):
            await start(vite, BrokenInitVite(), later)

        assert "vite_testing.init_vite" not in events
        assert not later.post_init_vite_called

    async def test_scaffold_failure_aborts_dev_start(self, tmp_path, build_tool):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        settings = Settings(vite=ViteSettings(scaffold_dir=blocker / ".vite"))
        vite = VitePlugin(build_tool, settings=settings)

        with patch.object(
            build_tool, "create_dev_server", wraps=build_tool.create_dev_server
        ) as create_dev_server:
            with pytest.raises(MaterializationError):
                await start(vite)

        create_dev_server.assert_not_called()
        assert vite.server is None
        assert vite.state is OrchestratorState.CONFIGURING
