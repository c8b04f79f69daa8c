"""Shared test fixtures for vitehost tests.

Fixtures build real vitehost components against a temporary scaffold
directory; only the external bundler is replaced by in-memory fakes.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from tests.helpers.build_tool import FakeBuildTool, FakeModuleGraph
from vitehost.config.settings import Settings, get_settings
from vitehost.config.vite import ViteSettings
from vitehost.core.logging import setup_logging


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom settings."""
    setup_logging(json_logs=False, log_level_name="DEBUG")


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """Run each test in its own working directory without ambient overrides."""
    for env_key in ("NODE_ENV", "ENVIRONMENT", "CONFIG_FILE"):
        monkeypatch.delenv(env_key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def scaffold_dir(tmp_path: Path) -> Path:
    return tmp_path / ".vite"


@pytest.fixture
def make_settings(scaffold_dir: Path) -> Callable[..., Settings]:
    def factory(**kwargs: Any) -> Settings:
        return Settings(vite=ViteSettings(scaffold_dir=scaffold_dir), **kwargs)

    return factory


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture
def production_settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings(environment="production")


@pytest.fixture
def module_graph() -> FakeModuleGraph:
    return FakeModuleGraph(
        {
            "/src/main.ts": ["/src/components/Button.tsx"],
            "/src/components/Button.tsx": ["/src/utils/helper.ts"],
            "/src/utils/helper.ts": [],
        }
    )


@pytest.fixture
def build_tool(module_graph: FakeModuleGraph) -> FakeBuildTool:
    return FakeBuildTool(module_graph=module_graph)
