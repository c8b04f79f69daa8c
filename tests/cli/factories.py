"""Import targets for ``vitehost serve`` in CLI tests."""

from typing import Any

from tests.helpers.build_tool import FakeBuildTool
from tests.helpers.plugins import ViteTestingPlugin


created_build_tools: list[FakeBuildTool] = []


def make_plugins() -> list[Any]:
    return [ViteTestingPlugin(server_modules=("@acme/ssr",))]


def make_build_tool() -> FakeBuildTool:
    tool = FakeBuildTool()
    created_build_tools.append(tool)
    return tool


def make_failing_build_tool() -> FakeBuildTool:
    return FakeBuildTool(fail_on="build")


not_callable = 42
