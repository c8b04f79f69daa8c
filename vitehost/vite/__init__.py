"""Vite integration: orchestrator, scaffold materializer and preload resolver."""

from .buildtool import BuildTool, DevServer, ModuleGraph, ModuleNode
from .config import BuildConfig, BuildTarget
from .environment import materialize
from .mode import LaunchOptions, Mode
from .orchestrator import OrchestratorState, VitePlugin
from .preload import DependencyResolver, load_manifest, resolve_deps
from .runtime import RuntimeContext


__all__ = [
    "BuildConfig",
    "BuildTarget",
    "BuildTool",
    "DependencyResolver",
    "DevServer",
    "LaunchOptions",
    "Mode",
    "ModuleGraph",
    "ModuleNode",
    "OrchestratorState",
    "RuntimeContext",
    "VitePlugin",
    "load_manifest",
    "materialize",
    "resolve_deps",
]
