"""Vite scaffold and build layout settings."""

from pathlib import Path

from pydantic import BaseModel, Field


class ViteSettings(BaseModel):
    """Where the scaffold lives and how generated files reach the client runtime.

    Every build output path is derived from ``scaffold_dir`` so the dev server,
    the builds and the production server agree on one layout.
    """

    scaffold_dir: Path = Field(
        default=Path(".vite"),
        description="Working directory for generated scaffold files and build output",
    )

    client_runtime_module: str = Field(
        default="base-plugin-system",
        description="Module imported by the client bootstrap for its initPlugins routine",
    )

    default_port: int = Field(
        default=3000,
        description="Port reported to plugins when no server plugin exposes one",
        ge=1,
        le=65535,
    )

    @property
    def dist_dir(self) -> Path:
        return self.scaffold_dir / "dist"

    @property
    def client_dist_dir(self) -> Path:
        return self.dist_dir / "client"

    @property
    def server_dist_dir(self) -> Path:
        return self.dist_dir / "server"

    @property
    def manifest_path(self) -> Path:
        """SSR manifest emitted by the client build."""
        return self.client_dist_dir / ".vite" / "ssr-manifest.json"
