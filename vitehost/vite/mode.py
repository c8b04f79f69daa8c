"""Operating mode and launch flags, computed once at startup."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from vitehost.config.settings import Settings


class Mode(str, Enum):
    """How compiled assets are produced and found."""

    DEV = "dev"
    PROD = "prod"


@dataclass(frozen=True)
class LaunchOptions:
    """Process invocation flags relevant to the Vite orchestrator.

    Attributes:
        build: Run the client and SSR production builds, then stop
        preview: Serve previously built assets even outside production
        production: The environment-level production flag
    """

    build: bool = False
    preview: bool = False
    production: bool = False

    @property
    def mode(self) -> Mode:
        """Serving mode; preview forces production serving."""
        if self.preview or self.production:
            return Mode.PROD
        return Mode.DEV

    @classmethod
    def from_settings(
        cls, settings: "Settings", *, build: bool = False, preview: bool = False
    ) -> "LaunchOptions":
        return cls(build=build, preview=preview, production=settings.is_production)
