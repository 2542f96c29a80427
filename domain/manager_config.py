"""Per-invocation configuration of a dependency manager."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .hash_constants import MARKER_FILE_NAME


@dataclass(frozen=True)
class ManagerConfig:
    """Everything the cache needs to know to install one manager's dependencies."""
    cli_name: str  # npm, bower, composer, etc.
    install_command: str
    install_directory: Path
    manifest_path: Path
    cache_root: Path
    cli_version_provider: Callable[[], str]
    install_options: str = ""
    force_refresh: bool = False
    post_install: Optional[Callable[[], None]] = None

    def __post_init__(self):
        if not self.cli_name:
            raise ValueError("cli_name must not be empty")
        # Relative paths are resolved against the current working directory
        object.__setattr__(self, "install_directory", Path(self.install_directory).resolve())
        object.__setattr__(self, "manifest_path", Path(self.manifest_path).resolve())
        object.__setattr__(self, "cache_root", Path(self.cache_root).expanduser().resolve())

    @property
    def marker_path(self) -> Path:
        return self.install_directory / MARKER_FILE_NAME
