import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from domain.archive_codec import ArchiveCodec
from domain.cache_store import CacheStore
from domain.errors import ToolMissingError
from domain.fingerprint import compute_fingerprint
from domain.installer import InstallRunner, is_tool_available
from domain.manager_config import ManagerConfig
from infrastructure.file_system_cache_store import FileSystemCacheStore
from application.dtos import LoadOutcome, LoadResult

logger = logging.getLogger(__name__)


class ManagerLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the manager name, e.g. ``[npm] cache exists``."""

    def process(self, msg, kwargs):
        return f"[{self.extra['cli_name']}] {msg}", kwargs


def _default_runner(config: ManagerConfig, log: logging.LoggerAdapter) -> InstallRunner:
    # Install commands run next to the manifest they read
    return InstallRunner(cwd=config.manifest_path.parent, log=log)


class LoadDependencies:
    """
    Orchestrates loading one manager's dependencies: restore them from the
    archive cache when the manifest is unchanged, otherwise install them and
    archive the result.

    Each step runs only after the previous one finished:
    hash -> cache check -> restore, or install -> archive.
    """

    def __init__(
        self,
        cache_store: Optional[CacheStore] = None,
        archive_codec: Optional[ArchiveCodec] = None,
        runner_factory: Optional[Callable[[ManagerConfig, logging.LoggerAdapter], InstallRunner]] = None,
        tool_lookup: Callable[[str], bool] = is_tool_available
    ):
        self.cache_store = cache_store
        self.archive_codec = archive_codec or ArchiveCodec()
        self.runner_factory = runner_factory or _default_runner
        self.tool_lookup = tool_lookup

    def load(self, config: ManagerConfig) -> LoadResult:
        """
        Bring config.install_directory in line with config.manifest_path.

        Raises:
            ToolMissingError: If the manager's CLI is not on PATH
            InstallError: If the install command fails
            ArchiveError: If a cached archive is malformed or the installed
                directory cannot be archived
            OSError: On filesystem failure
        """
        log = ManagerLogAdapter(logger, {"cli_name": config.cli_name})
        cache_store = self.cache_store or FileSystemCacheStore(config.cache_root)

        if not config.manifest_path.exists():
            log.info("Dependency config file %s does not exist. Skipping install", config.manifest_path)
            return LoadResult(config.cli_name, LoadOutcome.SKIPPED)
        log.info("config file exists")

        if not self.tool_lookup(config.cli_name):
            raise ToolMissingError(config.cli_name)
        log.info("cli exists")

        fingerprint = compute_fingerprint(config.manifest_path)
        log.info("hash of %s: %s", config.manifest_path, fingerprint)

        cli_version = config.cli_version_provider()
        archive_path = cache_store.locate(config.cli_name, cli_version, fingerprint)

        if not config.force_refresh and cache_store.exists(archive_path):
            log.info("cache exists")
            outcome = self._extract_dependencies(config, archive_path, fingerprint, log)
        else:
            if config.force_refresh:
                log.info("force refresh requested, ignoring cache")
            self._install_dependencies(config, log)
            self._archive_dependencies(config, cache_store, archive_path, fingerprint, log)
            log.info("installed and archived dependencies")
            outcome = LoadOutcome.INSTALLED

        return LoadResult(config.cli_name, outcome, fingerprint, archive_path)

    def _install_dependencies(self, config: ManagerConfig, log: logging.LoggerAdapter) -> None:
        runner = self.runner_factory(config, log)
        runner.run(config.install_command, config.install_options, config.post_install)
        log.info("installed %s dependencies, now archiving", config.cli_name)

    def _archive_dependencies(
        self,
        config: ManagerConfig,
        cache_store: CacheStore,
        archive_path: Path,
        fingerprint: str,
        log: logging.LoggerAdapter
    ) -> None:
        log.info("archiving dependencies from %s", config.install_directory)
        # The install command may not have created the directory (no dependencies)
        config.install_directory.mkdir(parents=True, exist_ok=True)
        self._write_marker(config, fingerprint)

        cache_store.ensure_directory(archive_path.parent)
        self.archive_codec.capture(config.install_directory, archive_path)

    def _extract_dependencies(
        self,
        config: ManagerConfig,
        archive_path: Path,
        fingerprint: str,
        log: logging.LoggerAdapter
    ) -> LoadOutcome:
        install_directory = config.install_directory

        if self._marker_is_up_to_date(config, fingerprint):
            log.info("dependencies at '%s' are up to date", install_directory)
            return LoadOutcome.UP_TO_DATE

        log.info("clearing installed dependencies at %s", install_directory)
        if install_directory.is_symlink() or install_directory.is_file():
            install_directory.unlink()
        elif install_directory.exists():
            shutil.rmtree(install_directory)
        log.info("...cleared")

        install_directory.mkdir(parents=True, exist_ok=True)
        log.info("extracting dependencies from %s", archive_path)
        self.archive_codec.restore(archive_path, install_directory)
        self._write_marker(config, fingerprint)
        log.info("extracted cached dependencies")

        return LoadOutcome.RESTORED

    @staticmethod
    def _marker_is_up_to_date(config: ManagerConfig, fingerprint: str) -> bool:
        try:
            stored = config.marker_path.read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError, UnicodeDecodeError):
            return False
        return stored == fingerprint

    @staticmethod
    def _write_marker(config: ManagerConfig, fingerprint: str) -> None:
        config.marker_path.write_text(fingerprint, encoding="utf-8")
