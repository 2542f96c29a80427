"""Built-in package manager definitions and ManagerConfig construction."""
import json
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from domain.errors import ToolMissingError, UnknownManagerError
from domain.manager_config import ManagerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManagerDefinition:
    cli_name: str
    install_command: str
    manifest_name: str
    default_install_directory: str
    version_command: str
    install_directory_resolver: Optional[Callable[[Path], Optional[str]]] = None
    version_parser: Optional[Callable[[str], str]] = None

    def resolve_install_directory(self, work_dir: Path) -> Path:
        directory = None
        if self.install_directory_resolver is not None:
            directory = self.install_directory_resolver(work_dir)
        return work_dir / (directory or self.default_install_directory)


def _read_json(path: Path) -> Optional[dict]:
    """Read a JSON object, returning None if it is missing or malformed."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _lookup(data: Optional[dict], *keys: str) -> Optional[str]:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data if isinstance(data, str) and data else None


def _bower_directory(work_dir: Path) -> Optional[str]:
    return _lookup(_read_json(work_dir / ".bowerrc"), "directory")


def _composer_directory(work_dir: Path) -> Optional[str]:
    return _lookup(_read_json(work_dir / "composer.json"), "config", "vendor-dir")


def _jspm_directory(work_dir: Path) -> Optional[str]:
    return _lookup(_read_json(work_dir / "package.json"), "jspm", "directories", "packages")


_COMPOSER_VERSION_RE = re.compile(r"Composer (?:version )?(\S+)")


def _parse_composer_version(output: str) -> str:
    # e.g. "Composer version 2.6.5 2023-10-06 10:11:52"
    match = _COMPOSER_VERSION_RE.search(output)
    return match.group(1) if match else output.strip()


MANAGERS: Dict[str, ManagerDefinition] = {
    "npm": ManagerDefinition(
        cli_name="npm",
        install_command="npm install",
        manifest_name="package.json",
        default_install_directory="node_modules",
        version_command="npm --version"
    ),
    "yarn": ManagerDefinition(
        cli_name="yarn",
        install_command="yarn install",
        manifest_name="package.json",
        default_install_directory="node_modules",
        version_command="yarn --version"
    ),
    "bower": ManagerDefinition(
        cli_name="bower",
        install_command="bower install",
        manifest_name="bower.json",
        default_install_directory="bower_components",
        version_command="bower --version",
        install_directory_resolver=_bower_directory
    ),
    "composer": ManagerDefinition(
        cli_name="composer",
        install_command="composer install",
        manifest_name="composer.json",
        default_install_directory="vendor",
        version_command="composer --version --no-ansi",
        install_directory_resolver=_composer_directory,
        version_parser=_parse_composer_version
    ),
    "jspm": ManagerDefinition(
        cli_name="jspm",
        install_command="jspm install",
        manifest_name="package.json",
        default_install_directory="jspm_packages",
        version_command="jspm --version",
        install_directory_resolver=_jspm_directory
    ),
}


# Installed when no manager is named; yarn and jspm share package.json with npm
DEFAULT_MANAGERS = ("npm", "bower", "composer")


def get_available_managers() -> List[str]:
    return sorted(MANAGERS)


def get_definition(name: str) -> ManagerDefinition:
    try:
        return MANAGERS[name]
    except KeyError:
        raise UnknownManagerError(name) from None


class CliVersionProvider:
    """Runs a manager's version command once and remembers the answer."""

    def __init__(self, definition: ManagerDefinition, cwd: Optional[Path] = None):
        self.definition = definition
        self.cwd = cwd
        self._version: Optional[str] = None

    def __call__(self) -> str:
        if self._version is not None:
            return self._version

        try:
            result = subprocess.run(
                self.definition.version_command,
                shell=True,
                cwd=self.cwd,
                capture_output=True,
                text=True
            )
        except OSError as e:
            logger.warning("Could not run [%s]: %s", self.definition.version_command, e)
            raise ToolMissingError(self.definition.cli_name) from e

        if result.returncode != 0:
            logger.warning("[%s] failed: %s", self.definition.version_command, result.stderr.strip())
            raise ToolMissingError(self.definition.cli_name)

        output = result.stdout.strip()
        parser = self.definition.version_parser
        if parser:
            version = parser(output)
        else:
            version = output.splitlines()[0].strip() if output else ""
        # Version strings become a directory name in the cache
        version = version.replace("/", "_").replace("\\", "_")
        if not version or version in (".", ".."):
            logger.warning("[%s] returned unusable version %r", self.definition.version_command, output)
            raise ToolMissingError(self.definition.cli_name)

        self._version = version
        return self._version


def build_config(
    name: str,
    cache_root: Union[str, Path],
    install_options: str = "",
    force_refresh: bool = False,
    work_dir: Union[str, Path] = "."
) -> ManagerConfig:
    """Create the ManagerConfig for a built-in manager rooted at work_dir."""
    definition = get_definition(name)
    work_path = Path(work_dir).resolve()

    return ManagerConfig(
        cli_name=definition.cli_name,
        install_command=definition.install_command,
        install_options=install_options,
        install_directory=definition.resolve_install_directory(work_path),
        manifest_path=work_path / definition.manifest_name,
        cache_root=Path(cache_root),
        cli_version_provider=CliVersionProvider(definition, cwd=work_path),
        force_refresh=force_refresh
    )
