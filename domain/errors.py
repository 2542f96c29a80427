"""Errors raised while loading cached dependencies."""


class CacheError(Exception):
    """Base class for errors reported per dependency manager."""


class ToolMissingError(CacheError):
    def __init__(self, cli_name: str):
        self.cli_name = cli_name
        super().__init__(f"Command line tool {cli_name} not installed")


class InstallError(CacheError):
    """The install command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int):
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"error running [{command}] (exit code {exit_code})")


class ArchiveError(CacheError):
    """An archive could not be read, or a directory could not be archived."""


class UnknownManagerError(CacheError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unsupported manager: {name}")
