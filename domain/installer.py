import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .errors import InstallError

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    command: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def is_tool_available(cli_name: str) -> bool:
    """Check whether cli_name resolves to an executable on PATH."""
    return shutil.which(cli_name) is not None


class InstallRunner:
    """Runs a package manager's install command as a shell subprocess."""

    def __init__(self, cwd: Optional[Union[str, Path]] = None, log: Optional[logging.LoggerAdapter] = None):
        self.cwd = cwd
        self.log = log or logger

    @staticmethod
    def compose_command(command: str, options: str = "") -> str:
        return f"{command} {options or ''}".strip()

    def run(
        self,
        command: str,
        options: str = "",
        post_install: Optional[Callable[[], None]] = None
    ) -> InstallResult:
        """
        Run the install command and wait for it to finish.

        Output of the subprocess is forwarded line by line to the log; it is
        not returned. On success the post-install hook, if any, is called and
        any exception it raises propagates.

        Raises:
            InstallError: If the command exits with a non-zero status
        """
        command_line = self.compose_command(command, options)
        self.log.info("running [%s]...", command_line)

        process = subprocess.Popen(
            command_line,
            shell=True,
            cwd=self.cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace"
        )
        with process:
            for line in process.stdout:
                line = line.rstrip()
                if line:
                    self.log.info("%s", line)
            exit_code = process.wait()

        if exit_code != 0:
            raise InstallError(command_line, exit_code)

        if post_install is not None:
            self.log.info("running post-install hook")
            post_install()

        return InstallResult(command=command_line, exit_code=exit_code)
