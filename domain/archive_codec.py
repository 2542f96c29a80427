"""Streaming tar.gz capture and restore of install directories."""
import copy
import logging
import os
import tarfile
import tempfile
import zlib
from pathlib import Path
from typing import Union

from .errors import ArchiveError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _install_tree_filter(member: tarfile.TarInfo, dest_path: str) -> tarfile.TarInfo:
    """
    Extraction filter for install directories.

    Every member's own path must stay inside dest_path, as with the "data"
    filter. Symlink targets are left alone: workspace packages and linked
    modules point outside the install directory. A later member written
    through such a link is still refused, since its real path leaves dest_path.
    """
    if not member.issym():
        return tarfile.data_filter(member, dest_path)

    as_file = copy.copy(member)
    as_file.type = tarfile.REGTYPE
    as_file.linkname = ""
    checked = tarfile.data_filter(as_file, dest_path)
    checked.type = tarfile.SYMTYPE
    checked.linkname = member.linkname
    return checked


class ArchiveCodec:
    """Serializes a directory tree into a compressed archive and back."""

    @staticmethod
    def capture(source_directory: PathLike, destination_archive_path: PathLike) -> None:
        """
        Creates a gzip-compressed tar at destination_archive_path holding the
        contents of source_directory, with member names relative to it.

        The archive is streamed into a temporary file beside the destination
        and renamed into place once complete, so a reader checking for the
        destination never sees a partially written archive.

        Args:
            source_directory: Directory to archive
            destination_archive_path: Path of the archive to create or replace

        Raises:
            ArchiveError: If the source directory is missing or unreadable
            OSError: If writing the archive fails
        """
        source = Path(source_directory)
        destination = Path(destination_archive_path)

        if not source.is_dir():
            raise ArchiveError(f"Cannot archive {source}: not a directory")
        try:
            children = sorted(source.iterdir())
        except OSError as e:
            raise ArchiveError(f"Cannot read {source}: {e}") from e

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
        )
        try:
            with os.fdopen(fd, "wb") as out:
                with tarfile.open(fileobj=out, mode="w|gz") as tar:
                    for child in children:
                        tar.add(child, arcname=child.name)
                out.flush()
                os.fsync(out.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, destination)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        logger.debug("Archived %d top-level entries from %s into %s", len(children), source, destination)

    @staticmethod
    def restore(archive_path: PathLike, destination_directory: PathLike) -> None:
        """
        Unpacks the archive at archive_path into destination_directory,
        creating it if absent. Gzip-compressed and plain tar archives are
        both accepted. Existing files with the same names are overwritten.

        Raises:
            ArchiveError: If the archive data is malformed or a member path
                would land outside destination_directory
            OSError: On filesystem failure
        """
        destination = Path(destination_directory)
        destination.mkdir(parents=True, exist_ok=True)

        try:
            with open(archive_path, "rb") as f:
                with tarfile.open(fileobj=f, mode="r|*") as tar:
                    tar.extractall(destination, filter=_install_tree_filter)
        except (tarfile.TarError, EOFError, zlib.error) as e:
            raise ArchiveError(f"Malformed archive {archive_path}: {e}") from e

        logger.debug("Extracted %s into %s", archive_path, destination)
