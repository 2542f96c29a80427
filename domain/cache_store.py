from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class CacheEntryInfo:
    """One archive found in the cache."""
    cli_name: str
    cli_version: str
    fingerprint: str
    path: Path
    size_bytes: int
    modified_at: datetime


class CacheStore(ABC):
    """
    Abstract store mapping (manager, manager version, fingerprint) to an
    archive location on persistent storage.
    """

    @abstractmethod
    def locate(self, cli_name: str, cli_version: str, fingerprint: str) -> Path:
        """
        Compute where the archive for this key lives.

        Pure path computation, no I/O. The archive file is named
        <fingerprint>.tar.gz inside <cache_root>/<cli_name>/<cli_version>.
        """
        pass

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """
        Check if a complete archive exists at path.
        """
        pass

    @abstractmethod
    def ensure_directory(self, path: Path) -> None:
        """
        Create path and all missing parents. Succeeds if already present.

        Raises:
            OSError: On unrecoverable filesystem errors
        """
        pass

    @abstractmethod
    def list_entries(self, cli_name: Optional[str] = None) -> List[CacheEntryInfo]:
        """
        List archives in the cache, optionally only those of one manager.
        """
        pass

    @abstractmethod
    def resolve_entry(self, cli_name: str, cli_version: str, file_name: str) -> Optional[Path]:
        """
        Return the path of an existing archive addressed by its components,
        or None if it does not exist or the components are not plain names.
        """
        pass

    @abstractmethod
    def get_cache_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the cache.

        Returns:
            Dictionary containing:
            - total_archives: Number of archive files
            - total_managers: Number of managers with at least one archive
            - cache_size_bytes: Total size of all archives
        """
        pass

    @abstractmethod
    def cleanup_old_archives(self, max_age_seconds: int) -> int:
        """
        Remove archives not modified within max_age_seconds.

        Returns:
            Number of archives removed
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """
        Remove the whole cache.
        """
        pass
