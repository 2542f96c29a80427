import logging
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from domain.cache_store import CacheStore, CacheEntryInfo
from domain.hash_constants import ARCHIVE_EXTENSION

logger = logging.getLogger(__name__)


class FileSystemCacheStore(CacheStore):
    """Archives laid out as <cache_root>/<cli_name>/<cli_version>/<fingerprint>.tar.gz."""

    def __init__(self, cache_root: Union[str, Path]):
        self.cache_root = Path(cache_root).expanduser()

    def locate(self, cli_name: str, cli_version: str, fingerprint: str) -> Path:
        return self.cache_root / cli_name / cli_version / f"{fingerprint}{ARCHIVE_EXTENSION}"

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def ensure_directory(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def list_entries(self, cli_name: Optional[str] = None) -> List[CacheEntryInfo]:
        """List archives, sorted by manager, version and fingerprint."""
        entries = []

        if not self.cache_root.is_dir():
            return entries

        pattern = f"*/*/*{ARCHIVE_EXTENSION}"
        for archive in sorted(self.cache_root.glob(pattern)):
            if not archive.is_file():
                continue
            manager = archive.parent.parent.name
            if cli_name is not None and manager != cli_name:
                continue
            stat = archive.stat()
            entries.append(CacheEntryInfo(
                cli_name=manager,
                cli_version=archive.parent.name,
                fingerprint=archive.name[:-len(ARCHIVE_EXTENSION)],
                path=archive,
                size_bytes=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
            ))

        return entries

    def resolve_entry(self, cli_name: str, cli_version: str, file_name: str) -> Optional[Path]:
        for part in (cli_name, cli_version, file_name):
            if not self._is_plain_name(part):
                return None
        if not file_name.endswith(ARCHIVE_EXTENSION):
            return None

        path = self.cache_root / cli_name / cli_version / file_name
        if self.exists(path):
            return path
        return None

    def get_cache_stats(self) -> Dict[str, Any]:
        entries = self.list_entries()
        return {
            "total_archives": len(entries),
            "total_managers": len({entry.cli_name for entry in entries}),
            "cache_size_bytes": sum(entry.size_bytes for entry in entries)
        }

    def cleanup_old_archives(self, max_age_seconds: int) -> int:
        """Remove old archives to save space."""
        current_time = time.time()
        removed = 0

        for entry in self.list_entries():
            if current_time - entry.modified_at.timestamp() > max_age_seconds:
                try:
                    entry.path.unlink()
                    removed += 1
                except FileNotFoundError:
                    # Removed by a concurrent clean
                    pass

        return removed

    def clear(self) -> None:
        if self.cache_root.exists():
            logger.info("Removing cache directory %s", self.cache_root)
            shutil.rmtree(self.cache_root)

    @staticmethod
    def _is_plain_name(part: str) -> bool:
        return bool(part) and part not in (".", "..") and "/" not in part and "\\" not in part
