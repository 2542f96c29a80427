from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class LoadOutcome(Enum):
    SKIPPED = "skipped"  # No manifest, nothing to install
    UP_TO_DATE = "up_to_date"
    RESTORED = "restored"
    INSTALLED = "installed"


@dataclass
class LoadResult:
    cli_name: str
    outcome: LoadOutcome
    fingerprint: Optional[str] = None
    archive_path: Optional[Path] = None

    @property
    def is_cache_hit(self) -> bool:
        return self.outcome in (LoadOutcome.UP_TO_DATE, LoadOutcome.RESTORED)
