from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class BackupInfo:
    """A verified copy of a document taken before mutation."""

    original_path: Path
    backup_path: Path
    created_at: datetime
    content_hash: str
    verified: bool = False
    session_id: str = ""


@dataclass(frozen=True)
class RestoreResult:
    success: bool
    target_path: Path
    message: str = ""
    restore_point: Path | None = None


@dataclass
class CleanupResult:
    deleted: list[Path] = field(default_factory=list)
    failures: dict[Path, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failures
