import json
import os
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from bulk_editor.backup.manager import BackupManager
from bulk_editor.backup.models import BackupInfo
from bulk_editor.logging.logger import Log
from bulk_editor.processor.exceptions import BackupError

MANIFEST_NAME = "session.json"


@dataclass(frozen=True)
class SessionFile:
    original_path: Path
    backup_path: Path
    content_hash: str

    def to_backup_info(self, created_at: datetime, session_id: str) -> BackupInfo:
        return BackupInfo(
            original_path=self.original_path,
            backup_path=self.backup_path,
            created_at=created_at,
            content_hash=self.content_hash,
            verified=True,
            session_id=session_id,
        )


@dataclass
class Session:
    """One batch run: the (original, backup) pairs it produced."""

    id: str
    started_at: datetime
    ended_at: datetime | None = None
    files: list[SessionFile] = field(default_factory=list)
    undone: bool = False

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "undone": self.undone,
            "files": [
                {
                    "original_path": str(item.original_path),
                    "backup_path": str(item.backup_path),
                    "content_hash": item.content_hash,
                }
                for item in self.files
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        ended_at = data.get("ended_at")
        return cls(
            id=data["id"],
            started_at=datetime.fromisoformat(data["started_at"]),
            ended_at=datetime.fromisoformat(ended_at) if ended_at else None,
            undone=bool(data.get("undone", False)),
            files=[
                SessionFile(
                    original_path=Path(item["original_path"]),
                    backup_path=Path(item["backup_path"]),
                    content_hash=item["content_hash"],
                )
                for item in data.get("files", [])
            ],
        )


class SessionManager:
    """Tracks the current batch session and persists its manifest.

    The manifest lives next to the session's backups as ``session.json`` so
    a later process can undo the run by session id.
    """

    def __init__(
        self,
        backup_manager: BackupManager,
        log: Log,
        clock=datetime.now,
    ) -> None:
        self._backup_manager = backup_manager
        self._log = log
        self._clock = clock
        self._lock = threading.Lock()
        self._current: Session | None = None
        self._last: Session | None = None

    @property
    def current(self) -> Session | None:
        return self._current

    @property
    def last_session(self) -> Session | None:
        return self._last

    def start(self) -> Session:
        with self._lock:
            if self._current is not None:
                raise RuntimeError(f"Session {self._current.id} is still active")
            started_at = self._clock()
            session_id = f"{started_at.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
            self._current = Session(id=session_id, started_at=started_at)
        self._log.info(f"Started session {session_id}")
        return self._current

    def add_file(self, info: BackupInfo) -> None:
        with self._lock:
            if self._current is None:
                raise RuntimeError("No active session")
            self._current.files.append(
                SessionFile(
                    original_path=info.original_path,
                    backup_path=info.backup_path,
                    content_hash=info.content_hash,
                )
            )

    def end(self) -> Session | None:
        with self._lock:
            session = self._current
            if session is None:
                return None
            session.ended_at = self._clock()
            self._current = None
            self._last = session
        self.save(session)
        self._log.info(f"Ended session {session.id} with {len(session.files)} backed up files")
        return session

    def manifest_path(self, session_id: str) -> Path:
        return self._backup_manager.session_directory(session_id) / MANIFEST_NAME

    def save(self, session: Session) -> Path:
        path = self.manifest_path(session.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            temp_path.write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise BackupError(f"Cannot write session manifest {path}: {exc}") from exc
        return path

    def load(self, session_id: str) -> Session:
        """Read a session manifest.

        Raises:
            BackupError: if the manifest is missing or unreadable.
        """
        path = self.manifest_path(session_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Session.from_dict(data)
        except FileNotFoundError as exc:
            raise BackupError(f"No session manifest for {session_id} at {path}") from exc
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise BackupError(f"Invalid session manifest {path}: {exc}") from exc
