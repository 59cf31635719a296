from dataclasses import dataclass, field
from pathlib import Path

from bulk_editor.backup.manager import BackupManager
from bulk_editor.logging.logger import Log
from bulk_editor.worker.session import Session, SessionManager


@dataclass
class UndoResult:
    session_id: str
    restored: list[Path] = field(default_factory=list)
    failures: dict[Path, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failures


class UndoService:
    """Restores every file of a session from its backups."""

    def __init__(
        self,
        session_manager: SessionManager,
        backup_manager: BackupManager,
        log: Log,
    ) -> None:
        self._sessions = session_manager
        self._backups = backup_manager
        self._log = log

    def can_undo(self) -> bool:
        session = self._sessions.last_session
        return session is not None and not session.undone and bool(session.files)

    def undo_last_session(self) -> UndoResult:
        session = self._sessions.last_session
        if session is None:
            raise ValueError("There is no session to undo")
        return self.undo(session)

    def undo_session_id(self, session_id: str) -> UndoResult:
        """Undo a session recorded by an earlier run, read from its manifest."""
        return self.undo(self._sessions.load(session_id))

    def undo(self, session: Session) -> UndoResult:
        """Restore every pair, continuing past failures.

        The session is only marked undone when every file was restored.
        """
        result = UndoResult(session_id=session.id)
        for item in session.files:
            info = item.to_backup_info(session.started_at, session.id)
            restore = self._backups.restore(info)
            if restore.success:
                result.restored.append(item.original_path)
            else:
                result.failures[item.original_path] = restore.message
                self._log.error(f"Undo of {item.original_path} failed: {restore.message}")

        if result.success:
            session.undone = True
            self._sessions.save(session)
            self._log.info(f"Undid session {session.id}: {len(result.restored)} files restored")
        else:
            self._log.warning(
                f"Session {session.id} partially undone: {len(result.restored)} restored, "
                f"{len(result.failures)} failed"
            )
        return result
