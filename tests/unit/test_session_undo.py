import json
from datetime import datetime
from pathlib import Path

import pytest

from bulk_editor.backup.manager import BackupManager
from bulk_editor.config.context import ProcessingContext
from bulk_editor.logging.logger import Log
from bulk_editor.processor.exceptions import BackupError
from bulk_editor.processor.orchestrator import build_orchestrator
from bulk_editor.worker.scheduler import BatchScheduler
from bulk_editor.worker.session import MANIFEST_NAME, SessionManager
from bulk_editor.worker.undo import UndoService

OLD_URL = "https://old.example.com/view?docid=TSRC-PROD-123456"


def _make_sessions(tmp_path: Path) -> tuple[SessionManager, BackupManager]:
    log = Log("bulk_editor.tests")
    backups = BackupManager(tmp_path / "backups", log)
    sessions = SessionManager(backups, log, clock=lambda: datetime(2026, 10, 19, 9, 15, 0))
    return sessions, backups


def _run_batch(context: ProcessingContext, docx_builder, count: int = 2):
    backups = BackupManager(context.settings.backup_root, context.log)
    sessions = SessionManager(backups, context.log)
    orchestrator = build_orchestrator(context, backup_manager=backups)
    paths = [
        docx_builder.build(
            name=f"doc{index}.docx",
            body=[docx_builder.hyperlink("rId5", f"Link {index}")],
            links={"rId5": OLD_URL},
        )
        for index in range(count)
    ]
    originals = {path: path.read_bytes() for path in paths}
    batch = BatchScheduler(context, orchestrator, sessions).process_batch(paths)
    return batch, sessions, backups, originals


class TestSessionManager:
    def test_start_assigns_timestamped_id(self, tmp_path: Path) -> None:
        sessions, _backups = _make_sessions(tmp_path)

        session = sessions.start()

        assert session.id.startswith("20261019_091500_")
        assert session.is_active
        assert sessions.current is session

    def test_only_one_active_session(self, tmp_path: Path) -> None:
        sessions, _backups = _make_sessions(tmp_path)
        sessions.start()
        with pytest.raises(RuntimeError):
            sessions.start()

    def test_add_file_requires_session(self, tmp_path: Path) -> None:
        sessions, backups = _make_sessions(tmp_path)
        source = tmp_path / "a.docx"
        source.write_bytes(b"x")
        with pytest.raises(RuntimeError):
            sessions.add_file(backups.create_backup(source))

    def test_end_writes_manifest(self, tmp_path: Path) -> None:
        sessions, backups = _make_sessions(tmp_path)
        source = tmp_path / "a.docx"
        source.write_bytes(b"x")
        session = sessions.start()
        sessions.add_file(backups.create_backup(source, session_id=session.id))

        ended = sessions.end()

        manifest = backups.session_directory(session.id) / MANIFEST_NAME
        data = json.loads(manifest.read_text(encoding="utf-8"))
        assert data["id"] == session.id
        assert data["files"][0]["original_path"] == str(source)
        assert ended.ended_at is not None
        assert sessions.current is None
        assert sessions.last_session is ended

    def test_end_without_session(self, tmp_path: Path) -> None:
        sessions, _backups = _make_sessions(tmp_path)
        assert sessions.end() is None

    def test_load_round_trip(self, tmp_path: Path) -> None:
        sessions, _backups = _make_sessions(tmp_path)
        session = sessions.start()
        sessions.end()

        loaded = sessions.load(session.id)

        assert loaded.id == session.id
        assert loaded.started_at == session.started_at
        assert loaded.is_active is False

    def test_load_missing_manifest(self, tmp_path: Path) -> None:
        sessions, _backups = _make_sessions(tmp_path)
        with pytest.raises(BackupError, match="No session manifest"):
            sessions.load("unknown")

    def test_load_corrupt_manifest(self, tmp_path: Path) -> None:
        sessions, _backups = _make_sessions(tmp_path)
        path = sessions.manifest_path("broken")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(BackupError, match="Invalid session manifest"):
            sessions.load("broken")


class TestUndoService:
    def test_undo_last_session_restores_originals(self, context, docx_builder) -> None:
        batch, sessions, backups, originals = _run_batch(context, docx_builder)
        assert all(path.read_bytes() != data for path, data in originals.items())
        undo = UndoService(sessions, backups, context.log)

        assert undo.can_undo() is True
        result = undo.undo_last_session()

        assert result.success is True
        assert result.session_id == batch.session_id
        assert sorted(result.restored) == sorted(originals)
        assert all(path.read_bytes() == data for path, data in originals.items())
        assert undo.can_undo() is False
        assert sessions.load(batch.session_id).undone is True

    def test_undo_by_session_id_from_manifest(self, context, docx_builder) -> None:
        batch, _sessions, backups, originals = _run_batch(context, docx_builder)
        fresh_sessions = SessionManager(backups, context.log)
        undo = UndoService(fresh_sessions, backups, context.log)

        result = undo.undo_session_id(batch.session_id)

        assert result.success is True
        assert all(path.read_bytes() == data for path, data in originals.items())

    def test_partial_failure_keeps_session_open_for_retry(self, context, docx_builder) -> None:
        batch, sessions, backups, originals = _run_batch(context, docx_builder)
        session = sessions.last_session
        session.files[0].backup_path.unlink()
        undo = UndoService(sessions, backups, context.log)

        result = undo.undo(session)

        assert result.success is False
        assert list(result.failures) == [session.files[0].original_path]
        assert result.restored == [session.files[1].original_path]
        assert session.undone is False
        assert sessions.load(batch.session_id).undone is False

    def test_no_session_to_undo(self, tmp_path: Path) -> None:
        sessions, backups = _make_sessions(tmp_path)
        undo = UndoService(sessions, backups, Log("bulk_editor.tests"))

        assert undo.can_undo() is False
        with pytest.raises(ValueError):
            undo.undo_last_session()
