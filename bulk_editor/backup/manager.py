import hashlib
import os
import shutil
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

from bulk_editor.backup.models import BackupInfo, CleanupResult, RestoreResult
from bulk_editor.logging.logger import Log
from bulk_editor.processor.exceptions import BackupError, StorageIntegrityError

CHUNK_SIZE = 1024 * 1024


def compute_hash(path: Path) -> str:
    """SHA-256 hex digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        while chunk := handle.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def _stream_copy(source: Path, handle) -> None:
    with open(source, "rb") as src:
        while chunk := src.read(CHUNK_SIZE):
            handle.write(chunk)
    handle.flush()
    os.fsync(handle.fileno())


class BackupManager:
    """Creates hash-verified backups before mutation and restores them.

    Layout: ``<backup_root>/<session id or YYYYmmdd>/<stem>_<timestamp><suffix>``.
    Every operation is independent; concurrent backups of different files
    are safe because each copy is created with an exclusive open.
    """

    def __init__(
        self,
        backup_root: Path,
        log: Log,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._backup_root = Path(backup_root)
        self._log = log
        self._clock = clock

    @property
    def backup_root(self) -> Path:
        return self._backup_root

    def session_directory(self, session_id: str) -> Path:
        return self._backup_root / session_id

    def create_backup(self, path: Path | str, session_id: str = "") -> BackupInfo:
        """Copy ``path`` into the backup area and verify the copy.

        Raises:
            BackupError: if the source is missing or the copy cannot be written.
            StorageIntegrityError: if the copy's hash differs from the source.
        """
        source = Path(path)
        if not source.is_file():
            raise BackupError(f"Cannot back up missing file: {source}")

        created_at = self._clock()
        directory = self._backup_root / (session_id or created_at.strftime("%Y%m%d"))
        backup_path: Path | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            backup_path, handle = self._open_exclusive(directory, source, created_at)
            with handle:
                _stream_copy(source, handle)
            source_hash = compute_hash(source)
            backup_hash = compute_hash(backup_path)
        except OSError as exc:
            if backup_path is not None:
                backup_path.unlink(missing_ok=True)
            raise BackupError(f"Failed to back up {source}: {exc}") from exc

        if source_hash != backup_hash:
            backup_path.unlink(missing_ok=True)
            raise StorageIntegrityError(
                f"Backup verification failed for {source}: "
                f"source {source_hash[:12]} != backup {backup_hash[:12]}"
            )

        self._log.info(f"Backed up {source.name} -> {backup_path}")
        return BackupInfo(
            original_path=source,
            backup_path=backup_path,
            created_at=created_at,
            content_hash=source_hash,
            verified=True,
            session_id=session_id,
        )

    def verify(self, info: BackupInfo) -> bool:
        if not info.backup_path.is_file():
            return False
        return compute_hash(info.backup_path) == info.content_hash

    def restore(self, info: BackupInfo, target_path: Path | str | None = None) -> RestoreResult:
        """Copy a backup over its original (or ``target_path``).

        The backup is re-verified first; on mismatch the target is not touched.
        An existing target is preserved as a restore point until the new copy
        is verified, so a failed restore leaves the target as it was.
        """
        target = Path(target_path) if target_path is not None else info.original_path

        if not info.backup_path.is_file():
            message = f"Backup file not found: {info.backup_path}"
            self._log.error(message)
            return RestoreResult(success=False, target_path=target, message=message)

        try:
            if not self.verify(info):
                message = f"Backup hash mismatch for {info.backup_path}; restore aborted"
                self._log.error(message)
                return RestoreResult(success=False, target_path=target, message=message)
        except OSError as exc:
            message = f"Cannot read backup {info.backup_path}: {exc}"
            self._log.error(message)
            return RestoreResult(success=False, target_path=target, message=message)

        restore_point: Path | None = None
        temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.exists():
                restore_point = target.with_name(
                    f".{target.name}.{uuid.uuid4().hex}.restore-point"
                )
                shutil.copy2(target, restore_point)
            with open(temp_path, "xb") as handle:
                _stream_copy(info.backup_path, handle)
            if compute_hash(temp_path) != info.content_hash:
                raise StorageIntegrityError(f"Restored copy of {target} failed verification")
            os.replace(temp_path, target)
        except (OSError, StorageIntegrityError) as exc:
            temp_path.unlink(missing_ok=True)
            message = f"Restore of {target} failed: {exc}"
            self._log.error(message)
            kept = self._roll_back_restore(target, restore_point)
            return RestoreResult(
                success=False, target_path=target, message=message, restore_point=kept
            )

        if restore_point is not None:
            restore_point.unlink(missing_ok=True)
        self._log.info(f"Restored {target} from {info.backup_path}")
        return RestoreResult(success=True, target_path=target, message="Restored")

    def cleanup(self, retention_days: int) -> CleanupResult:
        """Delete backups older than ``retention_days``; collect per-file failures."""
        if retention_days < 0:
            raise ValueError("retention_days must not be negative")
        result = CleanupResult()
        if not self._backup_root.is_dir():
            return result

        cutoff = (self._clock() - timedelta(days=retention_days)).timestamp()
        for path in sorted(self._backup_root.rglob("*")):
            if not path.is_file():
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    result.deleted.append(path)
            except OSError as exc:
                result.failures[path] = str(exc)

        directories = [p for p in self._backup_root.rglob("*") if p.is_dir()]
        for directory in sorted(directories, key=lambda p: len(p.parts), reverse=True):
            try:
                if not any(directory.iterdir()):
                    directory.rmdir()
            except OSError as exc:
                result.failures[directory] = str(exc)

        self._log.info(
            f"Backup cleanup: {len(result.deleted)} deleted, {len(result.failures)} failures"
        )
        return result

    def _open_exclusive(self, directory: Path, source: Path, created_at: datetime):
        stamp = created_at.strftime("%Y%m%d_%H%M%S_%f")
        counter = 0
        while True:
            suffix = f"_{counter}" if counter else ""
            candidate = directory / f"{source.stem}_{stamp}{suffix}{source.suffix}"
            try:
                return candidate, open(candidate, "xb")
            except FileExistsError:
                counter += 1

    def _roll_back_restore(self, target: Path, restore_point: Path | None) -> Path | None:
        """Put the pre-restore target back; returns the restore point if it must be kept."""
        if restore_point is None:
            return None
        try:
            if not target.exists() or compute_hash(target) != compute_hash(restore_point):
                os.replace(restore_point, target)
                return None
            restore_point.unlink(missing_ok=True)
            return None
        except OSError as exc:
            self._log.error(f"Could not roll back failed restore of {target}: {exc}")
            return restore_point
