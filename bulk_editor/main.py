import argparse
from collections.abc import Sequence
from pathlib import Path

from bulk_editor.backup.manager import BackupManager
from bulk_editor.changelog.exporters import get_exporter
from bulk_editor.config.context import ProcessingContext
from bulk_editor.config.settings import Settings
from bulk_editor.logging.logger import Log
from bulk_editor.processor.cancellation import CancellationToken
from bulk_editor.processor.exceptions import BulkEditorError
from bulk_editor.processor.orchestrator import build_orchestrator
from bulk_editor.worker.models import BatchResult
from bulk_editor.worker.scheduler import BatchScheduler
from bulk_editor.worker.session import SessionManager
from bulk_editor.worker.undo import UndoService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulk-editor",
        description="Validate and update hyperlinks in Word documents in bulk.",
    )
    parser.add_argument("paths", nargs="*", help="documents or directories to process")
    parser.add_argument("--export", metavar="FILE", help="write results to a .json or .csv file")
    parser.add_argument("--max-concurrency", type=int, default=None, help="documents in parallel")
    parser.add_argument("--undo", metavar="SESSION_ID", help="restore every file of a session")
    return parser


def expand_paths(paths: Sequence[str], extensions: Sequence[str]) -> list[Path]:
    """Files as given, plus supported documents found under directories.

    Word lock files (``~$name.docx``) are skipped.
    """
    suffixes = {ext.lower() for ext in extensions}
    files: list[Path] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            files.extend(
                sorted(
                    item
                    for item in path.rglob("*")
                    if item.is_file()
                    and item.suffix.lower() in suffixes
                    and not item.name.startswith("~$")
                )
            )
        else:
            files.append(path)
    seen: set[Path] = set()
    unique: list[Path] = []
    for item in files:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def print_batch(batch: BatchResult) -> None:
    for result in batch.results:
        line = result.summary or result.document.change_log.summary(result.document.file_name)
        if result.error_message:
            line = f"{result.document.file_name}: {result.status.value} ({result.error_message})"
        print(line)
    print(
        f"{batch.succeeded} succeeded, {batch.failed} failed, {batch.cancelled} cancelled "
        f"of {batch.total} in {batch.duration_seconds:.1f}s"
    )
    print(f"Session: {batch.session_id}")


def run_undo(session_id: str, sessions: SessionManager, backups: BackupManager, log: Log) -> int:
    undo = UndoService(sessions, backups, log.child("undo"))
    result = undo.undo_session_id(session_id)
    for path in result.restored:
        print(f"Restored {path}")
    for path, message in result.failures.items():
        print(f"Failed to restore {path}: {message}")
    return 0 if result.success else 1


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point: settings -> context -> orchestrator -> batch scheduler."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    log = Log.configure(settings.log_level)
    context = ProcessingContext(settings=settings, log=log)
    backups = BackupManager(settings.backup_root, log.child("backup"))
    sessions = SessionManager(backups, log.child("session"))

    try:
        if args.undo:
            return run_undo(args.undo, sessions, backups, log)
        if not args.paths:
            parser.error("at least one document or directory is required")

        exporter = get_exporter(Path(args.export).suffix) if args.export else None
        files = expand_paths(args.paths, settings.supported_extensions)
        if not files:
            log.warning("No supported documents found")
            return 1

        orchestrator = build_orchestrator(context, backup_manager=backups)
        scheduler = BatchScheduler(context, orchestrator, sessions)
        cancellation = CancellationToken()
        future = scheduler.submit_batch(files, args.max_concurrency, cancellation=cancellation)
        try:
            batch = future.result()
        except KeyboardInterrupt:
            log.info("Cancelling batch, waiting for documents in progress")
            cancellation.cancel("Cancelled by user")
            batch = future.result()

        print_batch(batch)
        if exporter is not None:
            target = exporter.export_to_file(batch.results, args.export)
            print(f"Exported results to {target}")
        return 0 if batch.all_succeeded else 1
    except BulkEditorError as exc:
        log.error(str(exc))
        print(f"Error: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
