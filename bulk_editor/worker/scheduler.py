import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

from bulk_editor.backup.models import CleanupResult
from bulk_editor.config.context import ProcessingContext
from bulk_editor.processor.cancellation import CancellationToken
from bulk_editor.processor.models import ProcessingResult, ProgressReport
from bulk_editor.processor.orchestrator import ProcessingOrchestrator
from bulk_editor.worker.models import BatchResult
from bulk_editor.worker.session import SessionManager

ProgressCallback = Callable[[ProgressReport], None]


class _BatchTally:
    """Running totals shared by the worker threads of one batch."""

    def __init__(self, total: int, progress: ProgressCallback | None) -> None:
        self._lock = threading.Lock()
        self._progress = progress
        self.result = BatchResult(total=total)

    def record(self, result: ProcessingResult) -> None:
        with self._lock:
            self.result.results.append(result)
            if result.cancelled:
                self.result.cancelled += 1
            elif result.success:
                self.result.succeeded += 1
            else:
                self.result.failed += 1
            completed = len(self.result.results)
            total = self.result.total
            if self._progress is not None:
                self._progress(
                    ProgressReport(
                        current_operation=f"Processed {result.document.file_name}",
                        percent_complete=completed * 100.0 / total if total else 100.0,
                        file_name=result.document.file_name,
                        completed=completed,
                        total=total,
                    )
                )


class BatchScheduler:
    """Processes a batch of documents on a bounded worker pool.

    Every document gets its own orchestrator run; a failure in one never
    affects the others. The batch is recorded as a session so it can be
    undone as a whole.
    """

    def __init__(
        self,
        context: ProcessingContext,
        orchestrator: ProcessingOrchestrator,
        session_manager: SessionManager,
    ) -> None:
        self._log = context.log
        self._settings = context.settings
        self._orchestrator = orchestrator
        self._sessions = session_manager

    def process_batch(
        self,
        paths: Sequence[Path | str],
        max_concurrency: int | None = None,
        progress: ProgressCallback | None = None,
        cancellation: CancellationToken | None = None,
    ) -> BatchResult:
        workers = (
            max_concurrency if max_concurrency is not None else self._settings.max_concurrent_documents
        )
        if workers < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {workers}")

        started = time.monotonic()
        tally = _BatchTally(len(paths), progress)
        session = self._sessions.start()
        tally.result.session_id = session.id
        self._log.info(f"Batch {session.id}: {len(paths)} documents, {workers} concurrent")

        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="document") as pool:
                futures = [
                    pool.submit(self._run_one, Path(path), session.id, progress, cancellation)
                    for path in paths
                ]
                for future in as_completed(futures):
                    tally.record(future.result())
        finally:
            self._sessions.end()

        batch = tally.result
        if self._settings.auto_cleanup_old_backups:
            batch.cleanup = self._cleanup()
        batch.duration_seconds = time.monotonic() - started
        self._log.info(
            f"Batch {batch.session_id} finished: {batch.succeeded} succeeded, "
            f"{batch.failed} failed, {batch.cancelled} cancelled of {batch.total}"
        )
        return batch

    def submit_batch(
        self,
        paths: Sequence[Path | str],
        max_concurrency: int | None = None,
        progress: ProgressCallback | None = None,
        cancellation: CancellationToken | None = None,
    ) -> "Future[BatchResult]":
        """Run ``process_batch`` in the background and return its future."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="batch")
        future = executor.submit(self.process_batch, paths, max_concurrency, progress, cancellation)
        executor.shutdown(wait=False)
        return future

    def _run_one(
        self,
        path: Path,
        session_id: str,
        progress: ProgressCallback | None,
        cancellation: CancellationToken | None,
    ) -> ProcessingResult:
        try:
            result = self._orchestrator.process(
                path,
                session_id=session_id,
                cancellation=cancellation,
                progress=progress,
            )
        except Exception as exc:
            self._log.error(f"Unexpected error processing {path.name}: {exc}")
            return ProcessingResult.failed(path, exc)
        if result.document.backup is not None:
            self._sessions.add_file(result.document.backup)
        return result

    def _cleanup(self) -> CleanupResult | None:
        try:
            cleanup = self._orchestrator.backup_manager.cleanup(self._settings.backup_retention_days)
        except (OSError, ValueError) as exc:
            self._log.warning(f"Backup cleanup failed: {exc}")
            return None
        if cleanup.deleted or cleanup.failures:
            self._log.info(
                f"Backup cleanup deleted {len(cleanup.deleted)} files, "
                f"{len(cleanup.failures)} failures"
            )
        return cleanup
