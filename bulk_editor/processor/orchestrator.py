import time
from collections.abc import Callable
from pathlib import Path

from bulk_editor.backup.manager import BackupManager
from bulk_editor.changelog.exporters import get_exporter
from bulk_editor.config.context import ProcessingContext
from bulk_editor.extraction.extractor import HyperlinkExtractor
from bulk_editor.metadata.base import BaseMetadataClient
from bulk_editor.metadata.factory import MetadataClientFactory
from bulk_editor.processor.cancellation import CancellationToken
from bulk_editor.processor.exceptions import CancellationError
from bulk_editor.processor.models import (
    Document,
    DocumentStatus,
    ProcessingResult,
    ProcessingState,
    ProgressReport,
)
from bulk_editor.processor.pipeline import PipelineContext, PipelineStep
from bulk_editor.processor.steps import (
    BackupStep,
    ExtractStep,
    LogChangesStep,
    LookupStep,
    RewriteStep,
    SaveStep,
    ValidateStep,
)
from bulk_editor.processor.validator import DocumentValidator
from bulk_editor.replacement.engine import ReplacementEngine
from bulk_editor.replacement.text_optimizer import TextOptimizer
from bulk_editor.rewriter.rewriter import DocumentRewriter


class ProcessingOrchestrator:
    """Runs one document through the pipeline as a state machine.

    Pipeline: validate -> back up -> extract -> look up -> rewrite -> save
    -> log changes. Cancellation and the per-document timeout are checked
    before every step until the document has been saved. Any failure or
    cancellation after a backup exists restores the original file.
    """

    def __init__(
        self,
        context: ProcessingContext,
        steps: list[PipelineStep],
        backup_manager: BackupManager,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._log = context.log
        self._timeout_seconds = context.settings.document_timeout_seconds
        self._steps = steps
        self._backup_manager = backup_manager
        self._clock = clock

    @property
    def backup_manager(self) -> BackupManager:
        return self._backup_manager

    def process(
        self,
        path: Path | str,
        *,
        session_id: str = "",
        cancellation: CancellationToken | None = None,
        progress: Callable[[ProgressReport], None] | None = None,
    ) -> ProcessingResult:
        document = Document(file_path=Path(path), status=DocumentStatus.PROCESSING)
        deadline = self._clock() + self._timeout_seconds if self._timeout_seconds > 0 else None
        context = PipelineContext(
            document=document,
            session_id=session_id,
            cancellation=cancellation,
            deadline=deadline,
            progress=progress,
        )
        self._log.info(f"Processing {document.file_name}")

        try:
            total = len(self._steps)
            for index, step in enumerate(self._steps):
                if not context.saved:
                    context.check_boundary(self._clock)
                context.transition(step.state)
                context.report(step.state.value, index * 100.0 / total)
                context = step.run(context)
        except CancellationError as exc:
            return self._handle_cancellation(context, exc)
        except Exception as exc:
            return self._handle_failure(context, exc)

        context.transition(ProcessingState.COMPLETED)
        document.status = (
            DocumentStatus.COMPLETED_WITH_ERRORS
            if document.change_log.has_errors or document.errors
            else DocumentStatus.COMPLETED
        )
        context.report(ProcessingState.COMPLETED.value, 100.0)
        self._log.info(f"Completed {document.file_name} ({document.status.value})")
        return context.to_result(success=True)

    def _handle_failure(self, context: PipelineContext, exc: Exception) -> ProcessingResult:
        document = context.document
        failed_state = context.state
        document.add_error(exc, failed_state)
        context.error_message = str(exc)
        context.transition(ProcessingState.FAILED)
        document.status = DocumentStatus.FAILED
        self._log.error(f"{document.file_name} failed during {failed_state.value}: {exc}")

        rolled_back = self._restore(context)
        if rolled_back:
            document.status = DocumentStatus.RECOVERED
            context.transition(ProcessingState.ROLLED_BACK)
        context.report(context.state.value, 100.0)
        return context.to_result(rolled_back=rolled_back)

    def _handle_cancellation(
        self,
        context: PipelineContext,
        exc: CancellationError,
    ) -> ProcessingResult:
        document = context.document
        document.add_error(exc, context.state)
        context.error_message = str(exc) or "Processing cancelled"
        self._log.warning(f"{document.file_name} cancelled during {context.state.value}")

        rolled_back = self._restore(context)
        if rolled_back:
            context.transition(ProcessingState.ROLLED_BACK)
        context.transition(ProcessingState.CANCELLED)
        document.status = DocumentStatus.CANCELLED
        context.report(ProcessingState.CANCELLED.value, 100.0)
        return context.to_result(rolled_back=rolled_back, cancelled=True)

    def _restore(self, context: PipelineContext) -> bool:
        """Restore the original from its backup; a failed restore keeps the original error."""
        document = context.document
        if document.backup is None:
            return False
        try:
            result = self._backup_manager.restore(document.backup)
        except Exception as exc:
            self._log.error(f"Restore of {document.file_name} raised: {exc}")
            document.add_error(exc, ProcessingState.ROLLED_BACK)
            return False
        if not result.success:
            self._log.error(f"Restore of {document.file_name} failed: {result.message}")
            document.add_error(RuntimeError(result.message), ProcessingState.ROLLED_BACK)
            return False
        self._log.info(f"Restored {document.file_name} from {document.backup.backup_path}")
        return True


def build_orchestrator(
    context: ProcessingContext,
    metadata_client: BaseMetadataClient | None = None,
    backup_manager: BackupManager | None = None,
) -> ProcessingOrchestrator:
    """Build a ProcessingOrchestrator with all collaborators.

    Raises:
        RuleValidationError: if a configured replacement rule is invalid.
    """
    settings = context.settings
    replacement_engine = ReplacementEngine(context.for_component("replacement"))
    replacement_engine.validate()

    backups = backup_manager or BackupManager(settings.backup_root, context.log.child("backup"))
    client = metadata_client or MetadataClientFactory.create(context)
    exporter = get_exporter(settings.changelog_format) if settings.changelog_directory else None
    export_directory = Path(settings.changelog_directory).expanduser() if exporter else None

    steps: list[PipelineStep] = [
        ValidateStep(DocumentValidator(context.for_component("validator"))),
        BackupStep(backups),
        ExtractStep(HyperlinkExtractor(context.for_component("extraction"))),
        LookupStep(client, context.log.child("metadata")),
        RewriteStep(
            DocumentRewriter(context.for_component("rewriter")),
            replacement_engine,
            TextOptimizer(context.for_component("optimizer")),
        ),
        SaveStep(context.log.child("save")),
        LogChangesStep(exporter, export_directory, context.log.child("changelog")),
    ]
    return ProcessingOrchestrator(context, steps, backups)
