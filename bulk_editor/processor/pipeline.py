import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from bulk_editor.changelog.models import ChangeEntry
from bulk_editor.docx.package import DocxPackage
from bulk_editor.extraction.models import ExtractionResult
from bulk_editor.metadata.models import LookupResult
from bulk_editor.processor.cancellation import CancellationToken
from bulk_editor.processor.exceptions import DocumentTimeoutError
from bulk_editor.processor.models import (
    Document,
    ProcessingResult,
    ProcessingState,
    ProgressReport,
)
from bulk_editor.rewriter.models import UpdateResult


@dataclass(slots=True)
class PipelineContext:
    document: Document
    session_id: str = ""
    cancellation: CancellationToken | None = None
    deadline: float | None = None
    progress: Callable[[ProgressReport], None] | None = None
    package: DocxPackage | None = None
    extraction: ExtractionResult | None = None
    lookup: LookupResult | None = None
    update: UpdateResult | None = None
    replacement_changes: list[ChangeEntry] = field(default_factory=list)
    state: ProcessingState = ProcessingState.VALIDATING
    state_history: list[ProcessingState] = field(default_factory=list)
    mutation_started: bool = False
    saved: bool = False
    summary: str = ""
    error_message: str = ""
    started_at: float = field(default_factory=time.monotonic)

    def transition(self, state: ProcessingState) -> None:
        self.state = state
        self.state_history.append(state)

    def check_boundary(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Raise if the run was cancelled or ran past its deadline."""
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()
        if self.deadline is not None and clock() > self.deadline:
            raise DocumentTimeoutError(
                f"{self.document.file_name} exceeded its processing time limit"
            )

    def report(self, operation: str, percent_complete: float) -> None:
        if self.progress is not None:
            self.progress(
                ProgressReport(
                    current_operation=operation,
                    percent_complete=percent_complete,
                    file_name=self.document.file_name,
                )
            )

    def to_result(
        self,
        *,
        success: bool = False,
        rolled_back: bool = False,
        cancelled: bool = False,
    ) -> ProcessingResult:
        if self.document.processed_at is None and self.state in (
            ProcessingState.COMPLETED,
            ProcessingState.FAILED,
            ProcessingState.ROLLED_BACK,
            ProcessingState.CANCELLED,
        ):
            self.document.processed_at = datetime.now(timezone.utc)
        return ProcessingResult(
            document=self.document,
            state=self.state,
            success=success,
            rolled_back=rolled_back,
            cancelled=cancelled,
            extraction=self.extraction,
            lookup=self.lookup,
            update=self.update,
            error_message=self.error_message,
            duration_seconds=time.monotonic() - self.started_at,
            state_history=list(self.state_history),
            summary=self.summary,
        )


class PipelineStep(ABC):
    state: ProcessingState

    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
