from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from bulk_editor.backup.models import BackupInfo
from bulk_editor.changelog.models import ChangeLog
from bulk_editor.extraction.models import ExtractionResult, Hyperlink
from bulk_editor.metadata.models import LookupResult
from bulk_editor.rewriter.models import UpdateResult


class DocumentStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    COMPLETED_WITH_ERRORS = "CompletedWithErrors"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    RECOVERED = "Recovered"


class ProcessingState(str, Enum):
    VALIDATING = "Validating"
    BACKING_UP = "BackingUp"
    EXTRACTING = "Extracting"
    LOOKING_UP = "LookingUp"
    REWRITING = "Rewriting"
    SAVING = "Saving"
    LOGGING_CHANGES = "LoggingChanges"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ROLLED_BACK = "RolledBack"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class ProcessingError:
    message: str
    error_type: str
    state: ProcessingState
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Document:
    """A document moving through one processing run."""

    file_path: Path
    status: DocumentStatus = DocumentStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    hyperlinks: list[Hyperlink] = field(default_factory=list)
    change_log: ChangeLog = field(default_factory=ChangeLog)
    errors: list[ProcessingError] = field(default_factory=list)
    backup: BackupInfo | None = None

    @property
    def file_name(self) -> str:
        return self.file_path.name

    def add_error(self, exc: BaseException, state: ProcessingState) -> ProcessingError:
        error = ProcessingError(message=str(exc), error_type=type(exc).__name__, state=state)
        self.errors.append(error)
        return error


@dataclass(frozen=True)
class ProgressReport:
    """Progress of one document stage or of the batch as a whole."""

    current_operation: str
    percent_complete: float
    file_name: str = ""
    completed: int = 0
    total: int = 0


@dataclass
class ProcessingResult:
    document: Document
    state: ProcessingState
    success: bool = False
    rolled_back: bool = False
    cancelled: bool = False
    extraction: ExtractionResult | None = None
    lookup: LookupResult | None = None
    update: UpdateResult | None = None
    error_message: str = ""
    duration_seconds: float = 0.0
    state_history: list[ProcessingState] = field(default_factory=list)
    summary: str = ""

    @property
    def status(self) -> DocumentStatus:
        return self.document.status

    @property
    def file_path(self) -> Path:
        return self.document.file_path

    @classmethod
    def failed(cls, path: Path, exc: BaseException) -> "ProcessingResult":
        """Result for a run that raised before producing its own result."""
        document = Document(file_path=Path(path), status=DocumentStatus.FAILED)
        document.add_error(exc, ProcessingState.FAILED)
        document.processed_at = datetime.now(timezone.utc)
        return cls(
            document=document,
            state=ProcessingState.FAILED,
            error_message=str(exc),
            state_history=[ProcessingState.FAILED],
        )
