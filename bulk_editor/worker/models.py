from dataclasses import dataclass, field

from bulk_editor.backup.models import CleanupResult
from bulk_editor.processor.models import ProcessingResult


@dataclass
class BatchResult:
    """Aggregate outcome of one batch; result order follows completion order."""

    results: list[ProcessingResult] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    total: int = 0
    session_id: str = ""
    duration_seconds: float = 0.0
    cleanup: CleanupResult | None = None

    @property
    def all_succeeded(self) -> bool:
        return self.succeeded == self.total
