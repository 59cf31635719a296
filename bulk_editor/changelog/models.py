import threading
import uuid
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ChangeType(str, Enum):
    INFORMATION = "Information"
    HYPERLINK_UPDATED = "HyperlinkUpdated"
    HYPERLINK_REMOVED = "HyperlinkRemoved"
    CONTENT_ID_ADDED = "ContentIdAdded"
    HYPERLINK_STATUS_ADDED = "HyperlinkStatusAdded"
    TITLE_CHANGED = "TitleChanged"
    TITLE_REPLACED = "TitleReplaced"
    POSSIBLE_TITLE_CHANGE = "PossibleTitleChange"
    TEXT_REPLACED = "TextReplaced"
    TEXT_OPTIMIZED = "TextOptimized"
    ERROR = "Error"
    WARNING = "Warning"


@dataclass(frozen=True)
class ChangeEntry:
    change_type: ChangeType
    description: str
    old_value: str = ""
    new_value: str = ""
    element_id: str = ""
    details: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


# Summary phrase per change type, in the order they are reported.
_SUMMARY_LABELS: tuple[tuple[ChangeType, str], ...] = (
    (ChangeType.HYPERLINK_UPDATED, "hyperlinks updated"),
    (ChangeType.HYPERLINK_REMOVED, "invisible hyperlinks deleted"),
    (ChangeType.CONTENT_ID_ADDED, "content IDs added"),
    (ChangeType.TITLE_REPLACED, "titles replaced"),
    (ChangeType.TITLE_CHANGED, "titles changed"),
    (ChangeType.POSSIBLE_TITLE_CHANGE, "possible title changes"),
    (ChangeType.HYPERLINK_STATUS_ADDED, "status suffixes added"),
    (ChangeType.TEXT_REPLACED, "text replacements"),
    (ChangeType.TEXT_OPTIMIZED, "text optimizations"),
    (ChangeType.WARNING, "warnings"),
    (ChangeType.ERROR, "errors"),
)


class ChangeLog:
    """Append-only record of the changes made to one document."""

    def __init__(self, entries: Iterable[ChangeEntry] = ()) -> None:
        self._entries: list[ChangeEntry] = list(entries)
        self._lock = threading.Lock()
        self.created_at = datetime.now(timezone.utc)

    def add(self, entry: ChangeEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def extend(self, entries: Iterable[ChangeEntry]) -> None:
        with self._lock:
            self._entries.extend(entries)

    def record(self, change_type: ChangeType, description: str, **fields: str) -> ChangeEntry:
        entry = ChangeEntry(change_type=change_type, description=description, **fields)
        self.add(entry)
        return entry

    @property
    def entries(self) -> tuple[ChangeEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def __iter__(self) -> Iterator[ChangeEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def has_errors(self) -> bool:
        return any(entry.change_type is ChangeType.ERROR for entry in self.entries)

    def counts(self) -> dict[ChangeType, int]:
        return dict(Counter(entry.change_type for entry in self.entries))

    def summary(self, file_name: str) -> str:
        counts = self.counts()
        parts = [
            f"{counts[change_type]} {label}"
            for change_type, label in _SUMMARY_LABELS
            if counts.get(change_type)
        ]
        if not parts:
            return f"Processed {file_name}: no changes required"
        return f"Processed {file_name}: {', '.join(parts)}"
