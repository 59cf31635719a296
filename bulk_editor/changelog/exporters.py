"""Structured export of processing results.

JSON and CSV are implemented. Excel and XML are recognised names but are
not supported and raise UnsupportedFormatError.
"""

import csv
import io
import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from bulk_editor.changelog.models import ChangeEntry
from bulk_editor.processor.exceptions import UnsupportedFormatError
from bulk_editor.processor.models import ProcessingResult

UNSUPPORTED_FORMATS = frozenset({"excel", "xlsx", "xml"})


def change_record(entry: ChangeEntry) -> dict[str, str]:
    return {
        "id": entry.id,
        "type": entry.change_type.value,
        "description": entry.description,
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "element_id": entry.element_id,
        "details": entry.details,
        "timestamp": entry.timestamp.isoformat(),
    }


def result_record(result: ProcessingResult) -> dict[str, object]:
    document = result.document
    return {
        "file_path": str(document.file_path),
        "file_name": document.file_name,
        "status": document.status.value,
        "state": result.state.value,
        "success": result.success,
        "rolled_back": result.rolled_back,
        "cancelled": result.cancelled,
        "error_message": result.error_message,
        "duration_seconds": round(result.duration_seconds, 3),
        "backup_path": str(document.backup.backup_path) if document.backup else "",
        "summary": result.summary or document.change_log.summary(document.file_name),
        "errors": [
            {"type": error.error_type, "message": error.message, "state": error.state.value}
            for error in document.errors
        ],
        "changes": [change_record(entry) for entry in document.change_log],
    }


class BaseExporter(ABC):
    """Turns a sequence of processing results into one export document."""

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """File extension without the dot."""

    @property
    @abstractmethod
    def mime_type(self) -> str:
        """MIME type of the exported content."""

    @abstractmethod
    def export(self, results: Sequence[ProcessingResult]) -> str:
        raise NotImplementedError

    def export_to_file(self, results: Sequence[ProcessingResult], path: Path | str) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.export(results), encoding="utf-8", newline="")
        return target

    def get_filename(self, base_name: str = "changes") -> str:
        return f"{base_name}.{self.file_extension}"


class JsonExporter(BaseExporter):
    @property
    def file_extension(self) -> str:
        return "json"

    @property
    def mime_type(self) -> str:
        return "application/json"

    def export(self, results: Sequence[ProcessingResult]) -> str:
        payload = {
            "total": len(results),
            "succeeded": sum(1 for result in results if result.success),
            "documents": [result_record(result) for result in results],
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)


class CsvExporter(BaseExporter):
    """One row per change entry; documents without changes get a single row."""

    COLUMNS = (
        "file_name",
        "status",
        "change_type",
        "description",
        "old_value",
        "new_value",
        "element_id",
        "details",
        "timestamp",
        "error_message",
    )

    @property
    def file_extension(self) -> str:
        return "csv"

    @property
    def mime_type(self) -> str:
        return "text/csv"

    def export(self, results: Sequence[ProcessingResult]) -> str:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=self.COLUMNS, lineterminator="\n")
        writer.writeheader()
        for result in results:
            base = {
                "file_name": result.document.file_name,
                "status": result.document.status.value,
                "error_message": result.error_message,
            }
            entries = result.document.change_log.entries
            if not entries:
                writer.writerow(base)
                continue
            for entry in entries:
                writer.writerow(
                    {
                        **base,
                        "change_type": entry.change_type.value,
                        "description": entry.description,
                        "old_value": entry.old_value,
                        "new_value": entry.new_value,
                        "element_id": entry.element_id,
                        "details": entry.details,
                        "timestamp": entry.timestamp.isoformat(),
                    }
                )
        return output.getvalue()


def get_exporter(format_name: str) -> BaseExporter:
    """Exporter for a format name or file suffix (``json``, ``.csv``).

    Raises:
        UnsupportedFormatError: for Excel, XML and unknown formats.
    """
    normalized = format_name.strip().lower().lstrip(".")
    if normalized == "json":
        return JsonExporter()
    if normalized == "csv":
        return CsvExporter()
    if normalized in UNSUPPORTED_FORMATS:
        raise UnsupportedFormatError(f"Export format '{format_name}' is not supported")
    raise UnsupportedFormatError(f"Unknown export format '{format_name}' is not supported")
