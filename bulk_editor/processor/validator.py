from pathlib import Path

from bulk_editor.config.context import ProcessingContext
from bulk_editor.docx.package import DocxPackage
from bulk_editor.processor.exceptions import DocumentValidationError


class DocumentValidator:
    """Checks path, extension, size and package structure before any backup."""

    def __init__(self, context: ProcessingContext) -> None:
        self._log = context.log
        self._extensions = {ext.lower() for ext in context.settings.supported_extensions}
        self._max_size = context.settings.max_file_size_bytes

    def is_supported(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def validate(self, path: Path | str) -> DocxPackage:
        """Return the opened package.

        Raises:
            DocumentValidationError: on any failed check.
        """
        path = Path(path)
        if not path.exists():
            raise DocumentValidationError(f"File not found: {path}")
        if not path.is_file():
            raise DocumentValidationError(f"Not a file: {path}")
        if not self.is_supported(path):
            raise DocumentValidationError(
                f"Unsupported file type '{path.suffix}' for {path.name}; "
                f"expected one of {', '.join(sorted(self._extensions))}"
            )
        size = path.stat().st_size
        if size == 0:
            raise DocumentValidationError(f"{path.name} is empty")
        if size > self._max_size:
            raise DocumentValidationError(
                f"{path.name} is {size} bytes, over the {self._max_size} byte limit"
            )
        package = DocxPackage.open(path)
        self._log.debug(f"Validated {path.name} ({size} bytes, main part {package.main_part_name})")
        return package
