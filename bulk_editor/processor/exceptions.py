class BulkEditorError(Exception):
    """Base exception for all document processing errors."""


class DocumentValidationError(BulkEditorError):
    """Raised when a document fails pre-processing validation."""


class StorageIntegrityError(BulkEditorError):
    """Raised when a content hash does not match after a copy."""


class BackupError(BulkEditorError):
    """Raised when a backup cannot be created or read."""


class CommunicationError(BulkEditorError):
    """Raised when the metadata service call fails (timeout, status, malformed body)."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        status_code: int | None = None,
        response_body: str = "",
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_body = response_body


class RetryExhaustedError(CommunicationError):
    """Raised when every retry attempt of a communication call has failed."""

    def __init__(self, message: str, last_error: CommunicationError) -> None:
        super().__init__(
            message,
            endpoint=last_error.endpoint,
            status_code=last_error.status_code,
            response_body=last_error.response_body,
        )
        self.last_error = last_error


class ContentError(BulkEditorError):
    """Raised when document XML cannot be read or rewritten."""


class CancellationError(BulkEditorError):
    """Raised when cooperative cancellation is observed."""


class DocumentTimeoutError(BulkEditorError):
    """Raised when a document exceeds its processing time budget."""


class RuleValidationError(BulkEditorError):
    """Raised when a replacement rule is rejected."""


class UnsupportedFormatError(BulkEditorError):
    """Raised when an export format is not implemented."""
