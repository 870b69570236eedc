class ExtractionError(Exception):
    """Raised when text extraction fails. Retryable from the pipeline's view."""


class FileReadError(ExtractionError):
    """Raised when a document's source file cannot be read."""
