from docflow.config.settings import Settings
from docflow.database.models import DocumentRecord, DocumentStatus
from docflow.database.repositories.document_repository import DocumentRepository
from docflow.logging.logger import Log
from docflow.messaging.channel import EventChannel
from docflow.messaging.events import EventType


class IntakeError(Exception):
    """Base exception for rejected uploads and operator actions."""


class UnsupportedMimeTypeError(IntakeError):
    """Raised when an upload's MIME type is not in the allowed list."""


class FileTooLargeError(IntakeError):
    """Raised when an upload exceeds the configured size limit."""


class InvalidRetryError(IntakeError):
    """Raised when a retry is requested for a document that is still in flight or done."""


_RETRYABLE_STATUSES = frozenset({DocumentStatus.UPLOADED, DocumentStatus.FAILED})


class DocumentIntake:
    """Entry side of the pipeline: registers uploads and re-publishes stuck documents.

    The HTTP layer and file storage sit outside this class; it receives the
    already-stored file's reference and metadata.
    """

    def __init__(
        self,
        doc_repo: DocumentRepository,
        channel: EventChannel,
        settings: Settings,
    ) -> None:
        self._doc_repo = doc_repo
        self._channel = channel
        self._allowed_mime_types = frozenset(settings.allowed_mime_types)
        self._max_file_size = settings.max_file_size

    def register(
        self,
        filename: str,
        source_ref: str,
        mime_type: str,
        size_bytes: int,
    ) -> DocumentRecord:
        """Validate an upload, persist it as UPLOADED and request processing.

        Raises:
            UnsupportedMimeTypeError: if mime_type is not allowed.
            FileTooLargeError: if size_bytes exceeds the limit.
            IntakeError: if the processing event cannot be published. The
                record stays UPLOADED and can be picked up with retry().
        """
        if mime_type not in self._allowed_mime_types:
            raise UnsupportedMimeTypeError(
                f"File type {mime_type} is not supported. "
                f"Allowed types: {', '.join(sorted(self._allowed_mime_types))}"
            )
        if size_bytes > self._max_file_size:
            max_size_mb = round(self._max_file_size / (1024 * 1024))
            raise FileTooLargeError(f"File size exceeds {max_size_mb}MB limit")

        document = self._doc_repo.create(filename=filename, source_ref=source_ref)
        Log.info(f"Registered document {document.id} ({filename})")
        self._request_processing(document)
        return document

    def retry(self, document_id: str) -> DocumentRecord:
        """Publish a fresh processing event for a FAILED or never-started document.

        Raises:
            DocumentNotFoundError: if the record does not exist.
            InvalidRetryError: if the document is PROCESSING or VALIDATED.
            IntakeError: if the event cannot be published.
        """
        document = self._doc_repo.find_by_id(document_id)
        if document.status not in _RETRYABLE_STATUSES:
            raise InvalidRetryError(
                f"Document {document_id} is {document.status.value}; "
                "only uploaded or failed documents can be retried"
            )
        self._request_processing(document)
        Log.info(f"Retry requested for document {document.id}")
        return document

    def list_documents(self) -> list[DocumentRecord]:
        return self._doc_repo.list_all()

    def delete(self, document_id: str) -> None:
        self._doc_repo.delete(document_id)
        Log.info(f"Deleted document {document_id}")

    def _request_processing(self, document: DocumentRecord) -> None:
        try:
            self._channel.publish(EventType.PROCESSING, document.id)
        except Exception as exc:
            Log.error(f"Failed to publish processing event for document {document.id}: {exc}")
            raise IntakeError(
                f"Document {document.id} saved but processing could not be requested"
            ) from exc
