from abc import ABC, abstractmethod
from typing import ClassVar

from docflow.database.models import DocumentRecord
from docflow.database.repositories.document_repository import DocumentRepository
from docflow.extraction.base import BaseTextExtractor
from docflow.logging.logger import Log
from docflow.messaging.channel import EventChannel
from docflow.messaging.events import EventType
from docflow.validation.validator import validate_extraction

VALIDATION_ERROR_SEPARATOR = ","


class EventHandler(ABC):
    """Advances one document's lifecycle in response to one event.

    Handlers only perform store writes and follow-on publishes. Settling the
    delivery (ack, requeue, reject) is left to the caller, which does it
    after ``handle`` returns or raises.
    """

    event_type: ClassVar[EventType]

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    @abstractmethod
    def handle(self, document_id: str) -> DocumentRecord:
        """Run the stage for a document and return the record as persisted.

        Raises:
            DocumentNotFoundError: if the record does not exist.
            Exception: any other failure; the event should be retried.
        """

    def abandon(self, document_id: str, reason: str) -> DocumentRecord:
        """Give up on a document after repeated failures and mark it FAILED."""
        Log.error(f"Abandoning document {document_id}: {reason}")
        return self._doc_repo.mark_failed(document_id, reason)


class ProcessingHandler(EventHandler):
    """UPLOADED -> PROCESSING -> extraction -> provisional VALIDATED."""

    event_type = EventType.PROCESSING

    def __init__(
        self,
        doc_repo: DocumentRepository,
        extractor: BaseTextExtractor,
        channel: EventChannel,
    ) -> None:
        super().__init__(doc_repo)
        self._extractor = extractor
        self._channel = channel

    def handle(self, document_id: str) -> DocumentRecord:
        Log.info(f"Processing document {document_id}")

        document = self._doc_repo.find_by_id(document_id)
        self._doc_repo.mark_processing(document.id)

        result = self._extractor.extract(document)
        Log.info(
            f"Extracted {len(result.text)} chars from document {document.id} "
            f"(confidence={result.confidence}, language={result.language})"
        )

        # Status stays provisional until the validation event is handled.
        updated = self._doc_repo.save_extraction(document.id, result)

        # Publish only after the write above is committed.
        self._channel.publish(EventType.VALIDATION, document.id)
        Log.info(f"Document {document.id} processed, validation requested")
        return updated


class ValidationHandler(EventHandler):
    """Checks the stored extraction result and records VALIDATED or FAILED."""

    event_type = EventType.VALIDATION

    def handle(self, document_id: str) -> DocumentRecord:
        Log.info(f"Validating document {document_id}")

        document = self._doc_repo.find_by_id(document_id)
        outcome = validate_extraction(
            document.extracted_text,
            document.extraction_confidence,
            document.detected_language,
        )

        if outcome.ok:
            updated = self._doc_repo.mark_validated(document.id)
            Log.info(f"Document {document.id} validated successfully")
            return updated

        errors = VALIDATION_ERROR_SEPARATOR.join(outcome.errors)
        updated = self._doc_repo.mark_failed(document.id, errors)
        Log.warning(f"Document {document.id} validation failed: {errors}")
        return updated
