"""End-to-end pipeline runs over kombu's in-memory broker and a dict-backed store."""

import uuid
from collections.abc import Callable, Generator
from dataclasses import replace
from unittest.mock import patch

import pytest
from kombu import Connection

from docflow.config.settings import Settings
from docflow.database.models import DocumentRecord, DocumentStatus
from docflow.extraction.base import BaseTextExtractor
from docflow.extraction.models import ExtractionResult
from docflow.messaging.channel import EventChannel
from docflow.messaging.events import EventType
from docflow.pipeline.exceptions import DocumentNotFoundError, StoreUnavailableError
from docflow.pipeline.handlers import ProcessingHandler, ValidationHandler
from docflow.worker.delivery_runner import DeliveryRunner
from docflow.worker.worker import Worker


class InMemoryDocumentRepository:
    """Stands in for DocumentRepository; every write is recorded."""

    def __init__(self) -> None:
        self.records: dict[str, DocumentRecord] = {}
        self.writes: list[tuple[str, str]] = []
        self.unavailable = False

    def add(self, **fields: object) -> DocumentRecord:
        record = DocumentRecord(
            id=str(uuid.uuid4()),
            filename="invoice.pdf",
            source_ref="invoice.pdf",
            status=DocumentStatus.UPLOADED,
        )
        record = replace(record, **fields)
        self.records[record.id] = record
        return record

    def find_by_id(self, document_id: str) -> DocumentRecord:
        self._check_available()
        if document_id not in self.records:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return self.records[document_id]

    def mark_processing(self, document_id: str) -> DocumentRecord:
        return self._write(
            document_id, "processing", status=DocumentStatus.PROCESSING, validation_errors=None
        )

    def save_extraction(self, document_id: str, result: ExtractionResult) -> DocumentRecord:
        return self._write(
            document_id,
            "save_extraction",
            extracted_text=result.text,
            extraction_confidence=result.confidence,
            detected_language=result.language,
            status=DocumentStatus.VALIDATED,
            validation_errors=None,
        )

    def mark_validated(self, document_id: str) -> DocumentRecord:
        return self._write(
            document_id, "validated", status=DocumentStatus.VALIDATED, validation_errors=None
        )

    def mark_failed(self, document_id: str, errors: str) -> DocumentRecord:
        return self._write(
            document_id, "failed", status=DocumentStatus.FAILED, validation_errors=errors
        )

    def _write(self, document_id: str, name: str, **fields: object) -> DocumentRecord:
        self._check_available()
        if document_id not in self.records:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        self.records[document_id] = replace(self.records[document_id], **fields)
        self.writes.append((name, document_id))
        return self.records[document_id]

    def _check_available(self) -> None:
        if self.unavailable:
            raise StoreUnavailableError("store unreachable")


class InvoiceExtractor(BaseTextExtractor):
    def extract(self, document: DocumentRecord) -> ExtractionResult:
        return ExtractionResult(text="Invoice #123", confidence=0.98, language="en")


@pytest.fixture()
def channel(memory_settings: Settings) -> Generator[EventChannel, None, None]:
    ch = EventChannel(Connection("memory://"), memory_settings)
    yield ch
    ch.close()


@pytest.fixture()
def repo() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


def _processing_worker(
    repo: InMemoryDocumentRepository, channel: EventChannel, settings: Settings
) -> Worker:
    handler = ProcessingHandler(doc_repo=repo, extractor=InvoiceExtractor(), channel=channel)  # type: ignore[arg-type]
    return Worker(channel, DeliveryRunner(handler, settings), settings)


def _validation_worker(
    repo: InMemoryDocumentRepository, channel: EventChannel, settings: Settings
) -> Worker:
    handler = ValidationHandler(repo)  # type: ignore[arg-type]
    return Worker(channel, DeliveryRunner(handler, settings), settings)


def _drain(channel: EventChannel, event_type: EventType) -> list[str]:
    """Ack and return the document ids of every message left on a queue."""
    ids: list[str] = []
    while (delivery := channel.receive(event_type)) is not None:
        ids.append(delivery.document_id)
        delivery.ack()
    return ids


class TestHappyPath:
    def test_upload_to_validated(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add()
        channel.publish(EventType.PROCESSING, document.id)

        _processing_worker(repo, channel, memory_settings).run(max_messages=1)

        provisional = repo.records[document.id]
        assert provisional.status is DocumentStatus.VALIDATED
        assert provisional.extracted_text == "Invoice #123"
        assert provisional.extraction_confidence == 0.98
        assert provisional.detected_language == "en"

        _validation_worker(repo, channel, memory_settings).run(max_messages=1)

        final = repo.records[document.id]
        assert final.status is DocumentStatus.VALIDATED
        assert final.validation_errors is None
        assert _drain(channel, EventType.PROCESSING) == []
        assert _drain(channel, EventType.VALIDATION) == []

    def test_processing_publishes_exactly_one_validation_event(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add()
        channel.publish(EventType.PROCESSING, document.id)

        _processing_worker(repo, channel, memory_settings).run(max_messages=1)

        assert _drain(channel, EventType.VALIDATION) == [document.id]
        assert repo.writes == [("processing", document.id), ("save_extraction", document.id)]


class TestValidationOutcomes:
    def test_missing_text_fails_with_message(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add(
            status=DocumentStatus.VALIDATED, extraction_confidence=0.9, detected_language="en"
        )
        channel.publish(EventType.VALIDATION, document.id)

        _validation_worker(repo, channel, memory_settings).run(max_messages=1)

        final = repo.records[document.id]
        assert final.status is DocumentStatus.FAILED
        assert final.validation_errors is not None
        assert "text" in final.validation_errors
        # Failing validation is a completed pipeline run, so the event is acked.
        assert _drain(channel, EventType.VALIDATION) == []


class TestNotFound:
    def test_unknown_document_is_acked_without_writes(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        channel.publish(EventType.PROCESSING, str(uuid.uuid4()))

        _processing_worker(repo, channel, memory_settings).run(max_messages=1)

        assert repo.writes == []
        assert _drain(channel, EventType.PROCESSING) == []
        assert _drain(channel, EventType.VALIDATION) == []


class TestUndecodableEvents:
    def test_non_json_body_is_rejected_and_consumption_continues(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
        publish_raw: Callable[[str, str, str], None],
    ) -> None:
        publish_raw(memory_settings.processing_queue, "{not json", "application/json")
        doc = repo.add()
        channel.publish(EventType.PROCESSING, doc.id)

        with patch.object(channel, "reset") as mock_reset:
            _processing_worker(repo, channel, memory_settings).run(max_messages=2)

        mock_reset.assert_not_called()
        assert repo.records[doc.id].status is DocumentStatus.VALIDATED
        assert _drain(channel, EventType.PROCESSING) == []
        assert _drain(channel, EventType.VALIDATION) == [doc.id]


class TestInfrastructureErrors:
    def test_processing_requeues_and_leaves_status(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add()
        repo.unavailable = True
        channel.publish(EventType.PROCESSING, document.id)

        _processing_worker(repo, channel, memory_settings).run(max_messages=1)

        assert repo.records[document.id].status is DocumentStatus.UPLOADED
        assert _drain(channel, EventType.PROCESSING) == [document.id]

    def test_validation_requeues_and_leaves_status(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add(status=DocumentStatus.VALIDATED, extracted_text="x")
        repo.unavailable = True
        channel.publish(EventType.VALIDATION, document.id)

        _validation_worker(repo, channel, memory_settings).run(max_messages=1)

        assert repo.records[document.id].status is DocumentStatus.VALIDATED
        assert _drain(channel, EventType.VALIDATION) == [document.id]

    def test_requeued_event_succeeds_once_store_recovers(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add()
        repo.unavailable = True
        channel.publish(EventType.PROCESSING, document.id)
        worker = _processing_worker(repo, channel, memory_settings)

        worker.run(max_messages=1)
        repo.unavailable = False
        worker.run(max_messages=1)

        assert repo.records[document.id].status is DocumentStatus.VALIDATED
        assert _drain(channel, EventType.VALIDATION) == [document.id]


class TestRedelivery:
    def test_duplicate_processing_event_is_idempotent(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add()
        channel.publish(EventType.PROCESSING, document.id)
        worker = _processing_worker(repo, channel, memory_settings)
        worker.run(max_messages=1)
        after_first = repo.records[document.id]

        channel.publish(EventType.PROCESSING, document.id)
        worker.run(max_messages=1)

        after_second = repo.records[document.id]
        assert after_second == after_first
        # One validation event per processing run; the duplicate is expected.
        assert _drain(channel, EventType.VALIDATION) == [document.id, document.id]

    def test_duplicate_validation_events_converge(
        self,
        repo: InMemoryDocumentRepository,
        channel: EventChannel,
        memory_settings: Settings,
    ) -> None:
        document = repo.add()
        channel.publish(EventType.PROCESSING, document.id)
        channel.publish(EventType.PROCESSING, document.id)
        _processing_worker(repo, channel, memory_settings).run(max_messages=2)

        _validation_worker(repo, channel, memory_settings).run(max_messages=2)

        final = repo.records[document.id]
        assert final.status is DocumentStatus.VALIDATED
        assert final.validation_errors is None
