from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class DocumentStatus(str, Enum):
    """Lifecycle states of a document, in pipeline order."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    VALIDATED = "validated"
    FAILED = "failed"


@dataclass(frozen=True)
class DocumentRecord:
    """Represents a row from the documents table."""

    id: str
    filename: str
    source_ref: str
    status: DocumentStatus
    extracted_text: str | None = None
    extraction_confidence: float | None = None
    detected_language: str | None = None
    validation_errors: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
