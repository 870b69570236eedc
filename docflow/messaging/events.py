from enum import Enum
from typing import Any

from docflow.pipeline.exceptions import MalformedEventError


class EventType(str, Enum):
    """The two lifecycle events that drive the pipeline."""

    PROCESSING = "document_processing"
    VALIDATION = "document_validation"


def build_payload(document_id: str) -> dict[str, str]:
    return {"documentId": document_id}


def parse_document_id(payload: Any) -> str:
    """Pull the document id out of an event body.

    Accepts the bare ``{"documentId": ...}`` body and the NestJS RMQ envelope
    ``{"pattern": ..., "data": {"documentId": ...}}`` used by the upload service.

    Raises:
        MalformedEventError: if no non-empty string id is present.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        raise MalformedEventError(f"Event body must be an object, got {type(payload).__name__}")
    document_id = payload.get("documentId")
    if not isinstance(document_id, str) or not document_id.strip():
        raise MalformedEventError(f"Event body has no usable documentId: {payload!r}")
    return document_id
