import io
import uuid
from collections.abc import Callable

import pytest
from kombu import Connection, Exchange, Producer, Queue
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from docflow.config.settings import Settings


@pytest.fixture()
def memory_settings() -> Settings:
    """Settings pointing at kombu's in-process broker with per-test queue names."""
    suffix = uuid.uuid4().hex[:8]
    return Settings(
        broker_url="memory://",
        broker_exchange=f"documents-{suffix}",
        processing_queue=f"document_processing-{suffix}",
        validation_queue=f"document_validation-{suffix}",
        queue_poll_interval_seconds=0.01,
        extraction_engine="simulated",
        extraction_simulated_delay_seconds=0,
    )


@pytest.fixture()
def publish_raw(memory_settings: Settings) -> Callable[[str, str, str], None]:
    """Publish a body as-is, bypassing the JSON serializer, onto a memory queue."""

    def _publish(queue_name: str, body: str, content_type: str) -> None:
        exchange = Exchange(memory_settings.broker_exchange, type="direct", durable=True)
        queue = Queue(queue_name, exchange=exchange, routing_key=queue_name, durable=True)
        with Connection("memory://") as conn:
            Producer(conn.default_channel).publish(
                body,
                exchange=exchange,
                routing_key=queue_name,
                declare=[queue],
                content_type=content_type,
                content_encoding="utf-8",
            )

    return _publish


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Invoice #123")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page PDF with known text on each page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Page one content")
    c.showPage()
    c.drawString(72, 720, "Page two content")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Generate a valid PDF with no text layer (blank page)."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.showPage()
    c.save()
    return buf.getvalue()
