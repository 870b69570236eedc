from docflow.config.settings import Settings
from docflow.logging.logger import Log
from docflow.messaging.channel import Delivery
from docflow.messaging.events import EventType
from docflow.pipeline.exceptions import DocumentNotFoundError, MalformedEventError
from docflow.pipeline.handlers import EventHandler


class DeliveryRunner:
    """Run one delivery through its handler, then ack, requeue or reject it.

    The delivery is settled only after the handler has returned or raised,
    so an ack always follows the handler's committed writes.
    """

    def __init__(self, handler: EventHandler, settings: Settings) -> None:
        self._handler = handler
        self._settings = settings

    @property
    def event_type(self) -> EventType:
        return self._handler.event_type

    def run(self, delivery: Delivery) -> None:
        """Handle a single delivery with error handling."""
        event = delivery.event_type.value
        try:
            document_id = delivery.document_id
        except MalformedEventError as exc:
            Log.error(f"Rejecting malformed {event} event: {exc}")
            delivery.reject()
            return

        Log.info(f"Running {event} event for document {document_id} (attempt {delivery.attempt})")
        try:
            self._handler.handle(document_id)
        except DocumentNotFoundError:
            Log.warning(f"Document {document_id} not found, acknowledging {event} event")
            delivery.ack()
            return
        except Exception as exc:
            self._handle_failure(delivery, document_id, exc)
            return

        delivery.ack()
        Log.info(f"Acknowledged {event} event for document {document_id}")

    def _handle_failure(self, delivery: Delivery, document_id: str, exc: Exception) -> None:
        """Requeue, unless a delivery ceiling is configured and has been reached."""
        event = delivery.event_type.value
        Log.error(f"{event} event for document {document_id} failed: {exc}", exc_info=True)
        limit = self._settings.max_delivery_attempts
        if limit > 0 and delivery.attempt >= limit:
            self._abandon(delivery, document_id, exc)
            return
        delivery.requeue()
        Log.warning(f"Requeued {event} event for document {document_id}")

    def _abandon(self, delivery: Delivery, document_id: str, exc: Exception) -> None:
        reason = f"Processing abandoned after {delivery.attempt} attempts: {exc}"
        try:
            self._handler.abandon(document_id, reason)
        except DocumentNotFoundError:
            Log.warning(f"Document {document_id} vanished before it could be abandoned")
            delivery.ack()
            return
        except Exception as mark_exc:
            Log.error(f"Could not mark document {document_id} as failed: {mark_exc}")
            delivery.requeue()
            return
        delivery.reject()
        Log.error(f"Rejected {delivery.event_type.value} event for document {document_id}")
