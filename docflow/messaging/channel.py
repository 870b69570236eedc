from typing import Any

from kombu import Connection, Exchange, Producer, Queue
from kombu.exceptions import ContentDisallowed, DecodeError
from kombu.message import Message

from docflow.config.settings import Settings
from docflow.logging.logger import Log
from docflow.messaging.events import EventType, build_payload, parse_document_id
from docflow.pipeline.exceptions import MalformedEventError

# Publishing goes through kombu's retry loop; a broker that stays down past
# this policy surfaces as an error to the caller.
_PUBLISH_RETRY_POLICY = {
    "max_retries": 3,
    "interval_start": 0,
    "interval_step": 1,
    "interval_max": 5,
}


def build_connection(settings: Settings) -> Connection:
    """Create a broker connection. Each consumer thread needs its own."""
    return Connection(
        settings.broker_url,
        transport_options={"confirm_publish": True},
    )


class Delivery:
    """One received message that must be settled exactly once."""

    def __init__(self, event_type: EventType, message: Message) -> None:
        self.event_type = event_type
        self._message = message

    @property
    def payload(self) -> Any:
        return self._message.payload

    @property
    def document_id(self) -> str:
        """Raises MalformedEventError if the body cannot be decoded or carries no usable id."""
        try:
            payload = self.payload
        except (DecodeError, ContentDisallowed) as exc:
            raise MalformedEventError(f"Event body could not be decoded: {exc}") from exc
        return parse_document_id(payload)

    @property
    def attempt(self) -> int:
        """1-based delivery attempt, as far as the broker reports it.

        RabbitMQ quorum queues set ``x-delivery-count`` on redeliveries;
        classic queues and the in-memory transport do not, so every
        delivery there counts as the first.
        """
        headers = self._message.headers or {}
        try:
            return int(headers.get("x-delivery-count", 0)) + 1
        except (TypeError, ValueError):
            return 1

    def ack(self) -> None:
        self._message.ack()

    def requeue(self) -> None:
        """Reject and put the message back for redelivery."""
        self._message.requeue()

    def reject(self) -> None:
        """Reject without requeue; the broker dead-letters it if configured."""
        self._message.reject(requeue=False)


class EventChannel:
    """Durable per-event queues on one broker connection.

    Messages are pulled one at a time with explicit acknowledgment, so a
    consumer that settles each delivery before the next ``receive`` never
    holds more than one message in flight.
    """

    def __init__(self, connection: Connection, settings: Settings) -> None:
        self._connection = connection
        self._exchange = Exchange(settings.broker_exchange, type="direct", durable=True)
        self._queues = {
            EventType.PROCESSING: self._make_queue(settings.processing_queue),
            EventType.VALIDATION: self._make_queue(settings.validation_queue),
        }
        self._bound: dict[EventType, Queue] = {}

    def queue_name(self, event_type: EventType) -> str:
        return self._queues[event_type].name

    def publish(self, event_type: EventType, document_id: str) -> None:
        """Publish a persistent event for one document."""
        queue = self._queues[event_type]
        producer = Producer(self._connection.default_channel)
        producer.publish(
            build_payload(document_id),
            exchange=self._exchange,
            routing_key=queue.routing_key,
            declare=[queue],
            serializer="json",
            delivery_mode=2,
            retry=True,
            retry_policy=_PUBLISH_RETRY_POLICY,
        )
        Log.info(f"Published {event_type.value} event for document {document_id}")

    def receive(self, event_type: EventType) -> Delivery | None:
        """Pull the next message for an event type, or None if the queue is empty."""
        queue = self._bind(event_type)
        message = queue.get(no_ack=False, accept=["json"])
        if message is None:
            return None
        return Delivery(event_type, message)

    def reset(self) -> None:
        """Drop the broker connection after an error.

        Unsettled deliveries are returned to their queue by the broker. The
        next call reconnects lazily.
        """
        self._bound.clear()
        try:
            self._connection.close()
        except Exception as exc:
            Log.warning(f"Error while closing broker connection: {exc}")

    def close(self) -> None:
        self._bound.clear()
        self._connection.release()

    def _bind(self, event_type: EventType) -> Queue:
        bound = self._bound.get(event_type)
        if bound is None:
            bound = self._queues[event_type](self._connection.default_channel)
            bound.declare()
            self._bound[event_type] = bound
        return bound

    def _make_queue(self, name: str) -> Queue:
        return Queue(name, exchange=self._exchange, routing_key=name, durable=True)
