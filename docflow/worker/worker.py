import threading

from docflow.config.settings import Settings
from docflow.database.repositories.document_repository import DocumentRepository
from docflow.extraction.factory import TextExtractorFactory
from docflow.logging.logger import Log
from docflow.messaging.channel import Delivery, EventChannel, build_connection
from docflow.messaging.events import EventType
from docflow.pipeline.handlers import EventHandler, ProcessingHandler, ValidationHandler
from docflow.worker.delivery_runner import DeliveryRunner


class Worker:
    """Consume loop for one queue: receive -> run -> wait when idle."""

    def __init__(
        self,
        channel: EventChannel,
        runner: DeliveryRunner,
        settings: Settings,
    ) -> None:
        self._channel = channel
        self._runner = runner
        self._settings = settings

    @property
    def event_type(self) -> EventType:
        return self._runner.event_type

    def run(
        self,
        stop_event: threading.Event | None = None,
        max_messages: int | None = None,
    ) -> None:
        """Main consume loop. Runs until stop_event is set or interrupted.

        If max_messages is set, stop after handling that many deliveries (for testing).
        """
        stop = stop_event if stop_event is not None else threading.Event()
        queue = self._channel.queue_name(self.event_type)
        Log.info(f"Worker started, consuming {queue}")
        handled = 0
        try:
            while not stop.is_set():
                if max_messages is not None and handled >= max_messages:
                    break
                delivery = self._try_receive()
                if delivery is None:
                    Log.debug(f"No messages on {queue}, waiting")
                    stop.wait(self._settings.queue_poll_interval_seconds)
                    continue
                self._try_run(delivery)
                handled += 1
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")
        Log.info(f"Worker stopped consuming {queue} after {handled} messages")

    def close(self) -> None:
        self._channel.close()

    def _try_receive(self) -> Delivery | None:
        """Pull the next delivery. Broker errors drop the connection and yield None."""
        try:
            return self._channel.receive(self.event_type)
        except Exception as exc:
            Log.warning(f"Broker error while receiving, will retry: {exc}")
            self._channel.reset()
            return None

    def _try_run(self, delivery: Delivery) -> None:
        # Handler failures are settled inside the runner; what reaches here is
        # a failed ack/requeue, after which the broker redelivers on reconnect.
        try:
            self._runner.run(delivery)
        except Exception as exc:
            Log.error(f"Could not settle {delivery.event_type.value} event: {exc}")
            self._channel.reset()


def build_worker(
    event_type: EventType,
    settings: Settings,
    doc_repo: DocumentRepository,
    channel: EventChannel | None = None,
) -> Worker:
    """Build a Worker for one event type on its own broker connection."""
    if channel is None:
        channel = EventChannel(build_connection(settings), settings)
    handler: EventHandler
    if event_type is EventType.PROCESSING:
        handler = ProcessingHandler(
            doc_repo=doc_repo,
            extractor=TextExtractorFactory.create(settings),
            channel=channel,
        )
    else:
        handler = ValidationHandler(doc_repo)
    return Worker(channel, DeliveryRunner(handler, settings), settings)
