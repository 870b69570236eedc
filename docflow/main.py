import signal
import threading
from types import FrameType

from docflow.config.settings import Settings
from docflow.database.connection import Database
from docflow.database.repositories.document_repository import DocumentRepository
from docflow.logging.logger import Log
from docflow.messaging.events import EventType
from docflow.worker.worker import build_worker


def main() -> None:
    """Entry point: open pool -> build one worker per queue -> run until stopped."""
    settings = Settings()
    Log.configure(settings.log_level)
    if settings.max_delivery_attempts > 0:
        Log.warning(
            f"MAX_DELIVERY_ATTEMPTS={settings.max_delivery_attempts} relies on the broker's "
            "x-delivery-count header; classic queues never set it, so the limit only "
            "applies on quorum queues"
        )
    database = Database(settings)
    database.open()

    stop_event = threading.Event()

    def _request_stop(signum: int, _frame: FrameType | None) -> None:
        Log.info(f"Received signal {signum}, stopping workers")
        stop_event.set()

    signal.signal(signal.SIGTERM, _request_stop)

    doc_repo = DocumentRepository(database)
    workers = [build_worker(event_type, settings, doc_repo) for event_type in EventType]
    threads = [
        threading.Thread(
            target=worker.run,
            kwargs={"stop_event": stop_event},
            name=f"consumer-{worker.event_type.value}",
            daemon=True,
        )
        for worker in workers
    ]

    try:
        for thread in threads:
            thread.start()
        while any(thread.is_alive() for thread in threads):
            for thread in threads:
                thread.join(timeout=1.0)
    except KeyboardInterrupt:
        Log.info("Interrupted, stopping workers")
        stop_event.set()
        for thread in threads:
            thread.join()
    finally:
        for worker in workers:
            worker.close()
        database.close()


if __name__ == "__main__":
    main()
