import time

from docflow.database.models import DocumentRecord
from docflow.extraction.base import BaseTextExtractor
from docflow.extraction.models import ExtractionResult


class SimulatedExtractor(BaseTextExtractor):
    """Development stand-in for OCR: waits, then returns a fixed result."""

    TEXT = "This is a simulated OCR result."
    CONFIDENCE = 0.98
    LANGUAGE = "en"

    def __init__(self, delay_seconds: float = 0.5) -> None:
        self._delay_seconds = delay_seconds

    def extract(self, document: DocumentRecord) -> ExtractionResult:
        if self._delay_seconds > 0:
            time.sleep(self._delay_seconds)
        return ExtractionResult(
            text=self.TEXT,
            confidence=self.CONFIDENCE,
            language=self.LANGUAGE,
        )
