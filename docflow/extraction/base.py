from abc import ABC, abstractmethod

from docflow.database.models import DocumentRecord
from docflow.extraction.models import ExtractionResult


class BaseTextExtractor(ABC):
    """Contract for all text-extraction adapters."""

    @abstractmethod
    def extract(self, document: DocumentRecord) -> ExtractionResult:
        """Extract text, a confidence score and a language code for a document.

        Args:
            document: The record being processed; adapters use its source_ref.

        Returns:
            ExtractionResult with all three fields populated.

        Raises:
            ExtractionError: if extraction fails for any reason.
        """
