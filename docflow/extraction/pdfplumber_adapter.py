import io

import pdfplumber

from docflow.database.models import DocumentRecord
from docflow.extraction.base import BaseTextExtractor
from docflow.extraction.exceptions import ExtractionError
from docflow.extraction.file_loader import FileLoader
from docflow.extraction.models import ExtractionResult


class PdfPlumberExtractor(BaseTextExtractor):
    """Reads the PDF text layer with pdfplumber.

    No recognition happens here: confidence is 1.0 when the PDF has a text
    layer and 0.0 when it does not, and the language is always the
    configured default rather than a detected one.
    """

    def __init__(self, file_loader: FileLoader, language: str) -> None:
        self._file_loader = file_loader
        self._language = language

    def extract(self, document: DocumentRecord) -> ExtractionResult:
        pdf_bytes = self._file_loader.load(document.source_ref)
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as exc:
            raise ExtractionError(f"pdfplumber extraction failed: {exc}") from exc
        text = "\n".join(pages).strip()
        # A text layer is exact; no text layer means nothing was recognised.
        return ExtractionResult(
            text=text,
            confidence=1.0 if text else 0.0,
            language=self._language,
        )
