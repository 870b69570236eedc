import pymupdf

from docflow.database.models import DocumentRecord
from docflow.extraction.base import BaseTextExtractor
from docflow.extraction.exceptions import ExtractionError
from docflow.extraction.file_loader import FileLoader
from docflow.extraction.models import ExtractionResult


class PyMuPdfExtractor(BaseTextExtractor):
    """Reads the PDF text layer with PyMuPDF.

    Same result contract as PdfPlumberExtractor: confidence is 1.0 or 0.0
    depending on whether any text was found, and the language is the
    configured default, not a detected one.
    """

    def __init__(self, file_loader: FileLoader, language: str) -> None:
        self._file_loader = file_loader
        self._language = language

    def extract(self, document: DocumentRecord) -> ExtractionResult:
        pdf_bytes = self._file_loader.load(document.source_ref)
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                pages = [page.get_text() for page in doc]
        except Exception as exc:
            raise ExtractionError(f"pymupdf extraction failed: {exc}") from exc
        text = "\n".join(pages).strip()
        return ExtractionResult(
            text=text,
            confidence=1.0 if text else 0.0,
            language=self._language,
        )
