from pathlib import Path

from docflow.config.settings import Settings
from docflow.extraction.base import BaseTextExtractor
from docflow.extraction.file_loader import FileLoader
from docflow.extraction.pdfplumber_adapter import PdfPlumberExtractor
from docflow.extraction.pymupdf_adapter import PyMuPdfExtractor
from docflow.extraction.simulated_adapter import SimulatedExtractor


class TextExtractorFactory:
    """Creates the correct text extractor based on settings."""

    ENGINES = ("simulated", "pdfplumber", "pymupdf")

    @classmethod
    def create(cls, settings: Settings) -> BaseTextExtractor:
        engine = settings.extraction_engine.lower()
        if engine == "simulated":
            return SimulatedExtractor(delay_seconds=settings.extraction_simulated_delay_seconds)

        file_loader = FileLoader(Path(settings.upload_destination))
        language = settings.extraction_default_language
        if engine == "pdfplumber":
            return PdfPlumberExtractor(file_loader, language)
        if engine == "pymupdf":
            return PyMuPdfExtractor(file_loader, language)
        raise ValueError(
            f"Unknown extraction engine '{engine}'. Choose from: {list(cls.ENGINES)}"
        )
