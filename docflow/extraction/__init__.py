from docflow.extraction.base import BaseTextExtractor
from docflow.extraction.factory import TextExtractorFactory
from docflow.extraction.models import ExtractionResult

__all__ = ["BaseTextExtractor", "ExtractionResult", "TextExtractorFactory"]
