from dataclasses import dataclass


@dataclass(frozen=True)
class ExtractionResult:
    """Output of a text-extraction call."""

    text: str
    confidence: float
    language: str
