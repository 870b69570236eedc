"""Structural checks on an extraction result before a document is accepted."""

import math
from dataclasses import dataclass, field

_MIN_CONFIDENCE = 0.0
_MAX_CONFIDENCE = 1.0


@dataclass(frozen=True)
class ValidationResult:
    """Tagged outcome: ok with no errors, or not ok with one message per field."""

    ok: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, errors: list[str]) -> "ValidationResult":
        return cls(ok=False, errors=list(errors))


def validate_extraction(
    text: object,
    confidence: object,
    language: object,
) -> ValidationResult:
    """Check extracted text, confidence and language against structural constraints.

    Every violated constraint contributes its own message so callers can
    join them. Never raises and performs no I/O.
    """
    errors = [
        error
        for error in (
            _check_text(text),
            _check_confidence(confidence),
            _check_language(language),
        )
        if error is not None
    ]
    if errors:
        return ValidationResult.failed(errors)
    return ValidationResult.passed()


def _check_text(text: object) -> str | None:
    if text is None:
        return "text is required"
    if not isinstance(text, str):
        return "text must be a string"
    if not text.strip():
        return "text must not be empty"
    return None


def _check_confidence(confidence: object) -> str | None:
    if confidence is None:
        return "confidence is required"
    # bool is an int subclass; True is not a confidence score.
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return "confidence must be a number"
    if math.isnan(confidence) or not _MIN_CONFIDENCE <= confidence <= _MAX_CONFIDENCE:
        return (
            f"confidence must be between {_MIN_CONFIDENCE} and {_MAX_CONFIDENCE} "
            f"(got {confidence})"
        )
    return None


def _check_language(language: object) -> str | None:
    if language is None:
        return "language is required"
    if not isinstance(language, str):
        return "language must be a string"
    if not language.strip():
        return "language must not be empty"
    return None
