"""Exception hierarchy for the CV analysis pipeline.

Every error carries a ``user_message`` which is what ends up in a failed
job's ``error_message`` field.
"""

from __future__ import annotations


class CVScreenerError(Exception):
    """Base class for all pipeline errors."""

    default_message = "CV processing failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


# --- Caller errors ---


class JobNotFoundError(CVScreenerError):
    default_message = "CV record not found"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"CV record not found: {job_id}")


class JobNotReadyError(CVScreenerError):
    default_message = "CV analysis is not yet completed"

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"CV analysis is not yet completed (status: {status})")


class DocumentMissingError(CVScreenerError):
    default_message = "Stored document not found"


# --- Extraction ---


class ExtractionError(CVScreenerError):
    default_message = "Text extraction failed"


class UnsupportedFormatError(ExtractionError):
    def __init__(self, fmt: object):
        self.format = fmt
        super().__init__(f"Unsupported file type: {fmt}")


class EmptyDocumentError(ExtractionError):
    default_message = "The uploaded file is empty"


class CorruptDocumentError(ExtractionError):
    default_message = "Invalid or corrupted file"


class NoTextContentError(ExtractionError):
    default_message = (
        "No text could be extracted from the CV. "
        "The file may be empty or contain only images."
    )


# --- Scoring ---


class ScoringError(CVScreenerError):
    default_message = "CV analysis failed"


class InsufficientTextError(ScoringError):
    def __init__(self, length: int, minimum: int):
        self.length = length
        self.minimum = minimum
        super().__init__(
            f"CV text is too short for meaningful analysis "
            f"(minimum {minimum} characters, got {length})"
        )


class ScoringServiceError(ScoringError):
    default_message = "Scoring service call failed"


class ScoringAuthError(ScoringServiceError):
    default_message = (
        "Scoring service API key is invalid or expired. "
        "Please check your API configuration."
    )


class ScoringQuotaError(ScoringServiceError):
    default_message = "Scoring service quota exceeded. Please try again later."


class ScoringNetworkError(ScoringServiceError):
    default_message = (
        "Network error: unable to reach the scoring service. "
        "Please check your internet connection."
    )
