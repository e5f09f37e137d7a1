"""Analysis job record, lifecycle states and caller-facing views."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from cv_screener.errors import UnsupportedFormatError
from cv_screener.models.analysis import AnalysisResult


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentFormat(str, Enum):
    PLAIN_TEXT = "text/plain"
    PDF = "application/pdf"
    DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    DOC = "application/msword"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> DocumentFormat:
        """Resolve a MIME type; any ``text/*`` type is read as plain text."""
        base = (mime_type or "").split(";", 1)[0].strip().lower()
        if base.startswith("text/"):
            return cls.PLAIN_TEXT
        try:
            return cls(base)
        except ValueError:
            raise UnsupportedFormatError(mime_type) from None


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class AnalysisJob(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_document_ref: str
    document_format: DocumentFormat
    submitter_ref: str
    subject_refs: dict[str, str] = {}  # e.g. {"candidate": ..., "application": ...}
    context_text: str | None = None
    filename: str | None = None
    file_size_bytes: int = 0

    status: JobStatus = JobStatus.PENDING
    attempt: int = 1
    extracted_text: str | None = None
    result: AnalysisResult | None = None
    score: int | None = None
    error_message: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None


class JobStatusView(BaseModel):
    job_id: str
    status: JobStatus
    created_at: datetime
    processed_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def from_job(cls, job: AnalysisJob) -> JobStatusView:
        return cls(
            job_id=job.id,
            status=job.status,
            created_at=job.created_at,
            processed_at=job.processed_at,
            error_message=job.error_message,
        )


class JobSummary(BaseModel):
    job_id: str
    filename: str | None = None
    status: JobStatus
    score: int | None = None
    subject_refs: dict[str, str] = {}
    created_at: datetime
    processed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: AnalysisJob) -> JobSummary:
        return cls(
            job_id=job.id,
            filename=job.filename,
            status=job.status,
            score=job.score,
            subject_refs=dict(job.subject_refs),
            created_at=job.created_at,
            processed_at=job.processed_at,
        )
