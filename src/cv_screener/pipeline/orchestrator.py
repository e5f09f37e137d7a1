"""Pipeline orchestrator - owns the analysis job lifecycle.

PENDING -> PROCESSING -> COMPLETED | FAILED, with terminal jobs sent back to
PENDING by ``reanalyze``. ``submit`` and ``reanalyze`` both return as soon as
the job row is written; the extraction + scoring run happens in a background
asyncio task which records every outcome, including unexpected errors and
cancellation, into the job row.

Document I/O, extraction and the background run's store writes go through
``asyncio.to_thread``. Caller-facing reads and the single-row writes made by
``submit``, ``reanalyze``, ``delete`` and failure recording hit the local
SQLite file directly; each is one short indexed statement.
"""

from __future__ import annotations

import asyncio
import logging

from cv_screener.errors import (
    CVScreenerError,
    ExtractionError,
    JobNotFoundError,
    JobNotReadyError,
)
from cv_screener.models.job import (
    AnalysisJob,
    DocumentFormat,
    JobStatus,
    JobStatusView,
    JobSummary,
)
from cv_screener.parsers.document_extractor import extract_text
from cv_screener.pipeline.cv_analyzer import CVAnalyzer
from cv_screener.storage.document_store import DocumentStore
from cv_screener.storage.job_store import JobStore

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Coordinates document storage, extraction, scoring and job state."""

    def __init__(
        self,
        jobs: JobStore,
        documents: DocumentStore,
        analyzer: CVAnalyzer,
    ):
        self.jobs = jobs
        self.documents = documents
        self.analyzer = analyzer
        self._tasks: dict[str, set[asyncio.Task]] = {}

    # --- commands ---

    async def submit(
        self,
        data: bytes,
        fmt: DocumentFormat | str,
        submitter_ref: str,
        subject_refs: dict[str, str] | None = None,
        context_text: str | None = None,
        filename: str | None = None,
    ) -> AnalysisJob:
        """Store a document, create a PENDING job and start analysing it.

        Returns without waiting for the analysis.

        Raises:
            UnsupportedFormatError: ``fmt`` is not a supported document format.
        """
        if not isinstance(fmt, DocumentFormat):
            fmt = DocumentFormat.from_mime_type(fmt)

        ref = await asyncio.to_thread(self.documents.put, data, filename)
        try:
            job = self.jobs.create(
                AnalysisJob(
                    source_document_ref=ref,
                    document_format=fmt,
                    submitter_ref=submitter_ref,
                    subject_refs={k: v for k, v in (subject_refs or {}).items() if v},
                    context_text=context_text or None,
                    filename=filename,
                    file_size_bytes=len(data),
                )
            )
        except Exception:
            await asyncio.to_thread(self.documents.delete, ref)
            raise

        logger.info("CV job %s created for %s (%s)", job.id, filename or ref, fmt.value)
        self._spawn(job.id, job.attempt)
        return job

    async def reanalyze(self, job_id: str, context_text: str | None = None) -> AnalysisJob:
        """Reset a job to PENDING and run the pipeline again in the background.

        ``context_text`` replaces the stored context when given. A run still in
        flight for an earlier attempt is superseded: its writes are discarded.
        """
        job = self.jobs.reset(job_id, context_text=context_text)
        if job is None:
            raise JobNotFoundError(job_id)
        logger.info("CV job %s queued for reanalysis (attempt %d)", job_id, job.attempt)
        self._spawn(job.id, job.attempt)
        return job

    async def delete(self, job_id: str) -> None:
        job = self._get(job_id)
        if not await asyncio.to_thread(self.documents.delete, job.source_document_ref):
            logger.warning("Document %s for job %s was already gone", job.source_document_ref, job_id)
        self.jobs.delete(job_id)
        logger.info("CV job %s deleted", job_id)

    async def recover_stalled(self) -> list[str]:
        """Re-drive jobs left PENDING/PROCESSING by a previous process."""
        stalled = self.jobs.find_by_status(JobStatus.PENDING, JobStatus.PROCESSING)
        recovered = []
        for job in stalled:
            if self._tasks.get(job.id):
                continue
            await self.reanalyze(job.id)
            recovered.append(job.id)
        if recovered:
            logger.info("Re-queued %d stalled CV jobs", len(recovered))
        return recovered

    # --- queries ---

    async def status(self, job_id: str) -> JobStatusView:
        return JobStatusView.from_job(self._get(job_id))

    async def result(self, job_id: str) -> AnalysisJob:
        """Return the completed job. Raises JobNotReadyError before completion."""
        job = self._get(job_id)
        if job.status is not JobStatus.COMPLETED:
            raise JobNotReadyError(job_id, job.status.value)
        return job

    async def list_by_subject_ref(self, ref: str, kind: str | None = None) -> list[JobSummary]:
        return [JobSummary.from_job(job) for job in self.jobs.find_by_subject_ref(ref, kind)]

    async def list_all(self, limit: int = 50, offset: int = 0) -> list[JobSummary]:
        return [JobSummary.from_job(job) for job in self.jobs.find_all(limit, offset)]

    async def wait(self, job_id: str, timeout: float | None = None) -> AnalysisJob:
        """Wait for in-flight runs of a job, then return its stored state."""
        tasks = list(self._tasks.get(job_id, ()))
        if tasks:
            # A timeout stops the waiter only, never the run.
            runs = asyncio.gather(*tasks, return_exceptions=True)
            await asyncio.wait_for(asyncio.shield(runs), timeout)
        return self._get(job_id)

    async def drain(self) -> None:
        """Wait for every in-flight run to finish."""
        while self._tasks:
            tasks = [task for group in self._tasks.values() for task in group]
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- background run ---

    def _spawn(self, job_id: str, attempt: int) -> None:
        task = asyncio.create_task(self._run(job_id, attempt), name=f"cv-job-{job_id}-{attempt}")
        group = self._tasks.setdefault(job_id, set())
        group.add(task)

        def _done(t: asyncio.Task) -> None:
            group.discard(t)
            if not group and self._tasks.get(job_id) is group:
                del self._tasks[job_id]

        task.add_done_callback(_done)

    async def _run(self, job_id: str, attempt: int) -> None:
        """Extract, score and record one attempt of a job.

        Only re-raises cancellation, after recording it as a failure.
        """
        try:
            await self._process(job_id, attempt)
        except CVScreenerError as exc:
            logger.warning("CV job %s failed: %s", job_id, exc)
            self._fail(job_id, attempt, _failure_message(exc))
        except Exception as exc:
            logger.exception("CV job %s crashed", job_id)
            self._fail(job_id, attempt, f"Unexpected error during CV processing: {exc}")
        except asyncio.CancelledError:
            logger.warning("CV job %s cancelled", job_id)
            self._fail(job_id, attempt, "CV processing was cancelled")
            raise

    async def _process(self, job_id: str, attempt: int) -> None:
        if not await asyncio.to_thread(self.jobs.claim, job_id, attempt):
            logger.warning("CV job %s attempt %d superseded or removed, skipping", job_id, attempt)
            return
        job = await asyncio.to_thread(self.jobs.find_by_id, job_id)
        if job is None:
            logger.warning("CV job %s removed while processing", job_id)
            return

        logger.info("Processing CV job %s (attempt %d)", job_id, attempt)
        data = await asyncio.to_thread(self.documents.get, job.source_document_ref)
        text = await asyncio.to_thread(extract_text, data, job.document_format)
        stored = await asyncio.to_thread(self.jobs.update_extracted_text, job_id, text, attempt)
        if stored is None:
            logger.warning("CV job %s attempt %d superseded after extraction", job_id, attempt)
            return

        analysis = await self.analyzer.analyze(text, job.context_text)
        stored = await asyncio.to_thread(self.jobs.update_result, job_id, analysis, attempt)
        if stored is None:
            logger.warning("CV job %s attempt %d superseded after scoring", job_id, attempt)
            return
        logger.info("CV job %s completed. Score: %d", job_id, analysis.overall_score)

    def _fail(self, job_id: str, attempt: int, message: str) -> None:
        try:
            self.jobs.update_status(job_id, JobStatus.FAILED, message, attempt=attempt)
        except Exception:
            logger.exception("Could not record failure for CV job %s", job_id)

    def _get(self, job_id: str) -> AnalysisJob:
        job = self.jobs.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


def _failure_message(exc: CVScreenerError) -> str:
    if isinstance(exc, ExtractionError):
        return f"Text extraction failed: {exc.user_message}"
    return exc.user_message
