"""SQLite-backed persistence for analysis jobs."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from cv_screener.models.analysis import AnalysisResult
from cv_screener.models.job import AnalysisJob, DocumentFormat, JobStatus, utcnow

DEFAULT_DB_PATH = Path.home() / ".cv-screener" / "jobs.db"

DEFAULT_FAILURE_MESSAGE = "Unknown error during CV processing"

_JOB_COLUMNS = (
    "id, source_document_ref, document_format, submitter_ref, context_text, "
    "filename, file_size_bytes, status, attempt, extracted_text, result_json, "
    "score, error_message, created_at, updated_at, processed_at"
)


class JobStore:
    """SQLite store for AnalysisJob records with WAL mode.

    Every mutating method accepts an optional ``attempt``. When given, the
    write only applies if the row is still on that attempt, so a run that has
    been superseded by a reanalysis cannot overwrite the newer run's state.
    Those methods return the updated job, or None when nothing was written.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS analysis_jobs (
                    id TEXT PRIMARY KEY,
                    source_document_ref TEXT NOT NULL,
                    document_format TEXT NOT NULL,
                    submitter_ref TEXT NOT NULL,
                    context_text TEXT,
                    filename TEXT,
                    file_size_bytes INTEGER NOT NULL DEFAULT 0,
                    status TEXT NOT NULL,
                    attempt INTEGER NOT NULL DEFAULT 1,
                    extracted_text TEXT,
                    result_json TEXT,
                    score INTEGER,
                    error_message TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    processed_at TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS job_subject_refs (
                    job_id TEXT NOT NULL REFERENCES analysis_jobs(id) ON DELETE CASCADE,
                    kind TEXT NOT NULL,
                    ref TEXT NOT NULL,
                    PRIMARY KEY (job_id, kind)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status ON analysis_jobs(status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_created ON analysis_jobs(created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_subject_ref ON job_subject_refs(ref)")

    # --- create / read ---

    def create(self, job: AnalysisJob) -> AnalysisJob:
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO analysis_jobs ({_JOB_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    job.id,
                    job.source_document_ref,
                    job.document_format.value,
                    job.submitter_ref,
                    job.context_text,
                    job.filename,
                    job.file_size_bytes,
                    job.status.value,
                    job.attempt,
                    job.extracted_text,
                    job.result.model_dump_json(by_alias=True) if job.result else None,
                    job.score,
                    job.error_message,
                    job.created_at.isoformat(),
                    job.updated_at.isoformat(),
                    job.processed_at.isoformat() if job.processed_at else None,
                ),
            )
            conn.executemany(
                "INSERT INTO job_subject_refs (job_id, kind, ref) VALUES (?, ?, ?)",
                [(job.id, kind, ref) for kind, ref in job.subject_refs.items()],
            )
        return job

    def find_by_id(self, job_id: str) -> AnalysisJob | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM analysis_jobs WHERE id = ?", (job_id,)
            ).fetchone()
            if row is None:
                return None
            return self._hydrate(conn, [row])[0]

    def find_by_subject_ref(self, ref: str, kind: str | None = None) -> list[AnalysisJob]:
        """Jobs linked to a candidate/application/... reference, newest first."""
        query = (
            f"SELECT {_JOB_COLUMNS} FROM analysis_jobs WHERE id IN "
            "(SELECT job_id FROM job_subject_refs WHERE ref = ?"
        )
        params: list = [ref]
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind)
        query += ") ORDER BY created_at DESC, rowid DESC"
        with self._connect() as conn:
            return self._hydrate(conn, conn.execute(query, params).fetchall())

    def find_by_status(self, *statuses: JobStatus) -> list[AnalysisJob]:
        """Jobs in any of the given states, oldest first."""
        if not statuses:
            return []
        placeholders = ", ".join("?" for _ in statuses)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM analysis_jobs WHERE status IN ({placeholders}) "
                "ORDER BY created_at ASC, rowid ASC",
                [s.value for s in statuses],
            ).fetchall()
            return self._hydrate(conn, rows)

    def find_all(self, limit: int = 50, offset: int = 0) -> list[AnalysisJob]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM analysis_jobs "
                "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (max(limit, 0), max(offset, 0)),
            ).fetchall()
            return self._hydrate(conn, rows)

    # --- lifecycle transitions ---

    def claim(self, job_id: str, attempt: int) -> bool:
        """Atomically move PENDING -> PROCESSING for the given attempt."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE analysis_jobs SET status = ?, error_message = NULL, updated_at = ? "
                "WHERE id = ? AND attempt = ? AND status = ?",
                (
                    JobStatus.PROCESSING.value,
                    utcnow().isoformat(),
                    job_id,
                    attempt,
                    JobStatus.PENDING.value,
                ),
            )
            return cursor.rowcount == 1

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        error_message: str | None = None,
        attempt: int | None = None,
    ) -> AnalysisJob | None:
        """Set a non-COMPLETED status. FAILED records ``error_message``."""
        if status is JobStatus.COMPLETED:
            raise ValueError("Use update_result() to complete a job")
        if status is JobStatus.FAILED:
            error_message = error_message or DEFAULT_FAILURE_MESSAGE
        else:
            error_message = None
        return self._update(
            job_id,
            attempt,
            status=status.value,
            error_message=error_message,
            result_json=None,
            score=None,
            processed_at=None,
        )

    def update_extracted_text(
        self, job_id: str, extracted_text: str, attempt: int | None = None
    ) -> AnalysisJob | None:
        return self._update(job_id, attempt, extracted_text=extracted_text)

    def update_result(
        self, job_id: str, result: AnalysisResult, attempt: int | None = None
    ) -> AnalysisJob | None:
        """Complete a job: store the result and its overall score, stamp processed_at."""
        return self._update(
            job_id,
            attempt,
            status=JobStatus.COMPLETED.value,
            result_json=result.model_dump_json(by_alias=True),
            score=result.overall_score,
            error_message=None,
            processed_at=utcnow().isoformat(),
        )

    def reset(self, job_id: str, context_text: str | None = None) -> AnalysisJob | None:
        """Return a job to PENDING under a new attempt, clearing prior outcomes."""
        assignments = (
            "status = ?, attempt = attempt + 1, extracted_text = NULL, result_json = NULL, "
            "score = NULL, error_message = NULL, processed_at = NULL, updated_at = ?"
        )
        params: list = [JobStatus.PENDING.value, utcnow().isoformat()]
        if context_text is not None:
            assignments += ", context_text = ?"
            params.append(context_text)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE analysis_jobs SET {assignments} WHERE id = ?", [*params, job_id]
            )
            if cursor.rowcount == 0:
                return None
        return self.find_by_id(job_id)

    def delete(self, job_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM analysis_jobs WHERE id = ?", (job_id,))
            return cursor.rowcount > 0

    # --- helpers ---

    def _update(self, job_id: str, attempt: int | None, **fields: object) -> AnalysisJob | None:
        fields["updated_at"] = utcnow().isoformat()
        assignments = ", ".join(f"{column} = ?" for column in fields)
        query = f"UPDATE analysis_jobs SET {assignments} WHERE id = ?"
        params = [*fields.values(), job_id]
        if attempt is not None:
            query += " AND attempt = ?"
            params.append(attempt)
        with self._connect() as conn:
            if conn.execute(query, params).rowcount == 0:
                return None
        return self.find_by_id(job_id)

    @staticmethod
    def _hydrate(conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[AnalysisJob]:
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        refs: dict[str, dict[str, str]] = {job_id: {} for job_id in ids}
        for ref_row in conn.execute(
            f"SELECT job_id, kind, ref FROM job_subject_refs WHERE job_id IN ({placeholders})",
            ids,
        ):
            refs[ref_row["job_id"]][ref_row["kind"]] = ref_row["ref"]
        return [JobStore._row_to_job(row, refs[row["id"]]) for row in rows]

    @staticmethod
    def _row_to_job(row: sqlite3.Row, subject_refs: dict[str, str]) -> AnalysisJob:
        result_json = row["result_json"]
        processed_at = row["processed_at"]
        return AnalysisJob(
            id=row["id"],
            source_document_ref=row["source_document_ref"],
            document_format=DocumentFormat(row["document_format"]),
            submitter_ref=row["submitter_ref"],
            subject_refs=subject_refs,
            context_text=row["context_text"],
            filename=row["filename"],
            file_size_bytes=row["file_size_bytes"],
            status=JobStatus(row["status"]),
            attempt=row["attempt"],
            extracted_text=row["extracted_text"],
            result=AnalysisResult.model_validate_json(result_json) if result_json else None,
            score=row["score"],
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
        )
