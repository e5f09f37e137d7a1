"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cv_screener.clients.llm_client import LLMClient
from cv_screener.config import AppConfig, load_config
from cv_screener.errors import CVScreenerError
from cv_screener.models.job import AnalysisJob, DocumentFormat, JobStatus
from cv_screener.pipeline.cv_analyzer import CVAnalyzer
from cv_screener.pipeline.orchestrator import AnalysisOrchestrator
from cv_screener.storage.document_store import DocumentStore
from cv_screener.storage.job_store import JobStore

app = typer.Typer(
    name="cv-screener",
    help="AI CV analysis pipeline",
    no_args_is_help=True,
)
console = Console()

_SUFFIX_FORMATS = {
    ".pdf": DocumentFormat.PDF,
    ".docx": DocumentFormat.DOCX,
    ".doc": DocumentFormat.DOC,
    ".txt": DocumentFormat.PLAIN_TEXT,
    ".md": DocumentFormat.PLAIN_TEXT,
}


def build_orchestrator(config: AppConfig) -> AnalysisOrchestrator:
    llm = LLMClient(timeout=config.llm.timeout)
    analyzer = CVAnalyzer(
        llm,
        model=config.llm.model,
        min_text_length=config.analysis.min_text_length,
        fallback_score=config.analysis.fallback_score,
        max_tokens=config.llm.max_tokens,
        temperature=config.llm.temperature,
    )
    return AnalysisOrchestrator(
        JobStore(config.storage.resolved_db_path),
        DocumentStore(config.storage.resolved_documents_dir),
        analyzer,
    )


def detect_format(path: Path) -> DocumentFormat:
    fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt is not None:
        return fmt
    mime, _ = mimetypes.guess_type(path.name)
    return DocumentFormat.from_mime_type(mime or "")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read_context(context: Path | None) -> str | None:
    if context is None:
        return None
    if not context.exists():
        console.print(f"[red]Context file not found: {context}[/red]")
        raise typer.Exit(1)
    return context.read_text(encoding="utf-8")


def _run(coro):
    try:
        return asyncio.run(coro)
    except CVScreenerError as exc:
        console.print(f"[red]{exc.user_message}[/red]")
        raise typer.Exit(1)


def _print_job(job: AnalysisJob) -> None:
    if job.status is JobStatus.FAILED:
        console.print(Panel(f"[red]{job.error_message}[/red]", title=f"Job {job.id} - failed"))
        return
    if job.status is not JobStatus.COMPLETED or job.result is None:
        console.print(f"Job {job.id}: [yellow]{job.status.value}[/yellow]")
        return

    result = job.result
    color = "green" if result.overall_score >= 70 else "yellow"
    completeness = " | ".join(
        f"{name}: {value:.1f}" for name, value in result.completeness.model_dump().items()
    )
    body = (
        f"[bold {color}]Overall: {result.overall_score}[/bold {color}] | "
        f"Relevance: {result.relevance_score}\n"
        f"Completeness: {completeness}"
    )
    if result.degraded:
        body += "\n[yellow]Analysis incomplete: the scoring response could not be parsed[/yellow]"
    console.print(Panel(body, title=f"Job {job.id} - {job.filename or 'CV'}"))

    for title, items in (
        ("Strengths", result.strengths),
        ("Weaknesses", result.weaknesses),
        ("Suggestions", result.suggestions),
    ):
        if items:
            console.print(f"\n[bold]{title}:[/bold]")
            for item in items:
                console.print(f"  - {item}")
    if result.grammar_issues:
        console.print("\n[bold]Grammar:[/bold]")
        for issue in result.grammar_issues:
            console.print(f"  - {issue.text} -> {issue.suggestion}")
    if result.formatting_issues:
        console.print("\n[bold]Formatting:[/bold]")
        for issue in result.formatting_issues:
            console.print(f"  - [{issue.section}] {issue.issue} -> {issue.suggestion}")


@app.command()
def analyze(
    file: Path = typer.Argument(help="CV file (PDF/DOCX/TXT)"),
    context: Path = typer.Option(None, "--context", "-c", help="Job description text file"),
    submitter: str = typer.Option("cli", "--submitter", help="Submitter reference"),
    candidate: str = typer.Option(None, "--candidate", help="Candidate reference"),
    application: str = typer.Option(None, "--application", help="Application reference"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Submit a CV and wait for its analysis."""
    _setup_logging(verbose)
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)
    context_text = _read_context(context)
    orchestrator = build_orchestrator(load_config())

    async def _submit_and_wait() -> AnalysisJob:
        job = await orchestrator.submit(
            file.read_bytes(),
            detect_format(file),
            submitter,
            subject_refs={"candidate": candidate, "application": application},
            context_text=context_text,
            filename=file.name,
        )
        console.print(f"[dim]Job {job.id} submitted[/dim]")
        return await orchestrator.wait(job.id)

    with console.status("Analysing CV..."):
        job = _run(_submit_and_wait())
    _print_job(job)


@app.command()
def status(job_id: str = typer.Argument(help="Job id")) -> None:
    """Show the lifecycle status of a job."""
    orchestrator = build_orchestrator(load_config())
    view = _run(orchestrator.status(job_id))
    console.print(f"Job {view.job_id}: [bold]{view.status.value}[/bold]")
    console.print(f"  created:   {view.created_at:%Y-%m-%d %H:%M:%S}")
    if view.processed_at:
        console.print(f"  processed: {view.processed_at:%Y-%m-%d %H:%M:%S}")
    if view.error_message:
        console.print(f"  [red]{view.error_message}[/red]")


@app.command()
def result(job_id: str = typer.Argument(help="Job id")) -> None:
    """Show the analysis of a completed job."""
    orchestrator = build_orchestrator(load_config())
    _print_job(_run(orchestrator.result(job_id)))


@app.command("list")
def list_jobs(
    limit: int = typer.Option(50, "--limit", help="Maximum rows"),
    offset: int = typer.Option(0, "--offset", help="Rows to skip"),
    subject: str = typer.Option(None, "--subject", help="Only jobs linked to this reference"),
) -> None:
    """List jobs, newest first."""
    orchestrator = build_orchestrator(load_config())
    if subject:
        summaries = _run(orchestrator.list_by_subject_ref(subject))
    else:
        summaries = _run(orchestrator.list_all(limit, offset))
    if not summaries:
        console.print("[yellow]No jobs found.[/yellow]")
        return

    table = Table("id", "file", "status", "score", "created")
    for s in summaries:
        table.add_row(
            s.job_id,
            s.filename or "-",
            s.status.value,
            "-" if s.score is None else str(s.score),
            f"{s.created_at:%Y-%m-%d %H:%M}",
        )
    console.print(table)


@app.command()
def reanalyze(
    job_id: str = typer.Argument(help="Job id"),
    context: Path = typer.Option(None, "--context", "-c", help="New job description text file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run the analysis of an existing job again and wait for it."""
    _setup_logging(verbose)
    context_text = _read_context(context)
    orchestrator = build_orchestrator(load_config())

    async def _reanalyze_and_wait() -> AnalysisJob:
        job = await orchestrator.reanalyze(job_id, context_text)
        return await orchestrator.wait(job.id)

    with console.status("Re-analysing CV..."):
        job = _run(_reanalyze_and_wait())
    _print_job(job)


@app.command()
def delete(job_id: str = typer.Argument(help="Job id")) -> None:
    """Delete a job and its stored document."""
    orchestrator = build_orchestrator(load_config())
    _run(orchestrator.delete(job_id))
    console.print(f"[green]Deleted job {job_id}[/green]")


@app.command()
def recover(verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging")) -> None:
    """Re-run jobs left pending or processing by an interrupted process."""
    _setup_logging(verbose)
    orchestrator = build_orchestrator(load_config())

    async def _recover() -> list[str]:
        job_ids = await orchestrator.recover_stalled()
        await orchestrator.drain()
        return job_ids

    job_ids = _run(_recover())
    if not job_ids:
        console.print("[green]No stalled jobs.[/green]")
        return
    for job_id in job_ids:
        view = _run(orchestrator.status(job_id))
        console.print(f"  {job_id}: {view.status.value}")


if __name__ == "__main__":
    app()
