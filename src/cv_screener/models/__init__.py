"""Data models for the CV analysis pipeline."""

from cv_screener.models.analysis import (
    AnalysisResult,
    ExtractedSections,
    FormattingIssue,
    GrammarIssue,
    SectionCompleteness,
)
from cv_screener.models.job import (
    AnalysisJob,
    DocumentFormat,
    JobStatus,
    JobStatusView,
    JobSummary,
)

__all__ = [
    "AnalysisJob",
    "AnalysisResult",
    "DocumentFormat",
    "ExtractedSections",
    "FormattingIssue",
    "GrammarIssue",
    "JobStatus",
    "JobStatusView",
    "JobSummary",
    "SectionCompleteness",
]
