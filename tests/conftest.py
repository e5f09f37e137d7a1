"""Shared test fixtures."""

from __future__ import annotations

import json
from io import BytesIO
from unittest.mock import AsyncMock

import pytest

from cv_screener.clients.llm_client import LLMClient, LLMResponse
from cv_screener.pipeline.cv_analyzer import CVAnalyzer
from cv_screener.pipeline.orchestrator import AnalysisOrchestrator
from cv_screener.storage.document_store import DocumentStore
from cv_screener.storage.job_store import JobStore

SAMPLE_CV_LINES = [
    "John Doe, Software Engineer, 10 years experience",
    "Email: john.doe@example.com | Phone: +1 555 0100",
    "",
    "Summary",
    "Backend engineer focused on distributed systems and APIs.",
    "",
    "Experience",
    "Acme Corp - Senior Engineer (2018 - present)",
    "- Led migration of the billing platform to Python services",
    "- Reduced p95 latency of the public API by 40%",
    "Globex - Software Engineer (2014 - 2018)",
    "- Built data pipelines processing 2M events per day",
    "",
    "Education",
    "BSc Computer Science, State University, 2014",
    "",
    "Skills",
    "Python, PostgreSQL, Kafka, Docker, Kubernetes, AWS",
    "",
    "Certifications",
    "AWS Certified Solutions Architect, Amazon, 2020",
]


def _build_pdf(lines: list[str]) -> bytes:
    import fitz

    doc = fitz.open()
    page = doc.new_page()
    y = 72
    for line in lines:
        if line:
            page.insert_text((72, y), line, fontsize=10)
        y += 14
    data = doc.tobytes()
    doc.close()
    return data


def _build_docx(lines: list[str]) -> bytes:
    from docx import Document

    doc = Document()
    for line in lines:
        doc.add_paragraph(line)
    buffer = BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _build_llm_response(payload: dict | str) -> LLMResponse:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return LLMResponse(text=text, input_tokens=1200, output_tokens=400)


@pytest.fixture
def sample_cv_text() -> str:
    return "\n".join(SAMPLE_CV_LINES)


@pytest.fixture
def sample_job_description() -> str:
    return """Senior Python Engineer

We are looking for an engineer with 5+ years of Python, experience with
Kafka-based event pipelines and AWS. Kubernetes is a plus.
"""


@pytest.fixture
def sample_analysis_json() -> dict:
    return {
        "sections": {
            "contact": {"present": True, "details": "john.doe@example.com"},
            "summary": "Backend engineer focused on distributed systems.",
            "experience": [
                {
                    "title": "Senior Engineer",
                    "company": "Acme Corp",
                    "duration": "2018 - present",
                    "highlights": ["Led billing migration", "Reduced latency by 40%"],
                }
            ],
            "education": [
                {"degree": "BSc Computer Science", "institution": "State University", "year": "2014"}
            ],
            "skills": ["Python", "PostgreSQL", "Kafka"],
            "certifications": [
                {"name": "AWS Certified Solutions Architect", "issuer": "Amazon", "year": "2020"}
            ],
        },
        "completeness": {
            "contact": 0.9,
            "summary": 0.7,
            "experience": 0.85,
            "education": 0.8,
            "skills": 0.9,
            "certifications": 0.6,
        },
        "relevanceScore": 72,
        "grammarIssues": [{"text": "Led migration of", "suggestion": "Led the migration of"}],
        "formattingIssues": [
            {"section": "Experience", "issue": "Inconsistent dates", "suggestion": "Use MM/YYYY"}
        ],
        "suggestions": ["Quantify the billing migration impact"],
        "strengths": ["Clear progression", "Relevant skills"],
        "weaknesses": ["Short summary"],
        "overallScore": 78,
    }


@pytest.fixture
def mock_llm_client(sample_analysis_json) -> LLMClient:
    """Create a mock LLM client returning a well-formed analysis."""
    client = AsyncMock(spec=LLMClient)
    client.generate = AsyncMock(return_value=_build_llm_response(sample_analysis_json))
    return client


@pytest.fixture
def analyzer(mock_llm_client) -> CVAnalyzer:
    return CVAnalyzer(mock_llm_client, model="test-model")


@pytest.fixture
def job_store(tmp_path) -> JobStore:
    return JobStore(db_path=tmp_path / "jobs.db")


@pytest.fixture
def document_store(tmp_path) -> DocumentStore:
    return DocumentStore(root=tmp_path / "documents")


@pytest.fixture
def orchestrator(job_store, document_store, analyzer) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(job_store, document_store, analyzer)


@pytest.fixture
def sample_cv_lines() -> list[str]:
    return list(SAMPLE_CV_LINES)


@pytest.fixture
def make_pdf():
    """Factory building a one-page PDF with the given lines."""
    return _build_pdf


@pytest.fixture
def make_docx():
    """Factory building a DOCX document with one paragraph per line."""
    return _build_docx


@pytest.fixture
def llm_response():
    """Factory wrapping a dict (as JSON) or raw text into an LLMResponse."""
    return _build_llm_response
