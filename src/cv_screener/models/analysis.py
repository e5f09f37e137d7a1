"""Pydantic models for the CV analysis result."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

SECTION_NAMES = ("contact", "summary", "experience", "education", "skills", "certifications")


def _clamp(value: object, low: float, high: float) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return low
    if number != number:  # NaN
        return low
    return max(low, min(high, number))


class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True, "alias_generator": to_camel}


class ContactInfo(_CamelModel):
    present: bool = False
    details: str = ""


class ExperienceEntry(_CamelModel):
    title: str = ""
    company: str = ""
    duration: str = ""
    highlights: list[str] = []


class EducationEntry(_CamelModel):
    degree: str = ""
    institution: str = ""
    year: str = ""


class CertificationEntry(_CamelModel):
    name: str = ""
    issuer: str = ""
    year: str = ""


class ExtractedSections(_CamelModel):
    """Sections the scoring service detected in the CV."""

    contact: ContactInfo = Field(default_factory=ContactInfo)
    summary: str = ""
    experience: list[ExperienceEntry] = []
    education: list[EducationEntry] = []
    skills: list[str] = []
    certifications: list[CertificationEntry] = []


class SectionCompleteness(_CamelModel):
    """Per-section completeness, each in [0.0, 1.0] (0 = missing, 1 = excellent)."""

    contact: float = 0.0
    summary: float = 0.0
    experience: float = 0.0
    education: float = 0.0
    skills: float = 0.0
    certifications: float = 0.0

    @field_validator(*SECTION_NAMES, mode="before")
    @classmethod
    def _clamp_unit(cls, v: object) -> float:
        return _clamp(v, 0.0, 1.0)


class GrammarIssue(_CamelModel):
    text: str
    suggestion: str = ""
    line: int | None = None


class FormattingIssue(_CamelModel):
    section: str = ""
    issue: str
    suggestion: str = ""


class AnalysisResult(_CamelModel):
    """Normalized analysis of one CV. Every field is always present."""

    sections: ExtractedSections = Field(default_factory=ExtractedSections)
    completeness: SectionCompleteness = Field(default_factory=SectionCompleteness)
    relevance_score: int = 0  # 0-100, weight 30%
    grammar_issues: list[GrammarIssue] = []
    formatting_issues: list[FormattingIssue] = []
    suggestions: list[str] = []
    strengths: list[str] = []
    weaknesses: list[str] = []
    overall_score: int = 0  # 0-100
    degraded: bool = False  # produced by the parse-failure fallback

    @field_validator("relevance_score", "overall_score", mode="before")
    @classmethod
    def _clamp_percent(cls, v: object) -> int:
        return round(_clamp(v, 0, 100))
