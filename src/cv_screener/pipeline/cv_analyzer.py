"""Scoring client: asks the LLM to score a CV and normalizes its answer."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ValidationError

from cv_screener.clients.llm_client import DEFAULT_MODEL, LLMClient
from cv_screener.errors import InsufficientTextError, ScoringServiceError
from cv_screener.models.analysis import (
    AnalysisResult,
    CertificationEntry,
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    ExtractedSections,
    FormattingIssue,
    GrammarIssue,
    SectionCompleteness,
)
from cv_screener.utils.json_parser import extract_json_object

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50
FALLBACK_SCORE = 50

SYSTEM_PROMPT = """\
You are an expert CV/Resume analyzer. You analyze a CV and answer with a single structured JSON object.

**IMPORTANT**: Return ONLY valid JSON. Do not include any markdown formatting, code blocks, or explanatory text."""

RESPONSE_SCHEMA = """\
{
  "sections": {
    "contact": { "present": boolean, "details": string },
    "summary": string,
    "experience": [{ "title": string, "company": string, "duration": string, "highlights": string[] }],
    "education": [{ "degree": string, "institution": string, "year": string }],
    "skills": string[],
    "certifications": [{ "name": string, "issuer": string, "year": string }]
  },
  "completeness": {
    "contact": number,
    "summary": number,
    "experience": number,
    "education": number,
    "skills": number,
    "certifications": number
  },
  "relevanceScore": number,
  "grammarIssues": [{ "text": string, "suggestion": string }],
  "formattingIssues": [{ "section": string, "issue": string, "suggestion": string }],
  "suggestions": string[],
  "strengths": string[],
  "weaknesses": string[],
  "overallScore": number
}"""


def build_analysis_prompt(cv_text: str, context_text: str | None = None) -> str:
    """Build the user prompt; context text switches relevance to a job-specific basis."""
    relevance_basis = (
        " based on the job description provided" if context_text else " for the candidate's apparent target role"
    )
    prompt = f"""Analyze the following CV and provide a structured JSON response.

Analyze these aspects:
1. **Sections Detection**: Identify contact info, summary/objective, experience, education, skills, certifications
2. **Completeness Score**: Rate each section from 0.0 to 1.0 (0=missing, 1=excellent)
3. **Relevance Score**: Overall relevance from 0 to 100{relevance_basis}
4. **Grammar Issues**: Identify spelling/grammar problems with suggestions
5. **Formatting Issues**: Identify layout, structure, or readability problems
6. **Suggestions**: Provide 5-10 actionable improvements
7. **Strengths**: List 3-5 strong points
8. **Weaknesses**: List 3-5 areas needing improvement
9. **Overall Score**: Calculate weighted score (0-100) based on:
   - Completeness: 30%
   - Relevance: 30%
   - Grammar/Readability: 20%
   - Formatting/ATS-friendliness: 20%

**Required JSON Schema:**
{RESPONSE_SCHEMA}

"""
    if context_text:
        prompt += f"**Job Description:**\n{context_text.strip()}\n\n"
    prompt += f"""**CV Text:**
{cv_text}

Return ONLY the JSON object, nothing else."""
    return prompt


def fallback_result(score: int = FALLBACK_SCORE) -> AnalysisResult:
    """Minimal valid result used when the response cannot be decoded at all."""
    return AnalysisResult(
        overall_score=score,
        relevance_score=score,
        suggestions=["Analysis failed. Please try again or contact support."],
        weaknesses=["Unable to complete full analysis"],
        degraded=True,
    )


def parse_analysis_response(text: str, fallback_score: int = FALLBACK_SCORE) -> AnalysisResult:
    """Decode a scoring response into a fully populated AnalysisResult.

    Never raises for malformed content: if no JSON object can be recovered the
    whole result is replaced by :func:`fallback_result`.
    """
    try:
        data = extract_json_object(text)
    except ValueError:
        logger.warning("Failed to parse scoring response, using fallback result")
        logger.debug("Raw response: %s", text)
        return fallback_result(fallback_score)

    result = AnalysisResult(
        sections=_parse_sections(data.get("sections")),
        completeness=_parse_model(SectionCompleteness, data.get("completeness")) or SectionCompleteness(),
        relevance_score=_first(data, "relevanceScore", "relevance_score"),
        grammar_issues=_parse_list(GrammarIssue, _first(data, "grammarIssues", "grammar_issues")),
        formatting_issues=_parse_list(FormattingIssue, _first(data, "formattingIssues", "formatting_issues")),
        suggestions=_string_list(data.get("suggestions")),
        strengths=_string_list(data.get("strengths")),
        weaknesses=_string_list(data.get("weaknesses")),
        overall_score=_first(data, "overallScore", "overall_score"),
    )
    if not result.overall_score:
        logger.warning("Scoring service did not return an overall score, using fallback")
        result.overall_score = fallback_score
    return result


class CVAnalyzer:
    def __init__(
        self,
        llm: LLMClient,
        model: str = DEFAULT_MODEL,
        *,
        min_text_length: int = MIN_TEXT_LENGTH,
        fallback_score: int = FALLBACK_SCORE,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ):
        self.llm = llm
        self.model = model
        self.min_text_length = min_text_length
        self.fallback_score = fallback_score
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def analyze(self, cv_text: str, context_text: str | None = None) -> AnalysisResult:
        """Score a CV, optionally against a job description.

        Raises:
            InsufficientTextError: the text is shorter than ``min_text_length``.
            ScoringServiceError: the call itself failed (auth, quota, network...).
        """
        stripped = (cv_text or "").strip()
        if len(stripped) < self.min_text_length:
            raise InsufficientTextError(len(stripped), self.min_text_length)

        logger.info("Sending CV for analysis (%d chars, context=%s)", len(cv_text), bool(context_text))
        response = await self.llm.generate(
            prompt=build_analysis_prompt(cv_text, context_text),
            system=SYSTEM_PROMPT,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.text.strip():
            raise ScoringServiceError("Scoring service returned an empty response")

        logger.info("Received scoring response (%d chars)", len(response.text))
        return parse_analysis_response(response.text, self.fallback_score)


def _first(data: dict, *keys: str) -> object:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _parse_model(model: type[BaseModel], value: object) -> BaseModel | None:
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(value)
    except ValidationError:
        logger.debug("Dropping malformed %s entry: %r", model.__name__, value)
        return None


def _parse_list(model: type[BaseModel], value: object) -> list:
    if not isinstance(value, list):
        return []
    parsed = (_parse_model(model, item) for item in value)
    return [item for item in parsed if item is not None]


def _parse_sections(value: object) -> ExtractedSections:
    if not isinstance(value, dict):
        return ExtractedSections()
    contact = value.get("contact")
    if isinstance(contact, bool):
        contact = {"present": contact}
    summary = value.get("summary")
    return ExtractedSections(
        contact=_parse_model(ContactInfo, contact) or ContactInfo(),
        summary=summary.strip() if isinstance(summary, str) else "",
        experience=_parse_list(ExperienceEntry, value.get("experience")),
        education=_parse_list(EducationEntry, value.get("education")),
        skills=_string_list(value.get("skills")),
        certifications=_parse_list(CertificationEntry, value.get("certifications")),
    )
