"""Async Claude API wrapper used as the external scoring service transport."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import anthropic

from cv_screener.errors import (
    ScoringAuthError,
    ScoringNetworkError,
    ScoringQuotaError,
    ScoringServiceError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"

_QUOTA_MARKERS = ("quota", "credit balance", "billing")


@dataclass
class LLMResponse:
    """Response from the LLM including usage metadata."""

    text: str
    input_tokens: int
    output_tokens: int


class LLMClient:
    """Async Claude API client.

    Exactly one request is sent per ``generate`` call: the SDK's built-in
    retries are disabled and failures are classified into scoring errors.
    """

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        kwargs: dict = {"max_retries": 0}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = anthropic.AsyncAnthropic(**kwargs)

    async def generate(
        self,
        prompt: str,
        system: str = "",
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send a prompt to Claude and return the text response with usage."""
        logger.debug("LLM call: model=%s, prompt=%d chars", model, len(prompt))
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        try:
            message = await self.client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            logger.error("LLM call failed", exc_info=True)
            raise classify_api_error(exc) from exc

        text = "".join(block.text for block in message.content if block.type == "text")
        input_tokens = message.usage.input_tokens
        output_tokens = message.usage.output_tokens
        logger.debug("LLM response: %d input, %d output tokens", input_tokens, output_tokens)
        return LLMResponse(text=text, input_tokens=input_tokens, output_tokens=output_tokens)


def classify_api_error(exc: anthropic.APIError) -> ScoringServiceError:
    """Map an Anthropic SDK error onto the scoring error taxonomy."""
    message = str(getattr(exc, "message", "") or exc)
    lowered = message.lower()

    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return ScoringAuthError()
    if isinstance(exc, anthropic.RateLimitError):
        return ScoringQuotaError()
    if isinstance(exc, anthropic.APIConnectionError):
        # APITimeoutError is a subclass of APIConnectionError
        return ScoringNetworkError()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return ScoringQuotaError()
    if "api key" in lowered or "api_key" in lowered:
        return ScoringAuthError()
    return ScoringServiceError(f"Scoring service call failed: {message}")
