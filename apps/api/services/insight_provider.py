"""
Text-generation provider for insights (OpenAI chat completions).

Every failure mode (API error, timeout, connection failure, empty content)
surfaces as ProviderError. The upstream message is logged here and never
travels further than the short `summary`.
"""

from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import OpenAI

from core.config import settings
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    def __init__(self, summary: str, status_code: Optional[int] = None):
        super().__init__(summary)
        self.summary = summary
        self.status_code = status_code


class InsightProvider:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_tokens: int,
        temperature: float,
        timeout_s: float,
        client: Optional[OpenAI] = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        # No SDK retries: the caller has already been charged and is waiting.
        self.client = client or OpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)

    def generate(self, prompt: str, system: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.APITimeoutError:
            logger.error("Insight provider timed out", extra={"extra_fields": {"model": self.model}})
            raise ProviderError("The analysis service took too long to respond")
        except openai.APIStatusError as e:
            logger.error(
                f"Insight provider returned an error: [{getattr(e, 'code', None)}] {e.message}",
                extra={"extra_fields": {"model": self.model, "status": e.status_code}},
            )
            raise ProviderError("The analysis service rejected the request", status_code=e.status_code)
        except openai.APIConnectionError as e:
            logger.error(f"Insight provider unreachable: {e}", extra={"extra_fields": {"model": self.model}})
            raise ProviderError("The analysis service is unreachable")
        except openai.OpenAIError as e:
            logger.error(
                f"Insight provider failed: {type(e).__name__}: {e}",
                extra={"extra_fields": {"model": self.model}},
            )
            raise ProviderError("The analysis service failed")

        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content or not content.strip():
            logger.error("Insight provider returned empty content", extra={"extra_fields": {"model": self.model}})
            raise ProviderError("No analysis was generated")
        return content


def get_insight_provider() -> InsightProvider:
    """FastAPI dependency: provider built from settings."""
    if not settings.OPENAI_API_KEY:
        raise ConfigurationError(feature="insights", missing=["OPENAI_API_KEY"])
    return InsightProvider(
        api_key=settings.OPENAI_API_KEY,
        model=settings.INSIGHTS_MODEL,
        max_tokens=settings.INSIGHTS_MAX_OUTPUT_TOKENS,
        temperature=settings.INSIGHTS_TEMPERATURE,
        timeout_s=settings.INSIGHTS_PROVIDER_TIMEOUT_S,
    )
