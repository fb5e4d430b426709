"""
Interview Call Coach - Gemini LLM Adapter.

Text-in / text-out access to Google Gemini for the feedback and
evaluation requesters. Failures are classified into rate-limit,
connection and response errors; retrying is the caller's decision.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import google.generativeai as genai

from callcoach.core.config import get_settings
from callcoach.core.exceptions import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    MissingAPIKeyError,
)

logger = logging.getLogger(__name__)


RATE_LIMIT_MARKERS = ("429", "quota", "too many requests", "rate limit", "rate-limit", "resource exhausted")
CONNECTION_MARKERS = ("connection", "network", "timeout", "unavailable")


def classify_generation_error(error: Exception, service: str = "Gemini") -> Exception:
    """Map a raw client exception onto the LLM error hierarchy."""
    error_str = str(error).lower()
    if any(marker in error_str for marker in RATE_LIMIT_MARKERS):
        return LLMRateLimitError(service, retry_after=60)
    if any(marker in error_str for marker in CONNECTION_MARKERS):
        return LLMConnectionError(service, str(error))
    return LLMResponseError(str(error))


class BaseTextGenerator(ABC):
    """Abstract base class for text generators."""

    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.3) -> str:
        """Generate text for a prompt. Raises LLMError subclasses."""
        pass


class GeminiTextGenerator(BaseTextGenerator):
    """
    Gemini-powered text generator.

    The client is configured lazily on first use, so constructing the
    generator never needs the API key.
    """

    def __init__(self, api_key: str | None = None, model_name: str | None = None):
        self._settings = get_settings()
        self._api_key = api_key or self._settings.GEMINI_API_KEY
        self._model_name = model_name or self._settings.GEMINI_MODEL
        self._model = None
        self._configured = False

    def _configure(self) -> None:
        """Configure the Gemini API client (lazy initialization)."""
        if self._configured:
            return

        if not self._api_key:
            raise MissingAPIKeyError("GEMINI_API_KEY")

        genai.configure(api_key=self._api_key)
        self._model = genai.GenerativeModel(self._model_name)
        self._configured = True
        logger.info(f"Gemini API configured ({self._model_name})")

    async def generate(self, prompt: str, temperature: float = 0.3) -> str:
        self._configure()

        try:
            generation_config = genai.GenerationConfig(
                temperature=temperature,
                max_output_tokens=2048,
            )

            response = await self._model.generate_content_async(
                prompt,
                generation_config=generation_config,
            )

            if not response.text:
                raise LLMResponseError("Empty response from Gemini")

            return response.text.strip()

        except LLMResponseError:
            raise
        except genai.types.BlockedPromptException as e:
            logger.warning(f"Prompt blocked: {e}")
            raise LLMResponseError("Content was blocked by safety filters")
        except Exception as e:
            classified = classify_generation_error(e)
            if isinstance(classified, LLMRateLimitError):
                logger.warning(f"Gemini rate limited: {e}")
            else:
                logger.error(f"Gemini error: {e}")
            raise classified from e
