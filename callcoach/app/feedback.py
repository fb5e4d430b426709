"""
Interview Call Coach - Feedback Requester.

Builds a candidate/interviewer transcript from a normalized call record,
asks the text generator for a strict-JSON performance report and merges
in metrics computed from the record itself.

Retry policy: only rate-limit/quota errors are retried, up to
FEEDBACK_MAX_RETRIES times with exponential backoff starting at
FEEDBACK_INITIAL_BACKOFF_SECONDS (2s, 4s, 8s by default). Everything else,
including an unparseable response, fails on the first attempt.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Iterable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from callcoach.core.config import Settings, get_settings
from callcoach.core.domain.models import CallMessage, FeedbackReport, NormalizedCallRecord
from callcoach.core.exceptions import (
    EmptyTranscriptError,
    FeedbackFormatError,
    LLMRateLimitError,
)
from callcoach.core.prompts import FEEDBACK_PROMPT
from callcoach.infra.llm.gemini import BaseTextGenerator


logger = logging.getLogger(__name__)


SPEAKER_LABELS = {"user": "Candidate", "assistant": "Interviewer"}

# Assistant -> user gaps outside (0, MAX_RESPONSE_GAP_MS) are not answers
MAX_RESPONSE_GAP_MS = 60_000
DEFAULT_RESPONSE_TIME_SECONDS = 8.5
MIN_RESPONSE_PAIRS = 2

COMPLETED_RATE = 100
INCOMPLETE_RATE = 75
DEFAULT_DURATION_MINUTES = 30

Sleep = Callable[[float], Awaitable[Any]]


# -----------------------------------------------------------------------------
# Transcript and metrics
# -----------------------------------------------------------------------------

def _conversation_messages(messages: Iterable[CallMessage]) -> list[CallMessage]:
    return [m for m in messages if m.role in SPEAKER_LABELS and m.has_content]


def build_transcript(record: NormalizedCallRecord) -> str:
    """'Candidate: ...' / 'Interviewer: ...' lines for content-bearing turns."""
    return "\n".join(
        f"{SPEAKER_LABELS[m.role]}: {m.text.strip()}"
        for m in _conversation_messages(record.messages)
    )


def average_response_latency(messages: Iterable[CallMessage]) -> float:
    """
    Mean seconds between an interviewer message and the candidate's reply.

    Gaps of 60s or more are idle time, not answers. With fewer than
    MIN_RESPONSE_PAIRS qualifying gaps DEFAULT_RESPONSE_TIME_SECONDS is returned.
    """
    conversation = _conversation_messages(messages)
    gaps = []
    for prev, curr in zip(conversation, conversation[1:]):
        if prev.role == "assistant" and curr.role == "user":
            gap = (curr.timestamp_ms or 0) - (prev.timestamp_ms or 0)
            if 0 < gap < MAX_RESPONSE_GAP_MS:
                gaps.append(gap)

    if len(gaps) < MIN_RESPONSE_PAIRS:
        return DEFAULT_RESPONSE_TIME_SECONDS
    return sum(gaps) / len(gaps) / 1000


def _duration_minutes(record: NormalizedCallRecord) -> int:
    duration = record.duration
    if isinstance(duration, float):
        return round(duration)
    return DEFAULT_DURATION_MINUTES


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Return the first decodable top-level JSON object embedded in text.

    Raises:
        FeedbackFormatError: If the text contains no JSON object
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise FeedbackFormatError(text)


def _score(value: Any, upper: int = 100) -> int:
    try:
        return max(0, min(upper, int(round(float(value)))))
    except (TypeError, ValueError):
        return 0


def string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


# -----------------------------------------------------------------------------
# Generation with retry
# -----------------------------------------------------------------------------

async def generate_with_retry(
    generator: BaseTextGenerator,
    prompt: str,
    settings: Settings | None = None,
    sleep: Sleep = asyncio.sleep,
    temperature: float = 0.3,
) -> str:
    """
    Call the generator, retrying rate-limit errors with exponential backoff.

    Raises:
        LLMRateLimitError: If every attempt was rate limited
        LLMError: Any other generator failure, unretried
    """
    settings = settings or get_settings()
    initial = settings.FEEDBACK_INITIAL_BACKOFF_SECONDS
    max_retries = settings.FEEDBACK_MAX_RETRIES

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(LLMRateLimitError),
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(
            multiplier=initial,
            min=initial,
            max=initial * 2 ** max(0, max_retries - 1),
        ),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            return await generator.generate(prompt, temperature=temperature)


class FeedbackRequester:
    """
    Produces a FeedbackReport for a normalized call record.

    Usage:
        requester = FeedbackRequester(GeminiTextGenerator())
        report = await requester.request_feedback(record)
    """

    def __init__(
        self,
        generator: BaseTextGenerator,
        settings: Settings | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._generator = generator
        self._settings = settings or get_settings()
        self._sleep = sleep

    async def request_feedback(self, record: NormalizedCallRecord) -> FeedbackReport:
        """
        Generate feedback for one call.

        Raises:
            EmptyTranscriptError: No content-bearing turns (no generation call made)
            FeedbackFormatError: The response held no JSON object
            LLMError: Generation failed (after retries for rate limits)
        """
        transcript = build_transcript(record)
        if not transcript.strip():
            logger.info(f"No transcript available for call {record.call_id}")
            raise EmptyTranscriptError(record.call_id)

        logger.info(
            f"Generating feedback for call {record.call_id} "
            f"({len(transcript)} transcript chars)"
        )
        text = await generate_with_retry(
            self._generator,
            FEEDBACK_PROMPT.format(transcript=transcript),
            settings=self._settings,
            sleep=self._sleep,
        )
        data = extract_json_object(text)

        report = FeedbackReport(
            call_id=record.call_id,
            overall_score=_score(data.get("overallScore")),
            communication_score=_score(data.get("communicationScore")),
            technical_score=_score(data.get("technicalScore")),
            problem_solving_score=_score(data.get("problemSolvingScore")),
            confidence_score=_score(data.get("confidenceScore")),
            strengths=string_list(data.get("strengths")),
            weaknesses=string_list(data.get("weaknesses")),
            suggestions=string_list(data.get("suggestions")),
            next_steps=string_list(data.get("nextSteps")),
            ai_summary=str(data.get("aiSummary") or ""),
            personalized_plan=string_list(data.get("personalizedPlan")),
            response_time=average_response_latency(record.messages),
            completion_rate=COMPLETED_RATE if record.is_ended else INCOMPLETE_RATE,
            duration=_duration_minutes(record),
        )
        logger.info(f"Successfully generated feedback for call: {record.call_id}")
        return report
