"""
Interview Call Coach - Interview Evaluator.

Hiring-style evaluation of a finished call: overall rating,
recommendation and per-aspect scores. Shares transcript building,
JSON extraction and the rate-limit retry policy with the feedback
requester.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from callcoach.app.feedback import (
    Sleep,
    build_transcript,
    extract_json_object,
    generate_with_retry,
    string_list,
)
from callcoach.core.config import Settings, get_settings
from callcoach.core.domain.models import (
    AspectRating,
    InterviewEvaluation,
    NormalizedCallRecord,
)
from callcoach.core.exceptions import EmptyTranscriptError
from callcoach.core.prompts import EVALUATION_PROMPT
from callcoach.infra.llm.gemini import BaseTextGenerator


logger = logging.getLogger(__name__)


ASPECTS = ("technicalKnowledge", "problemSolving", "communication", "confidence")
RECOMMENDATIONS = ("Strong Hire", "Hire", "No Hire", "Strong No Hire")
DEFAULT_RECOMMENDATION = "No Hire"


def _rating(value: Any, upper: float = 10.0) -> float:
    try:
        return max(0.0, min(upper, float(value)))
    except (TypeError, ValueError):
        return 0.0


def _recommendation(value: Any) -> str:
    text = str(value or "").strip().lower()
    for option in RECOMMENDATIONS:
        if text == option.lower():
            return option
    return DEFAULT_RECOMMENDATION


class InterviewEvaluator:
    """Produces an InterviewEvaluation for a normalized call record."""

    def __init__(
        self,
        generator: BaseTextGenerator,
        settings: Settings | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._generator = generator
        self._settings = settings or get_settings()
        self._sleep = sleep

    async def evaluate(self, record: NormalizedCallRecord) -> InterviewEvaluation:
        transcript = build_transcript(record)
        if not transcript.strip():
            raise EmptyTranscriptError(record.call_id)

        text = await generate_with_retry(
            self._generator,
            EVALUATION_PROMPT.format(transcript=transcript),
            settings=self._settings,
            sleep=self._sleep,
            temperature=0.2,
        )
        data = extract_json_object(text)

        raw_aspects = data.get("aspects") if isinstance(data.get("aspects"), dict) else {}
        aspects = {}
        for name in ASPECTS:
            entry = raw_aspects.get(name) or {}
            if not isinstance(entry, dict):
                entry = {"score": entry}
            aspects[name] = AspectRating(
                score=_rating(entry.get("score")),
                feedback=str(entry.get("feedback") or ""),
            )

        evaluation = InterviewEvaluation(
            call_id=record.call_id,
            overall_rating=_rating(data.get("overallRating")),
            recommendation=_recommendation(data.get("recommendation")),
            confidence_level=int(_rating(data.get("confidenceLevel"))),
            aspects=aspects,
            strengths=string_list(data.get("strengths")),
            areas_for_improvement=string_list(data.get("areasForImprovement")),
            detailed_feedback=str(data.get("detailedFeedback") or ""),
        )
        logger.info(
            f"Evaluated call {record.call_id}: {evaluation.overall_rating:.1f}/10, "
            f"{evaluation.recommendation}"
        )
        return evaluation
