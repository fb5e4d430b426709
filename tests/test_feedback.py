"""
Tests for the feedback and evaluation requesters.
"""

import json

import pytest

from conftest import FakeGenerator
from callcoach.app.evaluation import InterviewEvaluator
from callcoach.app.feedback import (
    DEFAULT_RESPONSE_TIME_SECONDS,
    FeedbackRequester,
    average_response_latency,
    build_transcript,
    extract_json_object,
)
from callcoach.app.reconciler import normalize_call_record
from callcoach.core.domain.models import CallMessage
from callcoach.core.exceptions import (
    EmptyTranscriptError,
    FeedbackFormatError,
    LLMConnectionError,
    LLMRateLimitError,
)


FEEDBACK_JSON = {
    "overallScore": 78,
    "communicationScore": 80,
    "technicalScore": 75,
    "problemSolvingScore": 72,
    "confidenceScore": 70,
    "strengths": ["Clear project walkthrough"],
    "weaknesses": ["Little detail on trade-offs"],
    "suggestions": ["Quantify results"],
    "nextSteps": ["Practice system design"],
    "aiSummary": "Solid interview.",
    "personalizedPlan": ["Week 1: sharding patterns"],
}


def rate_limited():
    return LLMRateLimitError("Gemini", retry_after=60)


# =============================================================================
# Transcript and Metrics
# =============================================================================

class TestTranscript:

    def test_labels_and_system_filtered(self, sample_raw_call):
        transcript = build_transcript(normalize_call_record(sample_raw_call))

        assert transcript.splitlines() == [
            "Interviewer: Tell me about a project you built.",
            "Candidate: I built a chat app with websockets.",
            "Interviewer: How did you scale it?",
            "Candidate: We sharded rooms across workers.",
        ]

    def test_blank_messages_skipped(self):
        record = normalize_call_record(
            {"id": "c1", "messages": [{"role": "user", "message": "   "}]}
        )

        assert build_transcript(record) == ""


class TestResponseLatency:

    def test_mean_of_qualifying_gaps(self, sample_raw_call):
        messages = normalize_call_record(sample_raw_call).messages

        # 4s and 6s answer gaps
        assert average_response_latency(messages) == pytest.approx(5.0)

    def test_long_gaps_excluded(self):
        messages = [
            CallMessage("assistant", "Question one?", 0),
            CallMessage("user", "Answer one.", 3000),
            CallMessage("assistant", "Question two?", 10_000),
            CallMessage("user", "Answer two.", 90_000),
        ]

        # Only one qualifying pair remains
        assert average_response_latency(messages) == DEFAULT_RESPONSE_TIME_SECONDS

    def test_no_messages(self):
        assert average_response_latency([]) == DEFAULT_RESPONSE_TIME_SECONDS


class TestExtractJson:

    def test_json_inside_prose(self):
        text = 'Here is the report:\n```json\n{"overallScore": 80, "nested": {"a": 1}}\n```\nThanks!'

        assert extract_json_object(text) == {"overallScore": 80, "nested": {"a": 1}}

    def test_skips_non_json_braces(self):
        assert extract_json_object('use {braces} then {"ok": true}') == {"ok": True}

    def test_no_json_raises(self):
        with pytest.raises(FeedbackFormatError):
            extract_json_object("I cannot produce a report.")


# =============================================================================
# FeedbackRequester
# =============================================================================

@pytest.mark.asyncio
class TestFeedbackRequester:

    @pytest.fixture
    def record(self, sample_raw_call):
        return normalize_call_record(sample_raw_call)

    async def test_report(self, record, settings, recording_sleep):
        generator = FakeGenerator([json.dumps(FEEDBACK_JSON)])
        requester = FeedbackRequester(generator, settings, recording_sleep)

        report = await requester.request_feedback(record)

        assert report.id == "feedback_call-123"
        assert report.overall_score == 78
        assert report.strengths == ["Clear project walkthrough"]
        assert report.completion_rate == 100
        assert report.duration == 12
        assert report.response_time == pytest.approx(5.0)
        assert "Candidate: We sharded rooms across workers." in generator.prompts[0]

    async def test_incomplete_call_rate(self, sample_raw_call, settings, recording_sleep):
        record = normalize_call_record({**sample_raw_call, "status": "in-progress", "endedAt": None})
        requester = FeedbackRequester(FakeGenerator([json.dumps(FEEDBACK_JSON)]), settings, recording_sleep)

        report = await requester.request_feedback(record)

        assert report.completion_rate == 75
        assert report.duration == 30

    async def test_rate_limit_retried_with_backoff(self, record, settings, recording_sleep):
        generator = FakeGenerator([rate_limited(), rate_limited(), json.dumps(FEEDBACK_JSON)])
        requester = FeedbackRequester(generator, settings, recording_sleep)

        report = await requester.request_feedback(record)

        assert generator.calls == 3
        assert recording_sleep.delays == [pytest.approx(2.0), pytest.approx(4.0)]
        assert report.overall_score == 78

    async def test_rate_limit_gives_up_after_three_retries(self, record, settings, recording_sleep):
        generator = FakeGenerator([rate_limited() for _ in range(5)])
        requester = FeedbackRequester(generator, settings, recording_sleep)

        with pytest.raises(LLMRateLimitError):
            await requester.request_feedback(record)

        assert generator.calls == 4
        assert recording_sleep.delays == [pytest.approx(2.0), pytest.approx(4.0), pytest.approx(8.0)]

    async def test_other_errors_not_retried(self, record, settings, recording_sleep):
        generator = FakeGenerator([LLMConnectionError("Gemini", "reset"), json.dumps(FEEDBACK_JSON)])
        requester = FeedbackRequester(generator, settings, recording_sleep)

        with pytest.raises(LLMConnectionError):
            await requester.request_feedback(record)

        assert generator.calls == 1
        assert recording_sleep.delays == []

    async def test_unparseable_response_not_retried(self, record, settings, recording_sleep):
        generator = FakeGenerator(["Sorry, no report today.", json.dumps(FEEDBACK_JSON)])
        requester = FeedbackRequester(generator, settings, recording_sleep)

        with pytest.raises(FeedbackFormatError):
            await requester.request_feedback(record)

        assert generator.calls == 1

    async def test_empty_transcript_makes_no_calls(self, settings, recording_sleep):
        record = normalize_call_record({"id": "c1", "status": "ended", "messages": []})
        generator = FakeGenerator([json.dumps(FEEDBACK_JSON)])
        requester = FeedbackRequester(generator, settings, recording_sleep)

        with pytest.raises(EmptyTranscriptError):
            await requester.request_feedback(record)

        assert generator.calls == 0


# =============================================================================
# InterviewEvaluator
# =============================================================================

@pytest.mark.asyncio
class TestInterviewEvaluator:

    async def test_evaluation(self, sample_raw_call, settings, recording_sleep):
        response = {
            "overallRating": 7.5,
            "recommendation": "hire",
            "confidenceLevel": 8,
            "aspects": {
                "technicalKnowledge": {"score": 8, "feedback": "Knows websockets."},
                "communication": {"score": 12, "feedback": "Very clear."},
            },
            "strengths": ["Clear"],
            "areasForImprovement": ["Depth"],
            "detailedFeedback": "Good candidate.",
        }
        generator = FakeGenerator([rate_limited(), "Evaluation:\n" + json.dumps(response)])
        evaluator = InterviewEvaluator(generator, settings, recording_sleep)

        evaluation = await evaluator.evaluate(normalize_call_record(sample_raw_call))

        assert evaluation.recommendation == "Hire"
        assert evaluation.overall_rating == 7.5
        assert evaluation.aspects["communication"].score == 10.0
        assert evaluation.aspects["problemSolving"].score == 0.0
        assert generator.calls == 2

    async def test_unknown_recommendation_defaults(self, sample_raw_call, settings, recording_sleep):
        generator = FakeGenerator(['{"overallRating": 3, "recommendation": "maybe"}'])
        evaluator = InterviewEvaluator(generator, settings, recording_sleep)

        evaluation = await evaluator.evaluate(normalize_call_record(sample_raw_call))

        assert evaluation.recommendation == "No Hire"
