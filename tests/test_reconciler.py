"""
Tests for call record normalization and reconciliation.
"""

import copy

import pytest

from conftest import FakeCallStore
from callcoach.app.reconciler import (
    CallRecordReconciler,
    normalize_call_record,
    parse_timestamp,
)
from callcoach.core.domain.models import DURATION_IN_PROGRESS
from callcoach.core.exceptions import CallRecordNotFoundError, MissingCallIdError


class TestNormalizeCallRecord:
    """Field precedence over heterogeneous provider payloads."""

    def test_top_level_recording_wins(self, sample_raw_call):
        record = normalize_call_record(sample_raw_call)

        assert record.recording_url == "https://recordings.example.com/top.wav"

    def test_nested_mono_recording_used_when_top_level_missing(self, sample_raw_call):
        raw = copy.deepcopy(sample_raw_call)
        del raw["recordingUrl"]

        record = normalize_call_record(raw)

        assert record.recording_url == "https://recordings.example.com/nested-mono.wav"

    def test_artifact_recording_url_before_nested_mono(self, sample_raw_call):
        raw = copy.deepcopy(sample_raw_call)
        del raw["recordingUrl"]
        raw["artifact"]["recordingUrl"] = "https://recordings.example.com/artifact.wav"

        assert normalize_call_record(raw).recording_url == "https://recordings.example.com/artifact.wav"

    def test_stereo_fallback_only_when_preferred(self, sample_raw_call):
        raw = copy.deepcopy(sample_raw_call)
        del raw["recordingUrl"]
        del raw["artifact"]["recording"]["mono"]

        assert normalize_call_record(raw).recording_url is None
        assert (
            normalize_call_record(raw, prefer_stereo=True).recording_url
            == "https://recordings.example.com/stereo.wav"
        )

    def test_stereo_precedence(self, sample_raw_call):
        raw = copy.deepcopy(sample_raw_call)
        del raw["stereoRecordingUrl"]

        record = normalize_call_record(raw)

        assert record.stereo_recording_url == "https://recordings.example.com/nested-stereo.wav"

    def test_messages_prefer_top_level(self, sample_raw_call):
        record = normalize_call_record(sample_raw_call)

        assert len(record.messages) == 5
        assert record.message_count == 4
        assert [m.role for m in record.visible_messages] == ["assistant", "user", "assistant", "user"]

    def test_empty_top_level_messages_fall_back_to_artifact(self, sample_raw_call):
        raw = copy.deepcopy(sample_raw_call)
        raw["artifact"]["messages"] = raw["messages"][1:3]
        raw["messages"] = []

        record = normalize_call_record(raw)

        assert record.message_count == 2

    def test_message_text_and_timing(self, sample_raw_call):
        message = normalize_call_record(sample_raw_call).visible_messages[1]

        assert message.text == "I built a chat app with websockets."
        assert message.timestamp_ms == 1736503205000
        assert message.seconds_from_start == 5.0

    def test_duration_in_minutes(self, sample_raw_call):
        assert normalize_call_record(sample_raw_call).duration == pytest.approx(12.0)

    def test_unterminated_call_is_in_progress(self, sample_raw_call):
        raw = copy.deepcopy(sample_raw_call)
        raw["status"] = "in-progress"
        del raw["endedAt"]

        assert normalize_call_record(raw).duration == DURATION_IN_PROGRESS

    def test_cost_total_is_provider_total(self, sample_raw_call):
        cost = normalize_call_record(sample_raw_call).cost_breakdown

        assert cost.total == 0.4213
        assert cost.platform == 0.15
        assert cost.llm + cost.stt + cost.tts + cost.platform != cost.total

    def test_missing_cost_components_are_zero(self):
        record = normalize_call_record(
            {"id": "c1", "status": "ended", "costBreakdown": {"llm": 0.2, "total": 0.3}}
        )

        assert record.cost_breakdown.stt == 0.0
        assert record.cost_breakdown.platform == 0.0
        assert record.cost_breakdown.total == 0.3

    def test_minimal_payload(self):
        record = normalize_call_record({"id": "c1"})

        assert record.status == "unknown"
        assert record.messages == ()
        assert record.recording_url is None
        assert record.cost_breakdown.total is None

    def test_parse_timestamp_handles_z_suffix(self):
        parsed = parse_timestamp("2025-01-10T10:00:00.000Z")

        assert parsed.utcoffset().total_seconds() == 0
        assert parsed.hour == 10


@pytest.mark.asyncio
class TestCallRecordReconciler:
    """Reconciliation against the backend store."""

    async def test_reconcile(self, sample_raw_call):
        reconciler = CallRecordReconciler(FakeCallStore({"call-123": sample_raw_call}))

        record = await reconciler.reconcile("call-123")

        assert record.call_id == "call-123"
        assert record.is_ended

    async def test_missing_call_id(self):
        reconciler = CallRecordReconciler(FakeCallStore())

        with pytest.raises(MissingCallIdError):
            await reconciler.reconcile("")

    async def test_not_found(self):
        reconciler = CallRecordReconciler(FakeCallStore())

        with pytest.raises(CallRecordNotFoundError):
            await reconciler.reconcile("nope")

    async def test_each_fetch_rebuilds_record(self, sample_raw_call):
        store = FakeCallStore({"call-123": sample_raw_call})
        reconciler = CallRecordReconciler(store)

        await reconciler.reconcile("call-123")
        store.calls["call-123"] = {**sample_raw_call, "status": "in-progress"}
        record = await reconciler.reconcile("call-123")

        assert record.status == "in-progress"
        assert store.get_calls == ["call-123", "call-123"]

    async def test_list_recent_calls_newest_first(self, sample_raw_call):
        older = {**sample_raw_call, "id": "call-old", "startedAt": "2025-01-01T09:00:00Z"}
        store = FakeCallStore({"call-old": older, "call-123": sample_raw_call})
        reconciler = CallRecordReconciler(store)

        summaries = await reconciler.list_recent_calls()

        assert [s.call_id for s in summaries] == ["call-123", "call-old"]
        assert summaries[0].cost == 0.4213
        assert summaries[0].has_artifact is True
