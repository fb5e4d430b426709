"""
Unit tests for the EmotionAggregator module.
"""

import pytest

from callcoach.app.emotions import EmotionAggregator
from callcoach.core.domain.models import Emotion, EmotionalTrend


NERVOUS = "I'm a bit nervous about this"
STRESSED = "I'm so stressed, this is a lot of pressure"
CONFIDENT = "I definitely know how to solve this one"
ENTHUSIASTIC = "I love this, I'm really excited about it"


class TestEmotionAggregator:
    """Test suite for EmotionAggregator class."""

    @pytest.fixture
    def aggregator(self):
        return EmotionAggregator()

    # =========================================================================
    # History Tests
    # =========================================================================

    def test_qualifying_readings_are_appended(self, aggregator):
        for i, text in enumerate([NERVOUS, CONFIDENT, ENTHUSIASTIC]):
            assert aggregator.add_reading(text, float(i)) is not None

        assert len(aggregator) == 3

    def test_short_text_returns_none_and_leaves_history(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)

        assert aggregator.add_reading("yes", 2.0) is None
        assert aggregator.add_reading("", 3.0) is None
        assert len(aggregator) == 1

    def test_offsets_never_go_backwards(self, aggregator):
        aggregator.add_reading(NERVOUS, 10.0)
        reading = aggregator.add_reading(CONFIDENT, 4.0)

        assert reading.seconds_from_start == 10.0
        offsets = [r.seconds_from_start for r in aggregator.history]
        assert offsets == sorted(offsets)

    def test_history_snapshot_is_immutable(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)
        snapshot = aggregator.history
        aggregator.add_reading(CONFIDENT, 2.0)

        assert len(snapshot) == 1

    def test_clear(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)
        aggregator.clear()

        assert len(aggregator) == 0

    # =========================================================================
    # Summary Tests
    # =========================================================================

    def test_empty_summary_is_neutral(self, aggregator):
        summary = aggregator.summarize()

        assert summary.dominant_emotion == Emotion.NEUTRAL
        assert summary.trend == EmotionalTrend.STABLE
        assert summary.average_confidence == 0.0
        assert summary.stability == 1.0
        assert summary.stress_indicators == ()
        assert summary.reading_count == 0

    def test_dominant_emotion(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)
        aggregator.add_reading(NERVOUS, 2.0)
        aggregator.add_reading(CONFIDENT, 3.0)

        assert aggregator.summarize().dominant_emotion == Emotion.NERVOUS

    def test_improving_trend(self, aggregator):
        aggregator.add_reading(STRESSED, 1.0)
        aggregator.add_reading(NERVOUS, 2.0)
        aggregator.add_reading(CONFIDENT, 3.0)
        aggregator.add_reading(ENTHUSIASTIC, 4.0)

        assert aggregator.summarize().trend == EmotionalTrend.IMPROVING

    def test_declining_trend(self, aggregator):
        aggregator.add_reading(ENTHUSIASTIC, 1.0)
        aggregator.add_reading(CONFIDENT, 2.0)
        aggregator.add_reading(NERVOUS, 3.0)
        aggregator.add_reading(STRESSED, 4.0)

        summary = aggregator.summarize()

        assert summary.trend == EmotionalTrend.DECLINING
        assert "Stress increased as the interview progressed" in summary.stress_indicators

    def test_single_reading_is_stable(self, aggregator):
        aggregator.add_reading(STRESSED, 1.0)

        summary = aggregator.summarize()

        assert summary.trend == EmotionalTrend.STABLE
        assert summary.stability == 1.0

    def test_stability_counts_label_switches(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)
        aggregator.add_reading(CONFIDENT, 2.0)
        aggregator.add_reading(CONFIDENT, 3.0)

        assert aggregator.summarize().stability == pytest.approx(0.5)

    def test_frequent_nervousness_indicator(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)
        aggregator.add_reading(STRESSED, 2.0)

        indicators = aggregator.summarize().stress_indicators

        assert "Frequent nervousness or stress in answers" in indicators
        assert any(i.startswith("High stress detected in") for i in indicators)

    # =========================================================================
    # Timeline and Analysis Tests
    # =========================================================================

    def test_timeline_buckets(self, aggregator):
        aggregator.add_reading(NERVOUS, 5.0)
        aggregator.add_reading(CONFIDENT, 65.0)

        timeline = aggregator.timeline(duration_seconds=120, segments=4)

        assert len(timeline) == 4
        assert timeline[0].emotion == Emotion.NERVOUS
        assert timeline[1] is None
        assert timeline[2].emotion == Emotion.CONFIDENT
        assert timeline[3] is None

    def test_to_analysis(self, aggregator):
        aggregator.add_reading(NERVOUS, 1.0)

        analysis = aggregator.to_analysis()

        assert len(analysis["emotions"]) == 1
        assert analysis["dominant_emotion"] == "nervous"
        assert analysis["emotional_trend"] == "stable"
