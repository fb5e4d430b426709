"""
Interview Call Coach - Emotion Aggregator.

Owns the ordered emotion history of one call session and derives the
summary shown after the interview: dominant emotion, trend, average
confidence, stability and stress indicators.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

import numpy as np

from callcoach.app.affect import AffectClassifier, MEDIUM_INTENSITY_MAX
from callcoach.core.domain.models import (
    AffectReading,
    Emotion,
    EmotionalTrend,
    EmotionSummary,
    TimelineSegment,
)


logger = logging.getLogger(__name__)


# Mood score delta (second half - first half) needed to call a trend
TREND_THRESHOLD = 0.1

# Stress indicator thresholds
HIGH_STRESS_LEVEL = MEDIUM_INTENSITY_MAX
ELEVATED_AVERAGE_STRESS = 0.5
STRESS_RISE_THRESHOLD = 0.15
ANXIOUS_SHARE_THRESHOLD = 0.4


class EmotionAggregator:
    """
    Append-only emotion history for a single session.

    Only the session's turn-processing path calls add_reading(), so
    readings are appended in the order their turns were processed.
    """

    def __init__(self, classifier: AffectClassifier | None = None):
        self._classifier = classifier or AffectClassifier()
        self._history: list[AffectReading] = []

    @property
    def classifier(self) -> AffectClassifier:
        return self._classifier

    @property
    def history(self) -> tuple[AffectReading, ...]:
        """Snapshot of readings in insertion order."""
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def add_reading(self, text: str, offset_seconds: float) -> AffectReading | None:
        """
        Classify text and append the reading.

        Returns:
            The new reading, or None if the text is too short to classify
        """
        if not self._classifier.is_classifiable(text):
            return None

        # Keep the history monotonic even if the caller's clock jitters
        if self._history:
            offset_seconds = max(offset_seconds, self._history[-1].seconds_from_start)

        reading = self._classifier.classify(text, offset_seconds)
        self._history.append(reading)
        logger.debug(
            f"Emotion reading #{len(self._history)}: {reading.emotion.value} "
            f"({reading.confidence:.2f}) at {reading.seconds_from_start:.1f}s"
        )
        return reading

    def clear(self) -> None:
        """Reset the history for a discarded session."""
        self._history.clear()

    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------

    def summarize(self) -> EmotionSummary:
        """Recompute the summary over the current history."""
        readings = list(self._history)
        if not readings:
            return EmotionSummary()

        labels = [r.emotion for r in readings]
        confidences = np.array([r.confidence for r in readings], dtype=np.float64)
        stress = np.array(
            [r.additional_metrics.stress_level for r in readings], dtype=np.float64
        )

        # Counter.most_common is stable, so ties go to the earliest label
        dominant = Counter(labels).most_common(1)[0][0]

        return EmotionSummary(
            dominant_emotion=dominant,
            trend=self._trend(readings),
            average_confidence=float(confidences.mean()),
            stability=self._stability(labels),
            stress_indicators=tuple(self._stress_indicators(labels, stress)),
            reading_count=len(readings),
        )

    @staticmethod
    def _mood(reading: AffectReading) -> float:
        return reading.additional_metrics.valence - reading.additional_metrics.stress_level

    def _trend(self, readings: list[AffectReading]) -> EmotionalTrend:
        """Compare first vs second half of the sequence (by position)."""
        if len(readings) < 2:
            return EmotionalTrend.STABLE

        half = len(readings) // 2
        first = np.mean([self._mood(r) for r in readings[:half]])
        second = np.mean([self._mood(r) for r in readings[half:]])
        delta = float(second - first)

        if delta > TREND_THRESHOLD:
            return EmotionalTrend.IMPROVING
        if delta < -TREND_THRESHOLD:
            return EmotionalTrend.DECLINING
        return EmotionalTrend.STABLE

    @staticmethod
    def _stability(labels: list[Emotion]) -> float:
        """Share of consecutive readings that keep the same label."""
        if len(labels) < 2:
            return 1.0
        switches = sum(1 for a, b in zip(labels, labels[1:]) if a != b)
        return 1.0 - switches / (len(labels) - 1)

    @staticmethod
    def _stress_indicators(labels: list[Emotion], stress: np.ndarray) -> list[str]:
        indicators: list[str] = []

        high_count = int((stress >= HIGH_STRESS_LEVEL).sum())
        if high_count:
            indicators.append(f"High stress detected in {high_count} response(s)")

        if float(stress.mean()) >= ELEVATED_AVERAGE_STRESS:
            indicators.append("Elevated average stress level")

        if len(stress) >= 2:
            half = len(stress) // 2
            if float(stress[half:].mean() - stress[:half].mean()) > STRESS_RISE_THRESHOLD:
                indicators.append("Stress increased as the interview progressed")

        anxious = sum(1 for e in labels if e in (Emotion.NERVOUS, Emotion.STRESSED))
        if anxious / len(labels) >= ANXIOUS_SHARE_THRESHOLD:
            indicators.append("Frequent nervousness or stress in answers")

        return indicators

    # -------------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------------

    def timeline(
        self,
        duration_seconds: float = 300,
        segments: int = 10,
    ) -> list[TimelineSegment | None]:
        """
        Bucket readings into equal time segments.

        Args:
            duration_seconds: Total call duration covered by the timeline
            segments: Number of buckets

        Returns:
            One entry per bucket; None where the bucket has no readings
        """
        if segments <= 0 or duration_seconds <= 0:
            return []

        width = duration_seconds / segments
        result: list[TimelineSegment | None] = []

        for i in range(segments):
            start, end = i * width, (i + 1) * width
            bucket = [r for r in self._history if start <= r.seconds_from_start < end]
            if not bucket:
                result.append(None)
                continue

            emotion = Counter(r.emotion for r in bucket).most_common(1)[0][0]
            result.append(
                TimelineSegment(
                    start_seconds=start,
                    end_seconds=end,
                    emotion=emotion,
                    confidence=float(np.mean([r.confidence for r in bucket])),
                    stress_level=float(
                        np.mean([r.additional_metrics.stress_level for r in bucket])
                    ),
                    count=len(bucket),
                )
            )

        return result

    def to_analysis(self) -> dict[str, Any]:
        """Emotion analysis block saved alongside a call log."""
        summary = self.summarize()
        return {
            "emotions": [r.to_dict() for r in self._history],
            **summary.to_dict(),
        }
