"""
Interview Call Coach - Affect Classifier.

Lexical emotion detection over finalized user transcripts.
This module analyzes HOW the candidate sounds in words, not WHAT they say.

Each emotion has a fixed list of cue phrases; the emotion with the most
weighted cue hits wins. Filler words ("um", "like", ...) raise the stress
level. The model is deterministic: the same text always yields the same
reading.
"""

from __future__ import annotations

import logging
import re
from typing import ClassVar

from callcoach.core.domain.models import (
    AffectMetrics,
    AffectReading,
    Emotion,
    Intensity,
)


logger = logging.getLogger(__name__)


# Texts shorter than this (after stripping) are too short to classify
MIN_TEXT_LENGTH = 10

# Intensity buckets over stress_level
LOW_INTENSITY_MAX = 0.33
MEDIUM_INTENSITY_MAX = 0.66

NEUTRAL_CONFIDENCE = 0.5


def intensity_for(stress_level: float) -> Intensity:
    """Bucket a stress level into an intensity."""
    if stress_level < LOW_INTENSITY_MAX:
        return Intensity.LOW
    if stress_level < MEDIUM_INTENSITY_MAX:
        return Intensity.MEDIUM
    return Intensity.HIGH


def is_classifiable(text: str | None) -> bool:
    """Check the minimum-length gate."""
    return bool(text) and len(text.strip()) >= MIN_TEXT_LENGTH


def neutral_reading(at_offset_seconds: float) -> AffectReading:
    """Reading used when classification is impossible."""
    stress = STRESS_BASELINE[Emotion.NEUTRAL]
    return AffectReading(
        emotion=Emotion.NEUTRAL,
        confidence=NEUTRAL_CONFIDENCE,
        intensity=intensity_for(stress),
        seconds_from_start=max(0.0, at_offset_seconds),
        additional_metrics=AffectMetrics(stress_level=stress, valence=0.0),
    )


STRESS_BASELINE: dict[Emotion, float] = {
    Emotion.CONFIDENT: 0.1,
    Emotion.ENTHUSIASTIC: 0.15,
    Emotion.NEUTRAL: 0.25,
    Emotion.UNCERTAIN: 0.4,
    Emotion.NERVOUS: 0.55,
    Emotion.STRESSED: 0.7,
}

VALENCE: dict[Emotion, float] = {
    Emotion.CONFIDENT: 0.6,
    Emotion.ENTHUSIASTIC: 0.8,
    Emotion.NEUTRAL: 0.0,
    Emotion.UNCERTAIN: -0.2,
    Emotion.NERVOUS: -0.5,
    Emotion.STRESSED: -0.7,
}


class AffectClassifier:
    """
    Keyword-based affect classifier.

    Usage:
        classifier = AffectClassifier()

        if classifier.is_classifiable(text):
            reading = classifier.classify(text, at_offset_seconds=42.0)
    """

    # (phrase, weight) cues per emotion
    EMOTION_CUES: ClassVar[dict[Emotion, list[tuple[str, float]]]] = {
        Emotion.CONFIDENT: [
            ("definitely", 1.0), ("absolutely", 1.0), ("certainly", 1.0),
            ("i'm confident", 1.5), ("i am confident", 1.5), ("confident", 1.0),
            ("i know", 0.8), ("clearly", 0.7), ("of course", 0.7),
            ("i built", 1.0), ("i led", 1.0), ("i designed", 1.0),
            ("i implemented", 1.0), ("i solved", 1.0), ("exactly", 0.6),
        ],
        Emotion.ENTHUSIASTIC: [
            ("excited", 1.5), ("love", 1.2), ("passionate", 1.5),
            ("amazing", 1.2), ("awesome", 1.2), ("great", 0.8),
            ("fantastic", 1.2), ("really enjoy", 1.2), ("enjoy", 0.8),
            ("interesting", 0.7), ("fun", 0.7), ("can't wait", 1.2),
        ],
        Emotion.UNCERTAIN: [
            ("i think", 0.7), ("maybe", 0.8), ("perhaps", 0.8),
            ("not sure", 1.2), ("i'm not sure", 1.5), ("i guess", 1.0),
            ("probably", 0.6), ("i don't know", 1.5), ("might be", 0.7),
            ("kind of", 0.5), ("sort of", 0.5), ("i suppose", 0.8),
        ],
        Emotion.NERVOUS: [
            ("nervous", 1.5), ("anxious", 1.5), ("worried", 1.2),
            ("scared", 1.2), ("afraid", 1.2), ("sorry", 0.6),
            ("hopefully", 0.6), ("blank", 0.8), ("forgot", 0.8),
        ],
        Emotion.STRESSED: [
            ("stressed", 1.5), ("stress", 1.2), ("pressure", 1.2),
            ("overwhelmed", 1.5), ("struggle", 1.0), ("struggling", 1.2),
            ("difficult", 0.8), ("hard time", 1.0), ("frustrated", 1.2),
            ("stuck", 1.0), ("panic", 1.5),
        ],
    }

    FILLER_WORDS: ClassVar[list[str]] = [
        "um", "uh", "uhm", "umm", "er", "like", "you know", "i mean",
    ]

    # Tie-break order when two emotions score equally
    PRIORITY: ClassVar[list[Emotion]] = [
        Emotion.STRESSED,
        Emotion.NERVOUS,
        Emotion.UNCERTAIN,
        Emotion.CONFIDENT,
        Emotion.ENTHUSIASTIC,
    ]

    def __init__(self):
        self._cue_patterns = {
            emotion: [(self._compile(phrase), weight) for phrase, weight in cues]
            for emotion, cues in self.EMOTION_CUES.items()
        }
        self._filler_patterns = [self._compile(f) for f in self.FILLER_WORDS]

    @staticmethod
    def _compile(phrase: str) -> re.Pattern[str]:
        return re.compile(r"\b" + re.escape(phrase) + r"\b", re.IGNORECASE)

    def is_classifiable(self, text: str | None) -> bool:
        return is_classifiable(text)

    def classify(self, text: str, at_offset_seconds: float) -> AffectReading:
        """
        Classify the affect of one utterance.

        Args:
            text: Finalized user transcript (callers apply the length gate)
            at_offset_seconds: Seconds since the call became active

        Returns:
            AffectReading; a neutral reading if anything goes wrong
        """
        try:
            return self._classify(text, at_offset_seconds)
        except Exception as e:
            logger.warning(f"Affect classification failed, using neutral reading: {e}")
            return neutral_reading(at_offset_seconds)

    def _classify(self, text: str, at_offset_seconds: float) -> AffectReading:
        offset = max(0.0, float(at_offset_seconds))
        if not is_classifiable(text):
            return neutral_reading(offset)

        scores: dict[Emotion, float] = {}
        hits: dict[Emotion, int] = {}
        for emotion, patterns in self._cue_patterns.items():
            score = 0.0
            count = 0
            for pattern, weight in patterns:
                found = len(pattern.findall(text))
                if found:
                    score += weight * found
                    count += found
            scores[emotion] = score
            hits[emotion] = count

        filler_count = sum(len(p.findall(text)) for p in self._filler_patterns)
        total = sum(scores.values())

        if total == 0:
            emotion = Emotion.NEUTRAL
            confidence = NEUTRAL_CONFIDENCE
        else:
            top = max(scores.values())
            emotion = next(e for e in self.PRIORITY if scores[e] == top)
            share = top / total
            confidence = 0.35 + 0.45 * share + 0.05 * min(hits[emotion], 4)

        stress = STRESS_BASELINE[emotion]
        stress += 0.05 * min(filler_count, 6)
        stress += 0.1 * (hits.get(Emotion.STRESSED, 0) + hits.get(Emotion.NERVOUS, 0))
        stress = _clamp(stress, 0.0, 1.0)

        return AffectReading(
            emotion=emotion,
            confidence=round(_clamp(confidence, 0.0, 1.0), 3),
            intensity=intensity_for(stress),
            seconds_from_start=offset,
            additional_metrics=AffectMetrics(
                stress_level=round(stress, 3),
                valence=VALENCE[emotion],
            ),
        )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
