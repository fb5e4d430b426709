"""
Interview Call Coach - Domain Models.

Defines the core data structures used throughout the application.
Uses dataclasses for clarity and immutability where appropriate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class CallStatus(str, Enum):
    """States in the call session state machine."""
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    FINISHED = "finished"


class Role(str, Enum):
    """Speaker of a finalized utterance."""
    USER = "user"
    ASSISTANT = "assistant"


class Emotion(str, Enum):
    """Closed vocabulary of the affect classifier."""
    CONFIDENT = "confident"
    ENTHUSIASTIC = "enthusiastic"
    NEUTRAL = "neutral"
    UNCERTAIN = "uncertain"
    NERVOUS = "nervous"
    STRESSED = "stressed"


class Intensity(str, Enum):
    """Bucketed stress/arousal level of a reading."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EmotionalTrend(str, Enum):
    """Direction of affect between the first and second half of a call."""
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Difficulty(str, Enum):
    """Difficulty of a coding question."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


# -----------------------------------------------------------------------------
# Affect Models
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class AffectMetrics:
    """Derived metrics attached to a reading."""

    stress_level: float = 0.0  # [0, 1]
    valence: float = 0.0  # [-1, 1], negative = unpleasant

    def to_dict(self) -> dict[str, Any]:
        return {
            "stress_level": round(self.stress_level, 3),
            "valence": round(self.valence, 3),
        }


@dataclass(frozen=True)
class AffectReading:
    """One emotion classification result."""

    emotion: Emotion
    confidence: float
    intensity: Intensity
    seconds_from_start: float
    additional_metrics: AffectMetrics = field(default_factory=AffectMetrics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "emotion": self.emotion.value,
            "confidence": round(self.confidence, 3),
            "intensity": self.intensity.value,
            "seconds_from_start": round(self.seconds_from_start, 2),
            "additional_metrics": self.additional_metrics.to_dict(),
        }


@dataclass(frozen=True)
class EmotionSummary:
    """Rolling summary over an emotion history. Never persisted on its own."""

    dominant_emotion: Emotion = Emotion.NEUTRAL
    trend: EmotionalTrend = EmotionalTrend.STABLE
    average_confidence: float = 0.0
    stability: float = 1.0
    stress_indicators: tuple[str, ...] = ()
    reading_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "dominant_emotion": self.dominant_emotion.value,
            "emotional_trend": self.trend.value,
            "average_confidence": round(self.average_confidence, 3),
            "emotional_stability": round(self.stability, 3),
            "stress_indicators": list(self.stress_indicators),
            "reading_count": self.reading_count,
        }


@dataclass(frozen=True)
class TimelineSegment:
    """Aggregated readings for one slice of the call timeline."""

    start_seconds: float
    end_seconds: float
    emotion: Emotion
    confidence: float
    stress_level: float
    count: int


# -----------------------------------------------------------------------------
# Session Models
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Turn:
    """One finalized utterance. Immutable once appended."""

    role: Role
    text: str
    timestamp_ms: int
    affect: AffectReading | None = None
    is_text_solution: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "text": self.text,
            "timestamp_ms": self.timestamp_ms,
            "affect": self.affect.to_dict() if self.affect else None,
            "is_text_solution": self.is_text_solution,
        }


@dataclass(frozen=True)
class DSAQuestion:
    """Coding question detected in the interviewer's speech."""

    title: str
    difficulty: Difficulty
    problem: str
    constraints: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "difficulty": self.difficulty.value,
            "problem": self.problem,
            "constraints": list(self.constraints) if self.constraints else None,
        }


@dataclass
class SessionConfig:
    """What the transport needs to know to start an interview call."""

    participant_name: str
    participant_id: str
    dsa_chat_enabled: bool = True
    context_text: str = ""  # e.g. resume content

    def to_variables(self) -> dict[str, str]:
        """Flatten to the string-only variables the transport accepts."""
        return {
            "username": self.participant_name,
            "userId": self.participant_id,
            "dsaChatEnabled": "true" if self.dsa_chat_enabled else "false",
            "resumeContent": self.context_text,
        }


@dataclass
class CallSession:
    """One active or completed interview call."""

    session_id: str
    transport_call_id: str | None = None
    status: CallStatus = CallStatus.IDLE
    turns: list[Turn] = field(default_factory=list)
    pending_assistant_buffer: str = ""

    # Side-channel (coding chat) state
    active_question: DSAQuestion | None = None
    chat_open: bool = False
    question_published_in_window: bool = False
    is_speaking: bool = False

    # Timing
    created_at: datetime = field(default_factory=datetime.now)
    started_at_ms: int | None = None
    ended_at_ms: int | None = None

    def append_turn(self, turn: Turn) -> Turn:
        """Append a turn, never letting timestamps go backwards."""
        if self.turns and turn.timestamp_ms < self.turns[-1].timestamp_ms:
            turn = Turn(
                role=turn.role,
                text=turn.text,
                timestamp_ms=self.turns[-1].timestamp_ms,
                affect=turn.affect,
                is_text_solution=turn.is_text_solution,
            )
        self.turns.append(turn)
        return turn

    def reset_side_channel(self) -> None:
        """Drop assistant buffer and coding-chat state."""
        self.pending_assistant_buffer = ""
        self.question_published_in_window = False
        self.active_question = None
        self.chat_open = False

    @property
    def duration_seconds(self) -> float:
        if self.started_at_ms is None:
            return 0.0
        end = self.ended_at_ms if self.ended_at_ms is not None else (
            self.turns[-1].timestamp_ms if self.turns else self.started_at_ms
        )
        return max(0.0, (end - self.started_at_ms) / 1000)

    def to_summary_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "call_id": self.transport_call_id,
            "status": self.status.value,
            "turn_count": len(self.turns),
            "user_turns": sum(1 for t in self.turns if t.role is Role.USER),
            "duration_seconds": round(self.duration_seconds, 1),
        }


# -----------------------------------------------------------------------------
# Call Record Models
# -----------------------------------------------------------------------------

DURATION_IN_PROGRESS = "in progress"


@dataclass(frozen=True)
class CostBreakdown:
    """Provider-reported costs. `total` is the provider's figure, not a sum."""

    llm: float = 0.0
    stt: float = 0.0
    tts: float = 0.0
    platform: float = 0.0
    total: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "llm": self.llm,
            "stt": self.stt,
            "tts": self.tts,
            "platform": self.platform,
            "total": self.total,
        }


@dataclass(frozen=True)
class CallMessage:
    """One message of a fetched call, flattened from the provider shape."""

    role: str
    text: str
    timestamp_ms: int | None = None
    seconds_from_start: float | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_system(self) -> bool:
        return self.role == "system"

    @property
    def has_content(self) -> bool:
        return bool(self.text and self.text.strip())

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "text": self.text,
            "timestamp_ms": self.timestamp_ms,
            "seconds_from_start": self.seconds_from_start,
        }


@dataclass(frozen=True)
class NormalizedCallRecord:
    """Reconciled view of one call's backend artifacts."""

    call_id: str
    status: str
    started_at: datetime | None = None
    ended_at: datetime | None = None
    messages: tuple[CallMessage, ...] = ()
    recording_url: str | None = None
    stereo_recording_url: str | None = None
    cost_breakdown: CostBreakdown = field(default_factory=CostBreakdown)
    ended_reason: str | None = None

    @property
    def visible_messages(self) -> list[CallMessage]:
        """Messages shown to downstream consumers (system prompts removed)."""
        return [m for m in self.messages if not m.is_system]

    @property
    def message_count(self) -> int:
        return len(self.visible_messages)

    @property
    def duration(self) -> float | str | None:
        """Minutes between start and end, DURATION_IN_PROGRESS if not ended."""
        if self.ended_at is None:
            return DURATION_IN_PROGRESS
        if self.started_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds() / 60

    @property
    def is_ended(self) -> bool:
        return self.status == "ended"

    def to_dict(self) -> dict[str, Any]:
        duration = self.duration
        return {
            "call_id": self.call_id,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "messages": [m.to_dict() for m in self.visible_messages],
            "message_count": self.message_count,
            "recording_url": self.recording_url,
            "stereo_recording_url": self.stereo_recording_url,
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "duration_minutes": round(duration, 2) if isinstance(duration, float) else duration,
            "ended_reason": self.ended_reason,
        }


@dataclass(frozen=True)
class CallSummary:
    """List-view entry for a call."""

    call_id: str
    status: str
    started_at: datetime | None = None
    ended_at: datetime | None = None
    cost: float | None = None
    message_count: int = 0
    has_artifact: bool = False


@dataclass
class CallLog:
    """A saved call: reconciled record plus what the live session observed."""

    call_id: str
    session_id: str
    user_id: str
    record: dict[str, Any]
    emotion_analysis: dict[str, Any] | None = None
    turns: list[dict[str, Any]] = field(default_factory=list)
    saved_at: datetime = field(default_factory=datetime.now)


# -----------------------------------------------------------------------------
# Report Models
# -----------------------------------------------------------------------------

@dataclass
class FeedbackReport:
    """AI-generated performance feedback for one call."""

    call_id: str
    overall_score: int = 0
    communication_score: int = 0
    technical_score: int = 0
    problem_solving_score: int = 0
    confidence_score: int = 0
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    ai_summary: str = ""
    personalized_plan: list[str] = field(default_factory=list)

    # Computed from the call record, not the model
    response_time: float = 0.0
    completion_rate: int = 0
    duration: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def id(self) -> str:
        return f"feedback_{self.call_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "call_id": self.call_id,
            "overall_score": self.overall_score,
            "communication_score": self.communication_score,
            "technical_score": self.technical_score,
            "problem_solving_score": self.problem_solving_score,
            "confidence_score": self.confidence_score,
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
            "suggestions": self.suggestions,
            "next_steps": self.next_steps,
            "ai_summary": self.ai_summary,
            "personalized_plan": self.personalized_plan,
            "response_time": round(self.response_time, 2),
            "completion_rate": self.completion_rate,
            "duration": self.duration,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AspectRating:
    """Score (0-10) and comment for one evaluated aspect."""

    score: float = 0.0
    feedback: str = ""


@dataclass
class InterviewEvaluation:
    """Hiring-style evaluation of a call."""

    call_id: str
    overall_rating: float = 0.0
    recommendation: str = "No Hire"
    confidence_level: int = 0
    aspects: dict[str, AspectRating] = field(default_factory=dict)
    strengths: list[str] = field(default_factory=list)
    areas_for_improvement: list[str] = field(default_factory=list)
    detailed_feedback: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "call_id": self.call_id,
            "overall_rating": round(self.overall_rating, 1),
            "recommendation": self.recommendation,
            "confidence_level": self.confidence_level,
            "aspects": {
                name: {"score": round(a.score, 1), "feedback": a.feedback}
                for name, a in self.aspects.items()
            },
            "strengths": self.strengths,
            "areas_for_improvement": self.areas_for_improvement,
            "detailed_feedback": self.detailed_feedback,
        }
