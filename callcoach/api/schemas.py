"""
Interview Call Coach - API Request/Response Schemas.

Pydantic models for API validation.
"""

from pydantic import BaseModel, Field
from typing import Optional, Union
from datetime import datetime


# =============================================================================
# Call Data Schemas
# =============================================================================

class CostBreakdownResponse(BaseModel):
    """Provider cost components; total is the provider's figure."""
    llm: float = 0.0
    stt: float = 0.0
    tts: float = 0.0
    platform: float = 0.0
    total: Optional[float] = None


class CallMessageResponse(BaseModel):
    """One visible message of a call."""
    role: str
    text: str
    timestamp_ms: Optional[int] = None
    seconds_from_start: Optional[float] = None


class CallRecordResponse(BaseModel):
    """Normalized call record."""
    call_id: str
    status: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    messages: list[CallMessageResponse] = Field(default_factory=list)
    message_count: int = 0
    recording_url: Optional[str] = None
    stereo_recording_url: Optional[str] = None
    cost_breakdown: CostBreakdownResponse = Field(default_factory=CostBreakdownResponse)
    duration_minutes: Optional[Union[float, str]] = Field(
        default=None, description="Minutes, or 'in progress' for unterminated calls"
    )
    ended_reason: Optional[str] = None


class CallSummaryResponse(BaseModel):
    """Call list entry."""
    call_id: str
    status: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    cost: Optional[float] = None
    message_count: int = 0
    has_artifact: bool = False


class CallLogResponse(BaseModel):
    """Saved call log."""
    call_id: str
    session_id: str
    user_id: str
    saved_at: datetime
    record: dict
    emotion_analysis: Optional[dict] = None
    turns: list[dict] = Field(default_factory=list)


# =============================================================================
# Report Schemas
# =============================================================================

class FeedbackResponse(BaseModel):
    """AI-generated feedback report."""
    id: str
    call_id: str
    overall_score: int = Field(..., ge=0, le=100)
    communication_score: int = Field(..., ge=0, le=100)
    technical_score: int = Field(..., ge=0, le=100)
    problem_solving_score: int = Field(..., ge=0, le=100)
    confidence_score: int = Field(..., ge=0, le=100)
    strengths: list[str]
    weaknesses: list[str]
    suggestions: list[str]
    next_steps: list[str]
    ai_summary: str
    personalized_plan: list[str]
    response_time: float
    completion_rate: int
    duration: int
    created_at: datetime


class AspectResponse(BaseModel):
    """Score and comment for one evaluated aspect."""
    score: float = Field(..., ge=0, le=10)
    feedback: str


class EvaluationResponse(BaseModel):
    """Interview evaluation."""
    call_id: str
    overall_rating: float = Field(..., ge=0, le=10)
    recommendation: str
    confidence_level: int
    aspects: dict[str, AspectResponse]
    strengths: list[str]
    areas_for_improvement: list[str]
    detailed_feedback: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None
