"""
Interview Call Coach - API Routes.

FastAPI router for call data, saved call logs and AI reports.
Includes rate limiting on the endpoints that spend Gemini credits.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from callcoach.api.schemas import (
    CallLogResponse,
    CallRecordResponse,
    CallSummaryResponse,
    ErrorResponse,
    EvaluationResponse,
    FeedbackResponse,
)
from callcoach.app.service import (
    FeedbackErrorCondition,
    FeedbackErrorKind,
    InterviewService,
    create_service,
)
from callcoach.core.exceptions import (
    CallCoachError,
    CallDataFetchError,
    CallRecordNotFoundError,
    ConfigurationError,
    EmptyTranscriptError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    MissingCallIdError,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["calls"])

# Rate limiting: report generation is the expensive part
limiter = Limiter(key_func=get_remote_address)

_service: InterviewService | None = None


def get_service() -> InterviewService:
    """Shared InterviewService (created on first use)."""
    global _service
    if _service is None:
        _service = create_service()
    return _service


ERROR_STATUS: list[tuple[type, int]] = [
    (MissingCallIdError, 400),
    (EmptyTranscriptError, 400),
    (CallRecordNotFoundError, 404),
    (LLMRateLimitError, 429),
    (CallDataFetchError, 502),
    (LLMConnectionError, 502),
    (LLMResponseError, 502),
    (ConfigurationError, 500),
]

CONDITION_STATUS = {
    FeedbackErrorKind.MISSING_CALL_ID: 400,
    FeedbackErrorKind.NOT_FOUND: 404,
    FeedbackErrorKind.EMPTY_TRANSCRIPT: 400,
}


def to_http_error(error: CallCoachError) -> HTTPException:
    """Map a domain exception to an HTTPException."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# =============================================================================
# Call Data
# =============================================================================

@router.get("/calls", response_model=list[CallSummaryResponse])
async def list_calls(
    limit: int = Query(20, ge=1, le=100),
    service: InterviewService = Depends(get_service),
):
    """Recent calls, newest first."""
    try:
        summaries = await service.list_calls(limit)
        return [
            CallSummaryResponse(
                call_id=s.call_id,
                status=s.status,
                started_at=s.started_at,
                ended_at=s.ended_at,
                cost=s.cost,
                message_count=s.message_count,
                has_artifact=s.has_artifact,
            )
            for s in summaries
        ]
    except CallCoachError as e:
        logger.error(f"Failed to list calls: {e}")
        raise to_http_error(e)


@router.get("/calls/{call_id}", response_model=CallRecordResponse)
async def get_call(call_id: str, service: InterviewService = Depends(get_service)):
    """Normalized record for one call."""
    try:
        record = await service.get_call_record(call_id)
        return CallRecordResponse(**record.to_dict())
    except CallCoachError as e:
        logger.warning(f"Failed to get call {call_id}: {e}")
        raise to_http_error(e)


# =============================================================================
# Reports
# =============================================================================

@router.get(
    "/feedback",
    response_model=FeedbackResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit("30/hour")
async def get_feedback(
    request: Request,
    call_id: Optional[str] = Query(None, alias="callId", description="Call ID"),
    service: InterviewService = Depends(get_service),
):
    """Generate AI feedback for a call. Rate-limited to prevent LLM abuse."""
    try:
        result = await service.fetch_feedback(call_id)
    except CallCoachError as e:
        logger.error(f"Error generating feedback: {e}")
        raise to_http_error(e)

    if isinstance(result, FeedbackErrorCondition):
        return JSONResponse(
            status_code=CONDITION_STATUS[result.kind],
            content=ErrorResponse(error=result.message, detail=result.kind.value).model_dump(),
        )

    return FeedbackResponse(**result.to_dict())


@router.post("/calls/{call_id}/evaluation", response_model=EvaluationResponse)
@limiter.limit("30/hour")
async def evaluate_call(
    request: Request,
    call_id: str,
    service: InterviewService = Depends(get_service),
):
    """Hiring-style evaluation of a call."""
    try:
        evaluation = await service.evaluate_interview(call_id)
        return EvaluationResponse(**evaluation.to_dict())
    except CallCoachError as e:
        logger.error(f"Error evaluating call {call_id}: {e}")
        raise to_http_error(e)


# =============================================================================
# Saved Call Logs
# =============================================================================

@router.get("/call-logs", response_model=list[CallLogResponse])
async def list_call_logs(
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(50, ge=1, le=200),
    service: InterviewService = Depends(get_service),
):
    """Saved call logs, most recent first."""
    return [
        CallLogResponse(
            call_id=log.call_id,
            session_id=log.session_id,
            user_id=log.user_id,
            saved_at=log.saved_at,
            record=log.record,
            emotion_analysis=log.emotion_analysis,
            turns=log.turns,
        )
        for log in service.list_call_logs(user_id=user_id, limit=limit)
    ]


# =============================================================================
# Health Check
# =============================================================================

@router.get("/health")
async def health_check():
    """API health check."""
    return {"status": "healthy", "service": "Interview Call Coach"}
