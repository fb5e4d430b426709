"""
Interview Call Coach - Interview Service.

Host-facing entry points. Wires the session machine, reconciler,
requesters and call-log repository together:

- run_interview_session(): start a call and get its machine handle
- fetch_feedback(): feedback report or a typed caller-facing condition
- save_call_log(): record saver run by the machine after a call ends
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from callcoach.app.emotions import EmotionAggregator
from callcoach.app.evaluation import InterviewEvaluator
from callcoach.app.feedback import FeedbackRequester
from callcoach.app.reconciler import CallRecordReconciler
from callcoach.app.session import CallSessionMachine
from callcoach.core.config import Settings, get_settings
from callcoach.core.domain.models import (
    CallLog,
    CallSummary,
    FeedbackReport,
    InterviewEvaluation,
    NormalizedCallRecord,
    SessionConfig,
)
from callcoach.core.exceptions import (
    CallRecordNotFoundError,
    EmptyTranscriptError,
    MissingCallIdError,
)
from callcoach.infra.calls.vapi import BaseCallStore, VapiCallStore
from callcoach.infra.llm.gemini import BaseTextGenerator, GeminiTextGenerator
from callcoach.infra.persistence.repository import CallLogRepository
from callcoach.infra.transport.base import BaseTransport


logger = logging.getLogger(__name__)


class FeedbackErrorKind(str, Enum):
    """Caller-facing reasons feedback could not be produced."""
    MISSING_CALL_ID = "missing_call_id"
    NOT_FOUND = "not_found"
    EMPTY_TRANSCRIPT = "empty_transcript"


@dataclass(frozen=True)
class FeedbackErrorCondition:
    """Typed result returned instead of a report for caller-side problems."""

    kind: FeedbackErrorKind
    message: str
    call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind.value, "call_id": self.call_id}


class InterviewService:
    """
    Application service for interview calls.

    Usage:
        service = create_service()

        machine = await service.run_interview_session(config, transport)
        ...
        result = await service.fetch_feedback(call_id)
        if isinstance(result, FeedbackErrorCondition):
            ...
    """

    def __init__(
        self,
        store: BaseCallStore | None = None,
        generator: BaseTextGenerator | None = None,
        repository: CallLogRepository | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._settings = settings or get_settings()
        self._store = store or VapiCallStore()
        self._generator = generator or GeminiTextGenerator()
        self._repository = repository or CallLogRepository(self._settings.CALL_LOG_DIR)
        self._sleep = sleep

        self._reconciler = CallRecordReconciler(self._store)
        self._feedback = FeedbackRequester(self._generator, self._settings, sleep)
        self._evaluator = InterviewEvaluator(self._generator, self._settings, sleep)

    @property
    def repository(self) -> CallLogRepository:
        return self._repository

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def create_session(
        self,
        config: SessionConfig,
        transport: BaseTransport,
        aggregator: EmotionAggregator | None = None,
    ) -> CallSessionMachine:
        """Build an idle machine wired to this service's record saver."""
        return CallSessionMachine(
            transport,
            config,
            aggregator=aggregator or EmotionAggregator(),
            record_saver=self.save_call_log,
            settings=self._settings,
            sleep=self._sleep,
        )

    async def run_interview_session(
        self,
        config: SessionConfig,
        transport: BaseTransport,
        aggregator: EmotionAggregator | None = None,
    ) -> CallSessionMachine:
        """
        Start an interview call.

        Returns:
            The machine handle, already Connecting (or Active)

        Raises:
            TransportStartError: If the transport rejected the start
        """
        machine = self.create_session(config, transport, aggregator)
        await machine.start()
        return machine

    async def save_call_log(self, machine: CallSessionMachine, call_id: str) -> CallLog:
        """Reconcile a finished call and persist its call log."""
        record = await self._reconcile_when_available(call_id)
        session = machine.session

        call_log = CallLog(
            call_id=call_id,
            session_id=session.session_id if session else "",
            user_id=machine.config.participant_id,
            record=record.to_dict(),
            emotion_analysis=machine.aggregator.to_analysis() if len(machine.aggregator) else None,
            turns=[t.to_dict() for t in session.turns] if session else [],
        )
        self._repository.save(call_log)
        return call_log

    async def _reconcile_when_available(self, call_id: str) -> NormalizedCallRecord:
        # The backend may not have written the record yet right after the call ends
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(CallRecordNotFoundError),
            stop=stop_after_attempt(self._settings.RECORD_NOT_FOUND_RETRIES + 1),
            wait=wait_fixed(self._settings.RECONCILE_SETTLING_DELAY_SECONDS),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._reconciler.reconcile(call_id)

    # -------------------------------------------------------------------------
    # Call data
    # -------------------------------------------------------------------------

    async def get_call_record(self, call_id: str) -> NormalizedCallRecord:
        return await self._reconciler.reconcile(call_id)

    async def list_calls(self, limit: int = 20) -> list[CallSummary]:
        return await self._reconciler.list_recent_calls(limit)

    def get_call_log(self, call_id: str) -> CallLog | None:
        return self._repository.load(call_id)

    def list_call_logs(self, user_id: str | None = None, limit: int = 50) -> list[CallLog]:
        return self._repository.list_logs(user_id=user_id, limit=limit)

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def fetch_feedback(self, call_id: str | None) -> FeedbackReport | FeedbackErrorCondition:
        """
        Generate feedback for a call.

        Caller-side problems (no call ID, unknown call, nothing said) come
        back as a FeedbackErrorCondition. Generation and transport failures
        propagate as exceptions.
        """
        try:
            record = await self._reconciler.reconcile(call_id or "")
            return await self._feedback.request_feedback(record)
        except MissingCallIdError as e:
            return FeedbackErrorCondition(FeedbackErrorKind.MISSING_CALL_ID, e.message, call_id)
        except CallRecordNotFoundError:
            logger.info(f"Feedback requested for unknown call: {call_id}")
            return FeedbackErrorCondition(FeedbackErrorKind.NOT_FOUND, "Call not found", call_id)
        except EmptyTranscriptError as e:
            return FeedbackErrorCondition(FeedbackErrorKind.EMPTY_TRANSCRIPT, e.message, call_id)

    async def evaluate_interview(self, call_id: str) -> InterviewEvaluation:
        record = await self._reconciler.reconcile(call_id)
        return await self._evaluator.evaluate(record)


def create_service(**kwargs: Any) -> InterviewService:
    """Factory function to create an InterviewService."""
    return InterviewService(**kwargs)
