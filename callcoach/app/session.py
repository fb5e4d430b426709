"""
Interview Call Coach - Call Session State Machine.

Drives one voice interview call through the transport and keeps the
locally observed record of it: finalized turns, emotion readings and the
coding-question side channel.

State Flow:
IDLE -> CONNECTING -> ACTIVE -> FINISHED -> IDLE
CONNECTING -> IDLE (start failure or disconnect while connecting)

All mutation happens on the event loop that delivers transport events.
Anything slow (fallback call-id probe, settling delay, save, return to
Idle) runs as a background task owned by the machine.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable

from callcoach.app.emotions import EmotionAggregator
from callcoach.app.questions import contains_coding_trigger, parse_question
from callcoach.core.config import Settings, get_settings
from callcoach.core.domain.models import (
    CallSession,
    CallStatus,
    DSAQuestion,
    EmotionSummary,
    Role,
    SessionConfig,
    Turn,
)
from callcoach.core.exceptions import (
    InvalidSessionStateError,
    TransportSendError,
    TransportStartError,
    UnreconcilableSessionError,
)
from callcoach.core.prompts import (
    NOTICES,
    RESUME_SYSTEM_MESSAGE,
    RESUME_USER_MESSAGE,
    SOLUTION_SYSTEM_MESSAGE,
    SOLUTION_USER_MESSAGE,
    TEXT_SOLUTION_PREFIX,
)
from callcoach.infra.transport.base import (
    BaseTransport,
    TransportEvent,
    TransportSubscription,
    Utterance,
    add_message_envelope,
    is_benign_termination,
)


logger = logging.getLogger(__name__)


RecordSaver = Callable[["CallSessionMachine", str], Awaitable[Any]]

TRANSITIONS: dict[CallStatus, set[CallStatus]] = {
    CallStatus.IDLE: {CallStatus.CONNECTING},
    CallStatus.CONNECTING: {CallStatus.ACTIVE, CallStatus.IDLE},
    CallStatus.ACTIVE: {CallStatus.FINISHED},
    CallStatus.FINISHED: {CallStatus.IDLE},
}


def _now_ms() -> int:
    return int(time.time() * 1000)


class CallSessionMachine:
    """
    State machine for one interview call at a time.

    Usage:
        machine = CallSessionMachine(transport, SessionConfig("Ada", "u-1"))
        machine.set_on_question(show_coding_panel)

        await machine.start()
        ...
        await machine.submit_solution("def reverse(head): ...")
        await machine.disconnect()
    """

    def __init__(
        self,
        transport: BaseTransport,
        config: SessionConfig,
        aggregator: EmotionAggregator | None = None,
        record_saver: RecordSaver | None = None,
        assistant_ref: str | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], int] | None = None,
    ):
        """
        Initialize the machine.

        Args:
            transport: Call transport handle (owned by the caller)
            config: Participant and feature configuration for start()
            aggregator: Emotion aggregator bound to this machine
            record_saver: Coroutine run after the call ends to reconcile/save
            assistant_ref: Provider assistant ID (defaults to settings)
            settings: Settings override
            sleep: Awaitable delay, replaceable in tests
            clock: Epoch-milliseconds clock, replaceable in tests
        """
        self._settings = settings or get_settings()
        self._transport = transport
        self._config = config
        self._aggregator = aggregator or EmotionAggregator()
        self._record_saver = record_saver
        self._assistant_ref = assistant_ref or self._settings.VAPI_ASSISTANT_ID
        self._sleep = sleep
        self._clock = clock or _now_ms

        self._status = CallStatus.IDLE
        self._session: CallSession | None = None
        self._subscription: TransportSubscription | None = None
        self._tasks: set[asyncio.Task] = set()
        self._start_attempt = 0
        self._saving = False

        # Outcome of the last finished call
        self.terminal_condition: UnreconcilableSessionError | None = None
        self.save_error: Exception | None = None
        self.saved_result: Any = None

        # Callbacks for UI updates
        self._on_state_change: Callable[[CallStatus], None] | None = None
        self._on_question: Callable[[DSAQuestion], None] | None = None
        self._on_chat_open: Callable[[bool], None] | None = None
        self._on_notice: Callable[[str, str], None] | None = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CallStatus:
        return self._status

    @property
    def session(self) -> CallSession | None:
        """Current (or most recent) session."""
        return self._session

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def aggregator(self) -> EmotionAggregator:
        return self._aggregator

    @property
    def is_active(self) -> bool:
        return self._status is CallStatus.ACTIVE

    @property
    def is_saving(self) -> bool:
        return self._saving

    def emotion_summary(self) -> EmotionSummary:
        return self._aggregator.summarize()

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def set_on_state_change(self, callback: Callable[[CallStatus], None]) -> None:
        """Set callback for state changes."""
        self._on_state_change = callback

    def set_on_question(self, callback: Callable[[DSAQuestion], None]) -> None:
        """Set callback for newly published coding questions."""
        self._on_question = callback

    def set_on_chat_open(self, callback: Callable[[bool], None]) -> None:
        """Set callback for opening/closing the coding side channel."""
        self._on_chat_open = callback

    def set_on_notice(self, callback: Callable[[str, str], None]) -> None:
        """Set callback for user-visible notices (key, message)."""
        self._on_notice = callback

    def _transition(self, new_state: CallStatus) -> bool:
        if new_state not in TRANSITIONS[self._status]:
            logger.warning(f"Ignoring invalid transition {self._status.value} -> {new_state.value}")
            return False
        self._status = new_state
        if self._session:
            self._session.status = new_state
        logger.info(f"State: {new_state.value}")
        if self._on_state_change:
            self._on_state_change(new_state)
        return True

    def _notice(self, key: str) -> None:
        message = NOTICES[key]
        logger.debug(f"Notice [{key}]: {message}")
        if self._on_notice:
            self._on_notice(key, message)

    def _set_chat_open(self, is_open: bool) -> None:
        if self._session is None or self._session.chat_open == is_open:
            return
        self._session.chat_open = is_open
        if self._on_chat_open:
            self._on_chat_open(is_open)

    # -------------------------------------------------------------------------
    # Subscriptions and tasks
    # -------------------------------------------------------------------------

    def _subscribe(self) -> None:
        self._release_subscription()
        self._subscription = (
            self._transport.subscribe()
            .on(TransportEvent.STARTED, self._on_started)
            .on(TransportEvent.ENDED, self._on_ended)
            .on(TransportEvent.UTTERANCE, self._on_utterance)
            .on(TransportEvent.SPEECH_BOUNDARY, self._on_speech_boundary)
            .on(TransportEvent.ERROR, self._on_error)
        )

    def _release_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_tasks(self) -> None:
        """Wait until all background work (probe, save, reset) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Release transport handlers. In-flight saves keep running."""
        self._release_subscription()

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    async def start(self) -> CallSession:
        """
        Start a new call (Idle -> Connecting).

        Returns:
            The new CallSession

        Raises:
            InvalidSessionStateError: If a call is already in progress
            TransportStartError: If the transport rejects the start
        """
        if self._status is not CallStatus.IDLE:
            raise InvalidSessionStateError(self._status.value, CallStatus.IDLE.value)

        self._aggregator.clear()
        self.terminal_condition = None
        self.save_error = None
        self.saved_result = None
        self._start_attempt += 1
        attempt = self._start_attempt

        session = CallSession(session_id=str(uuid.uuid4())[:8])
        self._session = session
        self._subscribe()
        self._transition(CallStatus.CONNECTING)

        try:
            result = await self._transport.start(
                self._assistant_ref, self._config.to_variables()
            )
        except Exception as e:
            if attempt != self._start_attempt:
                logger.info(f"Start rejected after it was cancelled: {e}")
                return session
            logger.error(f"Failed to start call: {e}")
            if self._status is CallStatus.ACTIVE:
                # The call already reported started; end it like any other call
                self._finish()
                raise TransportStartError(str(e)) from e
            self._release_subscription()
            self._transition(CallStatus.IDLE)
            self._notice("start_failed")
            raise TransportStartError(str(e)) from e

        if attempt != self._start_attempt:
            logger.info("Start acknowledged after disconnect; discarding call")
            await self._stop_transport()
            return session

        call_id = result.call_id if result else None
        if call_id:
            session.transport_call_id = call_id
            logger.info(f"Call started with ID captured: {call_id}")
        else:
            logger.warning("No call ID in start response; scheduling fallback probe")
            self._spawn(self._probe_after_start(session))

        return session

    async def disconnect(self) -> None:
        """Local disconnect intent."""
        if self._status is CallStatus.CONNECTING:
            logger.info("Disconnect while connecting; cancelling start")
            self._start_attempt += 1
            self._release_subscription()
            self._aggregator.clear()
            self._transition(CallStatus.IDLE)
            await self._stop_transport()
        elif self._status is CallStatus.ACTIVE:
            self._finish()
            await self._stop_transport()
        else:
            logger.debug(f"Disconnect ignored in state {self._status.value}")

    async def submit_solution(self, solution: str) -> Turn:
        """
        Record a typed coding solution and forward it to the interviewer.

        The synthetic turn is kept even if the transport send fails.

        Raises:
            InvalidSessionStateError: If the call is not active
        """
        if self._status is not CallStatus.ACTIVE or self._session is None:
            raise InvalidSessionStateError(self._status.value, CallStatus.ACTIVE.value)

        solution = solution.strip()
        if not solution:
            raise ValueError("Solution text is empty")

        turn = self._session.append_turn(
            Turn(
                role=Role.USER,
                text=f"{TEXT_SOLUTION_PREFIX}{solution}",
                timestamp_ms=self._clock(),
                is_text_solution=True,
            )
        )
        await self._send_pair(
            SOLUTION_SYSTEM_MESSAGE,
            SOLUTION_USER_MESSAGE.format(solution=solution),
        )
        self._notice("solution_submitted")
        return turn

    async def send_context(self, text: str) -> bool:
        """
        Attach freeform context (e.g. a resume) to the interview.

        Sent in-band when the call is active; otherwise kept for the next start.

        Returns:
            True if it was delivered to a live call
        """
        self._config.context_text = text

        if self._status is CallStatus.ACTIVE:
            delivered = await self._send_pair(
                RESUME_SYSTEM_MESSAGE.format(resume=text),
                RESUME_USER_MESSAGE,
            )
            self._notice("resume_sent")
            return delivered

        self._notice("resume_attached")
        return False

    # -------------------------------------------------------------------------
    # Transport event handlers
    # -------------------------------------------------------------------------

    def _on_started(self, *_: Any) -> None:
        if self._status is not CallStatus.CONNECTING or self._session is None:
            logger.debug(f"'started' ignored in state {self._status.value}")
            return
        self._session.started_at_ms = self._clock()
        self._transition(CallStatus.ACTIVE)

    def _on_ended(self, *_: Any) -> None:
        if self._status is not CallStatus.ACTIVE:
            logger.debug(f"'ended' ignored in state {self._status.value}")
            return
        self._finish()

    def _on_speech_boundary(self, speaking: Any = False, *_: Any) -> None:
        if self._status is CallStatus.ACTIVE and self._session:
            self._session.is_speaking = bool(speaking)

    def _on_error(self, error: Any = None, *_: Any) -> None:
        if is_benign_termination(error):
            logger.info("Call ended normally")
            return
        # The paired 'ended' event drives any transition
        logger.error(f"Transport error: {error}")

    def _on_utterance(self, utterance: Utterance, *_: Any) -> None:
        if self._status is not CallStatus.ACTIVE or self._session is None:
            logger.debug(f"'utterance' ignored in state {self._status.value}")
            return
        if not utterance.is_final:
            return

        role = self._parse_role(utterance.role)
        if role is None:
            logger.debug(f"Skipping utterance with role {utterance.role!r}")
            return

        session = self._session
        text = utterance.text or ""
        timestamp = utterance.timestamp_ms or self._clock()

        affect = None
        if role is Role.USER and self._aggregator.classifier.is_classifiable(text):
            affect = self._aggregator.add_reading(text, self._offset_seconds(timestamp))

        session.append_turn(
            Turn(role=role, text=text, timestamp_ms=timestamp, affect=affect)
        )

        if role is Role.ASSISTANT:
            session.pending_assistant_buffer = (
                f"{session.pending_assistant_buffer} {text}".strip()
            )
            if self._config.dsa_chat_enabled:
                self._scan_for_question(session)
        else:
            # A new assistant turn starts a fresh window
            session.pending_assistant_buffer = ""
            session.question_published_in_window = False

    @staticmethod
    def _parse_role(raw_role: str) -> Role | None:
        if raw_role == "bot":
            return Role.ASSISTANT
        try:
            return Role(raw_role)
        except ValueError:
            return None

    def _offset_seconds(self, timestamp_ms: int) -> float:
        started = self._session.started_at_ms if self._session else None
        if started is None:
            return 0.0
        return max(0.0, (timestamp_ms - started) / 1000)

    def _scan_for_question(self, session: CallSession) -> None:
        buffer = session.pending_assistant_buffer
        if not contains_coding_trigger(buffer):
            return

        self._set_chat_open(True)

        # One question per window; re-matching the same buffer is not a new question
        if session.question_published_in_window:
            return

        question = parse_question(buffer)
        if question is None:
            return

        session.active_question = question
        session.question_published_in_window = True
        logger.info(f"Coding question detected: {question.title} ({question.difficulty.value})")
        if self._on_question:
            self._on_question(question)

    # -------------------------------------------------------------------------
    # Finishing
    # -------------------------------------------------------------------------

    def _finish(self) -> None:
        session = self._session
        session.ended_at_ms = self._clock()
        self._set_chat_open(False)
        session.reset_side_channel()
        self._transition(CallStatus.FINISHED)
        self._spawn(self._finalize(session))

    async def _stop_transport(self) -> None:
        try:
            await self._transport.stop()
        except Exception as e:
            if is_benign_termination(e):
                logger.debug(f"Stop after call end: {e}")
            else:
                logger.warning(f"Disconnect error: {e}")

    async def _probe_call_id(self) -> str | None:
        """Single bounded attempt to learn the call ID from the transport."""
        try:
            return await asyncio.wait_for(
                self._transport.probe_call_id(),
                timeout=self._settings.CALL_ID_PROBE_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning("Call ID probe timed out")
        except Exception as e:
            logger.warning(f"Failed to capture call ID via fallback: {e}")
        return None

    async def _probe_after_start(self, session: CallSession) -> None:
        await self._sleep(self._settings.CALL_ID_PROBE_DELAY_SECONDS)
        if session.transport_call_id or session is not self._session:
            return
        call_id = await self._probe_call_id()
        if call_id and not session.transport_call_id:
            session.transport_call_id = call_id
            logger.info(f"Call ID captured via fallback probe: {call_id}")

    async def _finalize(self, session: CallSession) -> None:
        call_id = session.transport_call_id or await self._probe_call_id()

        if not call_id:
            self.terminal_condition = UnreconcilableSessionError(session.session_id)
            logger.error(
                f"NO CALL ID AVAILABLE - session {session.session_id} ended "
                f"with {len(session.turns)} turns that cannot be reconciled"
            )
            self._notice("no_call_id")
        else:
            session.transport_call_id = call_id
            if self._record_saver is not None:
                await self._save(call_id)

        # Return to Idle only after any save above has completed
        await self._sleep(self._settings.FINISHED_RESET_DELAY_SECONDS)
        if self._status is CallStatus.FINISHED and self._session is session:
            self._release_subscription()
            self._transition(CallStatus.IDLE)

    async def _save(self, call_id: str) -> None:
        self._saving = True
        self._notice("saving")
        try:
            # Give the provider time to finish writing call artifacts
            await self._sleep(self._settings.RECONCILE_SETTLING_DELAY_SECONDS)
            self.saved_result = await self._record_saver(self, call_id)
            logger.info(f"Call log saved for call: {call_id}")
            self._notice("saved")
        except Exception as e:
            self.save_error = e
            logger.error(f"Error saving call log for {call_id}: {e}")
            self._notice("save_failed")
        finally:
            self._saving = False

    async def _send_message(self, role: str, content: str) -> None:
        try:
            await self._transport.send(add_message_envelope(role, content))
        except Exception as e:
            raise TransportSendError(role, str(e)) from e

    async def _send_pair(self, system_text: str, user_text: str) -> bool:
        """Send a system + user message pair; failures are absorbed."""
        delivered = True
        for role, content in (("system", system_text), ("user", user_text)):
            try:
                await self._send_message(role, content)
            except TransportSendError as e:
                delivered = False
                logger.warning(f"Direct send failed, kept locally: {e}")
        return delivered
