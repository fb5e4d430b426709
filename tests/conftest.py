"""
Pytest configuration and fixtures for Interview Call Coach tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any

import pytest


# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from callcoach.core.config import Settings  # noqa: E402
from callcoach.core.exceptions import CallRecordNotFoundError  # noqa: E402
from callcoach.infra.calls.vapi import BaseCallStore  # noqa: E402
from callcoach.infra.llm.gemini import BaseTextGenerator  # noqa: E402
from callcoach.infra.transport.base import (  # noqa: E402
    BaseTransport,
    StartResult,
    TransportEvent,
    Utterance,
)


# =============================================================================
# Fakes
# =============================================================================

class FakeTransport(BaseTransport):
    """Scriptable in-memory transport."""

    def __init__(self, call_id: str | None = "call-123", probe_result: str | None = None):
        super().__init__()
        self.call_id = call_id
        self.probe_result = probe_result
        self.start_error: Exception | None = None
        self.send_error: Exception | None = None
        self.stop_error: Exception | None = None
        self.start_gate: asyncio.Event | None = None
        self.started_with: tuple[str, dict[str, str]] | None = None
        self.sent: list[dict[str, Any]] = []
        self.stop_calls = 0
        self.probe_calls = 0

    async def start(self, assistant_ref: str, variables: dict[str, str]) -> StartResult:
        self.started_with = (assistant_ref, variables)
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        return StartResult(call_id=self.call_id)

    async def stop(self) -> None:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error

    async def send(self, envelope: dict[str, Any]) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(envelope)

    async def probe_call_id(self) -> str | None:
        self.probe_calls += 1
        return self.probe_result

    # Test helpers

    def fire_started(self) -> None:
        self._emit(TransportEvent.STARTED)

    def fire_ended(self) -> None:
        self._emit(TransportEvent.ENDED)

    def say(self, role: str, text: str, timestamp_ms: int | None = None, is_final: bool = True) -> None:
        self._emit(TransportEvent.UTTERANCE, Utterance(role, text, is_final, timestamp_ms))

    def fire_error(self, message: str) -> None:
        self._emit(TransportEvent.ERROR, message)


class FakeGenerator(BaseTextGenerator):
    """Returns (or raises) queued responses in order."""

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str, temperature: float = 0.3) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeCallStore(BaseCallStore):
    """In-memory call store; can report not-found for the first N lookups."""

    def __init__(self, calls: dict[str, dict[str, Any]] | None = None, not_found_times: int = 0):
        self.calls = dict(calls or {})
        self.not_found_times = not_found_times
        self.get_calls: list[str] = []

    async def get_call(self, call_id: str) -> dict[str, Any]:
        self.get_calls.append(call_id)
        if self.not_found_times > 0:
            self.not_found_times -= 1
            raise CallRecordNotFoundError(call_id)
        if call_id not in self.calls:
            raise CallRecordNotFoundError(call_id)
        return self.calls[call_id]

    async def list_calls(self, limit: int = 100) -> list[dict[str, Any]]:
        return list(self.calls.values())[:limit]


class RecordingSleep:
    """Awaitable sleep replacement that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class FakeClock:
    """Epoch-ms clock advanced by hand."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root_path():
    """Return the project root directory."""
    return project_root


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's .env."""
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="test-gemini-key",
        VAPI_API_KEY="test-vapi-key",
        VAPI_ASSISTANT_ID="assistant-1",
        CALL_LOG_DIR=str(tmp_path / "call_logs"),
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_raw_call():
    """Provider call payload with both top-level and nested artifacts."""
    return {
        "id": "call-123",
        "status": "ended",
        "startedAt": "2025-01-10T10:00:00.000Z",
        "endedAt": "2025-01-10T10:12:00.000Z",
        "endedReason": "customer-ended-call",
        "recordingUrl": "https://recordings.example.com/top.wav",
        "stereoRecordingUrl": "https://recordings.example.com/stereo.wav",
        "cost": 0.4213,
        "costBreakdown": {"llm": 0.12, "stt": 0.05, "tts": 0.08, "vapi": 0.15, "total": 0.42},
        "messages": [
            {"role": "system", "message": "You are an interviewer.", "time": 1736503200000},
            {"role": "bot", "message": "Tell me about a project you built.", "time": 1736503201000, "secondsFromStart": 1.0},
            {"role": "user", "message": "I built a chat app with websockets.", "time": 1736503205000, "secondsFromStart": 5.0},
            {"role": "assistant", "message": "How did you scale it?", "time": 1736503210000, "secondsFromStart": 10.0},
            {"role": "user", "message": "We sharded rooms across workers.", "time": 1736503216000, "secondsFromStart": 16.0},
        ],
        "artifact": {
            "recording": {
                "mono": {"combinedUrl": "https://recordings.example.com/nested-mono.wav"},
                "stereoUrl": "https://recordings.example.com/nested-stereo.wav",
            },
            "messages": [],
        },
    }
