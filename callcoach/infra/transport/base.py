"""
Interview Call Coach - Call Transport Adapter.

Defines the contract of the real-time voice/call provider as consumed by
the session machine: start/stop/send plus a named event stream.
Concrete SDK bindings subclass BaseTransport and call _emit() from their
own callbacks.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


logger = logging.getLogger(__name__)


class TransportEvent(str, Enum):
    """Event names published by a transport."""
    STARTED = "started"
    ENDED = "ended"
    UTTERANCE = "utterance"
    SPEECH_BOUNDARY = "speechBoundary"
    ERROR = "error"


# Substrings the provider uses for normal call endings
BENIGN_TERMINATION_MARKERS = (
    "meeting ended due to ejection",
    "meeting has ended",
    "meeting ended",
    "call-end",
    "ejection",
)


def is_benign_termination(message: str | BaseException | None) -> bool:
    """True when an error message is really an ordinary end-of-call signal."""
    if message is None:
        return False
    text = str(message).lower()
    return any(marker in text for marker in BENIGN_TERMINATION_MARKERS)


@dataclass(frozen=True)
class Utterance:
    """Transcript event payload."""

    role: str
    text: str
    is_final: bool = True
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class StartResult:
    """Transport acknowledgment of a start request."""

    call_id: str | None = None
    raw: Any = None


Handler = Callable[..., Any]


class TransportSubscription:
    """
    Handle for a set of event handlers registered on a transport.

    Releasing it (close() or leaving the `with` block) unsubscribes every
    handler, so repeated sessions never leak listeners.
    """

    def __init__(self, transport: BaseTransport):
        self._transport = transport
        self._handlers: list[tuple[TransportEvent, Handler]] = []
        self._closed = False

    def on(self, event: TransportEvent, handler: Handler) -> TransportSubscription:
        if self._closed:
            raise RuntimeError("Subscription already closed")
        self._transport.on(event, handler)
        self._handlers.append((event, handler))
        return self

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        for event, handler in self._handlers:
            self._transport.off(event, handler)
        self._handlers.clear()
        self._closed = True

    def __enter__(self) -> TransportSubscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class BaseTransport(ABC):
    """Abstract base class for call transports."""

    def __init__(self):
        self._handlers: dict[TransportEvent, list[Handler]] = defaultdict(list)

    # -------------------------------------------------------------------------
    # Event registry
    # -------------------------------------------------------------------------

    def on(self, event: TransportEvent, handler: Handler) -> None:
        self._handlers[TransportEvent(event)].append(handler)

    def off(self, event: TransportEvent, handler: Handler) -> None:
        handlers = self._handlers.get(TransportEvent(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def subscribe(self) -> TransportSubscription:
        """Create an empty subscription handle bound to this transport."""
        return TransportSubscription(self)

    def handler_count(self, event: TransportEvent | None = None) -> int:
        if event is not None:
            return len(self._handlers.get(TransportEvent(event), []))
        return sum(len(h) for h in self._handlers.values())

    def _emit(self, event: TransportEvent, *args: Any) -> None:
        """Deliver an event to every current handler, in registration order."""
        for handler in list(self._handlers.get(TransportEvent(event), [])):
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Handler for '{event.value}' failed: {e}", exc_info=True)

    # -------------------------------------------------------------------------
    # Provider operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def start(self, assistant_ref: str, variables: dict[str, str]) -> StartResult:
        """Start a call. Raises on rejection."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Request graceful termination. May raise harmlessly if already ended."""
        pass

    @abstractmethod
    async def send(self, envelope: dict[str, Any]) -> None:
        """Inject an out-of-band message into the running conversation."""
        pass

    async def probe_call_id(self) -> str | None:
        """
        Best-effort lookup of the provider call ID after start.

        Bindings whose start() does not return the ID override this; the
        default knows nothing.
        """
        return None


def add_message_envelope(role: str, content: str) -> dict[str, Any]:
    """Build the provider's add-message envelope."""
    return {
        "type": "add-message",
        "message": {"role": role, "content": content},
    }
