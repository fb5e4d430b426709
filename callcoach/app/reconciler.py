"""
Interview Call Coach - Call Record Reconciler.

Turns the provider's raw call payloads into NormalizedCallRecord values.

The provider is inconsistent about where it puts things: recording URLs
may be top-level or nested under `artifact`, messages may live on the
call or on its artifact, and the cost total may be top-level or part of
the breakdown. Every field is resolved through a fixed precedence order
(first non-empty value wins). A record is rebuilt on every fetch and is
never cached.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from callcoach.core.domain.models import (
    CallMessage,
    CallSummary,
    CostBreakdown,
    NormalizedCallRecord,
)
from callcoach.core.exceptions import MissingCallIdError
from callcoach.infra.calls.vapi import BaseCallStore


logger = logging.getLogger(__name__)


# Dotted paths, in precedence order
RECORDING_URL_PATHS = (
    "recordingUrl",
    "artifact.recordingUrl",
    "artifact.recording.mono.combinedUrl",
)
STEREO_RECORDING_URL_PATHS = (
    "stereoRecordingUrl",
    "artifact.stereoRecordingUrl",
    "artifact.recording.stereoUrl",
)
MESSAGE_PATHS = ("messages", "artifact.messages")
TOTAL_COST_PATHS = ("cost", "costBreakdown.total")

# Provider cost component -> CostBreakdown field
COST_COMPONENTS = {
    "llm": "llm",
    "stt": "stt",
    "tts": "tts",
    "vapi": "platform",
}

ROLE_ALIASES = {"bot": "assistant"}
MESSAGE_TEXT_KEYS = ("message", "content", "transcript")


# -----------------------------------------------------------------------------
# Field helpers
# -----------------------------------------------------------------------------

def _lookup(raw: dict[str, Any], path: str) -> Any:
    node: Any = raw
    for key in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first_present(raw: dict[str, Any], paths: tuple[str, ...]) -> Any:
    """First value along the paths that is not None/empty."""
    for path in paths:
        value = _lookup(raw, path)
        if value not in (None, "", [], {}):
            return value
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (with a trailing 'Z') or epoch milliseconds."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000).astimezone()
    try:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value!r}")
        return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _normalize_message(raw: dict[str, Any]) -> CallMessage:
    role = str(raw.get("role") or "").lower()
    role = ROLE_ALIASES.get(role, role)

    text = ""
    for key in MESSAGE_TEXT_KEYS:
        if isinstance(raw.get(key), str) and raw[key]:
            text = raw[key]
            break

    timestamp = raw.get("time")
    return CallMessage(
        role=role,
        text=text,
        timestamp_ms=int(timestamp) if isinstance(timestamp, (int, float)) else None,
        seconds_from_start=_as_float(raw.get("secondsFromStart")),
        raw=raw,
    )


def _normalize_cost(raw: dict[str, Any]) -> CostBreakdown:
    breakdown = raw.get("costBreakdown") or {}
    components = {
        field_name: _as_float(breakdown.get(key)) or 0.0
        for key, field_name in COST_COMPONENTS.items()
    }
    # Provider total is authoritative; components may not add up to it
    total = _as_float(_first_present(raw, TOTAL_COST_PATHS))
    return CostBreakdown(total=total, **components)


# -----------------------------------------------------------------------------
# Normalization
# -----------------------------------------------------------------------------

def normalize_call_record(
    raw: dict[str, Any],
    prefer_stereo: bool = False,
) -> NormalizedCallRecord:
    """
    Build a normalized record from one raw provider payload.

    Args:
        raw: Provider call payload
        prefer_stereo: Fall back to the stereo recording when no mono/combined
            recording exists

    Returns:
        NormalizedCallRecord (system messages kept; see visible_messages)
    """
    stereo_url = _first_present(raw, STEREO_RECORDING_URL_PATHS)
    recording_url = _first_present(raw, RECORDING_URL_PATHS)
    if recording_url is None and prefer_stereo:
        recording_url = stereo_url

    raw_messages = _first_present(raw, MESSAGE_PATHS) or []
    messages = tuple(
        _normalize_message(m) for m in raw_messages if isinstance(m, dict)
    )

    return NormalizedCallRecord(
        call_id=str(raw.get("id") or ""),
        status=str(raw.get("status") or "unknown"),
        started_at=parse_timestamp(raw.get("startedAt")),
        ended_at=parse_timestamp(raw.get("endedAt")),
        messages=messages,
        recording_url=recording_url,
        stereo_recording_url=stereo_url,
        cost_breakdown=_normalize_cost(raw),
        ended_reason=raw.get("endedReason"),
    )


def summarize_call(raw: dict[str, Any]) -> CallSummary:
    """List-view entry for a raw call payload."""
    record = normalize_call_record(raw)
    return CallSummary(
        call_id=record.call_id,
        status=record.status,
        started_at=record.started_at,
        ended_at=record.ended_at,
        cost=record.cost_breakdown.total,
        message_count=record.message_count,
        has_artifact=bool(raw.get("artifact")),
    )


class CallRecordReconciler:
    """
    Fetches and normalizes call records from the backend store.

    Not-found and transient failures surface as distinct exceptions
    (CallRecordNotFoundError / CallDataFetchError) so callers can decide
    whether to retry.
    """

    def __init__(self, store: BaseCallStore, prefer_stereo: bool = False):
        self._store = store
        self._prefer_stereo = prefer_stereo

    async def reconcile(self, call_id: str) -> NormalizedCallRecord:
        """Fetch the current backend payload for call_id and normalize it."""
        if not call_id or not call_id.strip():
            raise MissingCallIdError()

        raw = await self._store.get_call(call_id)
        record = normalize_call_record(raw, prefer_stereo=self._prefer_stereo)

        if not record.call_id:
            record = replace(record, call_id=call_id)

        logger.info(
            f"Reconciled call {call_id}: status={record.status}, "
            f"messages={record.message_count}, recording={'yes' if record.recording_url else 'no'}"
        )
        return record

    async def list_recent_calls(self, limit: int = 20) -> list[CallSummary]:
        """Most recent calls first."""
        raw_calls = await self._store.list_calls(limit=limit)
        summaries = [summarize_call(raw) for raw in raw_calls if isinstance(raw, dict)]
        summaries.sort(
            key=lambda s: s.started_at.timestamp() if s.started_at else float("-inf"),
            reverse=True,
        )
        return summaries[:limit]
