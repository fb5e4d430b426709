"""
Interview Call Coach - Call Log Repository.

JSON-based key-value store for saved call logs, keyed by call ID.
A call log is written once per finished call (and overwritten if the
same call is saved again).

Usage:
    repo = CallLogRepository()

    # Save after reconciliation
    repo.save(call_log)

    # Read back for the call-data views
    call_log = repo.load(call_id)
    recent = repo.list_logs(user_id="u-1")
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from callcoach.core.domain.models import CallLog

logger = logging.getLogger(__name__)


SCHEMA_VERSION = 1


class CallLogRepository:
    """
    JSON-based call log persistence.

    Each call log is one JSON file in the data directory.
    """

    def __init__(self, data_dir: str = "data/call_logs"):
        """
        Initialize repository with data directory.

        Args:
            data_dir: Directory to store call log JSON files
        """
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Call log repository initialized at: {self._data_dir}")

    def _log_path(self, call_id: str) -> Path:
        """Get file path for a call ID."""
        # Sanitize call_id to prevent path traversal
        safe_id = "".join(c for c in call_id if c.isalnum() or c in "-_")
        if not safe_id:
            raise ValueError(f"Invalid call ID: {call_id!r}")
        return self._data_dir / f"{safe_id}.json"

    def save(self, call_log: CallLog) -> None:
        """
        Serialize a call log to its JSON file.

        Uses atomic write pattern to prevent corruption.
        """
        data = self._log_to_dict(call_log)
        path = self._log_path(call_log.call_id)
        temp_path = path.with_suffix(".json.tmp")

        try:
            # Write to temp file first (atomic write pattern)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)

            # Rename temp to final (atomic on most filesystems)
            temp_path.replace(path)

            logger.debug(f"Saved call log {call_log.call_id} ({len(call_log.turns)} turns)")

        except Exception as e:
            logger.error(f"Failed to save call log {call_log.call_id}: {e}")
            if temp_path.exists():
                temp_path.unlink()
            raise

    def load(self, call_id: str) -> Optional[CallLog]:
        """
        Load a call log.

        Returns:
            CallLog if found and readable, None otherwise
        """
        path = self._log_path(call_id)

        if not path.exists():
            logger.debug(f"Call log {call_id} not found on disk")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return self._dict_to_log(data)

        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to load call log {call_id}: {e}")
            return None

    def delete(self, call_id: str) -> bool:
        """
        Delete a call log file.

        Returns:
            True if deleted, False if not found
        """
        path = self._log_path(call_id)
        if path.exists():
            path.unlink()
            logger.info(f"Deleted call log: {call_id}")
            return True
        return False

    def list_logs(self, user_id: Optional[str] = None, limit: int = 50) -> list[CallLog]:
        """
        List saved call logs, most recently saved first.

        Args:
            user_id: Only logs for this participant
            limit: Maximum number of logs returned
        """
        logs = []
        for path in self._data_dir.glob("*.json"):
            call_log = self.load(path.stem)
            if call_log is None:
                continue
            if user_id is not None and call_log.user_id != user_id:
                continue
            logs.append(call_log)

        logs.sort(key=lambda log: log.saved_at, reverse=True)
        return logs[:limit]

    def cleanup_old_logs(self, max_age_hours: int = 24 * 30) -> int:
        """
        Delete call log files older than max_age_hours.

        Returns:
            Number of call logs cleaned up
        """
        count = 0
        cutoff = datetime.now().timestamp() - (max_age_hours * 3600)

        for path in self._data_dir.glob("*.json"):
            if path.stat().st_mtime < cutoff:
                path.unlink()
                count += 1
                logger.info(f"Cleaned up old call log: {path.stem}")

        return count

    # -------------------------------------------------------------------------
    # Serialization Helpers
    # -------------------------------------------------------------------------

    def _log_to_dict(self, call_log: CallLog) -> dict:
        return {
            "version": SCHEMA_VERSION,
            "call_id": call_log.call_id,
            "session_id": call_log.session_id,
            "user_id": call_log.user_id,
            "saved_at": call_log.saved_at.isoformat(),
            "record": call_log.record,
            "emotion_analysis": call_log.emotion_analysis,
            "turns": call_log.turns,
        }

    def _dict_to_log(self, data: dict) -> CallLog:
        return CallLog(
            call_id=data["call_id"],
            session_id=data.get("session_id", ""),
            user_id=data.get("user_id", ""),
            record=data.get("record") or {},
            emotion_analysis=data.get("emotion_analysis"),
            turns=data.get("turns") or [],
            saved_at=datetime.fromisoformat(data["saved_at"]) if data.get("saved_at") else datetime.now(),
        )
