"""
Interview Call Coach - Call Data Store.

Read-only access to the voice provider's backend call records.
Records are returned raw; shaping them is the reconciler's job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from callcoach.core.config import get_settings
from callcoach.core.exceptions import (
    CallDataFetchError,
    CallRecordNotFoundError,
    MissingAPIKeyError,
    MissingCallIdError,
)


logger = logging.getLogger(__name__)


class BaseCallStore(ABC):
    """Abstract base class for backend call-record stores."""

    @abstractmethod
    async def get_call(self, call_id: str) -> dict[str, Any]:
        """Fetch one raw call record. Raises CallRecordNotFoundError if absent."""
        pass

    @abstractmethod
    async def list_calls(self, limit: int = 100) -> list[dict[str, Any]]:
        """Fetch recent raw call records, newest first."""
        pass


class VapiCallStore(BaseCallStore):
    """
    Vapi REST call store.

    Usage:
        store = VapiCallStore()
        raw = await store.get_call("call-123")
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._settings = get_settings()
        self._api_key = api_key or self._settings.VAPI_API_KEY
        self._base_url = (base_url or self._settings.VAPI_BASE_URL).rstrip("/")
        self._timeout = timeout or self._settings.HTTP_TIMEOUT_SECONDS
        self._client = client

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise MissingAPIKeyError("VAPI_API_KEY")
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = self._headers()
        if self._client is not None:
            return await self._client.get(url, headers=headers, params=params)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, headers=headers, params=params)

    async def get_call(self, call_id: str) -> dict[str, Any]:
        if not call_id:
            raise MissingCallIdError()

        try:
            resp = await self._get(f"/call/{call_id}")
        except httpx.HTTPError as e:
            logger.error(f"Network error fetching call {call_id}: {e}")
            raise CallDataFetchError(call_id, str(e)) from e

        if resp.status_code == 404:
            raise CallRecordNotFoundError(call_id)
        if resp.status_code != 200:
            logger.error(f"Vapi error {resp.status_code} for call {call_id}: {resp.text[:200]}")
            raise CallDataFetchError(call_id, f"HTTP {resp.status_code}")

        data = resp.json()
        if not isinstance(data, dict):
            raise CallDataFetchError(call_id, "Unexpected response shape")
        return data

    async def list_calls(self, limit: int = 100) -> list[dict[str, Any]]:
        try:
            resp = await self._get("/call", params={"limit": limit})
        except httpx.HTTPError as e:
            logger.error(f"Network error listing calls: {e}")
            raise CallDataFetchError(None, str(e)) from e

        if resp.status_code != 200:
            logger.error(f"Vapi error {resp.status_code} listing calls: {resp.text[:200]}")
            raise CallDataFetchError(None, f"HTTP {resp.status_code}")

        raw = resp.json()
        calls: list[dict[str, Any]] = raw if isinstance(raw, list) else []
        calls.sort(key=lambda c: c.get("createdAt") or c.get("startedAt") or "", reverse=True)
        return calls[:limit]
