"""
Tests for the Vapi call store, against an in-process httpx transport.
"""

import httpx
import pytest

from callcoach.core.exceptions import (
    CallDataFetchError,
    CallRecordNotFoundError,
    MissingAPIKeyError,
)
from callcoach.infra.calls.vapi import VapiCallStore


pytestmark = pytest.mark.asyncio


def make_store(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VapiCallStore(api_key=api_key, base_url="https://api.vapi.test", client=client)


class TestVapiCallStore:
    """Test suite for VapiCallStore against an in-process httpx transport."""

    async def test_get_call_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(200, json={"id": "call-1", "status": "ended"})

        data = await make_store(handler).get_call("call-1")

        assert data["id"] == "call-1"
        assert seen == {"auth": "Bearer test-key", "path": "/call/call-1"}

    async def test_get_call_not_found(self):
        store = make_store(lambda request: httpx.Response(404, json={"message": "Not Found"}))

        with pytest.raises(CallRecordNotFoundError):
            await store.get_call("call-1")

    async def test_get_call_server_error(self):
        store = make_store(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(CallDataFetchError):
            await store.get_call("call-1")

    async def test_get_call_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CallDataFetchError):
            await make_store(handler).get_call("call-1")

    async def test_missing_api_key(self):
        store = make_store(lambda request: httpx.Response(200, json={}), api_key="")
        store._api_key = ""

        with pytest.raises(MissingAPIKeyError):
            await store.get_call("call-1")

    async def test_list_calls_sorted_newest_first(self):
        calls = [
            {"id": "a", "createdAt": "2025-01-01T10:00:00Z"},
            {"id": "b", "createdAt": "2025-01-03T10:00:00Z"},
            {"id": "c", "createdAt": "2025-01-02T10:00:00Z"},
        ]

        def handler(request):
            assert request.url.params["limit"] == "2"
            return httpx.Response(200, json=calls)

        result = await make_store(handler).list_calls(limit=2)

        assert [c["id"] for c in result] == ["b", "c"]
