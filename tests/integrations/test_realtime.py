"""Tests for Supabase Realtime broadcasts."""

import json

import httpx
import pytest

from catalyft.integrations.realtime import RealtimeBroadcaster


def make_broadcaster(handler) -> RealtimeBroadcaster:
    return RealtimeBroadcaster(
        supabase_url="https://project.supabase.test/",
        api_key="service-key",
        transport=httpx.MockTransport(handler),
    )


class TestRealtimeBroadcaster:
    @pytest.mark.asyncio
    async def test_posts_broadcast_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["apikey"] = request.headers["apikey"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(202)

        ok = await make_broadcaster(handler).broadcast("athlete:a-1", "session_adjusted", {"session_id": "s1"})

        assert ok is True
        assert seen["url"] == "https://project.supabase.test/realtime/v1/api/broadcast"
        assert seen["apikey"] == "service-key"
        assert seen["body"] == {
            "messages": [{"topic": "athlete:a-1", "event": "session_adjusted", "payload": {"session_id": "s1"}}]
        }

    @pytest.mark.asyncio
    async def test_rejected_broadcast_returns_false(self):
        broadcaster = make_broadcaster(lambda request: httpx.Response(500, text="boom"))
        assert await broadcaster.broadcast("t", "e", {}) is False

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        assert await make_broadcaster(handler).broadcast("t", "e", {}) is False

    @pytest.mark.asyncio
    async def test_unconfigured_broadcaster_drops_message(self, monkeypatch):
        from catalyft.integrations import realtime

        class EmptySettings:
            supabase_url = ""
            supabase_service_role_key = ""
            supabase_anon_key = ""

        monkeypatch.setattr(realtime, "get_settings", lambda: EmptySettings())
        broadcaster = realtime.RealtimeBroadcaster()
        assert await broadcaster.broadcast("t", "e", {}) is False
