"""Tests for the WHOOP OAuth flow and API client."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from catalyft.integrations.base import (
    AuthenticationError,
    IntegrationError,
    OAuthCredentials,
    OAuthError,
    RateLimitError,
    parse_timestamp,
)
from catalyft.integrations.whoop import WhoopClient, WhoopOAuthFlow


BASE = "https://whoop.test"
START = datetime(2026, 3, 1, tzinfo=timezone.utc)
END = datetime(2026, 3, 8, tzinfo=timezone.utc)


def make_flow(handler) -> WhoopOAuthFlow:
    return WhoopOAuthFlow(
        "client-id",
        "client-secret",
        "http://localhost:3000/oauth/whoop",
        base_url=BASE,
        transport=httpx.MockTransport(handler),
    )


def make_client(handler, access_token: str = "access-1") -> WhoopClient:
    credentials = OAuthCredentials(provider="whoop", access_token=access_token)
    return WhoopClient(credentials, base_url=BASE, transport=httpx.MockTransport(handler))


class TestOAuthCredentials:
    def test_expiry_buffer(self):
        soon = OAuthCredentials("whoop", "t", expires_at=datetime.now(timezone.utc) + timedelta(minutes=4))
        later = OAuthCredentials("whoop", "t", expires_at=datetime.now(timezone.utc) + timedelta(minutes=30))
        assert soon.is_expired
        assert not later.is_expired

    def test_no_expiry_never_expires(self):
        assert not OAuthCredentials("whoop", "t").is_expired

    def test_needs_refresh_requires_refresh_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        assert not OAuthCredentials("whoop", "t", expires_at=past).needs_refresh
        assert OAuthCredentials("whoop", "t", refresh_token="r", expires_at=past).needs_refresh

    def test_row_round_trip(self):
        expires = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
        credentials = OAuthCredentials("whoop", "t", refresh_token="r", expires_at=expires, scope="offline")
        restored = OAuthCredentials.from_row(credentials.to_row(), "whoop")
        assert restored.expires_at == expires
        assert restored.refresh_token == "r"
        assert restored.scope == "offline"

    def test_parse_timestamp(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("2026-03-02T06:00:00Z").tzinfo is not None
        assert parse_timestamp("2026-03-02T06:00:00").tzinfo == timezone.utc


class TestWhoopOAuthFlow:
    @pytest.mark.asyncio
    async def test_exchange_code_posts_form(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={
                "access_token": "at", "refresh_token": "rt", "expires_in": 3600, "scope": "offline",
            })

        credentials = await make_flow(handler).exchange_code("auth-code")

        assert seen["url"] == f"{BASE}/oauth/oauth2/token"
        assert seen["form"]["grant_type"] == ["authorization_code"]
        assert seen["form"]["code"] == ["auth-code"]
        assert seen["form"]["redirect_uri"] == ["http://localhost:3000/oauth/whoop"]
        assert credentials.access_token == "at"
        assert credentials.refresh_token == "rt"
        assert not credentials.is_expired

    @pytest.mark.asyncio
    async def test_exchange_failure(self):
        flow = make_flow(lambda request: httpx.Response(400, json={"error_description": "bad code"}))
        with pytest.raises(OAuthError, match="Token exchange failed: bad code"):
            await flow.exchange_code("nope")

    @pytest.mark.asyncio
    async def test_refresh_keeps_old_refresh_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            assert form["grant_type"] == ["refresh_token"]
            assert form["refresh_token"] == ["old-rt"]
            return httpx.Response(200, json={"access_token": "new-at", "expires_in": 3600})

        old = OAuthCredentials("whoop", "old-at", refresh_token="old-rt")
        refreshed = await make_flow(handler).refresh_token(old)
        assert refreshed.access_token == "new-at"
        assert refreshed.refresh_token == "old-rt"

    @pytest.mark.asyncio
    async def test_refresh_without_refresh_token(self):
        flow = make_flow(lambda request: httpx.Response(200, json={}))
        with pytest.raises(OAuthError, match="no refresh token available"):
            await flow.refresh_token(OAuthCredentials("whoop", "at"))


class TestWhoopClient:
    @pytest.mark.asyncio
    async def test_follows_next_token_pages(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(dict(request.url.params))
            assert request.headers["Authorization"] == "Bearer access-1"
            if "nextToken" not in request.url.params:
                return httpx.Response(200, json={"records": [{"id": 1}], "next_token": "page-2"})
            return httpx.Response(200, json={"records": [{"id": 2}]})

        async with make_client(handler) as client:
            cycles = await client.get_cycles(START, END)

        assert [c["id"] for c in cycles] == [1, 2]
        assert calls[0]["limit"] == "25"
        assert calls[1]["nextToken"] == "page-2"

    @pytest.mark.asyncio
    async def test_recovery_reads_data_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/developer/v1/recovery"
            return httpx.Response(200, json={"data": [{"score": {"recovery_score": 80}}]})

        async with make_client(handler) as client:
            records = await client.get_recovery(START, END)
        assert records == [{"score": {"recovery_score": 80}}]

    @pytest.mark.asyncio
    async def test_workouts_path(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/developer/v2/activity/workout"
            return httpx.Response(200, json={"records": []})

        async with make_client(handler) as client:
            assert await client.get_workouts(START, END) == []

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        async with make_client(lambda request: httpx.Response(401)) as client:
            with pytest.raises(AuthenticationError):
                await client.get_cycles(START, END)

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        handler = lambda request: httpx.Response(429, headers={"Retry-After": "30"})
        async with make_client(handler) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get_cycles(START, END)
        assert exc_info.value.retry_after == 30
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_other_errors(self):
        handler = lambda request: httpx.Response(503, json={"message": "maintenance"})
        async with make_client(handler) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.get_cycles(START, END)
        assert exc_info.value.status_code == 503
        assert "maintenance" in str(exc_info.value)
