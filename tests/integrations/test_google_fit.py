"""Tests for the Google Fit OAuth flow and Fitness API client."""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from catalyft.integrations.base import AuthenticationError, IntegrationError, OAuthCredentials, OAuthError
from catalyft.integrations.google_fit import GoogleFitClient, GoogleFitOAuthFlow


REDIRECT = "https://project.supabase.co/functions/v1/google-fit-oauth"
START_MS = 1772323200000  # 2026-03-01T00:00:00Z
END_MS = START_MS + 2 * 86_400_000


def make_flow(handler=None) -> GoogleFitOAuthFlow:
    transport = httpx.MockTransport(handler) if handler else None
    return GoogleFitOAuthFlow("fit-client", "fit-secret", REDIRECT, transport=transport)


def make_client(handler) -> GoogleFitClient:
    return GoogleFitClient("fit-token", transport=httpx.MockTransport(handler))


class TestGoogleFitOAuthFlow:
    def test_authorization_url(self):
        url = urlparse(make_flow().authorization_url("u1"))
        params = parse_qs(url.query)

        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://accounts.google.com/o/oauth2/v2/auth"
        assert params["client_id"] == ["fit-client"]
        assert params["redirect_uri"] == [REDIRECT]
        assert params["state"] == ["u1"]
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert len(params["scope"][0].split(" ")) == 4

    @pytest.mark.asyncio
    async def test_exchange_code_posts_form(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={
                "access_token": "at", "refresh_token": "rt", "expires_in": 3599, "scope": "fitness",
            })

        credentials = await make_flow(handler).exchange_code("auth-code")

        assert seen["url"] == "https://oauth2.googleapis.com/token"
        assert seen["form"]["grant_type"] == ["authorization_code"]
        assert seen["form"]["redirect_uri"] == [REDIRECT]
        assert credentials.refresh_token == "rt"
        assert credentials.provider == "google_fit"

    @pytest.mark.asyncio
    async def test_exchange_failure(self):
        flow = make_flow(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(OAuthError, match="Token exchange failed: invalid_grant"):
            await flow.exchange_code("nope")

    @pytest.mark.asyncio
    async def test_refresh_keeps_old_refresh_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert parse_qs(request.content.decode())["refresh_token"] == ["old-rt"]
            return httpx.Response(200, json={"access_token": "new-at", "expires_in": 3599})

        refreshed = await make_flow(handler).refresh_token(
            OAuthCredentials("google_fit", "old-at", refresh_token="old-rt")
        )
        assert refreshed.access_token == "new-at"
        assert refreshed.refresh_token == "old-rt"

    @pytest.mark.asyncio
    async def test_refresh_without_refresh_token(self):
        with pytest.raises(OAuthError, match="No refresh token available"):
            await make_flow(lambda request: httpx.Response(200)).refresh_token(OAuthCredentials("google_fit", "at"))

    @pytest.mark.asyncio
    async def test_revoke(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/revoke"
            assert request.url.params["token"] == "at"
            return httpx.Response(200)

        assert await make_flow(handler).revoke("at") is True
        assert await make_flow(lambda request: httpx.Response(400, json={"error": "invalid_token"})).revoke("at") is False


class TestGoogleFitClient:
    @pytest.mark.asyncio
    async def test_aggregate_daily_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"bucket": [{"startTimeMillis": str(START_MS)}]})

        async with make_client(handler) as client:
            buckets = await client.aggregate_daily(START_MS, END_MS)

        assert seen["path"] == "/fitness/v1/users/me/dataset:aggregate"
        assert seen["auth"] == "Bearer fit-token"
        assert seen["body"]["bucketByTime"] == {"durationMillis": 86_400_000}
        assert seen["body"]["startTimeMillis"] == str(START_MS)
        assert [a["dataTypeName"] for a in seen["body"]["aggregateBy"]] == [
            "com.google.calories.expended",
            "com.google.step_count.delta",
            "com.google.distance.delta",
            "com.google.active_minutes",
        ]
        assert len(buckets) == 1

    @pytest.mark.asyncio
    async def test_list_sessions_uses_iso_window(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/fitness/v1/users/me/sessions"
            assert request.url.params["startTime"] == "2026-03-01T00:00:00Z"
            return httpx.Response(200, json={"session": [{"id": "s1"}]})

        async with make_client(handler) as client:
            assert await client.list_sessions(START_MS, END_MS) == [{"id": "s1"}]

    @pytest.mark.asyncio
    async def test_session_calories(self):
        session = {"id": "s1", "startTimeMillis": "1000", "endTimeMillis": "2000"}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith(
                "/sessions/s1/datasets/com.google.calories.expended/1000000000-2000000000"
            )
            return httpx.Response(200, json={"point": [{"value": [{"fpVal": 120.5}]}, {"value": [{"fpVal": 30}]}]})

        async with make_client(handler) as client:
            assert await client.session_calories(session) == 150.5

    @pytest.mark.asyncio
    async def test_session_calories_unavailable(self):
        session = {"id": "s1", "startTimeMillis": "1000", "endTimeMillis": "2000"}
        async with make_client(lambda request: httpx.Response(404)) as client:
            assert await client.session_calories(session) == 0.0

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        async with make_client(lambda request: httpx.Response(401)) as client:
            with pytest.raises(AuthenticationError):
                await client.aggregate_daily(START_MS, END_MS)

    @pytest.mark.asyncio
    async def test_other_errors(self):
        handler = lambda request: httpx.Response(500, json={"error": {"message": "backend"}})
        async with make_client(handler) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.list_sessions(START_MS, END_MS)
        assert exc_info.value.status_code == 500
