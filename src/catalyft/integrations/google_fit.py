"""
Google Fit integration for daily activity and workout sessions.

Implements:
- OAuth 2.0 consent URL, code exchange, refresh and revocation
- Daily aggregates (calories, steps, distance, active minutes)
- Session listing with per-session calorie datasets
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from .base import (
    AuthenticationError,
    IntegrationError,
    OAuthCredentials,
    OAuthError,
    RateLimitError,
    error_text,
)


logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"
FITNESS_API_BASE = "https://www.googleapis.com/fitness/v1"

SCOPES = (
    "https://www.googleapis.com/auth/fitness.activity.read",
    "https://www.googleapis.com/auth/fitness.body.read",
    "https://www.googleapis.com/auth/fitness.location.read",
    "https://www.googleapis.com/auth/fitness.nutrition.read",
)

CALORIES = "com.google.calories.expended"
STEPS = "com.google.step_count.delta"
DISTANCE = "com.google.distance.delta"
ACTIVE_MINUTES = "com.google.active_minutes"

DAY_MILLIS = 86_400_000


def _iso_millis(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class GoogleFitOAuthFlow:
    """
    OAuth 2.0 flow for Google Fit.

    Usage:
        oauth = GoogleFitOAuthFlow(client_id, client_secret, redirect_uri)
        url = oauth.authorization_url(user_id)
        credentials = await oauth.exchange_code(code)
    """

    provider = "google_fit"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._transport = transport

    def authorization_url(self, user_id: str) -> str:
        """Consent URL; ``state`` carries the user id back to the callback."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(SCOPES),
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
            "state": user_id,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def _post_token(self, data: Dict[str, str], action: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(
                TOKEN_URL,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        if response.status_code != 200:
            raise OAuthError(
                f"Token {action} failed: {error_text(response)}",
                self.provider,
                status_code=response.status_code,
            )
        return response.json()

    async def exchange_code(self, code: str) -> OAuthCredentials:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            OAuthError: If Google rejects the code
        """
        data = await self._post_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
            "exchange",
        )
        return OAuthCredentials.from_token_response(data, self.provider)

    async def refresh_token(self, credentials: OAuthCredentials) -> OAuthCredentials:
        """
        Refresh an access token, keeping the stored refresh token when
        Google does not rotate it.

        Raises:
            OAuthError: If no refresh token is stored or the refresh fails
        """
        if not credentials.refresh_token:
            raise OAuthError("No refresh token available", self.provider)

        data = await self._post_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": credentials.refresh_token,
                "grant_type": "refresh_token",
            },
            "refresh",
        )
        refreshed = OAuthCredentials.from_token_response(data, self.provider)
        if not refreshed.refresh_token:
            refreshed.refresh_token = credentials.refresh_token
        return refreshed

    async def revoke(self, access_token: str) -> bool:
        """Revoke a token with Google. Returns False when Google refuses."""
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(REVOKE_URL, params={"token": access_token})
        except httpx.HTTPError as e:
            logger.warning(f"Google Fit token revocation failed: {e}")
            return False
        if response.status_code != 200:
            logger.warning(f"Google Fit token revocation failed: {error_text(response)}")
            return False
        return True


class GoogleFitClient:
    """
    Client for the Google Fitness REST API.

    Usage:
        async with GoogleFitClient(access_token) as client:
            buckets = await client.aggregate_daily(start_ms, end_ms)
    """

    provider = "google_fit"

    def __init__(
        self,
        access_token: str,
        base_url: str = FITNESS_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=30.0, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "GoogleFitClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an API request.

        Raises:
            AuthenticationError: If the token is expired or revoked
            RateLimitError: If Google throttles the request
            IntegrationError: For other API errors
        """
        client = await self._get_client()
        response = await client.request(
            method,
            f"{self.base_url}{endpoint}",
            headers={"Authorization": f"Bearer {self.access_token}"},
            params=params,
            json=json,
        )

        if response.status_code == 200:
            return response.json()

        if response.status_code == 401:
            raise AuthenticationError(
                "Google Fit token expired or invalid. Please reconnect.",
                self.provider,
                "unauthorized",
                401,
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Google Fit rate limit exceeded",
                self.provider,
                int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        raise IntegrationError(
            f"Google Fit API error: {response.status_code} {error_text(response)}",
            self.provider,
            "api_error",
            response.status_code,
        )

    async def aggregate_daily(self, start_ms: int, end_ms: int) -> List[Dict[str, Any]]:
        """One-day buckets of the four activity data types."""
        body = {
            "aggregateBy": [{"dataTypeName": name} for name in (CALORIES, STEPS, DISTANCE, ACTIVE_MINUTES)],
            "bucketByTime": {"durationMillis": DAY_MILLIS},
            "startTimeMillis": str(start_ms),
            "endTimeMillis": str(end_ms),
        }
        payload = await self._request("POST", "/users/me/dataset:aggregate", json=body)
        buckets = payload.get("bucket") or []
        logger.debug(f"Received {len(buckets)} Google Fit daily buckets")
        return buckets

    async def list_sessions(self, start_ms: int, end_ms: int) -> List[Dict[str, Any]]:
        params = {"startTime": _iso_millis(start_ms), "endTime": _iso_millis(end_ms)}
        payload = await self._request("GET", "/users/me/sessions", params=params)
        return payload.get("session") or []

    async def session_calories(self, session: Dict[str, Any]) -> float:
        """Calories recorded during one session; 0 when the dataset is unavailable."""
        dataset = f"{session['startTimeMillis']}000000-{session['endTimeMillis']}000000"
        endpoint = f"/users/me/sessions/{session['id']}/datasets/{CALORIES}/{dataset}"
        try:
            payload = await self._request("GET", endpoint)
        except IntegrationError as e:
            logger.info(f"Could not get calorie data for session {session['id']}: {e}")
            return 0.0

        total = 0.0
        for point in payload.get("point") or []:
            values = point.get("value") or [{}]
            total += values[0].get("fpVal") or 0
        return total
