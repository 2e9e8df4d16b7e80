"""
WHOOP integration for recovery, cycle and workout sync.

Implements:
- OAuth 2.0 authorization-code exchange and token refresh
- Recovery listing (developer API v1)
- Cycle and workout listing (developer API v2) with next_token paging
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

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

WHOOP_API_BASE = "https://api.prod.whoop.com"
TOKEN_PATH = "/oauth/oauth2/token"
RECOVERY_PATH = "/developer/v1/recovery"
CYCLE_PATH = "/developer/v2/cycle"
WORKOUT_PATH = "/developer/v2/activity/workout"

PAGE_LIMIT = 25
MAX_PAGES = 40


class WhoopOAuthFlow:
    """
    OAuth 2.0 flow for WHOOP.

    Usage:
        oauth = WhoopOAuthFlow(client_id, client_secret, redirect_uri)
        credentials = await oauth.exchange_code(code)
        credentials = await oauth.refresh_token(credentials)
    """

    provider = "whoop"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        base_url: str = WHOOP_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_url = f"{base_url.rstrip('/')}{TOKEN_PATH}"
        self._transport = transport

    async def _post_token(self, data: Dict[str, str], action: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(
                self.token_url,
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
            OAuthError: If the token endpoint rejects the code
        """
        data = await self._post_token(
            {
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
            "exchange",
        )
        return OAuthCredentials.from_token_response(data, self.provider)

    async def refresh_token(self, credentials: OAuthCredentials) -> OAuthCredentials:
        """
        Refresh an expired access token.

        Raises:
            OAuthError: If no refresh token is stored or the refresh fails
        """
        if not credentials.refresh_token:
            raise OAuthError("Token expired and no refresh token available", self.provider)

        data = await self._post_token(
            {
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": credentials.refresh_token,
            },
            "refresh",
        )
        refreshed = OAuthCredentials.from_token_response(data, self.provider)
        if not refreshed.refresh_token:
            refreshed.refresh_token = credentials.refresh_token
        return refreshed


class WhoopClient:
    """
    Client for the WHOOP developer API.

    Usage:
        async with WhoopClient(credentials) as client:
            cycles = await client.get_cycles(start, end)
    """

    provider = "whoop"

    def __init__(
        self,
        credentials: OAuthCredentials,
        base_url: str = WHOOP_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
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

    async def __aenter__(self) -> "WhoopClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credentials.access_token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an API request.

        Raises:
            AuthenticationError: If the token is expired or invalid
            RateLimitError: If WHOOP throttles the request
            IntegrationError: For other API errors
        """
        client = await self._get_client()
        response = await client.request(
            method,
            f"{self.base_url}{endpoint}",
            headers=self.get_auth_headers(),
            params=params,
        )

        if response.status_code == 200:
            return response.json()

        if response.status_code == 401:
            raise AuthenticationError(
                "WHOOP token expired or invalid. Please reconnect.",
                self.provider,
                "unauthorized",
                401,
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "WHOOP rate limit exceeded",
                self.provider,
                int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        raise IntegrationError(
            f"WHOOP API error: {response.status_code} {error_text(response)}",
            self.provider,
            "api_error",
            response.status_code,
        )

    async def _collect(
        self,
        endpoint: str,
        start: datetime,
        end: datetime,
        limit: int = PAGE_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a collection endpoint for a time window."""
        params: Dict[str, Any] = {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "limit": limit,
        }
        records: List[Dict[str, Any]] = []

        for _ in range(MAX_PAGES):
            payload = await self._request("GET", endpoint, params)
            records.extend(payload.get("records") or payload.get("data") or [])

            next_token = payload.get("next_token")
            if not next_token:
                break
            params = {**params, "nextToken": next_token}
        else:
            logger.warning(f"Stopped paging {endpoint} after {MAX_PAGES} pages")

        return records

    async def get_recovery(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return await self._collect(RECOVERY_PATH, start, end)

    async def get_cycles(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return await self._collect(CYCLE_PATH, start, end)

    async def get_workouts(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return await self._collect(WORKOUT_PATH, start, end)
