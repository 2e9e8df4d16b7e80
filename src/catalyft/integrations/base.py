"""
Base classes for wearable integrations.

Provides the integration error types and the OAuth credential container
shared by provider clients.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx


class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class OAuthError(IntegrationError):
    """OAuth token exchange or refresh failed."""
    pass


class RateLimitError(IntegrationError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str,
        provider: str,
        retry_after: Optional[int] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider, "rate_limit", 429)


class AuthenticationError(IntegrationError):
    """Provider rejected the access token."""
    pass


def error_text(response: httpx.Response) -> str:
    """Best-effort message from a provider error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("error_description") or data.get("message") or data.get("error") or data)
    return str(data)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp from the database into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OAuthCredentials:
    """
    OAuth credentials for an integration.
    """
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None

    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_expired(self) -> bool:
        """Check if token is expired (with a 5 minute buffer)."""
        if self.expires_at is None:
            return False
        return utcnow() >= (self.expires_at - timedelta(minutes=5))

    @property
    def needs_refresh(self) -> bool:
        return self.is_expired and self.refresh_token is not None

    def to_row(self) -> Dict[str, Any]:
        """Serialize to a token table row."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "token_type": self.token_type,
            "scope": self.scope,
        }

    @classmethod
    def from_row(cls, data: Dict[str, Any], provider: str) -> "OAuthCredentials":
        """Deserialize from a token table row."""
        return cls(
            provider=provider,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=parse_timestamp(data.get("expires_at")),
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
            updated_at=parse_timestamp(data.get("updated_at")) or utcnow(),
        )

    @classmethod
    def from_token_response(cls, data: Dict[str, Any], provider: str) -> "OAuthCredentials":
        """Build credentials from an OAuth token endpoint response."""
        expires_in = data.get("expires_in")
        return cls(
            provider=provider,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )
