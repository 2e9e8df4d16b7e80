"""
External integrations for the coaching backend.

- WHOOP (OAuth + developer API)
- Google Fit (OAuth + Fitness REST API)
- Supabase Realtime broadcasts
"""

from .base import (
    AuthenticationError,
    IntegrationError,
    OAuthCredentials,
    OAuthError,
    RateLimitError,
    error_text,
    parse_timestamp,
)
from .google_fit import GoogleFitClient, GoogleFitOAuthFlow
from .realtime import RealtimeBroadcaster
from .whoop import WhoopClient, WhoopOAuthFlow

__all__ = [
    # Base classes
    "AuthenticationError",
    "IntegrationError",
    "OAuthCredentials",
    "OAuthError",
    "RateLimitError",
    "error_text",
    "parse_timestamp",
    # Providers
    "GoogleFitClient",
    "GoogleFitOAuthFlow",
    "RealtimeBroadcaster",
    "WhoopClient",
    "WhoopOAuthFlow",
]
