"""Rate limiting for the LLM-backed functions.

Uses slowapi, keyed by the authenticated user when the request carries one
and by client IP otherwise.
"""

from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def get_rate_limit_key(request: Request) -> str:
    """Get the rate limit key for a request (user id or IP address)."""
    user: Optional[object] = getattr(request.state, "user", None)
    if user is not None:
        user_id = getattr(user, "user_id", None)
        if user_id:
            return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_rate_limit_key)


RATE_LIMIT_AI = "10/minute"  # ARIA summary generation
RATE_LIMIT_SYNC = "30/minute"  # wearable pulls and batch jobs
