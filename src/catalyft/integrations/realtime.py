"""Supabase Realtime broadcast over the REST endpoint."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import get_settings


logger = logging.getLogger(__name__)

BROADCAST_PATH = "/realtime/v1/api/broadcast"


class RealtimeBroadcaster:
    """
    Sends broadcast messages to Supabase Realtime channels.

    Broadcasts are fire-and-forget notifications to connected clients, so
    a failed send is logged and reported as ``False`` instead of raising.
    """

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.supabase_url = (supabase_url or settings.supabase_url).rstrip("/")
        self.api_key = api_key or settings.supabase_service_role_key or settings.supabase_anon_key
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.supabase_url}{BROADCAST_PATH}"

    async def broadcast(self, topic: str, event: str, payload: Dict[str, Any]) -> bool:
        if not self.supabase_url or not self.api_key:
            logger.warning(f"Realtime not configured, dropping '{event}' on {topic}")
            return False

        body = {"messages": [{"topic": topic, "event": event, "payload": payload}]}
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Realtime broadcast '{event}' on {topic} failed: {e}")
            return False

        if response.status_code >= 300:
            logger.error(
                f"Realtime broadcast '{event}' on {topic} rejected: "
                f"{response.status_code} {response.text}"
            )
            return False

        logger.debug(f"Broadcast '{event}' on {topic}")
        return True
