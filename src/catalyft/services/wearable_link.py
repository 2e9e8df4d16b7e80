"""Connecting a solo athlete's wearable (WHOOP OAuth or an Apple Health export)."""

import json
import logging
from typing import Any, Dict, List, Optional

from ..db.repositories import AthleteRepository, WearableRepository
from ..exceptions import CatalyftError, DatabaseError, ValidationError, WearableSyncError
from ..integrations.base import IntegrationError
from ..models.wearables import LinkWearableRequest
from .whoop_sync import WhoopSyncService


logger = logging.getLogger(__name__)

APPLE_TOKEN = {"access_token": "local_health_kit", "token_type": "local"}
SECONDS_PER_HOUR = 3600


def apple_health_rows(athlete_id: str, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """wearable_raw rows for the sleep and HRV entries of an Apple Health export."""
    rows = []
    for sleep in payload.get("sleep") or []:
        rows.append(
            {
                "athlete_uuid": athlete_id,
                "metric": "total_sleep_hours",
                "value": sleep["duration"] / SECONDS_PER_HOUR,
                "ts": sleep["date"],
            }
        )
    for hrv in payload.get("hrv") or []:
        rows.append(
            {
                "athlete_uuid": athlete_id,
                "metric": "hrv_rmssd",
                "value": hrv["value"],
                "ts": hrv["date"],
            }
        )
    return rows


class WearableLinkService:
    """Stores provider tokens and the first batch of data for a new wearable."""

    def __init__(
        self,
        athletes: AthleteRepository,
        wearables: WearableRepository,
        whoop_sync: WhoopSyncService,
    ):
        self.athletes = athletes
        self.wearables = wearables
        self.whoop_sync = whoop_sync

    async def link(self, request: LinkWearableRequest) -> Dict[str, Any]:
        """
        Link a wearable and flag the athlete as connected.

        Every failure is reported as a 400 to the app.
        """
        try:
            await self._link(request)
        except CatalyftError as e:
            if e.status_code == 400:
                raise
            raise WearableSyncError(e.message, request.provider or "unknown") from e
        return {"success": True, "message": "Wearable connected successfully"}

    async def _link(self, request: LinkWearableRequest) -> None:
        athlete_id = request.athlete_uuid
        if not athlete_id or not request.provider:
            raise ValidationError("Missing required parameters")

        if request.provider == "whoop":
            await self._link_whoop(athlete_id, request.code)
        elif request.provider == "apple":
            self._link_apple(athlete_id, request.apple_json)
        else:
            raise ValidationError(f"Unsupported provider: {request.provider}", field="provider")

        self.athletes.set_wearable_connected(athlete_id)
        logger.info(f"Linked {request.provider} for athlete {athlete_id}")

    async def _link_whoop(self, athlete_id: str, code: Optional[str]) -> None:
        if not code:
            raise ValidationError("Authorization code required for Whoop", field="code")

        try:
            credentials = await self.whoop_sync.oauth.exchange_code(code)
        except IntegrationError as e:
            raise WearableSyncError(str(e), "whoop") from e

        token = credentials.to_row()
        self.wearables.save_provider_token(athlete_id, "whoop", token)
        self.wearables.save_whoop_token(athlete_id, token)

        try:
            await self.whoop_sync.sync_recovery(athlete_id)
        except CatalyftError as e:
            logger.error(f"Backfill error (non-critical) for athlete {athlete_id}: {e}")

    def _link_apple(self, athlete_id: str, apple_json: Optional[str]) -> None:
        if not apple_json:
            raise ValidationError("Apple Health data required", field="apple_json")

        try:
            payload = json.loads(apple_json)
            if not isinstance(payload, dict):
                raise TypeError("expected a JSON object")
            rows = apple_health_rows(athlete_id, payload)
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError(f"Invalid Apple Health data: {e}", field="apple_json") from e

        self.wearables.save_provider_token(athlete_id, "apple", dict(APPLE_TOKEN))

        try:
            self.wearables.insert_raw_metrics(rows)
        except DatabaseError as e:
            logger.error(f"Error inserting Apple Health data for athlete {athlete_id}: {e}")
