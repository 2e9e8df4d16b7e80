"""WHOOP sync: recovery backfill per athlete and the all-athlete activity pull."""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from ..config import Settings, get_settings
from ..db.repositories import WearableRepository
from ..exceptions import DatabaseError, ValidationError, WearableSyncError
from ..integrations.base import IntegrationError, OAuthCredentials, parse_timestamp
from ..integrations.whoop import WhoopClient, WhoopOAuthFlow


logger = logging.getLogger(__name__)

PROVIDER = "whoop"
SCORED = "SCORED"

# WHOOP recovery score field -> wearable_raw metric
RECOVERY_METRICS = (
    ("recovery_score", "recovery_score"),
    ("resting_heart_rate", "resting_heart_rate"),
    ("hrv_rmssd_milli", "hrv_rmssd"),
    ("spo2_percentage", "spo2"),
    ("skin_temp_celsius", "skin_temperature"),
)

ClientFactory = Callable[[OAuthCredentials], WhoopClient]


@dataclass
class RecoverySyncResult:
    athlete_id: str
    records_processed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": "Recovery data synced successfully",
            "records_processed": self.records_processed,
            "athlete_id": self.athlete_id,
        }


@dataclass
class ActivitySyncResult:
    users_processed: int = 0
    cycles_synced: int = 0
    workouts_synced: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if self.users_processed == 0:
            return {
                "success": True,
                "message": "No non-expired WHOOP tokens found",
                "synced": 0,
            }
        return {
            "success": True,
            "message": "WHOOP activity sync completed",
            "cycles_synced": self.cycles_synced,
            "workouts_synced": self.workouts_synced,
            "users_processed": self.users_processed,
            "errors": self.errors,
        }


def recovery_rows(athlete_id: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten WHOOP recovery records into one wearable_raw row per present metric."""
    rows = []
    for record in records:
        score = record.get("score") or {}
        ts = record.get("created_at")
        for source, metric in RECOVERY_METRICS:
            value = score.get(source)
            if value is None:
                continue
            rows.append({"athlete_uuid": athlete_id, "ts": ts, "metric": metric, "value": value})
    return rows


def _day(timestamp: str) -> Optional[str]:
    parsed = parse_timestamp(timestamp)
    return parsed.astimezone(timezone.utc).date().isoformat() if parsed else None


def cycle_row(user_id: str, cycle: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """whoop_cycles row for a scored, finished cycle; None otherwise."""
    score = cycle.get("score")
    if cycle.get("score_state") != SCORED or not score or not cycle.get("end"):
        return None
    return {
        "user_id": user_id,
        "cycle_date": _day(cycle["start"]),
        "cycle_id": cycle.get("id"),
        "start_time": cycle["start"],
        "end_time": cycle["end"],
        "strain": score.get("strain"),
        "kilojoules": score.get("kilojoule"),
        "average_heart_rate": score.get("average_heart_rate"),
        "max_heart_rate": score.get("max_heart_rate"),
        "score_state": cycle["score_state"],
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


def workout_row(user_id: str, workout: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """whoop_workouts row for a scored workout; None otherwise."""
    score = workout.get("score")
    if workout.get("score_state") != SCORED or not score:
        return None
    zones = score.get("zone_durations")
    return {
        "user_id": user_id,
        "workout_date": _day(workout["start"]),
        "workout_id": workout.get("id"),
        "v1_id": workout.get("v1_id"),
        "start_time": workout["start"],
        "end_time": workout.get("end"),
        "sport_name": workout.get("sport_name"),
        "sport_id": workout.get("sport_id"),
        "strain": score.get("strain"),
        "kilojoules": score.get("kilojoule"),
        "average_heart_rate": score.get("average_heart_rate"),
        "max_heart_rate": score.get("max_heart_rate"),
        "distance_meter": score.get("distance_meter"),
        "altitude_gain_meter": score.get("altitude_gain_meter"),
        "zone_durations": json.dumps(zones) if zones else None,
        "score_state": workout["score_state"],
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


class WhoopSyncService:
    """Pulls WHOOP data into wearable_raw, whoop_cycles and whoop_workouts."""

    def __init__(
        self,
        wearables: WearableRepository,
        settings: Optional[Settings] = None,
        oauth: Optional[WhoopOAuthFlow] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.wearables = wearables
        self.settings = settings or get_settings()
        self.oauth = oauth or WhoopOAuthFlow(
            self.settings.whoop_client_id,
            self.settings.whoop_client_secret,
            self.settings.whoop_redirect_uri,
            base_url=self.settings.whoop_api_base,
        )
        self.client_factory = client_factory or (
            lambda credentials: WhoopClient(credentials, base_url=self.settings.whoop_api_base)
        )

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def _credentials(self, athlete_id: str) -> OAuthCredentials:
        token = await run_in_threadpool(self.wearables.get_whoop_token, athlete_id)
        if token is None:
            raise WearableSyncError("No WHOOP tokens found for athlete", PROVIDER)

        credentials = OAuthCredentials.from_row(token, PROVIDER)
        if credentials.is_expired:
            logger.info(f"Refreshing expired WHOOP token for athlete {athlete_id}")
            credentials = await self.oauth.refresh_token(credentials)
            await run_in_threadpool(self.wearables.save_whoop_token, athlete_id, credentials.to_row())
        return credentials

    async def sync_recovery(self, athlete_id: Any, days: Optional[int] = None) -> RecoverySyncResult:
        """
        Backfill the last ``days`` of WHOOP recovery for one athlete.

        Raises:
            ValidationError: athlete_id missing
            WearableSyncError: No token, refresh failure, API or write failure
        """
        if not athlete_id:
            raise ValidationError("athlete_id is required", field="athlete_id")

        days = days or self.settings.whoop_recovery_days
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=days)

        try:
            credentials = await self._credentials(athlete_id)
            async with self.client_factory(credentials) as client:
                records = await client.get_recovery(start, end)
            rows = recovery_rows(athlete_id, records)
            await run_in_threadpool(self.wearables.upsert_raw_metrics, rows)
        except (IntegrationError, DatabaseError) as e:
            logger.error(f"WHOOP recovery sync failed for athlete {athlete_id}: {e}")
            raise WearableSyncError(str(e), PROVIDER) from e

        logger.info(f"Synced {len(rows)} WHOOP recovery values for athlete {athlete_id}")
        return RecoverySyncResult(athlete_id=athlete_id, records_processed=len(rows))

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    async def sync_activity(self, days: Optional[int] = None) -> ActivitySyncResult:
        """
        Pull cycles and workouts for every athlete with a live token.

        Athletes are processed concurrently up to ``sync_concurrency``; one
        athlete failing is counted in ``errors`` and never stops the rest.
        """
        days = days or self.settings.whoop_activity_days
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=days)

        tokens = await run_in_threadpool(self.wearables.list_active_whoop_tokens, end)
        result = ActivitySyncResult(users_processed=len(tokens))
        if not tokens:
            logger.info("No non-expired WHOOP tokens found")
            return result

        semaphore = asyncio.Semaphore(max(1, self.settings.sync_concurrency))

        async def bounded(token: Dict[str, Any]):
            async with semaphore:
                return await self._sync_user_activity(token, start, end)

        outcomes = await asyncio.gather(*(bounded(token) for token in tokens), return_exceptions=True)

        for token, outcome in zip(tokens, outcomes):
            if isinstance(outcome, BaseException):
                result.errors += 1
                logger.error(f"Error processing WHOOP activity for user {token.get('athlete_uuid')}: {outcome}")
                continue
            cycles, workouts = outcome
            result.cycles_synced += cycles
            result.workouts_synced += workouts

        logger.info(
            f"WHOOP activity sync summary: cycles={result.cycles_synced}, "
            f"workouts={result.workouts_synced}, errors={result.errors}"
        )
        return result

    async def _sync_user_activity(
        self,
        token: Dict[str, Any],
        start: datetime,
        end: datetime,
    ) -> tuple[int, int]:
        user_id = token["athlete_uuid"]
        credentials = OAuthCredentials.from_row(token, PROVIDER)

        async with self.client_factory(credentials) as client:
            cycles = await client.get_cycles(start, end)
            workouts = await client.get_workouts(start, end)

        cycles_synced = await run_in_threadpool(
            self._upsert_each,
            [cycle_row(user_id, c) for c in cycles],
            self.wearables.upsert_whoop_cycle,
            "cycle",
        )
        workouts_synced = await run_in_threadpool(
            self._upsert_each,
            [workout_row(user_id, w) for w in workouts],
            self.wearables.upsert_whoop_workout,
            "workout",
        )
        logger.info(f"Synced {cycles_synced} cycles and {workouts_synced} workouts for user {user_id}")
        return cycles_synced, workouts_synced

    @staticmethod
    def _upsert_each(rows, upsert: Callable[[Dict[str, Any]], None], kind: str) -> int:
        synced = 0
        for row in rows:
            if row is None:
                continue
            try:
                upsert(row)
            except DatabaseError as e:
                logger.error(f"Error upserting WHOOP {kind} {row.get(f'{kind}_id')}: {e}")
                continue
            synced += 1
        return synced
