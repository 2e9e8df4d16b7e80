"""Apple HealthKit push sync."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable

from ..db.repositories import WearableRepository
from ..exceptions import ValidationError
from ..models.wearables import HealthKitDailyActivity, HealthKitSyncRequest, HealthKitWorkout


logger = logging.getLogger(__name__)

DATA_SOURCE = "apple_watch"
DEFAULT_SOURCE_NAME = "Apple Watch"


@dataclass
class KindResult:
    synced: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"synced": self.synced, "errors": self.errors}


@dataclass
class HealthKitSyncResult:
    user_id: str
    daily_activity: KindResult = field(default_factory=KindResult)
    workouts: KindResult = field(default_factory=KindResult)
    sync_timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": "HealthKit data synced successfully",
            "results": {
                "dailyActivity": self.daily_activity.to_dict(),
                "workouts": self.workouts.to_dict(),
                "totalSynced": self.daily_activity.synced + self.workouts.synced,
                "totalErrors": self.daily_activity.errors + self.workouts.errors,
            },
            "userId": self.user_id,
            "syncTimestamp": self.sync_timestamp,
        }


def daily_activity_row(user_id: str, activity: HealthKitDailyActivity, now: str) -> Dict[str, Any]:
    row = activity.model_dump(exclude={"date"})
    row.update(
        {
            "user_id": user_id,
            "activity_date": activity.date,
            "data_source": DATA_SOURCE,
            "sync_timestamp": now,
            "updated_at": now,
        }
    )
    return row


def workout_row(user_id: str, workout: HealthKitWorkout, now: str) -> Dict[str, Any]:
    row = workout.model_dump(exclude={"uuid", "date", "heart_rate_zones", "source_name"})
    zones = workout.heart_rate_zones
    row.update(
        {
            "user_id": user_id,
            "workout_uuid": workout.uuid,
            "workout_date": workout.date,
            "heart_rate_zones": json.dumps(zones.model_dump(by_alias=True, exclude_none=True)) if zones else None,
            "source_name": workout.source_name or DEFAULT_SOURCE_NAME,
            "sync_timestamp": now,
            "updated_at": now,
        }
    )
    return row


class HealthKitSyncService:
    """Upserts HealthKit daily activity and workouts pushed by the app."""

    def __init__(self, wearables: WearableRepository):
        self.wearables = wearables

    def sync(self, user_id: str, request: HealthKitSyncRequest) -> HealthKitSyncResult:
        if request.daily_activity is None and request.workouts is None:
            raise ValidationError("No data provided. Include dailyActivity or workouts")

        now = datetime.now(timezone.utc).isoformat()
        result = HealthKitSyncResult(user_id=user_id, sync_timestamp=now)
        logger.info(
            f"Syncing HealthKit data for user {user_id}: "
            f"{len(request.daily_activity or [])} days, {len(request.workouts or [])} workouts"
        )

        result.daily_activity = self._upsert_all(
            (daily_activity_row(user_id, a, now) for a in request.daily_activity or []),
            self.wearables.upsert_healthkit_daily,
            "activity_date",
        )
        result.workouts = self._upsert_all(
            (workout_row(user_id, w, now) for w in request.workouts or []),
            self.wearables.upsert_healthkit_workout,
            "workout_uuid",
        )

        logger.info(
            f"HealthKit sync completed for user {user_id}: "
            f"{result.daily_activity.synced} days, {result.workouts.synced} workouts, "
            f"{result.daily_activity.errors + result.workouts.errors} errors"
        )
        return result

    @staticmethod
    def _upsert_all(
        rows: Iterable[Dict[str, Any]],
        upsert: Callable[[Dict[str, Any]], None],
        key: str,
    ) -> KindResult:
        outcome = KindResult()
        for row in rows:
            try:
                upsert(row)
            except Exception as e:
                logger.error(f"Error syncing HealthKit row {row.get(key)}: {e}")
                outcome.errors += 1
                continue
            outcome.synced += 1
        return outcome
