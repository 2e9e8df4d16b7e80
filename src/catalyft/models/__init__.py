"""Request models for the function endpoints."""

from .programs import (
    AdjustSetRequest,
    CreateProgramRequest,
    GenerateFinishersRequest,
    GenerateSessionsRequest,
    WeeklySummaryRequest,
)
from .wearables import (
    HealthKitDailyActivity,
    HealthKitSyncRequest,
    HealthKitWorkout,
    HeartRateZones,
    LinkWearableRequest,
    RecoverySyncRequest,
)

__all__ = [
    "AdjustSetRequest",
    "CreateProgramRequest",
    "GenerateFinishersRequest",
    "GenerateSessionsRequest",
    "WeeklySummaryRequest",
    "HealthKitDailyActivity",
    "HealthKitSyncRequest",
    "HealthKitWorkout",
    "HeartRateZones",
    "LinkWearableRequest",
    "RecoverySyncRequest",
]
