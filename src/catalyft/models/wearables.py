"""Request models for the wearable functions.

The mobile app sends camelCase JSON; fields are snake_case in Python and
populated through camelCase aliases.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# HealthKit
# =============================================================================

class HeartRateZones(CamelModel):
    zone1_minutes: Optional[float] = Field(None, alias="zone1Minutes")
    zone2_minutes: Optional[float] = Field(None, alias="zone2Minutes")
    zone3_minutes: Optional[float] = Field(None, alias="zone3Minutes")
    zone4_minutes: Optional[float] = Field(None, alias="zone4Minutes")
    zone5_minutes: Optional[float] = Field(None, alias="zone5Minutes")


class HealthKitDailyActivity(CamelModel):
    """One day of Apple Watch activity rings and vitals."""

    date: str = Field(..., description="Day in YYYY-MM-DD format")
    active_energy_burned: Optional[float] = None
    basal_energy_burned: Optional[float] = None
    total_energy_burned: Optional[float] = None
    active_energy_goal: Optional[float] = None
    exercise_time_minutes: Optional[float] = None
    exercise_goal_minutes: Optional[float] = None
    stand_hours: Optional[float] = None
    stand_goal_hours: Optional[float] = None
    resting_heart_rate: Optional[float] = None
    average_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None
    heart_rate_variability: Optional[float] = None
    steps: Optional[int] = None
    distance_walked_meters: Optional[float] = None
    flights_climbed: Optional[int] = None
    sleep_duration_minutes: Optional[float] = None
    sleep_efficiency_percentage: Optional[float] = None


class HealthKitWorkout(CamelModel):
    """One HealthKit workout sample."""

    uuid: str
    date: str
    workout_type_id: int
    workout_type_name: str
    start_time: str
    end_time: str
    duration_minutes: float
    active_energy_burned: Optional[float] = None
    total_energy_burned: Optional[float] = None
    distance_meters: Optional[float] = None
    average_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None
    average_pace_seconds_per_meter: Optional[float] = None
    elevation_gain_meters: Optional[float] = None
    heart_rate_zones: Optional[HeartRateZones] = None
    source_name: Optional[str] = None
    source_version: Optional[str] = None
    device_name: Optional[str] = None


class HealthKitSyncRequest(CamelModel):
    daily_activity: Optional[List[HealthKitDailyActivity]] = None
    workouts: Optional[List[HealthKitWorkout]] = None
    sync_timestamp: Optional[str] = None


# =============================================================================
# Linking and recovery
# =============================================================================

class LinkWearableRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    athlete_uuid: Optional[str] = None
    provider: Optional[str] = None
    code: Optional[str] = None
    apple_json: Optional[str] = None


class RecoverySyncRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    athlete_id: Optional[str] = None


# =============================================================================
# Google Fit
# =============================================================================

class GoogleFitSyncRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: Optional[str] = None
    days: int = Field(7, ge=1)


class GoogleFitActionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    user_id: Optional[str] = None
