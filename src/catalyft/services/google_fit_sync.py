"""Google Fit: OAuth connection lifecycle and the daily activity and workout pull."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from fastapi.concurrency import run_in_threadpool

from ..config import Settings, get_settings
from ..db.repositories import WearableRepository
from ..exceptions import CatalyftError, DatabaseError, NotFoundError, ValidationError, WearableSyncError
from ..integrations.base import IntegrationError, OAuthCredentials, utcnow
from ..integrations.google_fit import (
    ACTIVE_MINUTES,
    CALORIES,
    DISTANCE,
    STEPS,
    GoogleFitClient,
    GoogleFitOAuthFlow,
)


logger = logging.getLogger(__name__)

PROVIDER = "google_fit"
DEFAULT_DAYS = 7

ACTIVITY_TYPES = {
    1: "Biking",
    7: "Walking",
    8: "Running",
    9: "Swimming",
    79: "Weight Training",
    82: "Yoga",
}

# data type -> (value field, daily row column)
DAILY_FIELDS = {
    CALORIES: ("fpVal", "calories_burned"),
    STEPS: ("intVal", "steps"),
    DISTANCE: ("fpVal", "distance_meters"),
    ACTIVE_MINUTES: ("intVal", "active_minutes"),
}

ClientFactory = Callable[[str], GoogleFitClient]


@dataclass
class GoogleFitSyncResult:
    user_id: str
    days: int
    daily_synced: int = 0
    workouts_synced: int = 0
    errors: int = 0
    sync_time: str = field(default_factory=lambda: utcnow().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": f"Synced {self.days} days of Google Fit data",
            "sync_time": self.sync_time,
            "daily_activity_synced": self.daily_synced,
            "workouts_synced": self.workouts_synced,
            "errors": self.errors,
        }


def _millis_to_datetime(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def daily_activity_row(user_id: str, bucket: Dict[str, Any], synced_at: str) -> Optional[Dict[str, Any]]:
    """google_fit_daily_activity row for one day bucket; None when the day is empty."""
    totals = {column: 0 for _, column in DAILY_FIELDS.values()}
    for dataset in bucket.get("dataset") or []:
        for point in dataset.get("point") or []:
            mapping = DAILY_FIELDS.get(point.get("dataTypeName"))
            if mapping is None:
                continue
            value_field, column = mapping
            value = (point.get("value") or [{}])[0]
            totals[column] += value.get(value_field) or 0

    if not any(totals.values()):
        return None

    return {
        "user_id": user_id,
        "activity_date": _millis_to_datetime(bucket["startTimeMillis"]).date().isoformat(),
        "calories_burned": round(totals["calories_burned"]),
        "steps": totals["steps"],
        "distance_meters": round(totals["distance_meters"]),
        "active_minutes": totals["active_minutes"],
        "data_source": PROVIDER,
        "synced_at": synced_at,
    }


def workout_name(session: Dict[str, Any]) -> str:
    activity_type = session.get("activityType")
    return ACTIVITY_TYPES.get(activity_type) or session.get("name") or f"Activity {activity_type}"


def workout_row(user_id: str, session: Dict[str, Any], calories: float, synced_at: str) -> Dict[str, Any]:
    """google_fit_workouts row for one Fit session."""
    start = _millis_to_datetime(session["startTimeMillis"])
    end = _millis_to_datetime(session["endTimeMillis"])
    application = session.get("application") or {}
    return {
        "user_id": user_id,
        "session_id": session["id"],
        "workout_name": workout_name(session),
        "workout_type": str(session.get("activityType")),
        "workout_date": start.date().isoformat(),
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
        "duration_minutes": round((end - start).total_seconds() / 60),
        "calories_burned": round(calories),
        "data_source": application.get("packageName") or PROVIDER,
        "synced_at": synced_at,
    }


def _upsert_each(
    rows: Iterable[Dict[str, Any]],
    upsert: Callable[[Dict[str, Any]], None],
    kind: str,
) -> tuple[int, int]:
    synced = errors = 0
    for row in rows:
        try:
            upsert(row)
        except DatabaseError as e:
            logger.error(f"Error upserting Google Fit {kind} for user {row.get('user_id')}: {e}")
            errors += 1
            continue
        synced += 1
    return synced, errors


class GoogleFitSyncService:
    """Connects Google Fit accounts and pulls their activity into Supabase."""

    def __init__(
        self,
        wearables: WearableRepository,
        settings: Optional[Settings] = None,
        oauth: Optional[GoogleFitOAuthFlow] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.wearables = wearables
        self.settings = settings or get_settings()
        self.oauth = oauth or GoogleFitOAuthFlow(
            self.settings.google_fit_client_id,
            self.settings.google_fit_client_secret,
            self.settings.google_fit_redirect_uri,
        )
        self.client_factory = client_factory or GoogleFitClient

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def authorization_url(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise ValidationError("Missing user_id parameter", field="user_id")
        return self.oauth.authorization_url(user_id)

    async def _connection(self, user_id: str) -> Dict[str, Any]:
        connection = await run_in_threadpool(self.wearables.get_google_fit_connection, user_id)
        if connection is None:
            raise NotFoundError("Google Fit connection", user_id)
        return connection

    async def handle_callback(self, code: str, user_id: str) -> None:
        """
        Store the tokens for an authorization code, then run a first sync.

        The first sync failing does not undo the connection.

        Raises:
            WearableSyncError: Code exchange or token storage failed
        """
        try:
            credentials = await self.oauth.exchange_code(code)
            now = utcnow().isoformat()
            await run_in_threadpool(
                self.wearables.save_google_fit_connection,
                user_id,
                {
                    "access_token": credentials.access_token,
                    "refresh_token": credentials.refresh_token,
                    "expires_at": credentials.expires_at.isoformat() if credentials.expires_at else None,
                    "scope": credentials.scope,
                    "connected_at": now,
                    "last_sync_at": None,
                },
            )
        except (IntegrationError, DatabaseError) as e:
            logger.error(f"Google Fit connection failed for user {user_id}: {e}")
            raise WearableSyncError(str(e), PROVIDER) from e

        logger.info(f"Google Fit tokens stored for user {user_id}")
        try:
            await self.sync(user_id, DEFAULT_DAYS)
        except CatalyftError as e:
            logger.warning(f"Initial Google Fit sync failed for user {user_id}, connection kept: {e}")

    async def _refresh(self, user_id: str, connection: Dict[str, Any]) -> OAuthCredentials:
        credentials = await self.oauth.refresh_token(OAuthCredentials.from_row(connection, PROVIDER))
        await run_in_threadpool(
            self.wearables.update_google_fit_connection,
            user_id,
            {
                "access_token": credentials.access_token,
                "refresh_token": credentials.refresh_token,
                "expires_at": credentials.expires_at.isoformat() if credentials.expires_at else None,
            },
        )
        return credentials

    async def refresh(self, user_id: str) -> Dict[str, Any]:
        """
        Refresh and store the access token for a connected user.

        Raises:
            NotFoundError: No connection for the user
            WearableSyncError: Google refused the refresh or the update failed
        """
        connection = await self._connection(user_id)
        try:
            credentials = await self._refresh(user_id, connection)
        except (IntegrationError, DatabaseError) as e:
            logger.error(f"Google Fit token refresh failed for user {user_id}: {e}")
            raise WearableSyncError(str(e), PROVIDER) from e

        return {
            "success": True,
            "access_token": credentials.access_token,
            "expires_at": credentials.expires_at.isoformat() if credentials.expires_at else None,
        }

    async def disconnect(self, user_id: str) -> Dict[str, Any]:
        """Revoke the stored token with Google and remove the connection."""
        connection = await run_in_threadpool(self.wearables.get_google_fit_connection, user_id)
        if connection and connection.get("access_token"):
            await self.oauth.revoke(connection["access_token"])

        await run_in_threadpool(self.wearables.delete_google_fit_connection, user_id)
        logger.info(f"Google Fit disconnected for user {user_id}")
        return {"success": True, "message": "Google Fit disconnected successfully"}

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(self, user_id: Optional[str], days: int = DEFAULT_DAYS) -> GoogleFitSyncResult:
        """
        Pull the last ``days`` of daily activity and workout sessions.

        Rows that fail to upsert are logged and counted in ``errors``.

        Raises:
            ValidationError: user_id missing
            NotFoundError: No Google Fit connection for the user
            WearableSyncError: Token refresh or Google Fit API failure
        """
        if not user_id:
            raise ValidationError("Missing user_id parameter", field="user_id")

        connection = await self._connection(user_id)
        now = utcnow()
        start_ms = int((now - timedelta(days=days)).timestamp() * 1000)
        end_ms = int(now.timestamp() * 1000)
        logger.info(f"Starting Google Fit sync for user {user_id}, {days} days")

        try:
            credentials = OAuthCredentials.from_row(connection, PROVIDER)
            if credentials.is_expired:
                logger.info(f"Refreshing expired Google Fit token for user {user_id}")
                credentials = await self._refresh(user_id, connection)

            async with self.client_factory(credentials.access_token) as client:
                buckets = await client.aggregate_daily(start_ms, end_ms)
                sessions = await client.list_sessions(start_ms, end_ms)
                calories = [await client.session_calories(session) for session in sessions]
        except (IntegrationError, DatabaseError) as e:
            logger.error(f"Google Fit sync failed for user {user_id}: {e}")
            raise WearableSyncError(str(e), PROVIDER) from e

        result = GoogleFitSyncResult(user_id=user_id, days=days, sync_time=now.isoformat())
        synced_at = now.isoformat()

        daily_rows = [row for row in (daily_activity_row(user_id, b, synced_at) for b in buckets) if row]
        result.daily_synced, daily_errors = await run_in_threadpool(
            _upsert_each, daily_rows, self.wearables.upsert_google_fit_daily, "daily activity"
        )
        workout_rows = [workout_row(user_id, s, c, synced_at) for s, c in zip(sessions, calories)]
        result.workouts_synced, workout_errors = await run_in_threadpool(
            _upsert_each, workout_rows, self.wearables.upsert_google_fit_workout, "workout"
        )
        result.errors = daily_errors + workout_errors

        await run_in_threadpool(
            self.wearables.update_google_fit_connection, user_id, {"last_sync_at": now.isoformat()}
        )
        logger.info(
            f"Google Fit sync completed for user {user_id}: daily={result.daily_synced}, "
            f"workouts={result.workouts_synced}, errors={result.errors}"
        )
        return result
