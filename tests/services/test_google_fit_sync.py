"""Tests for Google Fit connection handling and sync."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from catalyft.config import Settings
from catalyft.db.repositories import WearableRepository
from catalyft.exceptions import NotFoundError, ValidationError, WearableSyncError
from catalyft.integrations.base import IntegrationError, OAuthCredentials, OAuthError
from catalyft.services.google_fit_sync import (
    GoogleFitSyncService,
    daily_activity_row,
    workout_row,
)


DAY_MS = 1772409600000  # 2026-03-02T00:00:00Z

BUCKET = {
    "startTimeMillis": str(DAY_MS),
    "endTimeMillis": str(DAY_MS + 86_400_000),
    "dataset": [
        {"point": [
            {"dataTypeName": "com.google.calories.expended", "value": [{"fpVal": 1800.4}]},
            {"dataTypeName": "com.google.calories.expended", "value": [{"fpVal": 200.3}]},
        ]},
        {"point": [{"dataTypeName": "com.google.step_count.delta", "value": [{"intVal": 9500}]}]},
        {"point": [{"dataTypeName": "com.google.distance.delta", "value": [{"fpVal": 7123.6}]}]},
        {"point": [{"dataTypeName": "com.google.active_minutes", "value": [{"intVal": 45}]}]},
    ],
}

EMPTY_BUCKET = {"startTimeMillis": str(DAY_MS - 86_400_000), "dataset": [{"point": []}]}

SESSION = {
    "id": "run-1",
    "name": "Morning run",
    "activityType": 8,
    "startTimeMillis": str(DAY_MS + 7 * 3_600_000),
    "endTimeMillis": str(DAY_MS + 7 * 3_600_000 + 42 * 60_000),
    "application": {"packageName": "com.strava"},
}


def future(hours: int = 2) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


def past(hours: int = 2) -> str:
    return (datetime.now(timezone.utc) - timedelta(hours=hours)).isoformat()


class FakeFitClient:
    """Async context manager returning canned Google Fit data."""

    def __init__(self, access_token, buckets=(), sessions=(), calories=0.0, error=None):
        self.access_token = access_token
        self.buckets = list(buckets)
        self.sessions = list(sessions)
        self.calories = calories
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def aggregate_daily(self, start_ms, end_ms):
        if self.error:
            raise self.error
        return self.buckets

    async def list_sessions(self, start_ms, end_ms):
        return self.sessions

    async def session_calories(self, session):
        return self.calories


def make_service(db, oauth=None, tokens=None, **client_kwargs) -> GoogleFitSyncService:
    def factory(access_token: str):
        if tokens is not None:
            tokens.append(access_token)
        return FakeFitClient(access_token, **client_kwargs)

    return GoogleFitSyncService(
        WearableRepository(db),
        settings=Settings(_env_file=None, google_fit_client_id="id", google_fit_client_secret="secret"),
        oauth=oauth or AsyncMock(),
        client_factory=factory,
    )


def connection(**overrides):
    return {"user_id": "u1", "access_token": "at", "refresh_token": "rt", "expires_at": future(), **overrides}


class TestRowMapping:
    def test_daily_row_sums_points(self):
        row = daily_activity_row("u1", BUCKET, "now")
        assert row == {
            "user_id": "u1",
            "activity_date": "2026-03-02",
            "calories_burned": 2001,
            "steps": 9500,
            "distance_meters": 7124,
            "active_minutes": 45,
            "data_source": "google_fit",
            "synced_at": "now",
        }

    def test_empty_day_is_skipped(self):
        assert daily_activity_row("u1", EMPTY_BUCKET, "now") is None

    def test_unknown_data_types_are_ignored(self):
        bucket = {"startTimeMillis": str(DAY_MS), "dataset": [
            {"point": [{"dataTypeName": "com.google.heart_minutes", "value": [{"fpVal": 12}]}]},
        ]}
        assert daily_activity_row("u1", bucket, "now") is None

    def test_workout_row(self):
        row = workout_row("u1", SESSION, 412.6, "now")
        assert row["workout_name"] == "Running"
        assert row["workout_type"] == "8"
        assert row["workout_date"] == "2026-03-02"
        assert row["duration_minutes"] == 42
        assert row["calories_burned"] == 413
        assert row["data_source"] == "com.strava"

    def test_workout_name_fallbacks(self):
        assert workout_row("u1", {**SESSION, "activityType": 108}, 0, "now")["workout_name"] == "Morning run"
        unnamed = {**SESSION, "activityType": 108, "name": None, "application": None}
        row = workout_row("u1", unnamed, 0, "now")
        assert row["workout_name"] == "Activity 108"
        assert row["data_source"] == "google_fit"


class TestSync:
    @pytest.mark.asyncio
    async def test_writes_daily_and_workout_rows(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection()]})

        result = await make_service(db, buckets=[BUCKET, EMPTY_BUCKET], sessions=[SESSION], calories=300).sync("u1")

        body = result.to_dict()
        assert body["success"] is True
        assert body["message"] == "Synced 7 days of Google Fit data"
        assert body["daily_activity_synced"] == 1
        assert body["workouts_synced"] == 1
        assert len(db.rows("google_fit_daily_activity")) == 1
        assert db.rows("google_fit_workouts")[0]["calories_burned"] == 300
        assert db.rows("google_fit_connections")[0]["last_sync_at"] == body["sync_time"]

    @pytest.mark.asyncio
    async def test_resync_upserts(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection()]})
        service = make_service(db, buckets=[BUCKET], sessions=[SESSION])
        await service.sync("u1", days=3)
        await service.sync("u1", days=3)
        assert len(db.rows("google_fit_daily_activity")) == 1
        assert len(db.rows("google_fit_workouts")) == 1

    @pytest.mark.asyncio
    async def test_refreshes_expired_token(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection(access_token="old", expires_at=past())]})
        oauth = AsyncMock()
        oauth.refresh_token.return_value = OAuthCredentials(
            "google_fit", "new", refresh_token="rt", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)
        )
        tokens = []

        await make_service(db, oauth=oauth, tokens=tokens).sync("u1")

        assert tokens == ["new"]
        assert db.rows("google_fit_connections")[0]["access_token"] == "new"

    @pytest.mark.asyncio
    async def test_row_failures_are_counted(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection()]})
        db.failing_tables.add("google_fit_workouts")

        result = await make_service(db, buckets=[BUCKET], sessions=[SESSION]).sync("u1")

        assert result.daily_synced == 1
        assert result.workouts_synced == 0
        assert result.errors == 1

    @pytest.mark.asyncio
    async def test_requires_user_id(self, supabase):
        with pytest.raises(ValidationError, match="Missing user_id parameter"):
            await make_service(supabase).sync(None)

    @pytest.mark.asyncio
    async def test_missing_connection(self, supabase):
        with pytest.raises(NotFoundError, match="Google Fit connection not found") as exc_info:
            await make_service(supabase).sync("u1")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_api_failure(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection()]})
        service = make_service(db, error=IntegrationError("Google Fit API error: 500", "google_fit"))

        with pytest.raises(WearableSyncError) as exc_info:
            await service.sync("u1")

        assert exc_info.value.details["provider"] == "google_fit"
        assert db.rows("google_fit_connections")[0].get("last_sync_at") is None


class TestConnection:
    def test_authorization_url_requires_user(self, supabase):
        service = make_service(supabase)
        with pytest.raises(ValidationError, match="Missing user_id parameter"):
            service.authorization_url(None)

    @pytest.mark.asyncio
    async def test_callback_stores_connection_and_syncs(self, supabase):
        oauth = AsyncMock()
        oauth.exchange_code.return_value = OAuthCredentials(
            "google_fit", "at", refresh_token="rt", expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            scope="fitness",
        )

        await make_service(supabase, oauth=oauth, buckets=[BUCKET]).handle_callback("code", "u1")

        stored = supabase.rows("google_fit_connections")[0]
        assert stored["user_id"] == "u1"
        assert stored["refresh_token"] == "rt"
        assert stored["connected_at"]
        assert stored["last_sync_at"] is not None
        assert len(supabase.rows("google_fit_daily_activity")) == 1

    @pytest.mark.asyncio
    async def test_failed_first_sync_keeps_connection(self, supabase):
        oauth = AsyncMock()
        oauth.exchange_code.return_value = OAuthCredentials(
            "google_fit", "at", refresh_token="rt", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)
        )
        service = make_service(supabase, oauth=oauth, error=IntegrationError("down", "google_fit"))

        await service.handle_callback("code", "u1")

        assert supabase.rows("google_fit_connections")[0]["last_sync_at"] is None

    @pytest.mark.asyncio
    async def test_callback_exchange_failure(self, supabase):
        oauth = AsyncMock()
        oauth.exchange_code.side_effect = OAuthError("Token exchange failed: invalid_grant", "google_fit")

        with pytest.raises(WearableSyncError, match="invalid_grant"):
            await make_service(supabase, oauth=oauth).handle_callback("bad", "u1")
        assert supabase.rows("google_fit_connections") == []

    @pytest.mark.asyncio
    async def test_refresh(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection(access_token="old")]})
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        oauth = AsyncMock()
        oauth.refresh_token.return_value = OAuthCredentials("google_fit", "new", refresh_token="rt", expires_at=expires)

        body = await make_service(db, oauth=oauth).refresh("u1")

        assert body == {"success": True, "access_token": "new", "expires_at": expires.isoformat()}
        assert db.rows("google_fit_connections")[0]["access_token"] == "new"

    @pytest.mark.asyncio
    async def test_refresh_rejected(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection()]})
        oauth = AsyncMock()
        oauth.refresh_token.side_effect = OAuthError("Token refresh failed: invalid_grant", "google_fit")

        with pytest.raises(WearableSyncError):
            await make_service(db, oauth=oauth).refresh("u1")

    @pytest.mark.asyncio
    async def test_disconnect_revokes_and_deletes(self, make_supabase):
        db = make_supabase({"google_fit_connections": [connection(), {**connection(), "user_id": "u2"}]})
        oauth = AsyncMock()

        body = await make_service(db, oauth=oauth).disconnect("u1")

        assert body == {"success": True, "message": "Google Fit disconnected successfully"}
        oauth.revoke.assert_awaited_once_with("at")
        assert [row["user_id"] for row in db.rows("google_fit_connections")] == ["u2"]

    @pytest.mark.asyncio
    async def test_disconnect_without_connection(self, supabase):
        oauth = AsyncMock()
        await make_service(supabase, oauth=oauth).disconnect("u1")
        oauth.revoke.assert_not_called()
