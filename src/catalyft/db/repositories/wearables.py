"""Wearable tokens and raw wearable data."""

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Sequence

from .base import Row, SupabaseRepository


class WearableRepository(SupabaseRepository):
    """Provider tokens, raw metrics and synced WHOOP, HealthKit and Google Fit tables."""

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def get_whoop_token(self, athlete_id: str) -> Optional[Row]:
        query = self._table("whoop_tokens").select("*").eq("athlete_uuid", athlete_id)
        return self._first(query, "fetch WHOOP token")

    def list_active_whoop_tokens(self, now: Optional[datetime] = None) -> List[Row]:
        now = now or datetime.now(timezone.utc)
        query = self._table("whoop_tokens").select("*").gt("expires_at", now.isoformat())
        return self._execute(query, "fetch WHOOP tokens")

    def save_whoop_token(self, athlete_id: str, token: Row) -> None:
        row = {"athlete_uuid": athlete_id, **token}
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        query = self._table("whoop_tokens").upsert(row, on_conflict="athlete_uuid")
        self._execute(query, "save WHOOP token")

    def save_provider_token(self, athlete_id: str, provider: str, token: Row) -> None:
        row = {"athlete_uuid": athlete_id, "provider": provider, **token}
        query = self._table("wearable_tokens").upsert(row, on_conflict="athlete_uuid,provider")
        self._execute(query, "save wearable token")

    # ------------------------------------------------------------------
    # Raw metrics
    # ------------------------------------------------------------------

    def upsert_raw_metrics(self, rows: Sequence[Row]) -> None:
        if rows:
            query = self._table("wearable_raw").upsert(list(rows), on_conflict="athlete_uuid,ts,metric")
            self._execute(query, "upsert wearable data")

    def insert_raw_metrics(self, rows: Sequence[Row]) -> None:
        if rows:
            self._execute(self._table("wearable_raw").insert(list(rows)), "insert wearable data")

    def get_metric_range(self, athlete_id: str, metric: str, start: date, end: date) -> List[Row]:
        """Raw values of one metric with ``start <= ts < end + 1 day``."""
        query = (
            self._table("wearable_raw")
            .select("ts, value")
            .eq("athlete_uuid", athlete_id)
            .eq("metric", metric)
            .gte("ts", start.isoformat())
            .lt("ts", (end + timedelta(days=1)).isoformat())
            .order("ts")
        )
        return self._execute(query, f"fetch {metric}")

    # ------------------------------------------------------------------
    # WHOOP activity
    # ------------------------------------------------------------------

    def upsert_whoop_cycle(self, row: Row) -> None:
        query = self._table("whoop_cycles").upsert(row, on_conflict="user_id,cycle_date")
        self._execute(query, "upsert WHOOP cycle")

    def upsert_whoop_workout(self, row: Row) -> None:
        query = self._table("whoop_workouts").upsert(row, on_conflict="user_id,workout_id")
        self._execute(query, "upsert WHOOP workout")

    def get_latest_strain(self, athlete_id: str) -> Optional[float]:
        """Strain of the newest scored WHOOP cycle."""
        query = (
            self._table("whoop_cycles")
            .select("cycle_date, strain")
            .eq("user_id", athlete_id)
            .not_.is_("strain", "null")
            .order("cycle_date", desc=True)
        )
        row = self._first(query, "fetch latest strain")
        if row is None or row.get("strain") is None:
            return None
        return float(row["strain"])

    # ------------------------------------------------------------------
    # HealthKit
    # ------------------------------------------------------------------

    def upsert_healthkit_daily(self, row: Row) -> None:
        query = self._table("healthkit_daily_activity").upsert(row, on_conflict="user_id,activity_date")
        self._execute(query, "upsert HealthKit daily activity")

    def upsert_healthkit_workout(self, row: Row) -> None:
        query = self._table("healthkit_workouts").upsert(row, on_conflict="user_id,workout_uuid")
        self._execute(query, "upsert HealthKit workout")

    # ------------------------------------------------------------------
    # Google Fit
    # ------------------------------------------------------------------

    def get_google_fit_connection(self, user_id: str) -> Optional[Row]:
        query = self._table("google_fit_connections").select("*").eq("user_id", user_id)
        return self._first(query, "fetch Google Fit connection")

    def save_google_fit_connection(self, user_id: str, connection: Row) -> None:
        row = {"user_id": user_id, **connection}
        query = self._table("google_fit_connections").upsert(row, on_conflict="user_id")
        self._execute(query, "save Google Fit connection")

    def update_google_fit_connection(self, user_id: str, values: Row) -> None:
        query = self._table("google_fit_connections").update(values).eq("user_id", user_id)
        self._execute(query, "update Google Fit connection")

    def delete_google_fit_connection(self, user_id: str) -> None:
        query = self._table("google_fit_connections").delete().eq("user_id", user_id)
        self._execute(query, "delete Google Fit connection")

    def upsert_google_fit_daily(self, row: Row) -> None:
        query = self._table("google_fit_daily_activity").upsert(row, on_conflict="user_id,activity_date")
        self._execute(query, "upsert Google Fit daily activity")

    def upsert_google_fit_workout(self, row: Row) -> None:
        query = self._table("google_fit_workouts").upsert(row, on_conflict="user_id,session_id")
        self._execute(query, "upsert Google Fit workout")
