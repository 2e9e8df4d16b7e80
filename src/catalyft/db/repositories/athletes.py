"""Athlete, profile and daily wellness data access."""

from datetime import date, datetime, timezone
from typing import Any, List, Optional

from .base import Row, SupabaseRepository


class AthleteRepository(SupabaseRepository):
    """Profiles, athletes, readiness inputs, muscle load and notifications."""

    # ------------------------------------------------------------------
    # Profiles and athletes
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Row]:
        query = (
            self._table("profiles")
            .select("id, role, email, full_name, weekly_summary_opt_in")
            .eq("id", user_id)
        )
        return self._first(query, "fetch profile")

    def list_summary_recipients(self) -> List[Row]:
        """Solo athletes who opted in to the weekly summary."""
        query = (
            self._table("profiles")
            .select("id, email, full_name, weekly_summary_opt_in")
            .eq("role", "solo")
            .eq("weekly_summary_opt_in", True)
        )
        return self._execute(query, "fetch weekly summary recipients")

    def get_athlete(self, athlete_id: str) -> Optional[Row]:
        query = self._table("athletes").select("id, name, coach_uuid").eq("id", athlete_id)
        return self._first(query, "fetch athlete")

    def list_athletes(self) -> List[Row]:
        return self._execute(
            self._table("athletes").select("id, name, coach_uuid"),
            "fetch athletes",
        )

    def set_wearable_connected(self, athlete_id: str, connected: bool = True) -> None:
        query = (
            self._table("athletes")
            .update({"wearable_connected": connected})
            .eq("id", athlete_id)
        )
        self._execute(query, "update athlete wearable status")

    # ------------------------------------------------------------------
    # Readiness inputs
    # ------------------------------------------------------------------

    def get_daily_metrics(self, user_id: str, day: date) -> Optional[Row]:
        """Latest wellness metric row of the day (rows without an exercise)."""
        query = (
            self._table("metrics")
            .select("hrv_rmssd, sleep_min")
            .eq("user_id", user_id)
            .eq("date", day.isoformat())
            .is_("exercise", "null")
            .order("created_at", desc=True)
        )
        return self._first(query, "fetch daily metrics")

    def get_soreness(self, user_id: str, day: date) -> Optional[Row]:
        query = (
            self._table("soreness")
            .select("score")
            .eq("user_id", user_id)
            .eq("date", day.isoformat())
        )
        return self._first(query, "fetch soreness")

    def get_jump_test(self, user_id: str, day: date) -> Optional[Row]:
        query = (
            self._table("jump_tests")
            .select("height_cm")
            .eq("user_id", user_id)
            .eq("date", day.isoformat())
        )
        return self._first(query, "fetch jump test")

    # ------------------------------------------------------------------
    # Readiness scores
    # ------------------------------------------------------------------

    def save_readiness(self, athlete_id: str, day: date, score: int) -> None:
        query = self._table("readiness_scores").upsert(
            {"athlete_uuid": athlete_id, "day": day.isoformat(), "score": score},
            on_conflict="athlete_uuid,day",
        )
        self._execute(query, "save readiness score")

    def get_latest_readiness(self, athlete_id: str) -> Optional[float]:
        query = (
            self._table("readiness_scores")
            .select("day, score")
            .eq("athlete_uuid", athlete_id)
            .order("day", desc=True)
        )
        row = self._first(query, "fetch latest readiness")
        if row is None or row.get("score") is None:
            return None
        return float(row["score"])

    def get_readiness_for_day(self, athlete_id: str, day: date) -> Optional[float]:
        query = (
            self._table("readiness_scores")
            .select("score")
            .eq("athlete_uuid", athlete_id)
            .eq("day", day.isoformat())
        )
        row = self._first(query, "fetch readiness")
        if row is None or row.get("score") is None:
            return None
        return float(row["score"])

    def get_readiness_range(self, athlete_id: str, start: date, end: date) -> List[Row]:
        query = (
            self._table("readiness_scores")
            .select("day, score")
            .eq("athlete_uuid", athlete_id)
            .gte("day", start.isoformat())
            .lte("day", end.isoformat())
            .order("day")
        )
        return self._execute(query, "fetch readiness range")

    # ------------------------------------------------------------------
    # Muscle load
    # ------------------------------------------------------------------

    def get_muscle_loads(self, user_id: str, day: date) -> List[Row]:
        """Muscle loads of one day, heaviest first."""
        query = (
            self._table("muscle_load_daily")
            .select("muscle, load_score")
            .eq("user_id", user_id)
            .eq("date", day.isoformat())
            .order("load_score", desc=True)
        )
        return self._execute(query, "fetch muscle load")

    def get_muscle_load_history(self, user_id: str, start: date, end: date) -> List[Row]:
        query = (
            self._table("muscle_load_daily")
            .select("date, muscle, load_score")
            .eq("user_id", user_id)
            .gte("date", start.isoformat())
            .lte("date", end.isoformat())
            .order("date")
        )
        return self._execute(query, "fetch muscle load history")

    # ------------------------------------------------------------------
    # Notifications and summaries
    # ------------------------------------------------------------------

    def create_notification(self, user_id: str, title: str, body: str) -> None:
        query = self._table("notifications").insert(
            {
                "user_id": user_id,
                "type": "system",
                "title": title,
                "body": body,
                "read": False,
            }
        )
        self._execute(query, "create notification")

    def get_weekly_summary(self, owner_id: str, period_end: date) -> Optional[Row]:
        query = (
            self._table("weekly_summaries")
            .select("id")
            .eq("owner_uuid", owner_id)
            .eq("period_end", period_end.isoformat())
        )
        return self._first(query, "fetch weekly summary")

    def save_weekly_summary(
        self,
        owner_id: str,
        role: str,
        period_start: date,
        period_end: date,
        summary_md: str,
    ) -> Row:
        query = self._table("weekly_summaries").insert(
            {
                "owner_uuid": owner_id,
                "role": role,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "summary_md": summary_md,
            }
        )
        rows = self._execute(query, "save weekly summary")
        return rows[0] if rows else {}

    def mark_summary_delivered(self, summary_id: Any) -> None:
        query = (
            self._table("weekly_summaries")
            .update(
                {
                    "delivered": True,
                    "delivered_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", summary_id)
        )
        self._execute(query, "mark weekly summary delivered")
