"""Readiness score and training-load analytics for the signed-in athlete."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..db.repositories import AthleteRepository, ProgramRepository
from ..integrations.base import parse_timestamp
from ..metrics.load import (
    CHRONIC_WINDOW_DAYS,
    LoadDay,
    calculate_acwr_series,
    calculate_fitness_metrics,
    fill_daily_loads,
)
from ..metrics.readiness import calculate_readiness, readiness_zone


logger = logging.getLogger(__name__)

DEFAULT_ANALYTICS_DAYS = 28
MAX_ANALYTICS_DAYS = 365
# CTL is a 42-day EWMA; seed it with enough history to settle
FITNESS_HISTORY_DAYS = 90


def _value(row: Optional[Dict[str, Any]], key: str) -> Optional[float]:
    if row is None or row.get(key) is None:
        return None
    return float(row[key])


def _row_day(value: Any) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    text = str(value)
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_timestamp(text).date()


class ReadinessService:
    """Computes daily readiness and the ACWR / fitness-fatigue views."""

    def __init__(self, athletes: AthleteRepository, programs: ProgramRepository):
        self.athletes = athletes
        self.programs = programs

    def get_readiness(self, user_id: str, day: Optional[date] = None) -> Dict[str, Any]:
        """
        Score today's readiness from the latest wellness entries and store it.

        Missing entries fall back to the worst reading (see calculate_readiness).
        """
        day = day or datetime.now(timezone.utc).date()

        metrics = self.athletes.get_daily_metrics(user_id, day)
        soreness = self.athletes.get_soreness(user_id, day)
        jump = self.athletes.get_jump_test(user_id, day)

        hrv = _value(metrics, "hrv_rmssd")
        sleep_min = _value(metrics, "sleep_min")
        soreness_score = _value(soreness, "score")
        jump_cm = _value(jump, "height_cm")

        score = calculate_readiness(hrv, sleep_min, soreness_score, jump_cm)
        self.athletes.save_readiness(user_id, day, score)
        logger.info(f"Readiness for {user_id} on {day}: {score} ({readiness_zone(score)})")

        return {
            "readiness_score": score,
            "hrv_rmssd": hrv,
            "sleep_min": sleep_min,
            "soreness_score": soreness_score,
            "jump_cm": jump_cm,
        }

    def _daily_loads(self, athlete_id: str, start: date, end: date) -> List[tuple]:
        rows = self.programs.get_session_loads(athlete_id, start, end)
        loads = [
            (_row_day(row["planned_at"]), float(row.get("planned_load") or 0.0))
            for row in rows
            if row.get("planned_at")
        ]
        return fill_daily_loads(loads, start, end)

    def acwr_series(self, athlete_id: str, end: date, days: int = DEFAULT_ANALYTICS_DAYS) -> List[LoadDay]:
        """ACWR for the ``days`` days ending at ``end``, with the chronic window pre-filled."""
        start = end - timedelta(days=days - 1)
        history_start = start - timedelta(days=CHRONIC_WINDOW_DAYS - 1)
        series = calculate_acwr_series(self._daily_loads(athlete_id, history_start, end))
        return [entry for entry in series if entry.day >= start]

    def get_analytics(
        self,
        athlete_id: str,
        days: int = DEFAULT_ANALYTICS_DAYS,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        today = today or datetime.now(timezone.utc).date()
        days = max(1, min(days, MAX_ANALYTICS_DAYS))

        series = self.acwr_series(athlete_id, today, days)
        fitness_start = today - timedelta(days=max(days, FITNESS_HISTORY_DAYS) - 1)
        fitness = calculate_fitness_metrics(self._daily_loads(athlete_id, fitness_start, today))

        latest = series[-1] if series else None
        return {
            "athlete_id": athlete_id,
            "days": days,
            "series": [entry.to_dict() for entry in series],
            "latest": latest.to_dict() if latest else None,
            "risk_zone": latest.risk_zone if latest else None,
            "fitness": fitness[-1].to_dict() if fitness else None,
        }
