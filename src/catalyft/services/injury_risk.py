"""Daily injury risk assessment job."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from ..db.repositories import AthleteRepository, WearableRepository
from ..metrics.injury import (
    InjuryRiskAssessment,
    LoadStats,
    calculate_injury_risk,
    historical_load_stats,
)


logger = logging.getLogger(__name__)

HISTORY_DAYS = 30
ALERT_TITLE = "High Injury Risk Alert"
SLEEP_METRIC = "total_sleep_hours"


@dataclass
class InjuryRiskRunResult:
    assessed: int = 0
    alerts: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "assessed": self.assessed,
            "alerts": self.alerts,
            "results": self.results,
        }


def alert_body(athlete_name: str, risk: float) -> str:
    return (
        f"Athlete {athlete_name} has an elevated injury risk score of {risk:.2f}. "
        "Consider adjusting training load, ensuring adequate rest, or implementing "
        "recovery protocols."
    )


class InjuryRiskService:
    """Scores yesterday's data for every athlete and raises alerts."""

    def __init__(self, athletes: AthleteRepository, wearables: WearableRepository):
        self.athletes = athletes
        self.wearables = wearables

    async def run(self, today: Optional[date] = None) -> InjuryRiskRunResult:
        today = today or datetime.now(timezone.utc).date()
        day = today - timedelta(days=1)
        athletes = await run_in_threadpool(self.athletes.list_athletes)
        logger.info(f"Assessing injury risk for {len(athletes)} athletes ({day})")

        result = InjuryRiskRunResult()
        for athlete in athletes:
            athlete_id = athlete["id"]
            name = athlete.get("name") or athlete_id
            try:
                assessment = await run_in_threadpool(self.assess, athlete_id, day)
            except Exception as e:
                logger.error(f"Error assessing injury risk for athlete {athlete_id}: {e}")
                continue

            result.assessed += 1
            result.results.append({"athlete_id": athlete_id, "athlete_name": name, **assessment.to_dict()})

            if assessment.is_high_risk:
                try:
                    await run_in_threadpool(
                        self.athletes.create_notification,
                        athlete_id,
                        ALERT_TITLE,
                        alert_body(name, assessment.risk),
                    )
                except Exception as e:
                    logger.error(f"Error inserting injury alert for athlete {athlete_id}: {e}")
                    continue
                result.alerts += 1
                logger.warning(f"High injury risk for athlete {athlete_id}: {assessment.risk:.1f}")

        logger.info(f"Injury risk assessment complete: {result.assessed} assessed, {result.alerts} alerts")
        return result

    def assess(self, athlete_id: str, day: date) -> InjuryRiskAssessment:
        loads = self.athletes.get_muscle_loads(athlete_id, day)
        scores = [float(row["load_score"]) for row in loads if row.get("load_score") is not None]
        load_score = sum(scores) / len(scores) if scores else 0.0

        readiness = self.athletes.get_readiness_for_day(athlete_id, day) or 0.0
        sleep_rows = self.wearables.get_metric_range(athlete_id, SLEEP_METRIC, day, day)
        sleep_hours = float(sleep_rows[-1]["value"]) if sleep_rows else 0.0

        return calculate_injury_risk(readiness, sleep_hours, load_score, self._load_stats(athlete_id, day))

    def _load_stats(self, athlete_id: str, day: date) -> LoadStats:
        start = day - timedelta(days=HISTORY_DAYS)
        try:
            rows = self.athletes.get_muscle_load_history(athlete_id, start, day)
        except Exception as e:
            logger.warning(f"Could not fetch load history for athlete {athlete_id}, using defaults: {e}")
            return LoadStats()
        return historical_load_stats([row.get("load_score") for row in rows])
