"""ARIA weekly summary for solo athletes."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi.concurrency import run_in_threadpool

from ..db.repositories import AthleteRepository, WearableRepository
from ..llm.prompts import (
    WEEKLY_SUMMARY_MAX_TOKENS,
    WEEKLY_SUMMARY_SYSTEM,
    WEEKLY_SUMMARY_TEMPERATURE,
    WEEKLY_SUMMARY_USER,
)
from ..llm.providers import LLMClient, ModelType
from .readiness import ReadinessService


logger = logging.getLogger(__name__)

TREND_BAND = 0.05
SLEEP_METRIC = "total_sleep_hours"


def last_week(today: date) -> Tuple[date, date]:
    """
    Monday and Sunday of the reporting week.

    On Sunday this is the week ending that day; on any other day it is the
    previous Monday-Sunday week.
    """
    days_since_sunday = (today.weekday() + 1) % 7
    monday = today - timedelta(days=days_since_sunday + 6)
    return monday, monday + timedelta(days=6)


def trend(values: Sequence[float]) -> str:
    """Compare the mean of the second half with the first half."""
    if len(values) < 2:
        return "stable"
    middle = len(values) // 2
    first = sum(values[:middle]) / middle
    second = sum(values[middle:]) / (len(values) - middle)

    if first == 0:
        return "improving" if second > 0 else "stable"
    change = (second - first) / abs(first)
    if change > TREND_BAND:
        return "improving"
    if change < -TREND_BAND:
        return "declining"
    return "stable"


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


@dataclass
class WeeklyMetrics:
    readiness_avg: float
    readiness_trend: str
    sleep_avg: float
    sleep_trend: str
    acwr_latest: float
    strain_latest: float
    has_data: bool = True

    def prompt_fields(self) -> Dict[str, Any]:
        return {
            "readiness_avg": self.readiness_avg,
            "readiness_trend": self.readiness_trend,
            "sleep_avg": self.sleep_avg,
            "sleep_trend": self.sleep_trend,
            "acwr_latest": self.acwr_latest,
            "strain_latest": self.strain_latest,
        }


@dataclass
class WeeklySummaryRunResult:
    period_start: date
    period_end: date
    debug: bool = False
    processed: int = 0
    errors: int = 0
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "period": {"start": self.period_start.isoformat(), "end": self.period_end.isoformat()},
            "processed": self.processed,
            "errors": self.errors,
            "debug": self.debug,
        }


class WeeklySummaryService:
    """Writes one LLM-generated markdown summary per opted-in solo athlete and week."""

    def __init__(
        self,
        athletes: AthleteRepository,
        wearables: WearableRepository,
        readiness: ReadinessService,
        llm: LLMClient,
    ):
        self.athletes = athletes
        self.wearables = wearables
        self.readiness = readiness
        self.llm = llm

    def collect_metrics(self, athlete_id: str, start: date, end: date) -> WeeklyMetrics:
        readiness = [
            float(row["score"])
            for row in self.athletes.get_readiness_range(athlete_id, start, end)
            if row.get("score") is not None
        ]
        sleep = [
            float(row["value"])
            for row in self.wearables.get_metric_range(athlete_id, SLEEP_METRIC, start, end)
            if row.get("value") is not None
        ]
        series = self.readiness.acwr_series(athlete_id, end, days=1)
        acwr = series[-1].acwr_7_28 if series else 0.0
        strain = self.wearables.get_latest_strain(athlete_id)

        return WeeklyMetrics(
            readiness_avg=_average(readiness),
            readiness_trend=trend(readiness),
            sleep_avg=_average(sleep),
            sleep_trend=trend(sleep),
            acwr_latest=acwr,
            strain_latest=strain or 0.0,
            has_data=bool(readiness or sleep or acwr or strain),
        )

    async def generate(self, athlete_name: str, metrics: WeeklyMetrics) -> str:
        return await self.llm.completion(
            system=WEEKLY_SUMMARY_SYSTEM,
            user=WEEKLY_SUMMARY_USER.format(athlete_name=athlete_name, **metrics.prompt_fields()),
            model=ModelType.SMART,
            max_tokens=WEEKLY_SUMMARY_MAX_TOKENS,
            temperature=WEEKLY_SUMMARY_TEMPERATURE,
        )

    async def run(self, debug: bool = False, today: Optional[date] = None) -> WeeklySummaryRunResult:
        today = today or datetime.now(timezone.utc).date()
        start, end = last_week(today)
        logger.info(f"Processing weekly summaries for period {start} to {end}")

        recipients = await run_in_threadpool(self.athletes.list_summary_recipients)
        result = WeeklySummaryRunResult(period_start=start, period_end=end, debug=debug)
        for profile in recipients:
            athlete_id = profile["id"]
            name = profile.get("full_name") or profile.get("email") or athlete_id
            try:
                if await run_in_threadpool(self.athletes.get_weekly_summary, athlete_id, end) is not None:
                    logger.info(f"Summary already exists for athlete {athlete_id}")
                    result.skipped.append(athlete_id)
                    continue

                metrics = await run_in_threadpool(self.collect_metrics, athlete_id, start, end)
                if not metrics.has_data:
                    logger.info(f"No metrics data for athlete {athlete_id}")
                    result.skipped.append(athlete_id)
                    continue

                summary_md = await self.generate(name, metrics)
                saved = await run_in_threadpool(
                    self.athletes.save_weekly_summary, athlete_id, "solo", start, end, summary_md
                )
                if not debug and saved.get("id") is not None:
                    await run_in_threadpool(self.athletes.mark_summary_delivered, saved["id"])
            except Exception as e:
                logger.error(f"Error processing weekly summary for athlete {athlete_id}: {e}")
                result.errors += 1
                continue

            result.processed += 1
            logger.info(f"Processed weekly summary for athlete {athlete_id}")

        return result
