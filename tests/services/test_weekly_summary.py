"""Tests for the weekly summary job."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from catalyft.db.repositories import AthleteRepository, ProgramRepository, WearableRepository
from catalyft.llm.providers import ModelType
from catalyft.services.readiness import ReadinessService
from catalyft.services.weekly_summary import WeeklySummaryService, last_week, trend


MONDAY = date(2026, 3, 9)


def make_llm(text: str = "# Your week\nSolid work.") -> MagicMock:
    llm = MagicMock()
    llm.completion = AsyncMock(return_value=text)
    return llm


def make_service(db, llm=None) -> WeeklySummaryService:
    athletes = AthleteRepository(db)
    return WeeklySummaryService(
        athletes,
        WearableRepository(db),
        ReadinessService(athletes, ProgramRepository(db)),
        llm or make_llm(),
    )


def seeded(make_supabase, with_data=True):
    tables = {
        "profiles": [
            {"id": "a1", "role": "solo", "weekly_summary_opt_in": True, "full_name": "Ana"},
            {"id": "a2", "role": "solo", "weekly_summary_opt_in": False},
        ]
    }
    if with_data:
        tables["readiness_scores"] = [
            {"athlete_uuid": "a1", "day": "2026-03-02", "score": 60},
            {"athlete_uuid": "a1", "day": "2026-03-03", "score": 60},
            {"athlete_uuid": "a1", "day": "2026-03-07", "score": 80},
            {"athlete_uuid": "a1", "day": "2026-03-08", "score": 80},
        ]
        tables["wearable_raw"] = [
            {"athlete_uuid": "a1", "metric": "total_sleep_hours", "ts": "2026-03-04T07:00:00Z", "value": 7},
        ]
    return make_supabase(tables)


class TestHelpers:
    def test_last_week_from_monday(self):
        assert last_week(MONDAY) == (date(2026, 3, 2), date(2026, 3, 8))

    def test_last_week_from_sunday(self):
        assert last_week(date(2026, 3, 8)) == (date(2026, 3, 2), date(2026, 3, 8))

    def test_last_week_midweek(self):
        assert last_week(date(2026, 3, 11)) == (date(2026, 3, 2), date(2026, 3, 8))

    def test_trend(self):
        assert trend([50, 50, 60, 60]) == "improving"
        assert trend([60, 60, 50, 50]) == "declining"
        assert trend([50, 51]) == "stable"
        assert trend([70]) == "stable"
        assert trend([]) == "stable"


class TestWeeklySummaryService:
    def test_collect_metrics(self, make_supabase):
        db = seeded(make_supabase)
        metrics = make_service(db).collect_metrics("a1", date(2026, 3, 2), date(2026, 3, 8))
        assert metrics.readiness_avg == 70.0
        assert metrics.readiness_trend == "improving"
        assert metrics.sleep_avg == 7.0
        assert metrics.sleep_trend == "stable"
        assert metrics.has_data is True

    @pytest.mark.asyncio
    async def test_writes_and_delivers_summary(self, make_supabase):
        db = seeded(make_supabase)
        llm = make_llm()

        result = await make_service(db, llm).run(today=MONDAY)

        assert result.to_dict() == {
            "success": True,
            "period": {"start": "2026-03-02", "end": "2026-03-08"},
            "processed": 1,
            "errors": 0,
            "debug": False,
        }
        summary = db.rows("weekly_summaries")[0]
        assert summary["owner_uuid"] == "a1"
        assert summary["role"] == "solo"
        assert summary["summary_md"].startswith("# Your week")
        assert summary["delivered"] is True

        kwargs = llm.completion.await_args.kwargs
        assert kwargs["model"] == ModelType.SMART
        assert "Ana" in kwargs["user"]

    @pytest.mark.asyncio
    async def test_debug_does_not_deliver(self, make_supabase):
        db = seeded(make_supabase)
        result = await make_service(db).run(debug=True, today=MONDAY)
        assert result.debug is True
        assert "delivered" not in db.rows("weekly_summaries")[0]

    @pytest.mark.asyncio
    async def test_existing_summary_is_skipped(self, make_supabase):
        db = seeded(make_supabase)
        db.add("weekly_summaries", {"owner_uuid": "a1", "period_end": "2026-03-08"})
        llm = make_llm()

        result = await make_service(db, llm).run(today=MONDAY)

        assert result.processed == 0
        assert result.skipped == ["a1"]
        llm.completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_athlete_without_data_is_skipped(self, make_supabase):
        db = seeded(make_supabase, with_data=False)
        result = await make_service(db).run(today=MONDAY)
        assert result.skipped == ["a1"]
        assert db.rows("weekly_summaries") == []

    @pytest.mark.asyncio
    async def test_llm_failure_is_counted(self, make_supabase):
        db = seeded(make_supabase)
        llm = MagicMock()
        llm.completion = AsyncMock(side_effect=RuntimeError("model down"))

        result = await make_service(db, llm).run(today=MONDAY)

        assert result.errors == 1
        assert result.processed == 0
