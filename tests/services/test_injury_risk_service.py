"""Tests for the daily injury risk job."""

from datetime import date

import pytest

from catalyft.db.repositories import AthleteRepository, WearableRepository
from catalyft.services.injury_risk import ALERT_TITLE, InjuryRiskService, alert_body


TODAY = date(2026, 3, 3)
YESTERDAY = "2026-03-02"


def make_service(db) -> InjuryRiskService:
    return InjuryRiskService(AthleteRepository(db), WearableRepository(db))


class TestInjuryRiskService:
    @pytest.mark.asyncio
    async def test_high_risk_raises_alert(self, make_supabase):
        db = make_supabase({
            "athletes": [{"id": "a1", "name": "Ana"}],
            "readiness_scores": [{"athlete_uuid": "a1", "day": YESTERDAY, "score": 10}],
            "wearable_raw": [
                {"athlete_uuid": "a1", "metric": "total_sleep_hours", "ts": f"{YESTERDAY}T07:00:00Z", "value": 4},
            ],
            "muscle_load_daily": [{"user_id": "a1", "date": YESTERDAY, "muscle": "quads", "load_score": 50}],
        })

        result = await make_service(db).run(TODAY)

        assert result.assessed == 1
        assert result.alerts == 1
        # stress 90 * 0.4 + deficit 4 * 10; the single load row sits on its own mean
        assert result.results[0]["risk"] == 76.0
        assert result.results[0]["athlete_name"] == "Ana"

        notification = db.rows("notifications")[0]
        assert notification["user_id"] == "a1"
        assert notification["title"] == ALERT_TITLE
        assert "76.00" in notification["body"]

    @pytest.mark.asyncio
    async def test_missing_data_defaults_to_zero(self, make_supabase):
        db = make_supabase({"athletes": [{"id": "a1", "name": "Ana"}]})
        result = await make_service(db).run(TODAY)

        # readiness 0 and no sleep: 40 + 80, capped at 100
        assert result.results[0]["risk"] == 100.0
        assert result.alerts == 1

    @pytest.mark.asyncio
    async def test_healthy_athlete_has_no_alert(self, make_supabase):
        db = make_supabase({
            "athletes": [{"id": "a1", "name": "Ana"}],
            "readiness_scores": [{"athlete_uuid": "a1", "day": YESTERDAY, "score": 90}],
            "wearable_raw": [
                {"athlete_uuid": "a1", "metric": "total_sleep_hours", "ts": f"{YESTERDAY}T07:00:00Z", "value": 8},
            ],
        })
        result = await make_service(db).run(TODAY)
        assert result.alerts == 0
        assert db.rows("notifications") == []

    @pytest.mark.asyncio
    async def test_failed_alert_is_not_counted(self, make_supabase):
        db = make_supabase({"athletes": [{"id": "a1", "name": "Ana"}]})
        db.failing_tables.add("notifications")
        result = await make_service(db).run(TODAY)
        assert result.assessed == 1
        assert result.alerts == 0

    @pytest.mark.asyncio
    async def test_athlete_failure_is_skipped(self, make_supabase):
        db = make_supabase({"athletes": [{"id": "a1"}, {"id": "a2"}]})
        db.failing_tables.add("readiness_scores")
        result = await make_service(db).run(TODAY)
        assert result.to_dict()["assessed"] == 0

    def test_alert_body(self):
        assert alert_body("Ana", 80).startswith("Athlete Ana has an elevated injury risk score of 80.00.")
