"""Tests for readiness/strain based program adjustment."""

import threading
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from catalyft.db.repositories import AthleteRepository, ProgramRepository, WearableRepository
from catalyft.exceptions import DatabaseError
from catalyft.services.adjustment import (
    INCREASE_FACTOR,
    REDUCE_FACTOR,
    ProgramAdjustmentService,
    decide_adjustment,
    scale_session,
)


TODAY = date(2026, 3, 2)


def make_service(db, broadcaster=None) -> ProgramAdjustmentService:
    return ProgramAdjustmentService(
        AthleteRepository(db),
        ProgramRepository(db),
        WearableRepository(db),
        broadcaster=broadcaster,
    )


def seeded(make_supabase, readiness, strain=None, failing=()):
    tables = {
        "athletes": [{"id": "a1", "name": "Ana"}],
        "readiness_scores": [{"athlete_uuid": "a1", "day": TODAY.isoformat(), "score": readiness}],
        "sessions": [
            {"id": "s1", "athlete_uuid": "a1", "planned_at": TODAY.isoformat(), "status": "scheduled",
             "planned_load": 100, "volume": 20, "duration_min": 60},
            {"id": "s2", "athlete_uuid": "a1", "planned_at": TODAY.isoformat(), "status": "completed",
             "planned_load": 100},
        ],
    }
    if strain is not None:
        tables["whoop_cycles"] = [{"user_id": "a1", "cycle_date": TODAY.isoformat(), "strain": strain}]
    db = make_supabase(tables)
    db.failing_tables.update(failing)
    return db


class TestDecideAdjustment:
    def test_no_readiness_no_decision(self):
        assert decide_adjustment(None, 20) is None

    def test_low_readiness_reduces(self):
        decision = decide_adjustment(45, None)
        assert decision.factor == REDUCE_FACTOR
        assert decision.reason == "low_readiness"

    def test_low_readiness_wins_over_low_strain(self):
        assert decide_adjustment(30, 2).reason == "low_readiness"

    def test_high_strain_reduces(self):
        decision = decide_adjustment(70, 18.5)
        assert decision.factor == REDUCE_FACTOR
        assert decision.reason == "high_strain"

    def test_high_readiness_low_strain_increases(self):
        decision = decide_adjustment(85, 5)
        assert decision.factor == INCREASE_FACTOR
        assert decision.reason == "high_readiness"

    def test_thresholds_are_exclusive(self):
        assert decide_adjustment(50, 18) is None
        assert decide_adjustment(80, 5) is None
        assert decide_adjustment(85, 8) is None

    def test_missing_strain_never_increases(self):
        assert decide_adjustment(95, None) is None


class TestScaleSession:
    def test_scales_present_numeric_fields(self):
        scaled = scale_session({"planned_load": 100, "volume": 12, "duration_min": None, "title": "x"}, 0.85)
        assert scaled == {"planned_load": 85.0, "volume": 10.2}

    def test_ignores_booleans(self):
        assert scale_session({"volume": True}, 1.1) == {}


class TestProgramAdjustmentService:
    @pytest.mark.asyncio
    async def test_reduces_open_sessions(self, make_supabase):
        db = seeded(make_supabase, readiness=40)
        broadcaster = AsyncMock()

        result = await make_service(db, broadcaster).run(TODAY)

        assert result.to_dict() == {"success": True, "athletesProcessed": 1, "totalAdjustments": 1}
        s1, s2 = db.rows("sessions")
        assert s1["planned_load"] == 85.0
        assert s1["duration_min"] == 51.0
        assert s1["adjustment_reason"] == "low_readiness"
        assert s1["adjusted_at"] is not None
        assert s2["planned_load"] == 100

        audit = db.rows("session_adjustments")[0]
        assert audit["old_values"] == {"planned_load": 100, "volume": 20, "duration_min": 60}
        assert audit["readiness"] == 40.0

        topic, event, payload = broadcaster.broadcast.await_args.args
        assert topic == "athlete:a1"
        assert event == "session_adjusted"
        assert payload["message"] == "Session reduced due to low readiness score"

    @pytest.mark.asyncio
    async def test_adjusted_sessions_are_not_scaled_twice(self, make_supabase):
        db = seeded(make_supabase, readiness=40)
        service = make_service(db)

        await service.run(TODAY)
        second = await service.run(TODAY)

        assert second.total_adjustments == 0
        assert db.rows("sessions")[0]["planned_load"] == 85.0

    @pytest.mark.asyncio
    async def test_high_readiness_low_strain_increases(self, make_supabase):
        db = seeded(make_supabase, readiness=90, strain=4)
        await make_service(db).run(TODAY)
        assert db.rows("sessions")[0]["planned_load"] == 110.0

    @pytest.mark.asyncio
    async def test_no_decision_leaves_sessions(self, make_supabase):
        db = seeded(make_supabase, readiness=65, strain=10)
        result = await make_service(db).run(TODAY)
        assert result.total_adjustments == 0
        assert "adjusted_at" not in db.rows("sessions")[0]

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_undo_adjustment(self, make_supabase):
        db = seeded(make_supabase, readiness=40, failing={"session_adjustments"})
        result = await make_service(db).run(TODAY)
        assert result.total_adjustments == 1

    @pytest.mark.asyncio
    async def test_athlete_errors_are_isolated(self, make_supabase):
        db = seeded(make_supabase, readiness=40, failing={"whoop_cycles"})
        result = await make_service(db).run(TODAY)
        assert result.athletes_processed == 1
        assert result.total_adjustments == 0

    @pytest.mark.asyncio
    async def test_failed_session_update_keeps_other_audit_rows(self, make_supabase):
        db = seeded(make_supabase, readiness=40)
        db.tables["sessions"].append(
            {"id": "s3", "athlete_uuid": "a1", "planned_at": TODAY.isoformat(), "status": "scheduled",
             "planned_load": 60}
        )
        programs = ProgramRepository(db)
        real_update = programs.update_session

        def update_session(session_id, values):
            if session_id == "s3":
                raise DatabaseError("Failed to update session", operation="update session")
            real_update(session_id, values)

        programs.update_session = MagicMock(side_effect=update_session)
        service = ProgramAdjustmentService(AthleteRepository(db), programs, WearableRepository(db))

        result = await service.run(TODAY)

        assert programs.update_session.call_count == 2
        assert result.total_adjustments == 1
        audit = db.rows("session_adjustments")
        assert [row["session_id"] for row in audit] == ["s1"]
        assert db.rows("sessions")[2]["planned_load"] == 60

    @pytest.mark.asyncio
    async def test_repository_calls_run_off_the_event_loop(self):
        threads = []

        def list_athletes():
            threads.append(threading.get_ident())
            return []

        athletes = MagicMock()
        athletes.list_athletes.side_effect = list_athletes
        service = ProgramAdjustmentService(athletes, MagicMock(), MagicMock())

        await service.run(TODAY)

        assert threads and threads[0] != threading.get_ident()
