"""Programs, templates, sessions and in-session adjustments."""

from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence

from .base import Row, SupabaseRepository


ADJUSTABLE_STATUSES = ("scheduled", "planned", "active")


class ProgramRepository(SupabaseRepository):
    """Data access for program instances and the sessions they generate."""

    # ------------------------------------------------------------------
    # Templates and program instances
    # ------------------------------------------------------------------

    def get_template(self, template_id: str) -> Optional[Row]:
        query = self._table("template").select("id, name, owner_uuid").eq("id", template_id)
        return self._first(query, "fetch template")

    def get_template_blocks(self, template_id: str) -> List[Row]:
        query = (
            self._table("template_block")
            .select("week_no, day_no, session_title, planned_load")
            .eq("template_id", template_id)
            .order("week_no")
            .order("day_no")
        )
        return self._execute(query, "fetch template blocks")

    def get_program(self, program_id: str) -> Optional[Row]:
        query = (
            self._table("program_instance")
            .select("id, start_date, athlete_uuid, coach_uuid, template_id")
            .eq("id", program_id)
        )
        return self._first(query, "fetch program")

    def create_program(
        self,
        template_id: str,
        athlete_id: str,
        start_date: date,
        coach_id: Optional[str] = None,
    ) -> Row:
        query = self._table("program_instance").insert(
            {
                "template_id": template_id,
                "athlete_uuid": athlete_id,
                "start_date": start_date.isoformat(),
                "coach_uuid": coach_id,
            }
        )
        rows = self._execute(query, "create program")
        return rows[0] if rows else {}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def session_exists(self, program_id: str, planned_at: date) -> bool:
        query = (
            self._table("sessions")
            .select("id")
            .eq("program_id", program_id)
            .eq("planned_at", planned_at.isoformat())
        )
        return self._first(query, "check existing session") is not None

    def insert_sessions(self, sessions: Sequence[Row]) -> List[Row]:
        if not sessions:
            return []
        return self._execute(self._table("sessions").insert(list(sessions)), "create sessions")

    def get_session(self, session_id: str) -> Optional[Row]:
        query = (
            self._table("sessions")
            .select("id, athlete_uuid, coach_uuid, planned_at, status")
            .eq("id", session_id)
        )
        return self._first(query, "fetch session")

    def get_adjustable_sessions(self, athlete_id: str, day: date) -> List[Row]:
        """Sessions planned for ``day`` that are still open and not yet adjusted."""
        query = (
            self._table("sessions")
            .select("*")
            .eq("athlete_uuid", athlete_id)
            .eq("planned_at", day.isoformat())
            .in_("status", list(ADJUSTABLE_STATUSES))
            .is_("adjusted_at", "null")
        )
        return self._execute(query, "fetch sessions to adjust")

    def update_session(self, session_id: str, values: Row) -> None:
        query = self._table("sessions").update(values).eq("id", session_id)
        self._execute(query, "update session")

    def get_session_loads(self, athlete_id: str, start: date, end: date) -> List[Row]:
        query = (
            self._table("sessions")
            .select("planned_at, planned_load, status")
            .eq("athlete_uuid", athlete_id)
            .gte("planned_at", start.isoformat())
            .lte("planned_at", end.isoformat())
            .order("planned_at")
        )
        return self._execute(query, "fetch session loads")

    def insert_adjustments(self, rows: Sequence[Row]) -> None:
        if rows:
            self._execute(self._table("session_adjustments").insert(list(rows)), "log session adjustments")

    # ------------------------------------------------------------------
    # Live set adjustments
    # ------------------------------------------------------------------

    def get_workout_blocks(self, athlete_id: str) -> List[Row]:
        query = self._table("workout_blocks").select("*").eq("athlete_uuid", athlete_id)
        return self._execute(query, "fetch workout blocks")

    def update_workout_block(self, block_id: Any, data: Any) -> None:
        query = self._table("workout_blocks").update({"data": data}).eq("id", block_id)
        self._execute(query, "update workout block")

    def insert_live_prompt(self, row: Row) -> None:
        self._execute(self._table("kai_live_prompts").insert(row), "insert live prompt")

    # ------------------------------------------------------------------
    # Finishers
    # ------------------------------------------------------------------

    def get_workout_session(self, session_id: str, user_id: str) -> Optional[Row]:
        query = (
            self._table("workout_sessions")
            .select("id, started_at, user_id")
            .eq("id", session_id)
            .eq("user_id", user_id)
        )
        return self._first(query, "fetch workout session")

    def find_mobility_protocols(self, muscles: Iterable[str]) -> List[Row]:
        """Protocols targeting any of ``muscles``, shortest first."""
        query = (
            self._table("mobility_protocols")
            .select("id, name, muscle_targets, duration_min")
            .overlaps("muscle_targets", list(muscles))
            .order("duration_min")
        )
        return self._execute(query, "fetch mobility protocols")

    def assign_finisher(self, session_id: str, protocol_id: Any) -> None:
        query = self._table("session_finishers").upsert(
            {
                "session_id": session_id,
                "protocol_id": protocol_id,
                "auto_assigned": True,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="session_id",
        )
        self._execute(query, "assign finisher")
