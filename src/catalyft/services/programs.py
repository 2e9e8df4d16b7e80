"""
Program services: session generation, programs from templates, finisher
assignment and live set adjustments.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..db.repositories import AthleteRepository, ProgramRepository
from ..exceptions import (
    AthleteNotFoundError,
    ForbiddenError,
    NotFoundError,
    ProgramNotFoundError,
    SessionNotFoundError,
    TemplateNotFoundError,
    ValidationError,
)
from ..integrations.base import parse_timestamp
from ..integrations.realtime import RealtimeBroadcaster
from ..llm.prompts import build_live_adjustment_prompt


logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "Training Session"
TOP_MUSCLE_COUNT = 2

# Live set thresholds, as a fraction of the set's baseline
LIVE_METRIC_THRESHOLDS = {
    "velocity_loss": 0.15,
    "hr_drift": 0.10,
}
LIVE_LOAD_DELTA = -0.05


def session_date(start_date: date, week_no: int, day_no: int) -> date:
    """Calendar day of a template block, counting week 1 day 1 as ``start_date``."""
    return start_date + timedelta(days=(week_no - 1) * 7 + (day_no - 1))


def scale_target_loads(data: Any, factor: float) -> Any:
    """Return a copy of ``data`` with every numeric ``target_load`` scaled, floored at 0."""
    if isinstance(data, list):
        return [scale_target_loads(item, factor) for item in data]
    if isinstance(data, dict):
        scaled = {}
        for key, value in data.items():
            if key == "target_load" and isinstance(value, (int, float)) and not isinstance(value, bool):
                scaled[key] = max(0, value * factor)
            else:
                scaled[key] = scale_target_loads(value, factor)
        return scaled
    return data


def live_adjustment_delta(metric: str, value: float) -> float:
    """Load change for a live metric reading; 0 when the reading is within bounds."""
    if value > LIVE_METRIC_THRESHOLDS[metric]:
        return LIVE_LOAD_DELTA
    return 0.0


@dataclass
class GenerateSessionsResult:
    created: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "createdSessions": self.created,
            "message": f"Generated {self.created} new sessions for program",
        }


class ProgramService:
    """Creates programs and their sessions, and applies in-session changes."""

    def __init__(
        self,
        programs: ProgramRepository,
        athletes: AthleteRepository,
        broadcaster: Optional[RealtimeBroadcaster] = None,
    ):
        self.programs = programs
        self.athletes = athletes
        self.broadcaster = broadcaster

    # ------------------------------------------------------------------
    # Session generation
    # ------------------------------------------------------------------

    def generate_sessions(self, program_id: Any) -> GenerateSessionsResult:
        """
        Create the missing sessions of a template-based program.

        Idempotent: a session is only created when none exists for the same
        program and day, so a repeated call creates nothing.

        Raises:
            ValidationError: program_id missing or the program has no template
            ProgramNotFoundError: Unknown program
        """
        if not program_id or not isinstance(program_id, str):
            raise ValidationError("programId is required and must be a string", field="programId")

        program = self.programs.get_program(program_id)
        if program is None:
            raise ProgramNotFoundError(program_id)
        if not program.get("template_id"):
            raise ValidationError(
                "Program has no template (cannot generate sessions for non-template programs)"
            )

        start = date.fromisoformat(str(program["start_date"])[:10])
        new_sessions = []
        for block in self.programs.get_template_blocks(program["template_id"]):
            planned_at = session_date(start, int(block["week_no"]), int(block["day_no"]))
            if self.programs.session_exists(program_id, planned_at):
                continue
            new_sessions.append(
                {
                    "program_id": program_id,
                    "athlete_uuid": program.get("athlete_uuid"),
                    "coach_uuid": program.get("coach_uuid"),
                    "planned_at": planned_at.isoformat(),
                    "title": block.get("session_title") or DEFAULT_SESSION_TITLE,
                    "planned_load": block.get("planned_load"),
                    "status": "scheduled",
                }
            )

        self.programs.insert_sessions(new_sessions)
        logger.info(f"Created {len(new_sessions)} new sessions for program {program_id}")
        return GenerateSessionsResult(created=len(new_sessions))

    # ------------------------------------------------------------------
    # Programs from templates
    # ------------------------------------------------------------------

    def create_program_from_template(
        self,
        user_id: str,
        template_id: Any,
        athlete_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Instantiate a template for an athlete, starting today.

        Solo athletes may only target themselves. Coaches must name an
        athlete on their roster and own the template.
        """
        if not template_id or not isinstance(template_id, str):
            raise ValidationError("templateId is required and must be a string", field="templateId")

        profile = self.athletes.get_profile(user_id)
        if profile is None:
            raise NotFoundError("User profile", user_id)

        role = profile.get("role")
        if role == "solo":
            if athlete_id and athlete_id != user_id:
                raise ForbiddenError("Solo athletes can only create programs for themselves")
            target_athlete, coach_id = user_id, None
        elif role == "coach":
            if not athlete_id:
                raise ValidationError("athleteUuid is required for coach role", field="athleteUuid")

            template = self.programs.get_template(template_id)
            if template is None:
                raise TemplateNotFoundError(template_id)
            if template.get("owner_uuid") != user_id:
                raise ForbiddenError("Forbidden: Template not owned by coach")

            athlete = self.athletes.get_athlete(athlete_id)
            if athlete is None:
                raise AthleteNotFoundError(athlete_id)
            if athlete.get("coach_uuid") != user_id:
                raise ForbiddenError("Forbidden: Athlete not on your roster")
            target_athlete, coach_id = athlete_id, user_id
        else:
            raise ForbiddenError("Invalid user role")

        start = today or datetime.now(timezone.utc).date()
        program = self.programs.create_program(template_id, target_athlete, start, coach_id)
        program_id = program.get("id")
        logger.info(f"Program {program_id} created from template {template_id} for athlete {target_athlete}")

        if program_id:
            self.generate_sessions(str(program_id))
        return {"programId": program_id}

    # ------------------------------------------------------------------
    # Finishers
    # ------------------------------------------------------------------

    def assign_finisher(self, user_id: str, session_id: Any) -> Dict[str, Any]:
        """
        Attach the shortest mobility protocol that targets the session's
        two most loaded muscles.
        """
        if not session_id:
            raise ValidationError("Missing required field: session_id", field="session_id")

        session = self.programs.get_workout_session(session_id, user_id)
        if session is None:
            raise SessionNotFoundError(session_id, message="Session not found or unauthorized")

        started_at = parse_timestamp(session.get("started_at"))
        day = started_at.date() if started_at else datetime.now(timezone.utc).date()

        loads = self.athletes.get_muscle_loads(user_id, day)[:TOP_MUSCLE_COUNT]
        if not loads:
            raise NotFoundError(
                "Muscle load",
                day.isoformat(),
                message="No muscle load data found for session date",
            )
        muscles = [row["muscle"] for row in loads]

        protocols = self.programs.find_mobility_protocols(muscles)
        if not protocols:
            raise NotFoundError(
                "Mobility protocol",
                ",".join(muscles),
                message="No suitable mobility protocols found for muscle groups",
            )

        protocol_id = protocols[0]["id"]
        self.programs.assign_finisher(session_id, protocol_id)
        logger.info(f"Assigned protocol {protocol_id} to session {session_id} for {muscles}")
        return {"protocol_id": protocol_id}

    # ------------------------------------------------------------------
    # Live set adjustments
    # ------------------------------------------------------------------

    async def adjust_live_set(
        self,
        session_id: Any,
        athlete_id: Any,
        metric: Any,
        value: Any,
    ) -> Optional[Dict[str, Any]]:
        """
        React to a velocity-loss or heart-rate-drift reading during a set.

        Returns None when the reading is within bounds (no adjustment).

        Raises:
            ValidationError: Missing fields or unknown metric
            SessionNotFoundError: Unknown session
        """
        if not session_id or not athlete_id or not metric or value is None:
            raise ValidationError("Missing required fields")
        if metric not in LIVE_METRIC_THRESHOLDS:
            raise ValidationError("Invalid metric. Must be velocity_loss or hr_drift", field="metric")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("value must be a number", field="value")

        delta = live_adjustment_delta(metric, value)
        if delta == 0:
            logger.info(f"No adjustment needed for {metric}={value}")
            return None

        session = self.programs.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        for block in self.programs.get_workout_blocks(athlete_id):
            try:
                self.programs.update_workout_block(block["id"], scale_target_loads(block.get("data"), 1 + delta))
            except Exception as e:
                logger.error(f"Error updating workout block {block.get('id')}: {e}")

        prompt_text = build_live_adjustment_prompt(metric, value, delta)
        self.programs.insert_live_prompt(
            {
                "session_uuid": session_id,
                "athlete_uuid": athlete_id,
                "coach_uuid": session.get("coach_uuid"),
                "prompt_text": prompt_text,
                "metric": metric,
                "adjustment_value": delta,
            }
        )

        if self.broadcaster is not None:
            await self.broadcaster.broadcast(
                f"kai_session_{session_id}",
                "kai_adjustment",
                {
                    "session_uuid": session_id,
                    "athlete_uuid": athlete_id,
                    "metric": metric,
                    "value": value,
                    "adjustment": delta,
                    "prompt_text": prompt_text,
                },
            )

        logger.info(f"Live adjustment {delta} applied for athlete {athlete_id} in session {session_id}")
        return {"success": True, "adjustment": delta, "prompt_text": prompt_text}
