"""ARIA program adjustment.

Scales today's open sessions for every athlete from their latest readiness
and WHOOP strain. The decision is a two-branch rule table; everything else
here is fetching inputs, writing the scaled sessions and the audit trail,
and notifying the athlete's app.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from ..db.repositories import AthleteRepository, ProgramRepository, WearableRepository
from ..exceptions import DatabaseError
from ..integrations.realtime import RealtimeBroadcaster


logger = logging.getLogger(__name__)

LOW_READINESS = 50
HIGH_READINESS = 80
HIGH_STRAIN = 18
LOW_STRAIN = 8

REDUCE_FACTOR = 0.85
INCREASE_FACTOR = 1.10

SCALED_FIELDS = ("planned_load", "volume", "duration_min")

REASON_MESSAGES = {
    "low_readiness": "Session reduced due to low readiness score",
    "high_strain": "Session reduced due to high strain",
    "high_readiness": "Session increased due to high readiness and low strain",
}


@dataclass
class AdjustmentDecision:
    """Multiplier to apply to today's sessions and why."""
    factor: float
    reason: str


@dataclass
class AdjustmentRunResult:
    athletes_processed: int = 0
    total_adjustments: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "athletesProcessed": self.athletes_processed,
            "totalAdjustments": self.total_adjustments,
        }


def decide_adjustment(
    readiness: Optional[float],
    strain: Optional[float],
) -> Optional[AdjustmentDecision]:
    """
    Pick the session multiplier for an athlete.

    A missing strain never triggers the high-strain branch and never
    satisfies the low-strain condition. Without a readiness score there
    is no decision.
    """
    if readiness is None:
        return None

    if readiness < LOW_READINESS:
        return AdjustmentDecision(REDUCE_FACTOR, "low_readiness")
    if strain is not None and strain > HIGH_STRAIN:
        return AdjustmentDecision(REDUCE_FACTOR, "high_strain")
    if readiness > HIGH_READINESS and strain is not None and strain < LOW_STRAIN:
        return AdjustmentDecision(INCREASE_FACTOR, "high_readiness")
    return None


def scale_session(session: Dict[str, Any], factor: float) -> Dict[str, Any]:
    """Return the scaled numeric fields present on ``session``."""
    scaled = {}
    for field_name in SCALED_FIELDS:
        value = session.get(field_name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            scaled[field_name] = round(value * factor, 2)
    return scaled


class ProgramAdjustmentService:
    """Applies readiness/strain adjustments to today's sessions."""

    def __init__(
        self,
        athletes: AthleteRepository,
        programs: ProgramRepository,
        wearables: WearableRepository,
        broadcaster: Optional[RealtimeBroadcaster] = None,
    ):
        self.athletes = athletes
        self.programs = programs
        self.wearables = wearables
        self.broadcaster = broadcaster

    async def run(self, today: Optional[date] = None) -> AdjustmentRunResult:
        today = today or datetime.now(timezone.utc).date()
        athletes = await run_in_threadpool(self.athletes.list_athletes)
        logger.info(f"Adjusting programs for {len(athletes)} athletes on {today}")

        result = AdjustmentRunResult(athletes_processed=len(athletes))
        for athlete in athletes:
            athlete_id = athlete["id"]
            try:
                count = await self.adjust_athlete(athlete_id, today)
            except Exception as e:
                logger.error(f"Error adjusting sessions for athlete {athlete_id}: {e}")
                continue
            result.total_adjustments += count

        logger.info(f"Program adjustment complete: {result.total_adjustments} sessions adjusted")
        return result

    def _load_inputs(self, athlete_id: str, today: date):
        readiness = self.athletes.get_latest_readiness(athlete_id)
        strain = self.wearables.get_latest_strain(athlete_id)
        decision = decide_adjustment(readiness, strain)
        if decision is None:
            return readiness, strain, None, []
        return readiness, strain, decision, self.programs.get_adjustable_sessions(athlete_id, today)

    async def adjust_athlete(self, athlete_id: str, today: date) -> int:
        """
        Scale the athlete's open sessions for ``today``.

        A session whose update fails is skipped; the others are still
        scaled, audited and counted.
        """
        readiness, strain, decision, sessions = await run_in_threadpool(self._load_inputs, athlete_id, today)

        if decision is None:
            logger.debug(f"No adjustment for athlete {athlete_id} (readiness={readiness}, strain={strain})")
            return 0
        if not sessions:
            return 0

        adjusted_at = datetime.now(timezone.utc).isoformat()
        audit_rows: List[Dict[str, Any]] = []

        for session in sessions:
            new_values = scale_session(session, decision.factor)
            old_values = {name: session[name] for name in new_values}

            try:
                await run_in_threadpool(
                    self.programs.update_session,
                    session["id"],
                    {
                        **new_values,
                        "adjustment_factor": decision.factor,
                        "adjustment_reason": decision.reason,
                        "adjusted_at": adjusted_at,
                    },
                )
            except DatabaseError as e:
                logger.error(f"Error updating session {session['id']} for athlete {athlete_id}: {e}")
                continue

            audit_rows.append(
                {
                    "session_id": session["id"],
                    "athlete_uuid": athlete_id,
                    "reason": decision.reason,
                    "adjustment_factor": decision.factor,
                    "readiness": readiness,
                    "strain": strain,
                    "old_values": old_values,
                    "new_values": new_values,
                }
            )
            await self._notify(athlete_id, session["id"], decision, adjusted_at)

        try:
            await run_in_threadpool(self.programs.insert_adjustments, audit_rows)
        except Exception as e:
            logger.error(f"Error logging session adjustments for athlete {athlete_id}: {e}")

        logger.info(
            f"Adjusted {len(audit_rows)} of {len(sessions)} sessions for athlete {athlete_id} "
            f"({decision.reason}, x{decision.factor})"
        )
        return len(audit_rows)

    async def _notify(
        self,
        athlete_id: str,
        session_id: Any,
        decision: AdjustmentDecision,
        timestamp: str,
    ) -> None:
        if self.broadcaster is None:
            return
        await self.broadcaster.broadcast(
            f"athlete:{athlete_id}",
            "session_adjusted",
            {
                "event": "session_adjusted",
                "athlete_id": athlete_id,
                "session_id": session_id,
                "reason": decision.reason,
                "adjustment_factor": decision.factor,
                "timestamp": timestamp,
                "message": REASON_MESSAGES[decision.reason],
            },
        )
