"""Coaching services: WHOOP, HealthKit and Google Fit sync, ARIA jobs, programs and readiness."""

from .adjustment import ProgramAdjustmentService, decide_adjustment
from .google_fit_sync import GoogleFitSyncService
from .healthkit_sync import HealthKitSyncService
from .injury_risk import InjuryRiskService
from .programs import ProgramService
from .readiness import ReadinessService
from .scheduler import CoachingScheduler, get_scheduler, shutdown_scheduler
from .wearable_link import WearableLinkService
from .weekly_summary import WeeklySummaryService
from .whoop_sync import WhoopSyncService

__all__ = [
    "ProgramAdjustmentService",
    "decide_adjustment",
    "GoogleFitSyncService",
    "HealthKitSyncService",
    "InjuryRiskService",
    "ProgramService",
    "ReadinessService",
    "CoachingScheduler",
    "get_scheduler",
    "shutdown_scheduler",
    "WearableLinkService",
    "WeeklySummaryService",
    "WhoopSyncService",
]
