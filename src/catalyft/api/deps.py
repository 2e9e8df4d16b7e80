"""Dependency injection for the function routes."""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from ..config import get_settings
from ..db.client import get_supabase_client
from ..db.local_store import LocalStore
from ..db.repositories import AthleteRepository, ProgramRepository, WearableRepository
from ..exceptions import AuthenticationError
from ..integrations.realtime import RealtimeBroadcaster
from ..llm.providers import get_llm_client
from ..services.adjustment import ProgramAdjustmentService
from ..services.google_fit_sync import GoogleFitSyncService
from ..services.healthkit_sync import HealthKitSyncService
from ..services.injury_risk import InjuryRiskService
from ..services.programs import ProgramService
from ..services.readiness import ReadinessService
from ..services.wearable_link import WearableLinkService
from ..services.weekly_summary import WeeklySummaryService
from ..services.whoop_sync import WhoopSyncService


logger = logging.getLogger(__name__)

# Bearer token from the Authorization header; missing tokens are handled below
security = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """The caller resolved from a Supabase access token."""

    user_id: str
    email: Optional[str] = None

    @property
    def id(self) -> str:
        return self.user_id


def get_supabase() -> Client:
    """Get the service-role Supabase client."""
    return get_supabase_client()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    client: Client = Depends(get_supabase),
) -> CurrentUser:
    """Resolve the bearer token to a user, or fail with 401 ``Unauthorized``."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    try:
        response = client.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise AuthenticationError() from e

    user = getattr(response, "user", None)
    if user is None or not getattr(user, "id", None):
        raise AuthenticationError()
    return CurrentUser(user_id=str(user.id), email=getattr(user, "email", None))


async def require_service_role(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """
    Admit only callers presenting the service role key.

    Guards the batch functions that cron jobs invoke for every athlete.
    Fails with 401 ``Unauthorized`` otherwise, including when no key is
    configured.
    """
    service_key = get_settings().supabase_service_role_key
    token = credentials.credentials if credentials is not None else ""
    if not service_key or not token or not secrets.compare_digest(token, service_key):
        raise AuthenticationError()


# ============================================================================
# Repositories
# ============================================================================

@lru_cache
def get_athlete_repository() -> AthleteRepository:
    """Get the athlete repository instance."""
    return AthleteRepository(get_supabase_client())


@lru_cache
def get_program_repository() -> ProgramRepository:
    """Get the program repository instance."""
    return ProgramRepository(get_supabase_client())


@lru_cache
def get_wearable_repository() -> WearableRepository:
    """Get the wearable repository instance."""
    return WearableRepository(get_supabase_client())


@lru_cache
def get_broadcaster() -> RealtimeBroadcaster:
    return RealtimeBroadcaster()


@lru_cache
def get_local_store() -> LocalStore:
    """Get the offline store at the configured path."""
    settings = get_settings()
    return LocalStore(str(settings.local_store_path))


# ============================================================================
# Services
# ============================================================================

@lru_cache
def get_whoop_sync_service() -> WhoopSyncService:
    return WhoopSyncService(get_wearable_repository())


@lru_cache
def get_google_fit_service() -> GoogleFitSyncService:
    return GoogleFitSyncService(get_wearable_repository())


@lru_cache
def get_readiness_service() -> ReadinessService:
    return ReadinessService(get_athlete_repository(), get_program_repository())


@lru_cache
def get_program_service() -> ProgramService:
    return ProgramService(get_program_repository(), get_athlete_repository(), get_broadcaster())


@lru_cache
def get_adjustment_service() -> ProgramAdjustmentService:
    return ProgramAdjustmentService(
        get_athlete_repository(),
        get_program_repository(),
        get_wearable_repository(),
        get_broadcaster(),
    )


@lru_cache
def get_injury_risk_service() -> InjuryRiskService:
    return InjuryRiskService(get_athlete_repository(), get_wearable_repository())


@lru_cache
def get_healthkit_service() -> HealthKitSyncService:
    return HealthKitSyncService(get_wearable_repository())


@lru_cache
def get_wearable_link_service() -> WearableLinkService:
    return WearableLinkService(
        get_athlete_repository(),
        get_wearable_repository(),
        get_whoop_sync_service(),
    )


@lru_cache
def get_weekly_summary_service() -> WeeklySummaryService:
    """Get the weekly summary service (requires an OpenAI key)."""
    return WeeklySummaryService(
        get_athlete_repository(),
        get_wearable_repository(),
        get_readiness_service(),
        get_llm_client(),
    )
