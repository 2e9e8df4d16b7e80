"""Readiness and training-load analytics functions."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from ..deps import CurrentUser, get_current_user, get_readiness_service
from ...services.readiness import DEFAULT_ANALYTICS_DAYS, MAX_ANALYTICS_DAYS, ReadinessService


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/getReadiness")
def get_readiness(
    user: CurrentUser = Depends(get_current_user),
    service: ReadinessService = Depends(get_readiness_service),
) -> Dict[str, Any]:
    """Score today's readiness for the caller and store it."""
    return service.get_readiness(user.user_id)


@router.get("/getAnalytics")
def get_analytics(
    days: int = Query(DEFAULT_ANALYTICS_DAYS, ge=1, le=MAX_ANALYTICS_DAYS),
    user: CurrentUser = Depends(get_current_user),
    service: ReadinessService = Depends(get_readiness_service),
) -> Dict[str, Any]:
    """ACWR series, risk zone and fitness-fatigue metrics for the caller."""
    return service.get_analytics(user.user_id, days=days)
