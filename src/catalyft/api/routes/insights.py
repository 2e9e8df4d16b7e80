"""ARIA batch functions: program adjustment, injury risk and weekly summaries.

These run across every athlete, so they only accept the service role key.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from ..deps import (
    get_adjustment_service,
    get_injury_risk_service,
    get_weekly_summary_service,
    require_service_role,
)
from ..middleware.rate_limit import RATE_LIMIT_AI, RATE_LIMIT_SYNC, limiter
from ...models.programs import WeeklySummaryRequest
from ...services.adjustment import ProgramAdjustmentService
from ...services.injury_risk import InjuryRiskService
from ...services.weekly_summary import WeeklySummaryService


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/aria-adjust-program", dependencies=[Depends(require_service_role)])
@limiter.limit(RATE_LIMIT_SYNC)
async def aria_adjust_program(
    request: Request,
    service: ProgramAdjustmentService = Depends(get_adjustment_service),
) -> Dict[str, Any]:
    """Scale today's sessions by readiness and strain for every athlete."""
    result = await service.run()
    return result.to_dict()


@router.post("/aria_injury_risk", dependencies=[Depends(require_service_role)])
@limiter.limit(RATE_LIMIT_SYNC)
async def aria_injury_risk(
    request: Request,
    service: InjuryRiskService = Depends(get_injury_risk_service),
) -> Dict[str, Any]:
    """Score yesterday's injury risk and alert athletes at high risk."""
    result = await service.run()
    return result.to_dict()


@router.post("/aria_weekly_summary", dependencies=[Depends(require_service_role)])
@limiter.limit(RATE_LIMIT_AI)
async def aria_weekly_summary(
    request: Request,
    body: Optional[WeeklySummaryRequest] = None,
    service: WeeklySummaryService = Depends(get_weekly_summary_service),
) -> Dict[str, Any]:
    """Generate last week's summaries for opted-in solo athletes."""
    debug = body.debug if body is not None else False
    result = await service.run(debug=debug)
    logger.info(f"Weekly summaries: {result.processed} processed, {result.errors} errors")
    return result.to_dict()
