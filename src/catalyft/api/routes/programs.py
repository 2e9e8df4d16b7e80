"""Program, session and live set functions."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from ..deps import CurrentUser, get_current_user, get_program_service
from ..exception_handlers import CORS_HEADERS
from ...models.programs import (
    AdjustSetRequest,
    CreateProgramRequest,
    GenerateFinishersRequest,
    GenerateSessionsRequest,
)
from ...services.programs import ProgramService


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/generateSessions")
def generate_sessions(
    body: GenerateSessionsRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProgramService = Depends(get_program_service),
) -> Dict[str, Any]:
    """Create the missing sessions of a template program."""
    logger.info(f"User {user.user_id} generating sessions for program {body.programId}")
    return service.generate_sessions(body.programId).to_dict()


@router.post("/create-program-from-template")
def create_program_from_template(
    body: CreateProgramRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProgramService = Depends(get_program_service),
) -> Dict[str, Any]:
    return service.create_program_from_template(user.user_id, body.templateId, body.athleteUuid)


@router.post("/generateFinishers")
def generate_finishers(
    body: GenerateFinishersRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProgramService = Depends(get_program_service),
) -> Dict[str, Any]:
    """Attach a mobility finisher to one of the caller's sessions."""
    return service.assign_finisher(user.user_id, body.session_id)


@router.post("/kai_adjust_set")
async def kai_adjust_set(
    body: AdjustSetRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProgramService = Depends(get_program_service),
):
    """
    Apply a live load change for a set reading.

    Answers 204 with no body when the reading needs no adjustment.
    """
    logger.debug(f"User {user.user_id} reported {body.metric}={body.value} for session {body.session_uuid}")
    result = await service.adjust_live_set(body.session_uuid, body.athlete_uuid, body.metric, body.value)
    if result is None:
        return Response(status_code=204, headers=CORS_HEADERS)
    return result
