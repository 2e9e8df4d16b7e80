"""Wearable sync and linking functions."""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from ..deps import (
    CurrentUser,
    get_current_user,
    get_google_fit_service,
    get_healthkit_service,
    get_wearable_link_service,
    get_whoop_sync_service,
    require_service_role,
)
from ..exception_handlers import CORS_HEADERS
from ..middleware.rate_limit import RATE_LIMIT_SYNC, limiter
from ...exceptions import ForbiddenError, ValidationError
from ...models.wearables import (
    GoogleFitActionRequest,
    GoogleFitSyncRequest,
    HealthKitSyncRequest,
    LinkWearableRequest,
    RecoverySyncRequest,
)
from ...services.google_fit_sync import GoogleFitSyncService
from ...services.healthkit_sync import HealthKitSyncService
from ...services.wearable_link import WearableLinkService
from ...services.whoop_sync import WhoopSyncService


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/pull-whoop-recovery")
async def pull_whoop_recovery(
    body: RecoverySyncRequest,
    user: CurrentUser = Depends(get_current_user),
    service: WhoopSyncService = Depends(get_whoop_sync_service),
) -> Dict[str, Any]:
    """Backfill one athlete's WHOOP recovery metrics."""
    logger.info(f"User {user.user_id} pulling WHOOP recovery for athlete {body.athlete_id}")
    result = await service.sync_recovery(body.athlete_id)
    return result.to_dict()


@router.post("/pull-whoop-activity", dependencies=[Depends(require_service_role)])
@limiter.limit(RATE_LIMIT_SYNC)
async def pull_whoop_activity(
    request: Request,
    service: WhoopSyncService = Depends(get_whoop_sync_service),
) -> Dict[str, Any]:
    """Sync cycles and workouts for every athlete with a live WHOOP token."""
    result = await service.sync_activity()
    return result.to_dict()


@router.post("/solo-link-wearable")
async def solo_link_wearable(
    body: LinkWearableRequest,
    user: CurrentUser = Depends(get_current_user),
    service: WearableLinkService = Depends(get_wearable_link_service),
) -> Dict[str, Any]:
    logger.info(f"User {user.user_id} linking {body.provider} for athlete {body.athlete_uuid}")
    return await service.link(body)


@router.post("/sync-healthkit-data")
def sync_healthkit_data(
    body: HealthKitSyncRequest,
    user: CurrentUser = Depends(get_current_user),
    service: HealthKitSyncService = Depends(get_healthkit_service),
) -> Dict[str, Any]:
    """Upsert HealthKit daily activity and workouts pushed by the app."""
    return service.sync(user.user_id, body).to_dict()


# ============================================================================
# Google Fit
# ============================================================================

OAUTH_PAGE = """<html>
  <body>
    <h2>{title}</h2>
    <p>{message}</p>
    <p>You can close this window and {next_step}.</p>
    <script>
      if (window.opener) {{
        window.opener.postMessage({payload}, '*');
        window.close();
      }}
    </script>
  </body>
</html>
"""


def _oauth_page(title: str, message: str, next_step: str, payload: Dict[str, Any]) -> HTMLResponse:
    # payload lands inside a <script> block
    script_payload = json.dumps(payload).replace("<", "\\u003c")
    content = OAUTH_PAGE.format(title=title, message=message, next_step=next_step, payload=script_payload)
    return HTMLResponse(content, headers=CORS_HEADERS)


def _own_user_id(user: CurrentUser, user_id: Optional[str]) -> Optional[str]:
    if user_id and user_id != user.user_id:
        raise ForbiddenError("Forbidden: Google Fit data belongs to another user")
    return user_id


@router.post("/sync-google-fit-data")
@limiter.limit(RATE_LIMIT_SYNC)
async def sync_google_fit_data(
    request: Request,
    body: GoogleFitSyncRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GoogleFitSyncService = Depends(get_google_fit_service),
) -> Dict[str, Any]:
    """Pull the caller's Google Fit daily activity and workouts."""
    result = await service.sync(_own_user_id(user, body.user_id), body.days)
    return result.to_dict()


@router.get("/google-fit-oauth", response_model=None)
async def google_fit_oauth_redirect(
    user_id: Optional[str] = None,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    service: GoogleFitSyncService = Depends(get_google_fit_service),
) -> Dict[str, Any] | HTMLResponse:
    """
    Google Fit consent flow.

    Without ``code`` or ``error`` this returns the consent URL for
    ``user_id``. Google then redirects the browser back here with either
    ``code`` and ``state`` (the user id) or ``error``; both answer with a
    page that notifies the opener window.
    """
    if error:
        logger.info(f"Google Fit authorization denied: {error}")
        return _oauth_page(
            "Google Fit Authorization",
            "Authorization was cancelled or denied.",
            "try again from the app",
            {"type": "google_fit_auth", "success": False, "error": error},
        )

    if code and state:
        await service.handle_callback(code, state)
        return _oauth_page(
            "Google Fit Connected Successfully!",
            "Your Google Fit account has been connected and we're syncing your activity data.",
            "return to the app",
            {"type": "google_fit_auth", "success": True},
        )

    if code:
        raise ValidationError("Invalid request")

    return {
        "authUrl": service.authorization_url(user_id),
        "message": "Redirect user to this URL to authorize Google Fit access",
    }


@router.post("/google-fit-oauth")
async def google_fit_oauth_action(
    body: GoogleFitActionRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GoogleFitSyncService = Depends(get_google_fit_service),
) -> Dict[str, Any]:
    """Refresh the caller's Google Fit token or disconnect the account."""
    user_id = _own_user_id(user, body.user_id) or user.user_id
    if body.action == "refresh_token":
        return await service.refresh(user_id)
    if body.action == "disconnect":
        return await service.disconnect(user_id)
    raise ValidationError("Invalid request")
