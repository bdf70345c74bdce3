"""
Calendly OAuth endpoints
"""
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from mediation_intake.core.dependencies import get_calendly_client, get_db, require_intake_writer
from mediation_intake.core.security import CurrentUser
from mediation_intake.external.calendly.client import CalendlyClient
from mediation_intake.schemas.calendly import (
    CalendlyAuthorizeResponse,
    CalendlyConnectionStatus,
    CalendlyRefreshResponse,
)
from mediation_intake.services.calendly_service import CalendlyService
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/calendly")

STATE_COOKIE = "calendly_oauth_state"


def get_calendly_service(
    db: Session = Depends(get_db),
    client: CalendlyClient = Depends(get_calendly_client),
) -> CalendlyService:
    return CalendlyService(db, client=client)


@router.get("/authorize", response_model=CalendlyAuthorizeResponse)
async def authorize(
    response: Response,
    service: CalendlyService = Depends(get_calendly_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Start the OAuth flow. The dashboard sends the browser to authorizeUrl;
    the state is echoed back in a short-lived cookie for the callback.
    """
    state = secrets.token_urlsafe(24)
    url = service.build_authorize_url(state)
    response.set_cookie(STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax")
    logger.info(f"[cyan]Calendly authorization started by[/cyan] {user.display_name}")
    return {"authorize_url": url, "state": state}


@router.get("/callback", response_model=CalendlyConnectionStatus)
async def callback(
    request: Request,
    response: Response,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    service: CalendlyService = Depends(get_calendly_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """Exchange the authorization code and store the encrypted tokens"""
    if error:
        logger.warning(f"[yellow]⚠️  Calendly authorization denied:[/yellow] {error}")
        raise HTTPException(status_code=400, detail="Calendly authorization was denied")
    if not code:
        raise HTTPException(status_code=400, detail="No authorization code provided")

    expected = request.cookies.get(STATE_COOKIE)
    if not expected or not state or not secrets.compare_digest(expected, state):
        raise HTTPException(status_code=400, detail="OAuth state mismatch")

    status = await service.exchange_code(code)
    response.delete_cookie(STATE_COOKIE)
    return status


@router.post("/refresh", response_model=CalendlyRefreshResponse)
async def refresh(
    service: CalendlyService = Depends(get_calendly_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    return {"refreshed": await service.refresh_access_token()}


@router.get("/status", response_model=CalendlyConnectionStatus)
async def connection_status(
    service: CalendlyService = Depends(get_calendly_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    return service.connection_status()
