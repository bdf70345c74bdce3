"""
Calendly connection schemas. Token values are never part of a response.
"""
from datetime import datetime
from typing import Optional

from mediation_intake.schemas.base import CamelSchema


class CalendlyAuthorizeResponse(CamelSchema):
    authorize_url: str
    state: str


class CalendlyConnectionStatus(CamelSchema):
    connected: bool
    expires_at: Optional[datetime] = None
    owner: Optional[str] = None
    scope: Optional[str] = None


class CalendlyRefreshResponse(CamelSchema):
    refreshed: bool
