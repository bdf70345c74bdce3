"""
Calendly OAuth client
"""
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from mediation_intake.core.config import settings, CalendlyConfig
from mediation_intake.utils.exceptions import ExternalServiceError
from mediation_intake.utils.http import request_with_retries
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)


class CalendlyClient:
    """
    Client for Calendly's OAuth authorize and token endpoints.
    Token persistence lives in CalendlyService; this class only talks HTTP.
    """

    def __init__(
        self,
        config: Optional[CalendlyConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or settings.calendly
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.config.client_id and self.config.client_secret and self.config.redirect_uri)

    def build_authorize_url(self, state: str) -> str:
        """
        Calendly OAuth consent URL. Calendly has no custom scopes, so no
        scope parameter is sent.
        """
        if not self.config.client_id or not self.config.redirect_uri:
            raise ExternalServiceError("Calendly credentials not configured", service="calendly")
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "state": state,
        }
        return f"{self.config.oauth_base_url}/oauth/authorize?{urlencode(params)}"

    async def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        if not self.is_configured:
            raise ExternalServiceError("Calendly credentials not configured", service="calendly")

        body = {
            **form,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        url = f"{self.config.oauth_base_url}/oauth/token"
        logger.debug(f"[cyan]Calendly token request[/cyan] grant_type={form['grant_type']}")
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await request_with_retries(lambda: client.post(url, data=body), service="Calendly")
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Calendly token request failed: {e}", service="calendly")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error:
            reason = payload.get("error_description") or payload.get("message") or payload.get("error") or response.status_code
            raise ExternalServiceError(f"Calendly token request failed: {reason}", service="calendly")
        if not payload.get("access_token"):
            raise ExternalServiceError("Calendly token response has no access_token", service="calendly")
        return payload

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for an access/refresh token pair"""
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
        })

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        return await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
