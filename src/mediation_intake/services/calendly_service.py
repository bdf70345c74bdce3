"""
Calendly OAuth credential storage and token refresh.
Tokens are stored encrypted in integration_tokens and never leave the server.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from mediation_intake.core.config import settings
from mediation_intake.database.models.database import IntegrationToken
from mediation_intake.external.calendly.client import CalendlyClient
from mediation_intake.utils.encryption import decrypt_token, encrypt_token
from mediation_intake.utils.exceptions import ExternalServiceError
from mediation_intake.utils.helpers import utcnow
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER = "calendly"


class CalendlyService:
    """Service for the Calendly OAuth connection"""

    def __init__(self, db: Session, client: Optional[CalendlyClient] = None):
        self.db = db
        self.client = client or CalendlyClient()

    def _get_record(self) -> Optional[IntegrationToken]:
        return self.db.query(IntegrationToken).filter(IntegrationToken.provider == PROVIDER).first()

    def _store_tokens(self, token_data: Dict[str, Any]) -> IntegrationToken:
        """Persist a token response, keeping the old refresh token if none was issued"""
        record = self._get_record()
        if record is None:
            record = IntegrationToken(provider=PROVIDER)
            self.db.add(record)

        record.access_token_encrypted = encrypt_token(token_data["access_token"])
        if token_data.get("refresh_token"):
            record.refresh_token_encrypted = encrypt_token(token_data["refresh_token"])

        expires_in = token_data.get("expires_in")
        record.expires_at = utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None
        record.scope = token_data.get("scope")
        record.owner = token_data.get("owner") or record.owner
        record.updated_at = utcnow()

        self.db.commit()
        self.db.refresh(record)
        return record

    def build_authorize_url(self, state: str) -> str:
        return self.client.build_authorize_url(state)

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Complete the OAuth flow.

        Raises:
            ExternalServiceError: Calendly rejected the code
        """
        token_data = await self.client.exchange_code(code)
        self._store_tokens(token_data)
        logger.info("[green]✅ Calendly connected[/green]")
        return self.connection_status()

    async def refresh_access_token(self) -> bool:
        """Refresh the stored access token. Returns False instead of raising."""
        record = self._get_record()
        refresh_token = decrypt_token(record.refresh_token_encrypted) if record else ""
        if not refresh_token:
            logger.warning("[yellow]⚠️  No Calendly refresh token stored[/yellow]")
            return False

        try:
            token_data = await self.client.refresh(refresh_token)
        except ExternalServiceError as e:
            logger.error(f"[red]❌ Calendly token refresh failed:[/red] {e.detail}")
            return False

        self._store_tokens(token_data)
        logger.info("[green]✅ Calendly token refreshed[/green]")
        return True

    async def get_access_token(self) -> Optional[str]:
        """
        A usable access token, refreshed first when it is expired or
        expires within the refresh margin.

        Returns:
            The token, or None when nothing is stored or refresh failed
        """
        record = self._get_record()
        if record is None or not record.access_token_encrypted:
            logger.debug("[dim]No Calendly tokens stored[/dim]")
            return None

        margin = timedelta(seconds=settings.calendly.refresh_margin_seconds)
        if record.expires_at is not None and utcnow() >= record.expires_at - margin:
            logger.info("[cyan]Calendly token expired or expiring soon, refreshing[/cyan]")
            if not await self.refresh_access_token():
                return None
            record = self._get_record()

        return decrypt_token(record.access_token_encrypted)

    def connection_status(self) -> Dict[str, Any]:
        record = self._get_record()
        if record is None:
            return {"connected": False, "expires_at": None, "owner": None, "scope": None}
        return {
            "connected": True,
            "expires_at": record.expires_at,
            "owner": record.owner,
            "scope": record.scope,
        }
