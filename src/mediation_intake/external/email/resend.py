"""
Resend REST API client for transactional email
"""
import re
from typing import Any, Dict, List, Optional, Union

import httpx

from mediation_intake.core.config import settings, EmailConfig
from mediation_intake.utils.exceptions import EmailDeliveryError
from mediation_intake.utils.http import request_with_retries
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)


def strip_html(html_content: str) -> str:
    """
    Strip HTML tags to build the plain-text alternative.

    Args:
        html_content: HTML content string

    Returns:
        Plain text content
    """
    if not html_content:
        return ""

    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", html_content, flags=re.DOTALL | re.I)
    text = re.sub(r"<br\s*/?>|</p>|</li>|</h\d>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", "", text)

    text = text.replace("&nbsp;", " ")
    text = text.replace("&amp;", "&")
    text = text.replace("&lt;", "<")
    text = text.replace("&gt;", ">")
    text = text.replace("&quot;", '"')
    text = text.replace("&#39;", "'")

    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


class ResendClient:
    """Sends email through Resend. Raises EmailDeliveryError on any failure."""

    def __init__(
        self,
        config: Optional[EmailConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or settings.email
        self._transport = transport

    async def send(
        self,
        to: Union[str, List[str]],
        subject: str,
        html: str,
        reply_to: Optional[str] = None,
    ) -> str:
        """
        Send one email.

        Returns:
            Resend message id

        Raises:
            EmailDeliveryError: Not configured, transport failure or non-2xx response
        """
        if not self.config.is_configured:
            raise EmailDeliveryError("Email delivery is not configured")

        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            raise EmailDeliveryError("No recipients")

        payload: Dict[str, Any] = {
            "from": self.config.from_address,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        text = strip_html(html)
        if text:
            payload["text"] = text
        if reply_to:
            payload["reply_to"] = reply_to

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.config.api_url.rstrip('/')}/emails"

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await request_with_retries(
                    lambda: client.post(url, json=payload, headers=headers),
                    service="Resend",
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email request failed: {e}")

        if response.is_error:
            raise EmailDeliveryError(
                f"Resend returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        message_id = body.get("id", "") if isinstance(body, dict) else ""
        logger.info(f"[green]✅ Email sent:[/green] [cyan]{subject}[/cyan] to {len(recipients)} recipient(s)")
        return message_id
