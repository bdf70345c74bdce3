"""
Staff notifications. Email is fire-and-forget: delivery failures are
logged and never fail the request that triggered them.
"""
from html import escape
from typing import List, Optional

from mediation_intake.core.config import settings
from mediation_intake.core.service_areas import FORM_TYPE_LABELS, SERVICE_AREA_LABELS, ServiceArea
from mediation_intake.external.email.resend import ResendClient
from mediation_intake.utils.exceptions import EmailDeliveryError
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Sends staff alerts through Resend"""

    def __init__(self, email_client: Optional[ResendClient] = None, recipients: Optional[List[str]] = None):
        self.email_client = email_client or ResendClient()
        self.recipients = recipients if recipients is not None else settings.email.staff_recipients

    async def _send(self, subject: str, html: str) -> bool:
        if not self.recipients:
            logger.debug(f"[dim]No staff recipients configured, not sending:[/dim] {subject}")
            return False
        try:
            await self.email_client.send(self.recipients, subject, html)
            return True
        except EmailDeliveryError as e:
            logger.warning(f"[yellow]⚠️  Email not delivered ({subject}):[/yellow] {e}")
            return False

    async def send_inquiry_notification(self, inquiry) -> bool:
        """Tell staff a new website inquiry arrived"""
        area = SERVICE_AREA_LABELS.get(ServiceArea(inquiry.service_area), inquiry.service_area)
        form_label = FORM_TYPE_LABELS.get(inquiry.form_type, inquiry.form_type)
        subject = f"New {area} inquiry: {form_label}"
        html = (
            f"<h2>New {escape(area)} inquiry</h2>"
            f"<p>A <strong>{escape(form_label)}</strong> form was submitted"
            f" ({escape(inquiry.submission_type)}).</p>"
            f"<p>Inquiry ID: {escape(inquiry.id)}</p>"
            "<p>Review it in the staff dashboard.</p>"
        )
        return await self._send(subject, html)

    async def send_sync_failure_alert(self, intake) -> bool:
        """Tell staff a paper intake could not be synced to Insightly"""
        if not settings.sync.notify_on_failure:
            return False
        label = intake.case_number or intake.id
        subject = f"Insightly sync failed for paper intake {label}"
        html = (
            "<h2>Paper intake sync failed</h2>"
            f"<p>Intake: {escape(intake.id)}</p>"
            f"<p>Case number: {escape(intake.case_number or '-')}</p>"
            f"<p>Attempts: {intake.sync_attempts}</p>"
            f"<p>Error: {escape(intake.last_sync_error or 'unknown')}</p>"
            "<p>Use Retry on the intake history page once the problem is fixed.</p>"
        )
        return await self._send(subject, html)
