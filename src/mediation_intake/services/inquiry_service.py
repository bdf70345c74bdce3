"""
Service-area inquiries: intake from the website forms, staff review,
Calendly scheduling, Monday.com item sync and Insightly Lead sync
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from mediation_intake.core.security import CurrentUser
from mediation_intake.core.service_areas import ServiceArea, service_area_for_form
from mediation_intake.core.sync_status import (
    InquiryStatus,
    InsightlySyncStatus,
    MondaySyncStatus,
    ensure_inquiry_transition,
)
from mediation_intake.database.models.database import Inquiry
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.external.crm.insightly import build_lead_url
from mediation_intake.external.crm.inquiry_leads import (
    INQUIRY_LEAD_BUILDERS,
    lead_match_participant,
    validate_lead_payload,
)
from mediation_intake.external.crm.models import ApiError, Ok
from mediation_intake.external.monday.client import MondayClient
from mediation_intake.external.monday.mappers import build_monday_item
from mediation_intake.services.base_service import BaseService
from mediation_intake.services.notification_service import NotificationService
from mediation_intake.services.staff_task_service import StaffTaskService
from mediation_intake.utils.exceptions import (
    ExternalServiceError,
    IntakeValidationError,
    NotFoundError,
)
from mediation_intake.utils.helpers import utcnow
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)


class InquiryService(BaseService[Inquiry]):
    """Service for website inquiries scoped to a service area"""

    resource_name = "Inquiry"

    def __init__(
        self,
        db: Session,
        monday_client: Optional[MondayClient] = None,
        notifications: Optional[NotificationService] = None,
        crm_client: Optional[InsightlyClient] = None,
        tasks: Optional[StaffTaskService] = None,
    ):
        super().__init__(db, Inquiry)
        self.monday_client = monday_client or MondayClient()
        self.notifications = notifications or NotificationService()
        self.crm_client = crm_client or InsightlyClient()
        self.tasks = tasks or StaffTaskService(db)

    async def create_inquiry(
        self,
        service_area: ServiceArea,
        form_type: str,
        form_data: Dict[str, Any],
        user: Optional[CurrentUser] = None,
    ) -> Inquiry:
        """
        Store a submitted form, raise the new-inquiry task and notify staff.

        Raises:
            IntakeValidationError: Unknown form type, or one that belongs to
                another service area
        """
        service_area = ServiceArea(service_area)
        expected = service_area_for_form(form_type)
        if expected != service_area:
            raise IntakeValidationError({
                "form": [{
                    "field": "formType",
                    "message": f"Form '{form_type}' belongs to the {expected.value} service area",
                }]
            })

        inquiry = self.create(
            service_area=service_area.value,
            form_type=form_type,
            form_data=form_data or {},
            submitted_by=user.uid if user else None,
            submission_type="authenticated" if user else "anonymous",
            reviewed=False,
            status=InquiryStatus.SUBMITTED.value,
        )
        logger.info(
            f"[green]✅ Inquiry received:[/green] [cyan]{inquiry.id}[/cyan] "
            f"{form_type} ({service_area.value})"
        )
        self.tasks.on_inquiry_created(inquiry)

        await self.notifications.send_inquiry_notification(inquiry)
        return inquiry

    def get_inquiry(self, service_area: ServiceArea, inquiry_id: str) -> Inquiry:
        """
        Raises:
            NotFoundError: Unknown id, or an inquiry of another service area
        """
        inquiry = self.get(inquiry_id)
        if inquiry is None or inquiry.service_area != ServiceArea(service_area).value:
            raise NotFoundError(f"Inquiry '{inquiry_id}' not found")
        return inquiry

    def list_inquiries(
        self,
        service_area: ServiceArea,
        status: Optional[InquiryStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = self.db.query(Inquiry).filter(Inquiry.service_area == ServiceArea(service_area).value)
        if status is not None:
            query = query.filter(Inquiry.status == InquiryStatus(status).value)

        total = query.count()
        items = (
            query.order_by(Inquiry.created_at.desc(), Inquiry.id)
            .offset(skip)
            .limit(limit)
            .all()
        )
        return {"total": total, "skip": skip, "limit": limit, "items": items}

    def update_inquiry_status(
        self,
        service_area: ServiceArea,
        inquiry_id: str,
        status: InquiryStatus,
    ) -> Inquiry:
        """
        Raises:
            ConflictError: Backwards move, or the inquiry is already closed
                or completed
        """
        inquiry = self.get_inquiry(service_area, inquiry_id)
        target = ensure_inquiry_transition(inquiry.status, status)
        if target.value == inquiry.status:
            return inquiry
        logger.info(f"[cyan]Inquiry {inquiry_id}:[/cyan] {inquiry.status} → {target.value}")
        inquiry = self.save(inquiry, status=target.value)
        if target == InquiryStatus.INTAKE_SCHEDULED:
            self.tasks.on_intake_scheduled(inquiry)
        return inquiry

    def mark_reviewed(self, service_area: ServiceArea, inquiry_id: str, user: CurrentUser) -> Inquiry:
        inquiry = self.get_inquiry(service_area, inquiry_id)
        if inquiry.reviewed:
            return inquiry
        return self.save(inquiry, reviewed=True, reviewed_at=utcnow(), reviewed_by=user.uid)

    def record_calendly_scheduling(
        self,
        service_area: ServiceArea,
        inquiry_id: str,
        event_uri: str,
        scheduled_time: Optional[datetime] = None,
        invitee_uri: Optional[str] = None,
        intake_call: bool = False,
    ) -> Inquiry:
        """
        Store a Calendly booking on the inquiry. An intake call moves the
        inquiry to intake-scheduled, any other booking to scheduled.
        Reaching intake-scheduled swaps the new-inquiry tasks for an
        intake call task.
        """
        inquiry = self.get_inquiry(service_area, inquiry_id)
        target = InquiryStatus.INTAKE_SCHEDULED if intake_call else InquiryStatus.SCHEDULED
        ensure_inquiry_transition(inquiry.status, target)
        status_changed = inquiry.status != target.value

        if scheduled_time is not None and scheduled_time.tzinfo is not None:
            scheduled_time = scheduled_time.astimezone(timezone.utc).replace(tzinfo=None)

        inquiry = self.save(
            inquiry,
            status=target.value,
            calendly_event_uri=event_uri,
            calendly_scheduled_time=scheduled_time,
            calendly_invitee_uri=invitee_uri,
        )
        logger.info(f"[green]✅ Calendly booking recorded for inquiry[/green] [cyan]{inquiry_id}[/cyan]")
        if status_changed and target == InquiryStatus.INTAKE_SCHEDULED:
            self.tasks.on_intake_scheduled(inquiry)
        return inquiry

    async def sync_inquiry_to_monday(self, service_area: ServiceArea, inquiry_id: str) -> Inquiry:
        """
        Create the Monday.com item for an inquiry.

        An inquiry that already has an item is returned unchanged. Failures
        are stored on the inquiry (monday_sync_status=failed) rather than
        raised.
        """
        inquiry = self.get_inquiry(service_area, inquiry_id)
        if inquiry.monday_item_id:
            logger.debug(f"[dim]Inquiry {inquiry_id} already has Monday item {inquiry.monday_item_id}[/dim]")
            return inquiry

        item = build_monday_item(inquiry)
        if not item["group_id"]:
            return self._mark_monday_failed(
                inquiry, f"No Monday group configured for service area '{inquiry.service_area}'"
            )

        self.save(inquiry, monday_sync_status=MondaySyncStatus.PENDING.value)
        try:
            item_id = await self.monday_client.create_item(
                item["group_id"], item["item_name"], item["column_values"]
            )
        except ExternalServiceError as e:
            return self._mark_monday_failed(inquiry, str(e.detail))

        return self.save(
            inquiry,
            monday_item_id=item_id,
            monday_item_url=self.monday_client.item_url(item_id),
            monday_sync_status=MondaySyncStatus.SUCCESS.value,
            monday_last_sync_error=None,
            monday_last_synced_at=utcnow(),
        )

    async def link_inquiry_to_monday(
        self,
        service_area: ServiceArea,
        inquiry_id: str,
        item_id: str,
        verify: bool = True,
    ) -> Inquiry:
        """
        Attach an item that staff created by hand on the board.

        Raises:
            NotFoundError: The item does not exist on Monday
        """
        inquiry = self.get_inquiry(service_area, inquiry_id)
        item_id = str(item_id).strip()
        if verify and not await self.monday_client.item_exists(item_id):
            raise NotFoundError(f"Monday item '{item_id}' not found")

        logger.info(f"[green]Inquiry {inquiry_id} linked to Monday item[/green] [cyan]{item_id}[/cyan]")
        return self.save(
            inquiry,
            monday_item_id=item_id,
            monday_item_url=self.monday_client.item_url(item_id),
            monday_sync_status=MondaySyncStatus.LINKED.value,
            monday_last_sync_error=None,
            monday_last_synced_at=utcnow(),
        )

    async def sync_inquiry_to_insightly(self, service_area: ServiceArea, inquiry_id: str) -> Inquiry:
        """
        Create (or link) the Insightly Lead for a self-referral or a
        restorative program referral.

        An inquiry that already has a Lead is returned unchanged. An exact
        duplicate Lead is linked instead of creating another one. Failures,
        unsupported forms included, are stored on the inquiry
        (insightly_sync_status=failed) rather than raised.
        """
        inquiry = self.get_inquiry(service_area, inquiry_id)
        if inquiry.insightly_lead_id:
            logger.debug(f"[dim]Inquiry {inquiry_id} already has Lead {inquiry.insightly_lead_id}[/dim]")
            return inquiry

        build_payload = INQUIRY_LEAD_BUILDERS.get(inquiry.form_type)
        if build_payload is None:
            return self._mark_insightly_failed(inquiry, "Form type is not configured for Insightly sync")
        if not inquiry.form_data:
            return self._mark_insightly_failed(inquiry, "Inquiry is missing form data")

        try:
            payload = build_payload(inquiry.form_data)
            validate_lead_payload(payload)
        except ValueError as e:
            return self._mark_insightly_failed(inquiry, f"Payload validation failed: {e}")

        self.save(
            inquiry,
            insightly_sync_status=InsightlySyncStatus.PENDING.value,
            insightly_last_sync_error=None,
        )
        logger.info(f"[cyan]Syncing inquiry {inquiry_id} to Insightly[/cyan] [dim]{inquiry.form_type}[/dim]")

        match = await self.crm_client.find_matching_lead(lead_match_participant(payload))
        if isinstance(match, ApiError):
            return self._mark_insightly_failed(inquiry, match.user_message)
        if match.value is not None:
            return self._store_lead(inquiry, match.value.LEAD_ID, InsightlySyncStatus.LINKED)

        created = await self.crm_client.create_lead(payload)
        if isinstance(created, ApiError):
            return self._mark_insightly_failed(inquiry, created.user_message)
        if not isinstance(created, Ok):
            return self._mark_insightly_failed(inquiry, "Insightly Leads endpoint not found")
        return self._store_lead(inquiry, created.value, InsightlySyncStatus.SUCCESS)

    def _store_lead(self, inquiry: Inquiry, lead_id: int, status: InsightlySyncStatus) -> Inquiry:
        logger.info(
            f"[green]✅ Inquiry {inquiry.id} synced to Insightly:[/green] "
            f"lead [cyan]{lead_id}[/cyan] ({status.value})"
        )
        return self.save(
            inquiry,
            insightly_lead_id=lead_id,
            insightly_lead_url=build_lead_url(lead_id),
            insightly_sync_status=status.value,
            insightly_last_sync_error=None,
            insightly_last_synced_at=utcnow(),
        )

    def _mark_insightly_failed(self, inquiry: Inquiry, message: str) -> Inquiry:
        logger.error(f"[red]❌ Insightly sync failed for inquiry {inquiry.id}:[/red] {message}")
        return self.save(
            inquiry,
            insightly_sync_status=InsightlySyncStatus.FAILED.value,
            insightly_last_sync_error=message,
            insightly_last_synced_at=utcnow(),
        )

    def _mark_monday_failed(self, inquiry: Inquiry, message: str) -> Inquiry:
        logger.error(f"[red]❌ Monday sync failed for inquiry {inquiry.id}:[/red] {message}")
        return self.save(
            inquiry,
            monday_sync_status=MondaySyncStatus.FAILED.value,
            monday_last_sync_error=message,
        )
