"""
Service-area inquiry endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mediation_intake.core.dependencies import (
    get_db,
    get_insightly_client,
    get_monday_client,
    get_notification_service,
    get_optional_user,
    require_cms_user,
    require_intake_writer,
)
from mediation_intake.core.security import CurrentUser
from mediation_intake.core.service_areas import ServiceArea
from mediation_intake.core.sync_status import InquiryStatus
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.external.monday.client import MondayClient
from mediation_intake.schemas.inquiries import (
    CalendlySchedulingRequest,
    InquiryCreate,
    InquiryListResponse,
    InquiryRead,
    InquiryUpdate,
    MondayLinkRequest,
)
from mediation_intake.services.inquiry_service import InquiryService
from mediation_intake.services.notification_service import NotificationService

router = APIRouter(prefix="/service-areas/{service_area}/inquiries")


def get_inquiry_service(
    db: Session = Depends(get_db),
    monday_client: MondayClient = Depends(get_monday_client),
    notifications: NotificationService = Depends(get_notification_service),
    crm_client: InsightlyClient = Depends(get_insightly_client),
) -> InquiryService:
    return InquiryService(db, monday_client=monday_client, notifications=notifications, crm_client=crm_client)


@router.post("", response_model=InquiryRead, status_code=201)
async def create_inquiry(
    service_area: ServiceArea,
    request: InquiryCreate,
    service: InquiryService = Depends(get_inquiry_service),
    user: Optional[CurrentUser] = Depends(get_optional_user),
):
    """Public website form submission; staff get a task and an email"""
    return await service.create_inquiry(service_area, request.form_type, request.form_data, user)


@router.get("", response_model=InquiryListResponse)
async def list_inquiries(
    service_area: ServiceArea,
    status: Optional[InquiryStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_cms_user),
):
    return service.list_inquiries(service_area, status=status, skip=skip, limit=limit)


@router.get("/{inquiry_id}", response_model=InquiryRead)
async def get_inquiry(
    service_area: ServiceArea,
    inquiry_id: str,
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_cms_user),
):
    return service.get_inquiry(service_area, inquiry_id)


@router.patch("/{inquiry_id}", response_model=InquiryRead)
async def update_inquiry(
    service_area: ServiceArea,
    inquiry_id: str,
    request: InquiryUpdate,
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """Move the inquiry forward and/or mark it reviewed"""
    inquiry = service.get_inquiry(service_area, inquiry_id)
    if request.status is not None:
        inquiry = service.update_inquiry_status(service_area, inquiry_id, request.status)
    if request.reviewed:
        inquiry = service.mark_reviewed(service_area, inquiry_id, user)
    return inquiry


@router.post("/{inquiry_id}/calendly-scheduling", response_model=InquiryRead)
async def record_calendly_scheduling(
    service_area: ServiceArea,
    inquiry_id: str,
    request: CalendlySchedulingRequest,
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    return service.record_calendly_scheduling(
        service_area,
        inquiry_id,
        event_uri=request.event_uri,
        scheduled_time=request.scheduled_time,
        invitee_uri=request.invitee_uri,
        intake_call=request.intake_call,
    )


@router.post("/{inquiry_id}/monday-sync", response_model=InquiryRead)
async def sync_inquiry_to_monday(
    service_area: ServiceArea,
    inquiry_id: str,
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Create the Monday.com item for the inquiry. Failures are reported in
    mondaySyncStatus / mondayLastSyncError.
    """
    return await service.sync_inquiry_to_monday(service_area, inquiry_id)


@router.post("/{inquiry_id}/monday-link", response_model=InquiryRead)
async def link_inquiry_to_monday(
    service_area: ServiceArea,
    inquiry_id: str,
    request: MondayLinkRequest,
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    return await service.link_inquiry_to_monday(service_area, inquiry_id, request.item_id)


@router.post("/{inquiry_id}/insightly-sync", response_model=InquiryRead)
async def sync_inquiry_to_insightly(
    service_area: ServiceArea,
    inquiry_id: str,
    service: InquiryService = Depends(get_inquiry_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Create or link the Insightly Lead for a self-referral or restorative
    referral. Failures are reported in insightlySyncStatus /
    insightlyLastSyncError.
    """
    return await service.sync_inquiry_to_insightly(service_area, inquiry_id)
