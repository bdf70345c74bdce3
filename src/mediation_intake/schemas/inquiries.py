"""
Inquiry request/response schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from mediation_intake.core.service_areas import ServiceArea
from mediation_intake.core.sync_status import (
    InquiryStatus,
    InsightlySyncStatus,
    MondaySyncStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from mediation_intake.schemas.base import BaseResponseSchema, CamelSchema


class InquiryCreate(CamelSchema):
    """Website form submission"""
    form_type: str = Field(..., min_length=1)
    form_data: Dict[str, Any] = {}


class InquiryRead(BaseResponseSchema):
    service_area: ServiceArea
    form_type: str
    form_data: Dict[str, Any]
    submitted_by: Optional[str] = None
    submission_type: str
    reviewed: bool = False
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    status: InquiryStatus

    calendly_event_uri: Optional[str] = None
    calendly_scheduled_time: Optional[datetime] = None
    calendly_invitee_uri: Optional[str] = None

    monday_item_id: Optional[str] = None
    monday_item_url: Optional[str] = None
    monday_sync_status: Optional[MondaySyncStatus] = None
    monday_last_sync_error: Optional[str] = None
    monday_last_synced_at: Optional[datetime] = None

    insightly_sync_status: Optional[InsightlySyncStatus] = None
    insightly_lead_id: Optional[int] = None
    insightly_lead_url: Optional[str] = None
    insightly_last_sync_error: Optional[str] = None
    insightly_last_synced_at: Optional[datetime] = None


class InquiryListResponse(CamelSchema):
    total: int
    skip: int
    limit: int
    items: List[InquiryRead]


class InquiryUpdate(CamelSchema):
    """Staff changes from the inquiry detail page"""
    status: Optional[InquiryStatus] = None
    reviewed: Optional[bool] = None


class CalendlySchedulingRequest(CamelSchema):
    event_uri: str = Field(..., min_length=1)
    scheduled_time: Optional[datetime] = None
    invitee_uri: Optional[str] = None
    intake_call: bool = False


class MondayLinkRequest(CamelSchema):
    item_id: str

    @field_validator("item_id", mode="before")
    @classmethod
    def item_id_as_string(cls, v):
        if isinstance(v, int):
            v = str(v)
        if not isinstance(v, str) or not v.strip().isdigit():
            raise ValueError("Monday item id must be numeric")
        return v.strip()


class StaffTaskRead(BaseResponseSchema):
    title: str
    type: TaskType
    status: TaskStatus
    priority: TaskPriority
    service_area: ServiceArea
    inquiry_id: Optional[str] = None
    link: Optional[str] = None
    assigned_to: Optional[str] = None
    due: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None


class StaffActivityRead(BaseResponseSchema):
    message: str
    link: Optional[str] = None
    inquiry_id: Optional[str] = None
    read: bool = False
