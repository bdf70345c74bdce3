"""
Database models for the intake dashboard.
Nested form data (participants, checklists) is stored as JSON, mirroring
the document shape the dashboard works with.
"""
from sqlalchemy import Column, String, Text, Boolean, Date, DateTime, Integer, JSON

from mediation_intake.core.sync_status import SyncStatus, InquiryStatus, TaskPriority, TaskStatus
from mediation_intake.database.models.base import BaseModel


class PaperIntake(BaseModel):
    """
    Digitized historical paper mediation intake form.
    Maps to the 'paper_intakes' table.
    """
    __tablename__ = "paper_intakes"

    # Case metadata
    case_number = Column(String(50), nullable=True, index=True)
    intake_date = Column(Date, nullable=False, index=True)
    intake_person = Column(String(200), nullable=True)

    # Data entry tracking
    data_entry_by = Column(String(128), nullable=False)
    data_entry_by_name = Column(String(200), nullable=True)

    # Source tracking
    paper_form_id = Column(String(200), nullable=True)
    batch_id = Column(String(100), nullable=True, index=True)

    # Referral / dispute
    referral_source = Column(String(100), nullable=True)
    dispute_type = Column(String(100), nullable=True)
    dispute_description = Column(Text, nullable=False)
    is_court_ordered = Column(Boolean, nullable=False, default=False)
    magistrate_judge = Column(String(200), nullable=True)

    # Participants
    participant1 = Column(JSON, nullable=False)
    participant2 = Column(JSON, nullable=True)

    # Checklist & assessment
    phone_checklist = Column(JSON, nullable=False)
    staff_assessment = Column(JSON, nullable=False)
    staff_notes = Column(Text, nullable=True)

    # Insightly sync
    sync_status = Column(String(20), nullable=False, default=SyncStatus.PENDING.value, index=True)
    insightly_lead_id = Column(Integer, nullable=True, index=True)
    insightly_lead_url = Column(String(500), nullable=True)
    lead_linked_to_existing = Column(Boolean, nullable=False, default=False)
    participant2_lead_id = Column(Integer, nullable=True)
    participant2_lead_url = Column(String(500), nullable=True)
    participant2_linked_to_existing = Column(Boolean, nullable=False, default=False)
    insightly_case_id = Column(Integer, nullable=True)
    insightly_case_url = Column(String(500), nullable=True)
    last_sync_error = Column(Text, nullable=True)
    skip_reason = Column(Text, nullable=True)
    sync_attempts = Column(Integer, nullable=False, default=0)
    last_sync_attempt_at = Column(DateTime, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    # Reconciliation lease
    locked_until = Column(DateTime, nullable=True)


class Inquiry(BaseModel):
    """
    Website inquiry scoped to a service area.
    Maps to the 'inquiries' table.
    """
    __tablename__ = "inquiries"

    service_area = Column(String(50), nullable=False, index=True)
    form_type = Column(String(100), nullable=False)
    form_data = Column(JSON, nullable=False, default=dict)
    submitted_by = Column(String(200), nullable=True)
    submission_type = Column(String(20), nullable=False, default="anonymous")

    reviewed = Column(Boolean, nullable=False, default=False)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(128), nullable=True)

    status = Column(String(30), nullable=False, default=InquiryStatus.SUBMITTED.value, index=True)

    # Calendly scheduling
    calendly_event_uri = Column(String(500), nullable=True)
    calendly_scheduled_time = Column(DateTime, nullable=True)
    calendly_invitee_uri = Column(String(500), nullable=True)

    # Monday.com sync
    monday_item_id = Column(String(50), nullable=True)
    monday_item_url = Column(String(500), nullable=True)
    monday_sync_status = Column(String(20), nullable=True)
    monday_last_sync_error = Column(Text, nullable=True)
    monday_last_synced_at = Column(DateTime, nullable=True)

    # Insightly Lead sync (self-referral and restorative referral forms)
    insightly_sync_status = Column(String(20), nullable=True)
    insightly_lead_id = Column(Integer, nullable=True)
    insightly_lead_url = Column(String(500), nullable=True)
    insightly_last_sync_error = Column(Text, nullable=True)
    insightly_last_synced_at = Column(DateTime, nullable=True)


class StaffTask(BaseModel):
    """
    Work item on the shared staff queue, raised by inquiry events.
    Maps to the 'staff_tasks' table.
    """
    __tablename__ = "staff_tasks"

    title = Column(String(300), nullable=False)
    type = Column(String(30), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value, index=True)
    priority = Column(String(10), nullable=False, default=TaskPriority.MEDIUM.value)
    service_area = Column(String(50), nullable=False, index=True)
    inquiry_id = Column(String(32), nullable=True, index=True)
    link = Column(String(300), nullable=True)
    assigned_to = Column(String(128), nullable=True)
    due = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String(128), nullable=True)


class StaffActivity(BaseModel):
    """
    Staff activity feed entry.
    Maps to the 'staff_activity' table.
    """
    __tablename__ = "staff_activity"

    message = Column(String(500), nullable=False)
    link = Column(String(300), nullable=True)
    inquiry_id = Column(String(32), nullable=True, index=True)
    read = Column(Boolean, nullable=False, default=False, index=True)


class IntegrationToken(BaseModel):
    """
    Server-side OAuth credentials for third-party integrations (Calendly).
    Tokens are stored encrypted and never returned to the browser.
    """
    __tablename__ = "integration_tokens"

    provider = Column(String(50), nullable=False, unique=True, index=True)
    access_token_encrypted = Column(Text, nullable=False)
    refresh_token_encrypted = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    scope = Column(String(500), nullable=True)
    owner = Column(String(500), nullable=True)
