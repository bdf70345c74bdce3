"""
Staff tasks and activity feed raised by inquiry events
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from mediation_intake.core.security import CurrentUser
from mediation_intake.core.service_areas import SERVICE_AREA_LABELS, ServiceArea
from mediation_intake.core.sync_status import TaskPriority, TaskStatus, TaskType
from mediation_intake.database.models.database import Inquiry, StaffActivity, StaffTask
from mediation_intake.services.base_service import BaseService
from mediation_intake.utils.exceptions import NotFoundError
from mediation_intake.utils.helpers import utcnow
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)


def inquiry_participant_name(form_data: Optional[Dict[str, Any]]) -> str:
    """Display name for task titles; "New Inquiry" when the form has none"""
    form_data = form_data or {}
    name = form_data.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()

    first = form_data.get("firstName") or form_data.get("contactOneFirstName") or form_data.get("participantName")
    last = form_data.get("lastName") or form_data.get("contactOneLastName") or ""
    if isinstance(first, str) and first.strip():
        last = last.strip() if isinstance(last, str) else ""
        return f"{first.strip()} {last}".strip()
    return "New Inquiry"


def inquiry_link(inquiry: Inquiry) -> str:
    return f"/dashboard/{inquiry.service_area}/inquiries/{inquiry.id}"


class StaffTaskService(BaseService[StaffTask]):
    """Shared staff task queue and activity feed"""

    resource_name = "Task"

    def __init__(self, db: Session):
        super().__init__(db, StaffTask)

    # ------------------------------------------------------------------
    # Inquiry events
    # ------------------------------------------------------------------

    def on_inquiry_created(self, inquiry: Inquiry) -> StaffTask:
        label = SERVICE_AREA_LABELS.get(ServiceArea(inquiry.service_area), "Mediation")
        who = inquiry_participant_name(inquiry.form_data)

        task = self.create_task(
            title=f"New {label} inquiry from {who}",
            task_type=TaskType.NEW_INQUIRY,
            priority=TaskPriority.HIGH,
            inquiry=inquiry,
        )
        self.record_activity(f"New {label} inquiry from {who}.", inquiry)
        return task

    def on_intake_scheduled(self, inquiry: Inquiry) -> StaffTask:
        """Close the new-inquiry tasks and raise an intake call task due at the booking"""
        who = inquiry_participant_name(inquiry.form_data)

        self.close_initial_tasks(inquiry.id)
        task = self.create_task(
            title=f"Intake call with {who}",
            task_type=TaskType.INTAKE_CALL,
            priority=TaskPriority.HIGH,
            inquiry=inquiry,
            due=inquiry.calendly_scheduled_time,
        )
        self.record_activity(f"{who} has scheduled their intake.", inquiry)
        return task

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        task_type: TaskType,
        inquiry: Inquiry,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due=None,
    ) -> StaffTask:
        task = self.create(
            title=title,
            type=TaskType(task_type).value,
            status=TaskStatus.PENDING.value,
            priority=TaskPriority(priority).value,
            service_area=inquiry.service_area,
            inquiry_id=inquiry.id,
            link=inquiry_link(inquiry),
            due=due,
        )
        logger.info(f"[green]✅ Created task[/green] \"{title}\"")
        return task

    def close_initial_tasks(self, inquiry_id: str) -> int:
        tasks = (
            self.db.query(StaffTask)
            .filter(
                StaffTask.inquiry_id == inquiry_id,
                StaffTask.type == TaskType.NEW_INQUIRY.value,
                StaffTask.status == TaskStatus.PENDING.value,
            )
            .all()
        )
        now = utcnow()
        for task in tasks:
            task.status = TaskStatus.DONE.value
            task.completed_at = now
            task.updated_at = now
        self.db.commit()
        if tasks:
            logger.info(f"[cyan]Closed {len(tasks)} initial task(s) for inquiry {inquiry_id}[/cyan]")
        return len(tasks)

    def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        service_area: Optional[ServiceArea] = None,
        inquiry_id: Optional[str] = None,
    ) -> List[StaffTask]:
        query = self.db.query(StaffTask)
        if status is not None:
            query = query.filter(StaffTask.status == TaskStatus(status).value)
        if service_area is not None:
            query = query.filter(StaffTask.service_area == ServiceArea(service_area).value)
        if inquiry_id is not None:
            query = query.filter(StaffTask.inquiry_id == inquiry_id)
        return query.order_by(StaffTask.created_at.desc(), StaffTask.id).all()

    def complete_task(self, task_id: str, user: CurrentUser) -> StaffTask:
        task = self.get_or_404(task_id)
        if task.status == TaskStatus.DONE.value:
            return task
        return self.save(task, status=TaskStatus.DONE.value, completed_at=utcnow(), completed_by=user.uid)

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    def record_activity(self, message: str, inquiry: Inquiry) -> StaffActivity:
        entry = StaffActivity(message=message, link=inquiry_link(inquiry), inquiry_id=inquiry.id, read=False)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list_activity(self, unread_only: bool = False, limit: int = 50) -> List[StaffActivity]:
        query = self.db.query(StaffActivity)
        if unread_only:
            query = query.filter(StaffActivity.read.is_(False))
        return query.order_by(StaffActivity.created_at.desc(), StaffActivity.id).limit(limit).all()

    def mark_activity_read(self, activity_id: str) -> StaffActivity:
        """
        Raises:
            NotFoundError: Unknown activity entry
        """
        entry = self.db.query(StaffActivity).filter(StaffActivity.id == activity_id).first()
        if entry is None:
            raise NotFoundError(f"Activity '{activity_id}' not found")
        if not entry.read:
            entry.read = True
            entry.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(entry)
        return entry
