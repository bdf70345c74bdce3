"""
Staff task queue and activity feed endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mediation_intake.core.dependencies import get_db, require_cms_user, require_intake_writer
from mediation_intake.core.security import CurrentUser
from mediation_intake.core.service_areas import ServiceArea
from mediation_intake.core.sync_status import TaskStatus
from mediation_intake.schemas.inquiries import StaffActivityRead, StaffTaskRead
from mediation_intake.services.staff_task_service import StaffTaskService

router = APIRouter(prefix="/staff")


def get_staff_task_service(db: Session = Depends(get_db)) -> StaffTaskService:
    return StaffTaskService(db)


@router.get("/tasks", response_model=List[StaffTaskRead])
async def list_tasks(
    status: Optional[TaskStatus] = Query(None),
    service_area: Optional[ServiceArea] = Query(None, alias="serviceArea"),
    inquiry_id: Optional[str] = Query(None, alias="inquiryId"),
    service: StaffTaskService = Depends(get_staff_task_service),
    user: CurrentUser = Depends(require_cms_user),
):
    return service.list_tasks(status=status, service_area=service_area, inquiry_id=inquiry_id)


@router.post("/tasks/{task_id}/complete", response_model=StaffTaskRead)
async def complete_task(
    task_id: str,
    service: StaffTaskService = Depends(get_staff_task_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    return service.complete_task(task_id, user)


@router.get("/activity", response_model=List[StaffActivityRead])
async def list_activity(
    unread: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    service: StaffTaskService = Depends(get_staff_task_service),
    user: CurrentUser = Depends(require_cms_user),
):
    return service.list_activity(unread_only=unread, limit=limit)


@router.post("/activity/{activity_id}/read", response_model=StaffActivityRead)
async def mark_activity_read(
    activity_id: str,
    service: StaffTaskService = Depends(get_staff_task_service),
    user: CurrentUser = Depends(require_cms_user),
):
    return service.mark_activity_read(activity_id)
