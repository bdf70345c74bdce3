"""
Paper intake API endpoints
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mediation_intake.core.dependencies import (
    get_db,
    get_insightly_client,
    get_notification_service,
    require_cms_user,
    require_intake_writer,
)
from mediation_intake.core.security import CurrentUser
from mediation_intake.core.sync_status import SyncStatus
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.schemas.paper_intake import (
    DuplicateCheckResult,
    PaperIntakeListResponse,
    PaperIntakeRead,
    PaperIntakeStats,
    SkipIntakeRequest,
)
from mediation_intake.services.notification_service import NotificationService
from mediation_intake.services.paper_intake_service import PaperIntakeService
from mediation_intake.services.reconciliation_service import ReconciliationService
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_reconciliation_service(
    db: Session = Depends(get_db),
    crm_client: InsightlyClient = Depends(get_insightly_client),
    notifications: NotificationService = Depends(get_notification_service),
) -> ReconciliationService:
    return ReconciliationService(db, crm_client=crm_client, notifications=notifications)


@router.post("/paper-intakes", response_model=PaperIntakeRead, status_code=201)
async def create_paper_intake(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Save a digitized paper intake form.

    The intake is stored with sync status "pending"; syncing to Insightly
    is a separate request (POST /paper-intakes/{id}/sync).

    Violations are returned as 422 with the failing fields grouped by
    wizard step.
    """
    try:
        service = PaperIntakeService(db)
        return service.create_intake(payload, user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error saving paper intake:[/red] {e}")
        raise HTTPException(status_code=500, detail="Failed to save paper intake")


@router.get("/paper-intakes", response_model=PaperIntakeListResponse)
async def list_paper_intakes(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    sync_status: Optional[SyncStatus] = Query(None, alias="syncStatus"),
    sort_by: str = Query("intake_date", alias="sortBy", pattern="^(intake_date|created_at|updated_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_cms_user),
):
    """Intake history, newest intake date first by default"""
    service = PaperIntakeService(db)
    return service.list_intakes(skip=skip, limit=limit, sync_status=sync_status, sort_by=sort_by, order=order)


@router.get("/paper-intakes/stats", response_model=PaperIntakeStats)
async def get_paper_intake_stats(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_cms_user),
):
    return PaperIntakeService(db).get_intake_stats()


@router.get("/paper-intakes/duplicates", response_model=DuplicateCheckResult)
async def check_duplicates(
    name: str = Query(..., min_length=1),
    email: Optional[str] = Query(None),
    service: ReconciliationService = Depends(get_reconciliation_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Search Insightly for Leads that may already represent this participant.
    Shown on the first wizard step; the result is advisory only.
    """
    return await service.check_for_duplicates(name.strip(), email.strip() if email else None)


@router.get("/paper-intakes/{intake_id}", response_model=PaperIntakeRead)
async def get_paper_intake(
    intake_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_cms_user),
):
    return PaperIntakeService(db).get_intake(intake_id)


@router.post("/paper-intakes/{intake_id}/sync", response_model=PaperIntakeRead)
async def sync_paper_intake(
    intake_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Reconcile a pending intake with Insightly.

    CRM failures do not fail the request: the intake comes back with
    syncStatus "failed" and lastSyncError set.
    """
    try:
        return await service.reconcile_intake(intake_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error syncing paper intake {intake_id}:[/red] {e}")
        raise HTTPException(status_code=500, detail="Failed to sync paper intake")


@router.post("/paper-intakes/{intake_id}/retry", response_model=PaperIntakeRead)
async def retry_paper_intake(
    intake_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service),
    user: CurrentUser = Depends(require_intake_writer),
):
    """Retry a failed sync, reusing whatever Leads and Case were already created"""
    try:
        return await service.retry_intake(intake_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error retrying paper intake {intake_id}:[/red] {e}")
        raise HTTPException(status_code=500, detail="Failed to retry paper intake sync")


@router.post("/paper-intakes/{intake_id}/skip", response_model=PaperIntakeRead)
async def skip_paper_intake(
    intake_id: str,
    request: Optional[SkipIntakeRequest] = Body(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_intake_writer),
):
    reason = request.reason if request else None
    return PaperIntakeService(db).skip_intake(intake_id, reason)
