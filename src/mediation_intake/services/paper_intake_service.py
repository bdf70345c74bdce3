"""
Paper intake service: persistence, history queries and manual skip
"""
from typing import Any, Dict, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from mediation_intake.core.security import CurrentUser
from mediation_intake.core.sync_status import SyncStatus, ensure_transition
from mediation_intake.database.models.database import PaperIntake
from mediation_intake.schemas.paper_intake import PaperIntakeCreate, validate_paper_intake
from mediation_intake.services.base_service import BaseService
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "intake_date": PaperIntake.intake_date,
    "created_at": PaperIntake.created_at,
    "updated_at": PaperIntake.updated_at,
}


class PaperIntakeService(BaseService[PaperIntake]):
    """Service for storing digitized paper intake forms"""

    resource_name = "Paper intake"

    def __init__(self, db: Session):
        super().__init__(db, PaperIntake)

    def create_intake(
        self,
        data: Union[PaperIntakeCreate, Dict[str, Any]],
        user: CurrentUser,
    ) -> PaperIntake:
        """
        Persist a validated paper intake with sync_status=pending.
        No CRM call is made here; syncing is a separate request.

        Args:
            data: Validated intake, or a raw draft payload to validate first
            user: Staff member entering the form

        Raises:
            IntakeValidationError: If a raw payload does not validate
        """
        if not isinstance(data, PaperIntakeCreate):
            data = validate_paper_intake(data)

        fields = data.model_dump(mode="json", exclude={"intake_date"})
        intake = self.create(
            **fields,
            intake_date=data.intake_date,
            data_entry_by=user.uid,
            data_entry_by_name=user.display_name,
            sync_status=SyncStatus.PENDING.value,
            lead_linked_to_existing=False,
            participant2_linked_to_existing=False,
            sync_attempts=0,
        )
        logger.info(
            f"[green]✅ Paper intake saved:[/green] [cyan]{intake.id}[/cyan] "
            f"case={intake.case_number or '-'} by {user.display_name}"
        )
        return intake

    def get_intake(self, intake_id: str) -> PaperIntake:
        return self.get_or_404(intake_id)

    def list_intakes(
        self,
        skip: int = 0,
        limit: int = 50,
        sync_status: Optional[SyncStatus] = None,
        sort_by: str = "intake_date",
        order: str = "desc",
    ) -> Dict[str, Any]:
        """
        Paginated intake history.

        Default order is newest intake_date first, ties broken by
        created_at descending.
        """
        query = self.db.query(PaperIntake)
        if sync_status is not None:
            query = query.filter(PaperIntake.sync_status == SyncStatus(sync_status).value)

        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by, PaperIntake.intake_date)
        primary = column.asc() if order == "asc" else column.desc()
        query = query.order_by(primary, PaperIntake.created_at.desc(), PaperIntake.id)

        items = query.offset(skip).limit(limit).all()
        return {"total": total, "skip": skip, "limit": limit, "items": items}

    def get_intake_stats(self) -> Dict[str, int]:
        """Counts per sync status plus total"""
        rows = (
            self.db.query(PaperIntake.sync_status, func.count(PaperIntake.id))
            .group_by(PaperIntake.sync_status)
            .all()
        )
        stats = {status.value: 0 for status in SyncStatus}
        for status, count in rows:
            stats[status] = count
        stats["total"] = sum(stats.values())
        return stats

    def skip_intake(self, intake_id: str, reason: Optional[str] = None) -> PaperIntake:
        """
        Mark an intake as intentionally not synced (terminal).

        Raises:
            ConflictError: If the intake is already synced or skipped
        """
        intake = self.get_or_404(intake_id)
        ensure_transition(intake.sync_status, SyncStatus.SKIPPED)
        intake = self.save(intake, sync_status=SyncStatus.SKIPPED.value, skip_reason=reason)
        logger.info(f"[yellow]Paper intake {intake_id} skipped[/yellow] {reason or ''}")
        return intake
