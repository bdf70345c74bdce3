"""
Reconciliation of paper intakes against Insightly.

A sync run walks participant 1, participant 2 and the Case in order and
persists each Insightly id as soon as it is known, so a retry after a
partial failure only performs the steps that are still missing.
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from mediation_intake.core.config import settings
from mediation_intake.core.sync_status import (
    SYNCED_STATUSES,
    SyncStatus,
    ensure_transition,
)
from mediation_intake.database.models.database import PaperIntake
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.external.crm.insightly import (
    build_case_payload,
    build_case_url,
    build_lead_payload,
    build_lead_to_case_link,
    build_lead_url,
    build_linking_note,
)
from mediation_intake.external.crm.models import ApiError, NotFound, Ok
from mediation_intake.services.base_service import BaseService
from mediation_intake.services.notification_service import NotificationService
from mediation_intake.utils.exceptions import ConflictError, CRMAPIError, CRMErrorKind
from mediation_intake.utils.helpers import split_full_name, utcnow
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)

# Column names per participant slot
PARTICIPANT_FIELDS = {
    1: {
        "data": "participant1",
        "lead_id": "insightly_lead_id",
        "lead_url": "insightly_lead_url",
        "linked": "lead_linked_to_existing",
    },
    2: {
        "data": "participant2",
        "lead_id": "participant2_lead_id",
        "lead_url": "participant2_lead_url",
        "linked": "participant2_linked_to_existing",
    },
}


def _as_api_error(result: Union[NotFound, ApiError], action: str) -> ApiError:
    if isinstance(result, ApiError):
        return result
    return ApiError(kind=CRMErrorKind.CLIENT, message=f"Insightly endpoint not found while trying to {action}", status=404)


class ReconciliationService(BaseService[PaperIntake]):
    """Service for syncing paper intakes to Insightly Leads and Cases"""

    resource_name = "Paper intake"

    def __init__(
        self,
        db: Session,
        crm_client: Optional[InsightlyClient] = None,
        notifications: Optional[NotificationService] = None,
    ):
        super().__init__(db, PaperIntake)
        self.crm_client = crm_client or InsightlyClient()
        self.notifications = notifications or NotificationService()

    # ------------------------------------------------------------------
    # Lease
    # ------------------------------------------------------------------

    def _acquire_lease(self, intake: PaperIntake) -> bool:
        """
        Take the per-record lease with a conditional update. An expired
        lease may be taken over.
        """
        now = utcnow()
        result = self.db.execute(
            update(PaperIntake)
            .where(
                PaperIntake.id == intake.id,
                or_(PaperIntake.locked_until.is_(None), PaperIntake.locked_until < now),
            )
            .values(locked_until=now + timedelta(seconds=settings.sync.lease_seconds))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(intake)
        return result.rowcount == 1

    def _release_lease(self, intake: PaperIntake) -> None:
        intake.locked_until = None
        self.db.commit()

    def _is_locked(self, intake: PaperIntake) -> bool:
        return intake.locked_until is not None and intake.locked_until > utcnow()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def reconcile_intake(self, intake_id: str) -> PaperIntake:
        """
        Sync one intake to Insightly.

        CRM failures are recorded on the intake (sync_status=failed and
        last_sync_error) rather than raised.

        Raises:
            NotFoundError: Unknown intake
            ConflictError: Intake skipped, previously failed (use retry),
                or another sync holds the lease
        """
        intake = self.get_or_404(intake_id)
        status = SyncStatus(intake.sync_status)

        if status == SyncStatus.SKIPPED:
            raise ConflictError("Paper intake was skipped and will not be synced")
        if status in SYNCED_STATUSES:
            logger.debug(f"[dim]Paper intake {intake_id} already synced ({status.value})[/dim]")
            return intake
        if status == SyncStatus.FAILED:
            raise ConflictError("Previous sync failed; use retry to sync this intake again")

        if not self._acquire_lease(intake):
            raise ConflictError("Sync already in progress for this intake")

        try:
            return await self._run(intake)
        finally:
            self._release_lease(intake)

    async def retry_intake(self, intake_id: str) -> PaperIntake:
        """
        Re-run a sync. Synced intakes are returned unchanged; stored Lead
        and Case ids are reused so only the missing steps run.

        Raises:
            ConflictError: Skipped intake, or a sync is in progress
        """
        intake = self.get_or_404(intake_id)
        status = SyncStatus(intake.sync_status)

        if status in SYNCED_STATUSES:
            return intake
        if status == SyncStatus.SKIPPED:
            raise ConflictError("Paper intake was skipped and cannot be retried")
        if self._is_locked(intake):
            raise ConflictError("Sync already in progress for this intake")

        if status == SyncStatus.FAILED:
            ensure_transition(status, SyncStatus.PENDING)
            self.save(intake, sync_status=SyncStatus.PENDING.value)
            logger.info(f"[cyan]Retrying Insightly sync for paper intake {intake_id}[/cyan]")

        return await self.reconcile_intake(intake_id)

    async def check_for_duplicates(self, name: str, email: Optional[str] = None) -> Dict[str, Any]:
        """
        Duplicate check shown before data entry: Leads matching the name,
        plus Leads with the given email.

        Raises:
            CRMAPIError: When no search could be completed
        """
        names = split_full_name(name)
        matches: Dict[int, Any] = {}
        errors: List[ApiError] = []

        searches: List[Dict[str, str]] = [{"first_name": names["first_name"], "last_name": names["last_name"]}]
        if email:
            searches.append({"email": email})

        for search in searches:
            result = await self.crm_client.search_leads(**search)
            if isinstance(result, ApiError):
                logger.warning(f"[yellow]⚠️  Lead search failed:[/yellow] {result.message}")
                errors.append(result)
                continue
            for lead in result.value:
                matches.setdefault(lead.LEAD_ID, lead)

        if errors and len(errors) == len(searches):
            raise CRMAPIError(errors[0].user_message, kind=errors[0].kind, response_status=errors[0].status)

        return {
            "has_potential_duplicates": bool(matches),
            "matches": [
                {
                    "lead_id": lead.LEAD_ID,
                    "first_name": lead.FIRST_NAME or "",
                    "last_name": lead.LAST_NAME or "",
                    "full_name": lead.full_name or "Unknown",
                    "email": lead.EMAIL,
                    "phone": lead.PHONE,
                    "lead_url": build_lead_url(lead.LEAD_ID),
                    "created_at": lead.DATE_CREATED_UTC,
                    "tags": [tag.TAG_NAME for tag in lead.TAGS or []],
                }
                for lead in matches.values()
            ],
            "searched_name": name,
        }

    # ------------------------------------------------------------------
    # Sync steps
    # ------------------------------------------------------------------

    async def _run(self, intake: PaperIntake) -> PaperIntake:
        self.save(
            intake,
            sync_attempts=(intake.sync_attempts or 0) + 1,
            last_sync_attempt_at=utcnow(),
        )
        logger.info(
            f"[cyan]Syncing paper intake {intake.id} to Insightly[/cyan] "
            f"[dim]attempt {intake.sync_attempts}[/dim]"
        )

        error = await self._sync_participant(intake, 1)
        if error is None and intake.participant2:
            error = await self._sync_participant(intake, 2)
        if error is None:
            error = await self._ensure_case(intake)
        if error is not None:
            return await self._mark_failed(intake, error)

        final = SyncStatus.LINKED if intake.lead_linked_to_existing else SyncStatus.SUCCESS
        ensure_transition(intake.sync_status, final)
        intake = self.save(
            intake,
            sync_status=final.value,
            last_sync_error=None,
            synced_at=utcnow(),
        )
        logger.info(
            f"[green]✅ Paper intake {intake.id} synced:[/green] "
            f"lead [cyan]{intake.insightly_lead_id}[/cyan], case [cyan]{intake.insightly_case_id}[/cyan] "
            f"({final.value})"
        )
        return intake

    async def _sync_participant(self, intake: PaperIntake, number: int) -> Optional[ApiError]:
        """
        Ensure a participant has a Lead: reuse a stored id that still
        exists, else link an exact duplicate, else create a new Lead.
        """
        fields = PARTICIPANT_FIELDS[number]
        participant = getattr(intake, fields["data"]) or {}
        stored_id = getattr(intake, fields["lead_id"])

        if stored_id:
            existing = await self.crm_client.get_lead(stored_id)
            if isinstance(existing, Ok):
                return None
            if isinstance(existing, ApiError):
                return existing
            logger.warning(
                f"[yellow]⚠️  Stored Lead {stored_id} for participant {number} no longer exists; "
                f"matching again[/yellow]"
            )
            self.save(intake, **{fields["lead_id"]: None, fields["lead_url"]: None, fields["linked"]: False})

        match = await self.crm_client.find_matching_lead(participant)
        if isinstance(match, ApiError):
            return match

        if match.value is not None:
            lead_id = match.value.LEAD_ID
            self.save(intake, **{
                fields["lead_id"]: lead_id,
                fields["lead_url"]: build_lead_url(lead_id),
                fields["linked"]: True,
            })
            logger.info(f"[green]Participant {number} linked to existing Lead[/green] [cyan]{lead_id}[/cyan]")

            note = await self.crm_client.add_lead_note(lead_id, build_linking_note(intake.id, intake.case_number))
            if not isinstance(note, Ok):
                logger.warning(f"[yellow]⚠️  Could not add linking note to Lead {lead_id}[/yellow]")
            return None

        created = await self.crm_client.create_lead(build_lead_payload(intake, participant, number))
        if not isinstance(created, Ok):
            return _as_api_error(created, "create a Lead")

        self.save(intake, **{
            fields["lead_id"]: created.value,
            fields["lead_url"]: build_lead_url(created.value),
            fields["linked"]: False,
        })
        return None

    async def _ensure_case(self, intake: PaperIntake) -> Optional[ApiError]:
        if intake.insightly_case_id:
            return None

        created = await self.crm_client.create_case(build_case_payload(intake))
        if not isinstance(created, Ok):
            return _as_api_error(created, "create a Case")

        case_id = created.value
        self.save(intake, insightly_case_id=case_id, insightly_case_url=build_case_url(case_id))

        for number, lead_id in ((1, intake.insightly_lead_id), (2, intake.participant2_lead_id)):
            if not lead_id:
                continue
            link = await self.crm_client.link_lead_to_case(case_id, build_lead_to_case_link(lead_id, number))
            if not isinstance(link, Ok):
                logger.warning(
                    f"[yellow]⚠️  Could not link Lead {lead_id} to Case {case_id}; link it manually[/yellow]"
                )
        return None

    async def _mark_failed(self, intake: PaperIntake, error: ApiError) -> PaperIntake:
        ensure_transition(intake.sync_status, SyncStatus.FAILED)
        intake = self.save(
            intake,
            sync_status=SyncStatus.FAILED.value,
            last_sync_error=error.user_message,
        )
        logger.error(
            f"[red]❌ Paper intake {intake.id} sync failed[/red] [yellow]({error.kind.value})[/yellow]: "
            f"{error.message}"
        )
        await self.notifications.send_sync_failure_alert(intake)
        return intake

    # ------------------------------------------------------------------
    # Lead sources
    # ------------------------------------------------------------------

    async def ensure_lead_sources(self) -> Dict[str, Any]:
        return await self.crm_client.ensure_lead_sources()
