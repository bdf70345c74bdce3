"""
Insightly reconciliation: dedup, partial failures, idempotent retry and the lease
"""
from datetime import timedelta

import httpx
import pytest

from mediation_intake.core.sync_status import SyncStatus
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.services.paper_intake_service import PaperIntakeService
from mediation_intake.services.reconciliation_service import ReconciliationService
from mediation_intake.utils.exceptions import ConflictError
from mediation_intake.utils.helpers import utcnow


@pytest.fixture
def intake_service(db):
    return PaperIntakeService(db)


@pytest.fixture
def service(db, crm_client, notifications):
    return ReconciliationService(db, crm_client=crm_client, notifications=notifications)


@pytest.fixture
def new_intake(intake_service, coordinator, intake_payload):
    return intake_service.create_intake(intake_payload, coordinator)


@pytest.mark.asyncio
async def test_new_participant_creates_lead_and_case(service, new_intake, insightly):
    intake = await service.reconcile_intake(new_intake.id)

    assert intake.sync_status == SyncStatus.SUCCESS.value
    assert intake.lead_linked_to_existing is False
    assert intake.insightly_lead_id in insightly.leads
    assert intake.insightly_case_id in insightly.cases
    assert intake.insightly_lead_url == f"https://crm.insightly.test/details/Lead/{intake.insightly_lead_id}"
    assert intake.insightly_case_url == f"https://crm.insightly.test/details/Opportunity/{intake.insightly_case_id}"
    assert intake.last_sync_error is None
    assert intake.synced_at is not None
    assert intake.sync_attempts == 1
    assert intake.locked_until is None

    lead = insightly.leads[intake.insightly_lead_id]
    assert lead["FIRST_NAME"] == "Jane"
    assert lead["LAST_NAME"] == "Doe"
    assert lead["ADDRESS_POSTCODE"] == "21044"
    assert {"TAG_NAME": "Referral_District_Court"} in lead["TAGS"]

    case = insightly.cases[intake.insightly_case_id]
    assert case["OPPORTUNITY_NAME"] == "2023FM0042 - Doe"
    assert insightly.links == [
        {
            "case_id": intake.insightly_case_id,
            "LINK_OBJECT_NAME": "Lead",
            "LINK_OBJECT_ID": intake.insightly_lead_id,
            "DETAILS": "Participant 1",
        }
    ]


@pytest.mark.asyncio
async def test_exact_duplicate_is_linked_not_created(service, new_intake, insightly):
    existing_id = insightly.add_lead("Jane", "Doe", email="JANE@example.com")

    intake = await service.reconcile_intake(new_intake.id)

    assert intake.sync_status == SyncStatus.LINKED.value
    assert intake.insightly_lead_id == existing_id
    assert intake.lead_linked_to_existing is True
    assert insightly.calls.get("create_lead", 0) == 0
    assert insightly.calls["create_case"] == 1
    assert insightly.notes[0]["lead_id"] == existing_id
    assert new_intake.id in insightly.notes[0]["BODY"]


@pytest.mark.asyncio
async def test_phone_match_counts_as_duplicate(service, new_intake, insightly):
    existing_id = insightly.add_lead("Jane", "Doe", phone="+1 410.555.0100")

    intake = await service.reconcile_intake(new_intake.id)

    assert intake.insightly_lead_id == existing_id
    assert intake.sync_status == SyncStatus.LINKED.value


@pytest.mark.asyncio
async def test_name_only_match_creates_new_lead(service, new_intake, insightly):
    existing_id = insightly.add_lead("Jane", "Doe", email="someone-else@example.com", phone="301-555-0000")

    intake = await service.reconcile_intake(new_intake.id)

    assert intake.sync_status == SyncStatus.SUCCESS.value
    assert intake.insightly_lead_id != existing_id
    assert insightly.calls["create_lead"] == 1


@pytest.mark.asyncio
async def test_multiple_exact_matches_pick_lowest_lead_id(service, new_intake, insightly):
    insightly.add_lead("Jane", "Doe", email="jane@example.com", lead_id=7002)
    insightly.add_lead("Jane", "Doe", email="jane@example.com", lead_id=7001)

    intake = await service.reconcile_intake(new_intake.id)

    assert intake.insightly_lead_id == 7001


@pytest.mark.asyncio
async def test_participant_without_contact_details_never_matches(
    service, intake_service, coordinator, intake_payload, insightly
):
    intake_payload["participant1"]["email"] = None
    intake_payload["participant1"]["phone"] = None
    created = intake_service.create_intake(intake_payload, coordinator)
    insightly.add_lead("Jane", "Doe")

    intake = await service.reconcile_intake(created.id)

    assert intake.sync_status == SyncStatus.SUCCESS.value
    assert insightly.calls["create_lead"] == 1


@pytest.mark.asyncio
async def test_auth_failure_marks_intake_failed(service, new_intake, insightly, resend):
    insightly.fail("search_leads", 401, body={"message": "Invalid API key"})

    intake = await service.reconcile_intake(new_intake.id)

    assert intake.sync_status == SyncStatus.FAILED.value
    assert "authentication failed" in intake.last_sync_error
    assert intake.insightly_lead_id is None
    assert intake.locked_until is None
    assert resend.sent and "Insightly sync failed" in resend.sent[0]["subject"]


@pytest.mark.asyncio
async def test_case_failure_keeps_lead_and_retry_does_not_duplicate(service, new_intake, insightly):
    insightly.fail("create_case", 500)

    failed = await service.reconcile_intake(new_intake.id)

    assert failed.sync_status == SyncStatus.FAILED.value
    assert failed.insightly_lead_id is not None
    assert failed.insightly_case_id is None
    lead_id = failed.insightly_lead_id

    retried = await service.retry_intake(new_intake.id)

    assert retried.sync_status == SyncStatus.SUCCESS.value
    assert retried.insightly_lead_id == lead_id
    assert retried.insightly_case_id is not None
    assert retried.sync_attempts == 2
    assert insightly.calls["create_lead"] == 1
    assert insightly.calls["create_case"] == 2
    assert len(insightly.leads) == 1


@pytest.mark.asyncio
async def test_lost_lead_create_response_links_the_lead_on_retry(db, new_intake, insightly, notifications):
    dropped = []

    def handler(request: httpx.Request) -> httpx.Response:
        response = insightly.handler(request)
        if request.method == "POST" and request.url.path.endswith("/Leads") and not dropped:
            dropped.append(request)
            raise httpx.ReadTimeout("read timed out", request=request)
        return response

    service = ReconciliationService(
        db, crm_client=InsightlyClient(transport=httpx.MockTransport(handler)), notifications=notifications
    )

    failed = await service.reconcile_intake(new_intake.id)

    assert failed.sync_status == SyncStatus.FAILED.value
    assert failed.insightly_lead_id is None
    assert insightly.calls["create_lead"] == 1

    retried = await service.retry_intake(new_intake.id)

    assert retried.sync_status == SyncStatus.LINKED.value
    assert retried.insightly_lead_id in insightly.leads
    assert insightly.calls["create_lead"] == 1
    assert len(insightly.leads) == 1


@pytest.mark.asyncio
async def test_participant2_failure_fails_sync_and_keeps_participant1(
    service, intake_service, coordinator, intake_payload, second_participant, insightly
):
    intake_payload["hasParticipant2"] = True
    intake_payload["participant2"] = second_participant
    created = intake_service.create_intake(intake_payload, coordinator)

    insightly.reject_lead_names = {"John"}

    failed = await service.reconcile_intake(created.id)

    assert failed.sync_status == SyncStatus.FAILED.value
    assert failed.insightly_lead_id is not None
    assert failed.participant2_lead_id is None
    assert failed.insightly_case_id is None
    participant1_lead_id = failed.insightly_lead_id

    insightly.reject_lead_names = set()
    retried = await service.retry_intake(created.id)

    assert retried.sync_status == SyncStatus.SUCCESS.value
    assert retried.insightly_lead_id == participant1_lead_id
    assert retried.participant2_lead_id is not None
    assert len(insightly.leads) == 2
    case = insightly.cases[retried.insightly_case_id]
    assert case["OPPORTUNITY_NAME"] == "2023FM0042 - Doe / Roe"
    assert {link["DETAILS"] for link in insightly.links} == {"Participant 1", "Participant 2"}


@pytest.mark.asyncio
async def test_stored_lead_deleted_in_insightly_is_matched_again(service, new_intake, insightly):
    insightly.fail("create_case", 500)
    failed = await service.reconcile_intake(new_intake.id)
    stale_id = failed.insightly_lead_id
    del insightly.leads[stale_id]

    retried = await service.retry_intake(new_intake.id)

    assert retried.sync_status == SyncStatus.SUCCESS.value
    assert retried.insightly_lead_id != stale_id
    assert retried.insightly_lead_id in insightly.leads
    assert insightly.calls["get_lead"] == 1


@pytest.mark.asyncio
async def test_synced_intake_is_returned_unchanged(service, new_intake, insightly):
    first = await service.reconcile_intake(new_intake.id)
    calls_after_first = dict(insightly.calls)

    again = await service.reconcile_intake(new_intake.id)
    retried = await service.retry_intake(new_intake.id)

    assert again.sync_status == retried.sync_status == first.sync_status
    assert retried.insightly_lead_id == first.insightly_lead_id
    assert retried.sync_attempts == 1
    assert insightly.calls == calls_after_first


@pytest.mark.asyncio
async def test_reconcile_of_failed_intake_requires_retry(service, new_intake, insightly):
    insightly.fail("search_leads", 500)
    await service.reconcile_intake(new_intake.id)

    with pytest.raises(ConflictError):
        await service.reconcile_intake(new_intake.id)


@pytest.mark.asyncio
async def test_skipped_intake_is_never_synced(service, intake_service, new_intake, insightly):
    intake_service.skip_intake(new_intake.id)

    with pytest.raises(ConflictError):
        await service.reconcile_intake(new_intake.id)
    with pytest.raises(ConflictError):
        await service.retry_intake(new_intake.id)
    assert insightly.calls == {}


@pytest.mark.asyncio
async def test_held_lease_rejects_concurrent_sync(service, intake_service, new_intake, insightly):
    intake_service.save(new_intake, locked_until=utcnow() + timedelta(seconds=60))

    with pytest.raises(ConflictError) as exc_info:
        await service.reconcile_intake(new_intake.id)
    assert "in progress" in exc_info.value.detail

    with pytest.raises(ConflictError):
        await service.retry_intake(new_intake.id)
    assert insightly.calls == {}


@pytest.mark.asyncio
async def test_expired_lease_can_be_taken_over(service, intake_service, new_intake):
    intake_service.save(new_intake, locked_until=utcnow() - timedelta(seconds=1))

    intake = await service.reconcile_intake(new_intake.id)

    assert intake.sync_status == SyncStatus.SUCCESS.value
    assert intake.locked_until is None


@pytest.mark.asyncio
async def test_duplicate_check_merges_name_and_email_results(service, insightly):
    by_name = insightly.add_lead("Jane", "Doe", email="other@example.com")
    by_email = insightly.add_lead("Janet", "Doe-Smith", email="jane@example.com")
    insightly.add_lead("Bob", "Smith")

    result = await service.check_for_duplicates("Jane Doe", "jane@example.com")

    assert result["has_potential_duplicates"] is True
    assert {m["lead_id"] for m in result["matches"]} == {by_name, by_email}
    assert result["matches"][0]["lead_url"].startswith("https://crm.insightly.test/details/Lead/")


@pytest.mark.asyncio
async def test_ensure_lead_sources_creates_missing_sources(service, insightly):
    insightly.lead_sources = [{"LEAD_SOURCE_ID": 1, "LEAD_SOURCE": "District Court"}]

    result = await service.ensure_lead_sources()

    assert result["success"] is True
    assert "District Court" not in result["created"]
    assert "Paper Intake" in result["created"]
    assert result["lead_sources"]["District Court"] == 1
    assert insightly.calls["create_source"] == len(result["created"])
