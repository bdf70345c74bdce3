"""
Paper intake persistence, history queries and skip
"""
from datetime import date, timedelta

import pytest

from mediation_intake.core.sync_status import SyncStatus
from mediation_intake.services.paper_intake_service import PaperIntakeService
from mediation_intake.utils.exceptions import ConflictError, IntakeValidationError, NotFoundError


def test_create_intake_persists_pending_record(db, coordinator, intake_payload):
    service = PaperIntakeService(db)

    intake = service.create_intake(intake_payload, coordinator)

    assert intake.id
    assert intake.sync_status == SyncStatus.PENDING.value
    assert intake.data_entry_by == "staff-1"
    assert intake.data_entry_by_name == "Casey Coordinator"
    assert intake.sync_attempts == 0
    assert intake.insightly_lead_id is None


def test_round_trip_returns_the_validated_fields(db, coordinator, intake_payload):
    service = PaperIntakeService(db)
    created = service.create_intake(intake_payload, coordinator)
    db.expire_all()

    intake = service.get_intake(created.id)

    assert intake.intake_date == date(2023, 3, 14)
    assert intake.case_number == "2023FM0042"
    assert intake.referral_source == "District Court"
    assert intake.participant1["name"] == "Jane Doe"
    assert intake.participant1["address"]["zip_code"] == "21044"
    assert intake.participant1["attorney"] is None
    assert intake.participant2 is None
    assert intake.phone_checklist["safety_screening_complete"] is True
    assert intake.staff_assessment["no_danger_to_center"] is True


def test_invalid_payload_is_not_persisted(db, coordinator, intake_payload):
    service = PaperIntakeService(db)
    intake_payload["disputeDescription"] = ""

    with pytest.raises(IntakeValidationError):
        service.create_intake(intake_payload, coordinator)

    assert service.list_intakes()["total"] == 0


def test_get_unknown_intake_raises_not_found(db):
    with pytest.raises(NotFoundError):
        PaperIntakeService(db).get_intake("missing")


def test_list_intakes_orders_by_intake_date_desc(db, coordinator, intake_payload):
    service = PaperIntakeService(db)
    for offset in (3, 1, 2):
        payload = dict(intake_payload, intakeDate=(date(2023, 1, 1) + timedelta(days=offset)).isoformat())
        service.create_intake(payload, coordinator)

    result = service.list_intakes()

    assert result["total"] == 3
    assert [i.intake_date.day for i in result["items"]] == [4, 3, 2]

    ascending = service.list_intakes(order="asc")
    assert [i.intake_date.day for i in ascending["items"]] == [2, 3, 4]


def test_list_intakes_filters_by_status_and_paginates(db, coordinator, intake_payload):
    service = PaperIntakeService(db)
    first = service.create_intake(intake_payload, coordinator)
    service.create_intake(intake_payload, coordinator)
    service.skip_intake(first.id, "Duplicate of an intake already in Insightly")

    skipped = service.list_intakes(sync_status=SyncStatus.SKIPPED)
    assert skipped["total"] == 1
    assert skipped["items"][0].id == first.id

    page = service.list_intakes(skip=1, limit=1)
    assert page["total"] == 2
    assert len(page["items"]) == 1


def test_stats_count_every_status(db, coordinator, intake_payload):
    service = PaperIntakeService(db)
    first = service.create_intake(intake_payload, coordinator)
    service.create_intake(intake_payload, coordinator)
    service.skip_intake(first.id)

    stats = service.get_intake_stats()

    assert stats == {"pending": 1, "success": 0, "failed": 0, "linked": 0, "skipped": 1, "total": 2}


def test_skip_is_terminal(db, coordinator, intake_payload):
    service = PaperIntakeService(db)
    intake = service.create_intake(intake_payload, coordinator)

    skipped = service.skip_intake(intake.id, "Illegible form")
    assert skipped.sync_status == SyncStatus.SKIPPED.value
    assert skipped.skip_reason == "Illegible form"

    with pytest.raises(ConflictError):
        service.skip_intake(intake.id)
