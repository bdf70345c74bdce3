"""
Lead / Case payload builders and the duplicate match rule
"""
from datetime import date
from types import SimpleNamespace

import pytest

from mediation_intake.external.crm.insightly import (
    build_case_payload,
    build_lead_payload,
    build_lead_tags,
    format_case_number,
    generate_opportunity_name,
    is_exact_match,
    lead_source_registry,
    parse_case_number,
    resolve_lead_source_id,
    select_match,
)
from mediation_intake.schemas.insightly import InsightlyLead


def make_intake(**overrides):
    fields = dict(
        id="abc123",
        case_number="2023FM0042",
        intake_date=date(2023, 3, 14),
        intake_person="R. Alvarez",
        referral_source="District Court",
        dispute_type="Parenting Plan",
        dispute_description="Schedule disagreement",
        is_court_ordered=True,
        magistrate_judge=None,
        participant1={"name": "Jane Q Doe", "email": "jane@example.com"},
        participant2=None,
        phone_checklist={"police_involvement": True, "safety_screening_complete": True},
        staff_assessment={"can_represent_self": True},
        staff_notes=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_lead_tags():
    assert build_lead_tags(True, False, "State's Attorney") == [
        "Paper_Intake",
        "MCRC",
        "Mediation",
        "Court_Ordered_Yes",
        "Police_Involvement_No",
        "Referral_State_s_Attorney",
    ]


def test_case_number_helpers():
    assert parse_case_number("2023FM0042") == {"year": 2023, "sequence": 42}
    assert parse_case_number("FM42") is None
    assert format_case_number(2024, 7) == "2024FM0007"


def test_lead_payload_splits_name_and_drops_empty_fields():
    intake = make_intake()

    payload = build_lead_payload(intake, intake.participant1, 1)

    assert payload["FIRST_NAME"] == "Jane"
    assert payload["LAST_NAME"] == "Q Doe"
    assert payload["EMAIL"] == "jane@example.com"
    assert "PHONE" not in payload
    assert "ADDRESS_COUNTRY" not in payload
    assert {"TAG_NAME": "Police_Involvement_Yes"} in payload["TAGS"]
    assert "Participant 1" in payload["LEAD_DESCRIPTION"]
    assert "Case Number: 2023FM0042" in payload["LEAD_DESCRIPTION"]


def test_lead_payload_uses_explicit_first_and_last_name():
    participant = {
        "name": "Mary Ann Smith",
        "first_name": "Mary Ann",
        "last_name": "Smith",
        "address": {"city": "Ellicott City", "state": "MD"},
    }

    payload = build_lead_payload(make_intake(), participant, 2)

    assert (payload["FIRST_NAME"], payload["LAST_NAME"]) == ("Mary Ann", "Smith")
    assert payload["ADDRESS_CITY"] == "Ellicott City"
    assert payload["ADDRESS_COUNTRY"] == "United States"


def test_lead_source_comes_from_the_registry():
    assert resolve_lead_source_id("District Court") is None

    lead_source_registry.update({"District Court": 991})

    assert resolve_lead_source_id("District Court") == 991
    assert build_lead_payload(make_intake(), {"name": "Jane Doe"}, 1)["LEAD_SOURCE_ID"] == 991


def test_opportunity_name():
    assert generate_opportunity_name(make_intake()) == "2023FM0042 - Doe"
    two = make_intake(case_number=None, participant2={"name": "John Roe"})
    assert generate_opportunity_name(two) == "Doe / Roe"


def test_case_payload_custom_fields():
    payload = build_case_payload(make_intake())

    fields = {f["FIELD_NAME"]: f["FIELD_VALUE"] for f in payload["CUSTOMFIELDS"]}
    assert fields["Case_Number_NEW__c"] == 2023
    assert fields["Referral_Source__c"] == "District Court"
    assert fields["Mediation_Case_Type__c"] == "Co-parenting/Parenting Plan"
    assert fields["Session_Type__c"] == "Mediation"
    assert fields["Open_Date__c"] == "2023-03-14"
    assert fields["Court_Referral_Date_If_applicable__c"] == "2023-03-14"
    assert payload["OPPORTUNITY_STATE"] == "Open"
    assert "Schedule disagreement" in payload["OPPORTUNITY_DETAILS"]


def test_case_payload_without_court_order_has_no_referral_date():
    payload = build_case_payload(make_intake(is_court_ordered=False))

    names = {f["FIELD_NAME"] for f in payload["CUSTOMFIELDS"]}
    assert "Court_Referral_Date_If_applicable__c" not in names


@pytest.mark.parametrize(
    "lead, participant, expected",
    [
        ({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "EMAIL": "Jane@Example.com "},
         {"name": "jane  doe", "email": "jane@example.com"}, True),
        ({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "MOBILE": "410 555 0100"},
         {"name": "Jane Doe", "home_phone": "(410) 555-0100"}, True),
        ({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "EMAIL": "jane@example.com"},
         {"name": "Jane Smith", "email": "jane@example.com"}, False),
        ({"FIRST_NAME": "Jane", "LAST_NAME": "Doe", "EMAIL": "other@example.com"},
         {"name": "Jane Doe", "email": "jane@example.com"}, False),
        ({"FIRST_NAME": "Jane", "LAST_NAME": "Doe"},
         {"name": "Jane Doe"}, False),
    ],
)
def test_exact_match_rule(lead, participant, expected):
    assert is_exact_match(InsightlyLead(LEAD_ID=1, **lead), participant) is expected


def test_select_match_prefers_lowest_lead_id():
    participant = {"name": "Jane Doe", "email": "jane@example.com"}
    leads = [
        InsightlyLead(LEAD_ID=30, FIRST_NAME="Jane", LAST_NAME="Doe", EMAIL="jane@example.com"),
        InsightlyLead(LEAD_ID=10, FIRST_NAME="Jane", LAST_NAME="Doe", EMAIL="jane@example.com"),
        InsightlyLead(LEAD_ID=5, FIRST_NAME="Jane", LAST_NAME="Roe", EMAIL="jane@example.com"),
    ]

    assert select_match(leads, participant).LEAD_ID == 10
    assert select_match([], participant) is None
