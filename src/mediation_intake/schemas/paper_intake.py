"""
Paper intake request/response schemas and validation.

The data entry wizard submits the whole form at once; violations are
reported per wizard step so the dashboard can send staff back to the
first step that needs attention.
"""
import re
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import (
    BeforeValidator,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from mediation_intake.core.sync_status import SyncStatus
from mediation_intake.schemas.base import CamelSchema, BaseResponseSchema
from mediation_intake.utils.exceptions import IntakeValidationError
from mediation_intake.utils.helpers import clean_optional_string

# =============================================================================
# Closed option sets (as printed on the paper form)
# =============================================================================

REFERRAL_SOURCES = (
    "Staff/Volunteer",
    "Government Agency",
    "Previous Client",
    "State's Attorney",
    "Community Organization",
    "Law Enforcement",
    "Professional Referral",
    "District Court",
    "Circuit Court",
    "Outreach",
    "Other",
)

DISPUTE_TYPES = (
    "Business/Contract",
    "Employment/EEO",
    "Landlord/Tenant",
    "Parenting Plan",
    "Community",
    "Family",
    "Medical",
    "Roommate",
    "Divorce",
    "Insurance",
    "Neighbor",
    "School",
    "ElderCare",
    "Juvenile",
    "Parent/Child",
    "Separation",
)

GENDER_OPTIONS = (
    "Male",
    "Female",
    "Non-binary",
    "Other",
    "Prefer not to say",
    "Unknown/Illegible",
)

RACE_OPTIONS = (
    "American Indian or Alaska Native",
    "Asian",
    "Black or African American",
    "Hispanic or Latino",
    "Native Hawaiian or Other Pacific Islander",
    "White",
    "Two or More Races",
    "Other",
    "Prefer not to say",
    "Unknown/Illegible",
)

AGE_RANGES = (
    "Under 18",
    "18-24",
    "25-34",
    "35-44",
    "45-54",
    "55-64",
    "65+",
    "Unknown/Illegible",
)

INCOME_RANGES = (
    "Under $25,000",
    "$25,000 - $49,999",
    "$50,000 - $74,999",
    "$75,000 - $99,999",
    "$100,000+",
    "Prefer not to say",
    "Unknown/Illegible",
)

EDUCATION_LEVELS = (
    "Less than High School",
    "High School / GED",
    "Some College",
    "Associate's Degree",
    "Bachelor's Degree",
    "Master's Degree",
    "Doctorate",
    "Prefer not to say",
    "Unknown/Illegible",
)

MILITARY_STATUSES = (
    "Active Duty",
    "Veteran",
    "Retired",
    "N/A",
    "Unknown/Illegible",
)

# =============================================================================
# Field types
# =============================================================================

OptionalText = Annotated[Optional[str], BeforeValidator(clean_optional_string)]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

ReferralSource = Annotated[Optional[Literal[REFERRAL_SOURCES]], BeforeValidator(clean_optional_string)]
DisputeType = Annotated[Optional[Literal[DISPUTE_TYPES]], BeforeValidator(clean_optional_string)]
Gender = Annotated[Optional[Literal[GENDER_OPTIONS]], BeforeValidator(clean_optional_string)]
Race = Annotated[Optional[Literal[RACE_OPTIONS]], BeforeValidator(clean_optional_string)]
AgeRange = Annotated[Optional[Literal[AGE_RANGES]], BeforeValidator(clean_optional_string)]
IncomeRange = Annotated[Optional[Literal[INCOME_RANGES]], BeforeValidator(clean_optional_string)]
EducationLevel = Annotated[Optional[Literal[EDUCATION_LEVELS]], BeforeValidator(clean_optional_string)]
MilitaryStatus = Annotated[Optional[Literal[MILITARY_STATUSES]], BeforeValidator(clean_optional_string)]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# =============================================================================
# Sub-schemas
# =============================================================================


class ParticipantDemographics(CamelSchema):
    gender: Gender = None
    race: Race = None
    age_range: AgeRange = None
    income: IncomeRange = None
    education: EducationLevel = None
    military_status: MilitaryStatus = None


class ParticipantAddress(CamelSchema):
    street: OptionalText = None
    city: OptionalText = None
    state: OptionalText = None
    zip_code: OptionalText = None


class ParticipantData(CamelSchema):
    """Participant block from the paper form"""
    participant_number: OptionalText = None
    name: RequiredText
    first_name: OptionalText = None
    last_name: OptionalText = None
    email: OptionalText = None
    phone: OptionalText = None
    home_phone: OptionalText = None
    address: Optional[ParticipantAddress] = None
    can_send_joint_email: Optional[bool] = None
    attorney: OptionalText = None
    best_call_time: OptionalText = None
    best_meet_time: OptionalText = None
    demographics: Optional[ParticipantDemographics] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _EMAIL_RE.match(v):
            raise ValueError("Invalid email address")
        return v


class PhoneChecklist(CamelSchema):
    explained_process: bool
    explained_neutrality: bool
    explained_confidentiality: bool
    police_involvement: bool
    peace_protective_order: bool
    safety_screening_complete: bool


class StaffAssessment(CamelSchema):
    """Screening questions staff must affirm before a case is opened"""
    can_represent_self: bool
    no_fear_of_coercion: bool
    no_danger_to_self: bool
    no_danger_to_center: bool

    @field_validator("*")
    @classmethod
    def must_be_affirmed(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("Staff must affirm this assessment before a case can be created")
        return v


# =============================================================================
# Main schema
# =============================================================================


class PaperIntakeCreate(CamelSchema):
    """Validated paper intake ready to persist"""
    # Case & dispute
    case_number: OptionalText = None
    intake_date: date
    intake_person: OptionalText = None
    paper_form_id: OptionalText = None
    batch_id: OptionalText = None
    referral_source: ReferralSource = None
    is_court_ordered: bool
    magistrate_judge: OptionalText = None
    dispute_type: DisputeType = None
    dispute_description: RequiredText

    # Participants
    participant1: ParticipantData
    participant2: Optional[ParticipantData] = None

    # Checklist & review
    phone_checklist: PhoneChecklist
    staff_assessment: StaffAssessment
    staff_notes: OptionalText = None

    @model_validator(mode="before")
    @classmethod
    def apply_participant2_toggle(cls, data: Any) -> Any:
        # hasParticipant2 is a wizard toggle; an unchecked toggle discards
        # whatever the hidden participant 2 fields still hold, a checked one
        # requires participant 2
        if not isinstance(data, dict):
            return data
        data = dict(data)
        has_participant2 = data.pop("hasParticipant2", data.pop("has_participant2", None))
        if has_participant2 is False:
            data.pop("participant2", None)
        elif has_participant2 is True and data.get("participant2") is None:
            data["participant2"] = {}
        return data

    @field_validator("intake_date", mode="before")
    @classmethod
    def blank_date(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


# =============================================================================
# Step mapping
# =============================================================================

FORM_STEPS = [
    {
        "id": "duplicate-check",
        "title": "Check for Duplicates",
        "description": "Search Insightly before creating new records",
    },
    {
        "id": "case-dispute",
        "title": "Case & Dispute Details",
        "description": "Case metadata and nature of the dispute",
    },
    {
        "id": "participants",
        "title": "Participant Information",
        "description": "Contact details and demographics",
    },
    {
        "id": "review",
        "title": "Review & Submit",
        "description": "Verify information and complete checklist",
    },
]

STEP_FIELDS: Dict[str, List[str]] = {
    "duplicate-check": [],
    "case-dispute": [
        "case_number",
        "intake_date",
        "intake_person",
        "paper_form_id",
        "batch_id",
        "referral_source",
        "is_court_ordered",
        "magistrate_judge",
        "dispute_type",
        "dispute_description",
    ],
    "participants": ["participant1", "has_participant2", "participant2"],
    "review": ["phone_checklist", "staff_assessment", "staff_notes"],
}

REQUIRED_MESSAGES = {
    "intakeDate": "Intake date is required",
    "disputeDescription": "Please describe the nature of the dispute",
    "participant1.name": "Name is required",
    "participant2.name": "Participant 2 name is required when adding a second participant",
}

_FIELD_TO_STEP: Dict[str, str] = {}
for _step, _fields in STEP_FIELDS.items():
    for _field in _fields:
        _FIELD_TO_STEP[_field] = _step
        _FIELD_TO_STEP[to_camel(_field)] = _step


def _error_message(path: str, error: Dict[str, Any]) -> str:
    if error["type"] in ("missing", "string_too_short", "none_required", "date_type") and path in REQUIRED_MESSAGES:
        return REQUIRED_MESSAGES[path]
    if error["type"] == "literal_error":
        return "Select one of the listed options"
    message = error["msg"]
    # pydantic prefixes custom ValueErrors
    return message.removeprefix("Value error, ")


def collect_violations(exc: ValidationError) -> Dict[str, List[Dict[str, str]]]:
    """Group pydantic errors by wizard step"""
    violations: Dict[str, List[Dict[str, str]]] = {
        step["id"]: [] for step in FORM_STEPS
    }
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        path = ".".join(loc)
        step = _FIELD_TO_STEP.get(loc[0], "review") if loc else "review"
        violations[step].append({"field": path, "message": _error_message(path, error)})
    return {step: items for step, items in violations.items() if items}


def validate_paper_intake(payload: Dict[str, Any]) -> PaperIntakeCreate:
    """
    Validate a draft intake payload.

    Returns:
        PaperIntakeCreate with optional blanks normalised to None

    Raises:
        IntakeValidationError: With field violations keyed by step
    """
    try:
        return PaperIntakeCreate.model_validate(payload)
    except ValidationError as exc:
        raise IntakeValidationError(collect_violations(exc))


# =============================================================================
# Responses
# =============================================================================


class PaperIntakeRead(BaseResponseSchema):
    """Stored paper intake as returned to the dashboard"""
    case_number: Optional[str] = None
    intake_date: date
    intake_person: Optional[str] = None
    data_entry_by: str
    data_entry_by_name: Optional[str] = None
    paper_form_id: Optional[str] = None
    batch_id: Optional[str] = None
    referral_source: Optional[str] = None
    dispute_type: Optional[str] = None
    dispute_description: str
    is_court_ordered: bool
    magistrate_judge: Optional[str] = None
    participant1: ParticipantData
    participant2: Optional[ParticipantData] = None
    phone_checklist: PhoneChecklist
    staff_assessment: Dict[str, bool]
    staff_notes: Optional[str] = None

    sync_status: SyncStatus
    insightly_lead_id: Optional[int] = None
    insightly_lead_url: Optional[str] = None
    lead_linked_to_existing: bool = False
    participant2_lead_id: Optional[int] = None
    participant2_lead_url: Optional[str] = None
    participant2_linked_to_existing: bool = False
    insightly_case_id: Optional[int] = None
    insightly_case_url: Optional[str] = None
    last_sync_error: Optional[str] = None
    skip_reason: Optional[str] = None
    sync_attempts: int = 0
    last_sync_attempt_at: Optional[datetime] = None
    synced_at: Optional[datetime] = None


class PaperIntakeListResponse(CamelSchema):
    total: int
    skip: int
    limit: int
    items: List[PaperIntakeRead]


class PaperIntakeStats(CamelSchema):
    total: int
    pending: int
    success: int
    linked: int
    failed: int
    skipped: int


class SkipIntakeRequest(CamelSchema):
    reason: OptionalText = None


class LeadSearchResult(CamelSchema):
    lead_id: int
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    lead_url: str
    created_at: Optional[str] = None
    tags: List[str] = []


class DuplicateCheckResult(CamelSchema):
    has_potential_duplicates: bool
    matches: List[LeadSearchResult]
    searched_name: str


class LeadSourceSetupResult(CamelSchema):
    success: bool
    lead_sources: Dict[str, int]
    created: List[str]
    errors: List[str]
