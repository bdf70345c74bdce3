"""
Insightly specific mappings and payload builders.

Converts stored paper intakes into Insightly Lead and Case (Opportunity)
payloads, and holds the lead source, tag and custom field conventions
the mediation pipeline in Insightly is configured with.
"""
import re
from typing import Optional, List, Dict, Any, Iterable

from mediation_intake.core.config import settings
from mediation_intake.schemas.insightly import (
    InsightlyTag,
    InsightlyCustomField,
    InsightlyLead,
    InsightlyLeadCreate,
    InsightlyOpportunityCreate,
    InsightlyLinkCreate,
    InsightlyNoteCreate,
)
from mediation_intake.utils.helpers import (
    format_date,
    normalize_email,
    normalize_name,
    normalize_phone,
    split_full_name,
    utcnow,
)
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)

# =============================================================================
# Lead sources
# =============================================================================

# Paper form referral sources that have no Insightly Lead Source yet
LEAD_SOURCES_TO_CREATE = [
    "Staff/Volunteer",
    "Government Agency",
    "Previous Client",
    "State's Attorney",
    "Community Organization",
    "Law Enforcement",
    "Professional Referral",
    "District Court",
    "Circuit Court",
    "Paper Intake",
]

# Paper form referral source -> Insightly Lead Source name
REFERRAL_TO_LEAD_SOURCE = {
    "Staff/Volunteer": "Staff/Volunteer",
    "Government Agency": "Government Agency",
    "Previous Client": "Previous Client",
    "State's Attorney": "State's Attorney",
    "Community Organization": "Community Organization",
    "Law Enforcement": "Law Enforcement",
    "Professional Referral": "Professional Referral",
    "District Court": "District Court",
    "Circuit Court": "Circuit Court",
    "Outreach": "Outreach",
    "Other": "Other",
}


class LeadSourceRegistry:
    """
    Lead Source name -> id lookup.

    Seeded from configuration and refreshed by ensure_lead_sources();
    payload builders only read from it and never hit the network.
    """

    def __init__(self, configured: Optional[Dict[str, int]] = None):
        self._configured = dict(configured or {})
        self._cache: Dict[str, int] = {}

    def get(self, name: str) -> Optional[int]:
        if name in self._cache:
            return self._cache[name]
        return self._configured.get(name)

    def update(self, sources: Dict[str, int]) -> None:
        self._cache.update(sources)

    def clear(self) -> None:
        self._cache = {}

    def as_dict(self) -> Dict[str, int]:
        merged = dict(self._configured)
        merged.update(self._cache)
        return merged


lead_source_registry = LeadSourceRegistry(settings.insightly.lead_source_ids)


def resolve_lead_source_id(referral_source: Optional[str]) -> Optional[int]:
    if not referral_source:
        return None
    source_name = REFERRAL_TO_LEAD_SOURCE.get(referral_source, referral_source)
    source_id = lead_source_registry.get(source_name)
    if source_id is None:
        logger.debug(f"[dim]No Lead Source id cached for[/dim] {source_name}")
    return source_id

# =============================================================================
# Case custom fields
# =============================================================================

CASE_CUSTOM_FIELDS = {
    "CASE_NUMBER": "Case_Number_NEW__c",
    "CASE_DISPOSITION": "Case_Disposition__c",
    "REFERRAL_SOURCE": "Referral_Source__c",
    "REFERRAL_METHOD": "ReferralInquiry_Method__c",
    "SESSION_TYPE": "Session_Type__c",
    "MEDIATION_CASE_TYPE": "Mediation_Case_Type__c",
    "MEDIATION_CASE_SUBTYPE": "Mediation_Case_Subtype__c",
    "COURT_REFERRAL_DATE": "Court_Referral_Date_If_applicable__c",
    "OPEN_DATE": "Open_Date__c",
    "CLOSED_DATE": "Closed_Date__c",
}

# Values must match the Mediation_Case_Type__c dropdown in Insightly
DISPUTE_TYPE_TO_CASE_TYPE = {
    "Business/Contract": "Business/Contract",
    "Employment/EEO": "Employment/EEO",
    "Landlord/Tenant": "Landlord/Tenant",
    "Parenting Plan": "Co-parenting/Parenting Plan",
    "Community": "Community",
    "Family": "Family",
    "Medical": "Medical",
    "Roommate": "Roommate",
    "Divorce": "Divorce",
    "Insurance": "Insurance",
    "Neighbor": "Neighbor",
    "School": "School",
    "ElderCare": "ElderCare",
    "Juvenile": "Juvenile",
    "Parent/Child": "Parent/Child",
    "Separation": "Separation",
}

SESSION_TYPE_MEDIATION = "Mediation"

# =============================================================================
# Tags
# =============================================================================

PAPER_INTAKE_TAGS = {
    "PAPER_INTAKE": "Paper_Intake",
    "MCRC": "MCRC",
    "MEDIATION": "Mediation",
    "COURT_ORDERED_YES": "Court_Ordered_Yes",
    "COURT_ORDERED_NO": "Court_Ordered_No",
    "POLICE_INVOLVEMENT_YES": "Police_Involvement_Yes",
    "POLICE_INVOLVEMENT_NO": "Police_Involvement_No",
}


def build_lead_tags(
    is_court_ordered: bool,
    police_involvement: bool,
    referral_source: Optional[str] = None,
) -> List[str]:
    """
    Build the tag list for a Lead created from a paper intake.

    Example:
        >>> build_lead_tags(True, False, "State's Attorney")
        ['Paper_Intake', 'MCRC', 'Mediation', 'Court_Ordered_Yes',
         'Police_Involvement_No', 'Referral_State_s_Attorney']
    """
    tags = [
        PAPER_INTAKE_TAGS["PAPER_INTAKE"],
        PAPER_INTAKE_TAGS["MCRC"],
        PAPER_INTAKE_TAGS["MEDIATION"],
        PAPER_INTAKE_TAGS["COURT_ORDERED_YES"] if is_court_ordered else PAPER_INTAKE_TAGS["COURT_ORDERED_NO"],
        PAPER_INTAKE_TAGS["POLICE_INVOLVEMENT_YES"] if police_involvement else PAPER_INTAKE_TAGS["POLICE_INVOLVEMENT_NO"],
    ]
    if referral_source:
        normalized = re.sub(r"_+", "_", re.sub(r"[^a-zA-Z0-9]", "_", referral_source))
        tags.append(f"Referral_{normalized}")
    return tags

# =============================================================================
# URLs
# =============================================================================


def build_lead_url(lead_id: int, web_base_url: Optional[str] = None) -> str:
    base = web_base_url or settings.insightly.web_base_url
    return f"{base}/details/Lead/{lead_id}"


def build_case_url(case_id: int, web_base_url: Optional[str] = None) -> str:
    base = web_base_url or settings.insightly.web_base_url
    return f"{base}/details/Opportunity/{case_id}"

# =============================================================================
# Case numbers (YYYYFMXXXX)
# =============================================================================


def parse_case_number(case_number: str) -> Optional[Dict[str, int]]:
    match = re.match(r"^(\d{4})FM(\d+)$", case_number or "")
    if not match:
        return None
    return {"year": int(match.group(1)), "sequence": int(match.group(2))}


def format_case_number(year: int, sequence: int) -> str:
    return f"{year}FM{sequence:04d}"

# =============================================================================
# Participant helpers
# =============================================================================


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def participant_names(participant: Dict[str, Any]) -> Dict[str, str]:
    """First/last name: explicit fields when both are present, else split the full name"""
    first_name = participant.get("first_name")
    last_name = participant.get("last_name")
    if first_name and last_name:
        return {"first_name": first_name, "last_name": last_name}
    return split_full_name(participant.get("name"))


def participant_last_name(participant: Dict[str, Any]) -> str:
    return (
        participant.get("last_name")
        or split_full_name(participant.get("name"))["last_name"]
        or participant.get("name")
        or ""
    )


def participant_phones(participant: Dict[str, Any]) -> List[str]:
    phones = [normalize_phone(participant.get("phone")), normalize_phone(participant.get("home_phone"))]
    return [phone for phone in phones if phone]


def has_contact_details(participant: Dict[str, Any]) -> bool:
    return bool(normalize_email(participant.get("email")) or participant_phones(participant))


def is_exact_match(lead: InsightlyLead, participant: Dict[str, Any]) -> bool:
    """
    Exact duplicate rule: the normalised full name matches AND either the
    normalised email or a normalised phone matches. A participant with no
    email and no phone never matches.
    """
    if not has_contact_details(participant):
        return False

    names = participant_names(participant)
    candidate_names = {
        normalize_name(participant.get("name")),
        normalize_name(f"{names['first_name']} {names['last_name']}"),
    }
    candidate_names.discard("")
    if normalize_name(lead.full_name) not in candidate_names:
        return False

    email = normalize_email(participant.get("email"))
    if email and normalize_email(lead.EMAIL) == email:
        return True

    lead_phones = {normalize_phone(lead.PHONE), normalize_phone(lead.MOBILE)}
    lead_phones.discard("")
    return any(phone in lead_phones for phone in participant_phones(participant))


def select_match(leads: Iterable[InsightlyLead], participant: Dict[str, Any]) -> Optional[InsightlyLead]:
    """Lowest LEAD_ID among the exact matches, or None"""
    matches = [lead for lead in leads if is_exact_match(lead, participant)]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            f"[yellow]⚠️  {len(matches)} exact Lead matches for[/yellow] "
            f"{participant.get('name')}; using the oldest"
        )
    return min(matches, key=lambda lead: lead.LEAD_ID)

# =============================================================================
# Lead payload
# =============================================================================


def format_demographics(demographics: Optional[Dict[str, Any]]) -> str:
    if not demographics:
        return ""

    labels = [
        ("gender", "Gender"),
        ("race", "Race"),
        ("age_range", "Age Range"),
        ("income", "Income"),
        ("education", "Education"),
        ("military_status", "Military Status"),
    ]
    lines = [f"{label}: {demographics[key]}" for key, label in labels if demographics.get(key)]
    if not lines:
        return ""
    return "\nDemographics\n" + "-" * 50 + "\n" + "\n".join(lines)


def format_participant_description(intake, participant: Dict[str, Any], participant_number: int) -> str:
    """Lead description: contact preferences, demographics, case context, safety screening"""
    checklist = intake.phone_checklist or {}
    sections = [
        f"Source: Paper Intake Form ({format_date(intake.intake_date)})",
        f"Participant {participant_number}",
        "=" * 50,
    ]

    contact_prefs = []
    if participant.get("best_call_time"):
        contact_prefs.append(f"Best Call Time: {participant['best_call_time']}")
    if participant.get("best_meet_time"):
        contact_prefs.append(f"Best Time/Days to Meet: {participant['best_meet_time']}")
    if participant.get("can_send_joint_email") is not None:
        contact_prefs.append(f"Joint Email OK: {_yes_no(participant['can_send_joint_email'])}")
    if participant.get("attorney"):
        contact_prefs.append(f"Attorney: {participant['attorney']}")
    if contact_prefs:
        sections.extend(["\nContact Preferences", "-" * 50, "\n".join(contact_prefs)])

    demographics = format_demographics(participant.get("demographics"))
    if demographics:
        sections.append(demographics)

    sections.extend(["\nCase Context", "-" * 50])
    if intake.case_number:
        sections.append(f"Case Number: {intake.case_number}")
    if intake.referral_source:
        sections.append(f"Referral Source: {intake.referral_source}")
    if intake.dispute_type:
        sections.append(f"Dispute Type: {intake.dispute_type}")
    sections.append(f"Court Ordered: {_yes_no(intake.is_court_ordered)}")
    if intake.magistrate_judge:
        sections.append(f"Magistrate/Judge: {intake.magistrate_judge}")

    sections.extend([
        "\nSafety Screening",
        "-" * 50,
        f"Police Involvement: {_yes_no(checklist.get('police_involvement'))}",
        f"Peace/Protective Order: {_yes_no(checklist.get('peace_protective_order'))}",
        f"Safety Screening Complete: {_yes_no(checklist.get('safety_screening_complete'))}",
    ])

    if intake.staff_notes:
        sections.extend(["\nStaff Notes", "-" * 50, intake.staff_notes])

    sections.append("")
    sections.append(f"(Entered via CMS Paper Intake on {utcnow().date().isoformat()})")
    return "\n".join(sections)


def build_lead_payload(intake, participant: Dict[str, Any], participant_number: int) -> Dict[str, Any]:
    """
    Convert one participant of a stored PaperIntake to an Insightly Lead.

    Args:
        intake: PaperIntake model instance
        participant: Stored participant document (snake_case keys)
        participant_number: 1 or 2

    Returns:
        Dictionary in Insightly Lead format (validated by InsightlyLeadCreate)
    """
    names = participant_names(participant)
    checklist = intake.phone_checklist or {}
    tags = build_lead_tags(
        is_court_ordered=bool(intake.is_court_ordered),
        police_involvement=bool(checklist.get("police_involvement")),
        referral_source=intake.referral_source,
    )

    address = participant.get("address") or {}
    has_address = any(address.get(key) for key in ("street", "city", "state", "zip_code"))

    lead = InsightlyLeadCreate(
        FIRST_NAME=names["first_name"],
        LAST_NAME=names["last_name"],
        EMAIL=participant.get("email"),
        PHONE=participant.get("phone"),
        MOBILE=participant.get("home_phone"),
        ADDRESS_STREET=address.get("street"),
        ADDRESS_CITY=address.get("city"),
        ADDRESS_STATE=address.get("state"),
        ADDRESS_POSTCODE=address.get("zip_code"),
        ADDRESS_COUNTRY=settings.insightly.default_country if has_address else None,
        LEAD_STATUS_ID=settings.insightly.lead_status_id,
        LEAD_SOURCE_ID=resolve_lead_source_id(intake.referral_source),
        LEAD_DESCRIPTION=format_participant_description(intake, participant, participant_number),
        TAGS=[InsightlyTag(TAG_NAME=tag) for tag in tags],
    )
    return lead.model_dump(exclude_none=True)

# =============================================================================
# Case (Opportunity) payload
# =============================================================================


def build_case_description(intake) -> str:
    checklist = intake.phone_checklist or {}
    assessment = intake.staff_assessment or {}
    sections = [
        "Nature of Dispute",
        "=" * 50,
        intake.dispute_description or "(No description provided)",
        "\nPhone Checklist",
        "-" * 50,
        f"✓ Explained Mediation Process: {_yes_no(checklist.get('explained_process'))}",
        f"✓ Explained Neutrality: {_yes_no(checklist.get('explained_neutrality'))}",
        f"✓ Explained Confidentiality: {_yes_no(checklist.get('explained_confidentiality'))}",
        f"✓ Police Involvement Check: {_yes_no(checklist.get('police_involvement'))}",
        f"✓ Peace/Protective Order: {_yes_no(checklist.get('peace_protective_order'))}",
        f"✓ Safety Screening Complete: {_yes_no(checklist.get('safety_screening_complete'))}",
        "\nStaff Assessment",
        "-" * 50,
        f"Can represent own needs: {_yes_no(assessment.get('can_represent_self'))}",
        f"No fear of coercion: {_yes_no(assessment.get('no_fear_of_coercion'))}",
        f"No danger to self/others: {_yes_no(assessment.get('no_danger_to_self'))}",
        f"No danger to center: {_yes_no(assessment.get('no_danger_to_center'))}",
    ]

    if intake.staff_notes:
        sections.extend(["\nAdditional Staff Notes", "-" * 50, intake.staff_notes])

    sections.append("")
    sections.append(f"Original Intake Date: {format_date(intake.intake_date)}")
    if intake.intake_person:
        sections.append(f"Original Intake Person: {intake.intake_person}")
    sections.append(f"Entered via CMS: {utcnow().date().isoformat()}")
    return "\n".join(sections)


def generate_opportunity_name(intake) -> str:
    """Opportunity name in the form "CASE# - Last / Last"; last names only without a case number"""
    parts = []
    if intake.case_number:
        parts.extend([intake.case_number, "-"])

    p1_last_name = participant_last_name(intake.participant1 or {})
    if intake.participant2:
        parts.append(f"{p1_last_name} / {participant_last_name(intake.participant2)}")
    else:
        parts.append(p1_last_name)
    return " ".join(parts).strip()


def build_case_payload(intake) -> Dict[str, Any]:
    """Convert a stored PaperIntake to an Insightly Opportunity in the mediation pipeline"""
    custom_fields: List[InsightlyCustomField] = []

    if intake.case_number:
        digits = re.search(r"\d+", intake.case_number)
        if digits:
            custom_fields.append(InsightlyCustomField(
                FIELD_NAME=CASE_CUSTOM_FIELDS["CASE_NUMBER"],
                FIELD_VALUE=int(digits.group(0)),
            ))

    if intake.referral_source:
        custom_fields.append(InsightlyCustomField(
            FIELD_NAME=CASE_CUSTOM_FIELDS["REFERRAL_SOURCE"],
            FIELD_VALUE=intake.referral_source,
        ))

    case_type = DISPUTE_TYPE_TO_CASE_TYPE.get(intake.dispute_type) if intake.dispute_type else None
    if case_type:
        custom_fields.append(InsightlyCustomField(
            FIELD_NAME=CASE_CUSTOM_FIELDS["MEDIATION_CASE_TYPE"],
            FIELD_VALUE=case_type,
        ))

    custom_fields.append(InsightlyCustomField(
        FIELD_NAME=CASE_CUSTOM_FIELDS["SESSION_TYPE"],
        FIELD_VALUE=SESSION_TYPE_MEDIATION,
    ))

    intake_date = format_date(intake.intake_date)
    if intake_date:
        custom_fields.append(InsightlyCustomField(
            FIELD_NAME=CASE_CUSTOM_FIELDS["OPEN_DATE"],
            FIELD_VALUE=intake_date,
        ))
        if intake.is_court_ordered:
            custom_fields.append(InsightlyCustomField(
                FIELD_NAME=CASE_CUSTOM_FIELDS["COURT_REFERRAL_DATE"],
                FIELD_VALUE=intake_date,
            ))

    opportunity = InsightlyOpportunityCreate(
        OPPORTUNITY_NAME=generate_opportunity_name(intake),
        OPPORTUNITY_STATE="Open",
        PIPELINE_ID=settings.insightly.case_pipeline_id,
        STAGE_ID=settings.insightly.case_stage_id,
        OPPORTUNITY_DETAILS=build_case_description(intake),
        CUSTOMFIELDS=custom_fields,
    )
    return opportunity.model_dump(exclude_none=True)

# =============================================================================
# Links and notes
# =============================================================================


def build_lead_to_case_link(lead_id: int, participant_number: int) -> Dict[str, Any]:
    link = InsightlyLinkCreate(
        LINK_OBJECT_NAME="Lead",
        LINK_OBJECT_ID=lead_id,
        DETAILS=f"Participant {participant_number}",
    )
    return link.model_dump(exclude_none=True)


def build_linking_note(intake_id: str, case_number: Optional[str] = None) -> Dict[str, Any]:
    """Note added to an existing Lead when a paper intake is linked to it"""
    lines = [
        "This Lead was linked to a paper intake form entry.",
        "",
        f"Intake ID: {intake_id}",
    ]
    if case_number:
        lines.append(f"Case Number: {case_number}")
    lines.append(f"Linked on: {utcnow().date().isoformat()}")
    note = InsightlyNoteCreate(TITLE="Paper Intake Form Linked", BODY="\n".join(lines))
    return note.model_dump()
