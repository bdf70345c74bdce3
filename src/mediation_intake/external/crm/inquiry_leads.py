"""
Insightly Lead payloads for website inquiries.

Only the mediation self-referral and the restorative program referral
forms become Leads; the other forms are handled on the Monday board.
"""
import re
from typing import Any, Callable, Dict, List, Optional

from mediation_intake.core.config import settings
from mediation_intake.schemas.insightly import InsightlyLeadCreate, InsightlyTag
from mediation_intake.utils.helpers import split_full_name

RESTORATIVE_ORG_LABELS = {
    "school": "School / District",
    "juvenile-services": "Juvenile Services",
    "community-organization": "Community Organization",
    "court-legal": "Court / Legal System",
    "self-family": "Self / Family",
    "other": "Other",
}

RESTORATIVE_SERVICE_LABELS = {
    "restorative-reflection": "Restorative Reflection",
    "restorative-dialogue": "Restorative Dialogue",
    "restorative-circle": "Restorative Circle",
    "reentry": "Re-entry Support",
    "conflict-mediation": "Conflict Mediation",
    "not-sure": "Not Sure",
}

SECTION_RULE = "-" * 66


def _text(values: Dict[str, Any], key: str) -> Optional[str]:
    value = values.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    value = str(value).strip()
    return value or None


def sanitize_tag_name(name: str) -> str:
    """
    Example:
        >>> sanitize_tag_name("Referral Org: School / District")
        'Referral_Org_School_District'
    """
    cleaned = re.sub(r"_+", "_", re.sub(r"[^a-zA-Z0-9_-]", "_", name))
    return cleaned.strip("_")


def _tags(*names: Optional[str]) -> List[InsightlyTag]:
    return [InsightlyTag(TAG_NAME=sanitize_tag_name(name)) for name in names if name]


def description_block(title: str, body: Optional[str]) -> str:
    if not body:
        return ""
    return f"{title}\n{SECTION_RULE}\n{body}\n"


def _join_description(lines: List[Optional[str]]) -> str:
    return "\n".join(line for line in lines if line)


def _base_lead(**fields) -> Dict[str, Any]:
    config = settings.insightly
    lead = InsightlyLeadCreate(
        LEAD_STATUS_ID=config.lead_status_id,
        ADDRESS_COUNTRY=config.default_country,
        **fields,
    )
    return lead.model_dump(exclude_none=True)


def build_self_referral_lead_payload(values: Dict[str, Any]) -> Dict[str, Any]:
    """Lead for a mediation self-referral submitted on the website"""
    referral_source = _text(values, "referralSource")
    court_ordered = _text(values, "isCourtOrdered")

    description = _join_description([
        "Source: Mediation Self-Referral (Website)",
        "",
        description_block("What brings you to seek mediation right now?", _text(values, "conflictOverview")),
        description_block("Are there accessibility needs or notes for staff?", _text(values, "accessibilityNeeds")),
        description_block("Other details", _text(values, "additionalInfo")),
        f"Preferred contact method: {values['preferredContactMethod']}" if _text(values, "preferredContactMethod") else None,
        f"Referral source: {referral_source}" if referral_source else None,
        f"Text OK: {values['allowText']}" if _text(values, "allowText") else None,
        f"Voicemail OK: {values['allowVoicemail']}" if _text(values, "allowVoicemail") else None,
        "",
        "(Submitted via mcrchoward.org self-referral form)",
    ])

    return _base_lead(
        LEAD_SOURCE_ID=settings.insightly.self_referral_lead_source_id,
        FIRST_NAME=_text(values, "firstName"),
        LAST_NAME=_text(values, "lastName") or "Unknown",
        EMAIL=_text(values, "email"),
        PHONE=_text(values, "phone"),
        ADDRESS_STREET=_text(values, "streetAddress"),
        ADDRESS_CITY=_text(values, "city"),
        ADDRESS_STATE=_text(values, "state"),
        ADDRESS_POSTCODE=_text(values, "zipCode"),
        LEAD_DESCRIPTION=description,
        TAGS=_tags(
            "MCRC",
            "Mediation",
            "Self Referral",
            f"Referral: {referral_source}" if referral_source else None,
            f"Court Ordered: {court_ordered}" if court_ordered else None,
        ),
    )


def build_restorative_referral_lead_payload(values: Dict[str, Any]) -> Dict[str, Any]:
    """Lead for the referrer of a restorative program referral"""
    referrer = split_full_name(_text(values, "referrerName"))
    first_name = referrer["first_name"] or None
    last_name = referrer["last_name"] or first_name or "Unknown"

    org = _text(values, "referrerOrg")
    organization = RESTORATIVE_ORG_LABELS.get(org, org) if org else None
    service = _text(values, "serviceRequested")
    service_label = RESTORATIVE_SERVICE_LABELS.get(service, service) if service else None

    description = _join_description([
        "Source: Restorative Program Referral (Website)",
        "",
        description_block("Brief description of the situation / harm", _text(values, "incidentDescription")),
        description_block("Reason for referral", _text(values, "reasonReferral")),
        description_block("Other parties involved", _text(values, "otherParties")),
        description_block("Safety or confidentiality considerations", _text(values, "safetyConcerns")),
        description_block("Current discipline / school / court actions", _text(values, "currentDiscipline")),
        description_block("Additional context for staff", _text(values, "additionalNotes")),
        "",
        f"Participant: {values['participantName']}" if _text(values, "participantName") else None,
        f"School/Program: {values['participantSchool']}" if _text(values, "participantSchool") else None,
        (
            f"Best time to contact participant/family: {values['participantBestTime']}"
            if _text(values, "participantBestTime") else None
        ),
        f"Requested service: {service_label}" if service_label else None,
        f"Urgency: {values['urgency']}" if _text(values, "urgency") else None,
        "",
        "(Submitted via mcrchoward.org restorative program referral form)",
    ])

    return _base_lead(
        LEAD_SOURCE_ID=settings.insightly.restorative_referral_lead_source_id,
        FIRST_NAME=first_name,
        LAST_NAME=last_name,
        EMAIL=_text(values, "referrerEmail"),
        PHONE=_text(values, "referrerPhone"),
        TITLE=_text(values, "referrerRole"),
        ORGANIZATION_NAME=organization,
        LEAD_DESCRIPTION=description,
        TAGS=_tags(
            "MCRC",
            "Restorative Program",
            "Partner Referral",
            f"Referral Org: {organization}" if organization else None,
            f"Service: {service_label}" if service_label else None,
        ),
    )


INQUIRY_LEAD_BUILDERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "mediation-self-referral": build_self_referral_lead_payload,
    "restorative-program-referral": build_restorative_referral_lead_payload,
}


def validate_lead_payload(payload: Dict[str, Any]) -> None:
    """
    Raises:
        ValueError: Lead without a last name, lead source or contact method
    """
    errors = []
    if not (payload.get("LAST_NAME") or "").strip():
        errors.append("LAST_NAME is required")
    if not payload.get("LEAD_SOURCE_ID"):
        errors.append("LEAD_SOURCE_ID is recommended for proper lead tracking")
    if not (payload.get("EMAIL") or payload.get("PHONE") or payload.get("MOBILE")):
        errors.append("At least one contact method (EMAIL, PHONE, or MOBILE) is recommended")
    if errors:
        raise ValueError("; ".join(errors))


def lead_match_participant(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Participant-shaped view of a Lead payload for duplicate matching"""
    return {
        "first_name": payload.get("FIRST_NAME"),
        "last_name": payload.get("LAST_NAME"),
        "name": " ".join(part for part in (payload.get("FIRST_NAME"), payload.get("LAST_NAME")) if part),
        "email": payload.get("EMAIL"),
        "phone": payload.get("PHONE"),
    }
