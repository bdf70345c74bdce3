"""
Inquiry to Monday.com item mapping
"""
import json
from typing import Any, Dict, Optional

from mediation_intake.core.config import settings
from mediation_intake.core.service_areas import (
    FORM_TYPE_LABELS,
    SERVICE_AREA_LABELS,
    ServiceArea,
)
from mediation_intake.utils.helpers import utcnow


def truncate(text: Optional[str], max_length: int = 80) -> str:
    if not text:
        return ""
    text = " ".join(text.split())
    if len(text) <= max_length:
        return text
    return f"{text[:max_length].strip()}…"


def _first(form_data: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = form_data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def primary_contact(form_data: Dict[str, Any]) -> Dict[str, str]:
    """Best-effort contact block; the forms name their fields differently"""
    name = " ".join(
        part for part in (_first(form_data, "firstName"), _first(form_data, "lastName")) if part
    ) or _first(form_data, "name", "referrerName", "contactName", "participantName")
    return {
        "name": name,
        "email": _first(form_data, "email", "referrerEmail", "contactEmail"),
        "phone": _first(form_data, "phone", "referrerPhone", "contactPhone"),
    }


def summary_text(form_data: Dict[str, Any]) -> str:
    return _first(
        form_data,
        "conflictOverview",
        "incidentDescription",
        "description",
        "message",
        "goals",
    )


def build_item_name(inquiry) -> str:
    form_data = inquiry.form_data or {}
    label = SERVICE_AREA_LABELS.get(ServiceArea(inquiry.service_area), inquiry.service_area)
    contact = primary_contact(form_data)
    who = contact["name"] or _first(form_data, "referrerOrg", "organization", "organizationName") or "Unknown"
    name = f"{label} – {who}"
    summary = truncate(summary_text(form_data))
    return f"{name} – {summary}" if summary else name


def build_column_values(inquiry) -> Dict[str, Any]:
    """Column values keyed by the configured column ids"""
    columns = settings.monday.columns
    form_data = inquiry.form_data or {}
    contact = primary_contact(form_data)
    contact_line = " • ".join(
        part for part in (
            contact["name"] or "Unknown contact",
            f"Email: {contact['email']}" if contact["email"] else "",
            f"Phone: {contact['phone']}" if contact["phone"] else "",
        ) if part
    )
    submitted = (inquiry.created_at or utcnow()).date().isoformat()

    values: Dict[str, Any] = {
        "status": {"label": "New"},
        "form_type": {"labels": [FORM_TYPE_LABELS.get(inquiry.form_type, inquiry.form_type)]},
        "submission_date": {"date": submitted},
        "primary_contact": contact_line,
        "service_area": SERVICE_AREA_LABELS.get(ServiceArea(inquiry.service_area), inquiry.service_area),
        "description": summary_text(form_data) or "(no description provided)",
        "raw_payload": json.dumps(form_data, default=str),
    }
    if settings.monday.default_assignee_id:
        values["assignee"] = {
            "personsAndTeams": [{"id": settings.monday.default_assignee_id, "kind": "person"}]
        }

    return {columns[slug]: value for slug, value in values.items() if slug in columns}


def build_monday_item(inquiry) -> Dict[str, Any]:
    group_id = settings.monday.groups.get(inquiry.service_area)
    return {
        "group_id": group_id,
        "item_name": build_item_name(inquiry),
        "column_values": build_column_values(inquiry),
    }
