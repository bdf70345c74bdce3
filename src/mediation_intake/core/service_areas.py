"""
Service areas and the website forms that feed them
"""
from enum import Enum
from typing import Dict

from mediation_intake.utils.exceptions import IntakeValidationError


class ServiceArea(str, Enum):
    MEDIATION = "mediation"
    FACILITATION = "facilitation"
    RESTORATIVE_PRACTICES = "restorativePractices"


FORM_TO_SERVICE_AREA: Dict[str, ServiceArea] = {
    "mediation-self-referral": ServiceArea.MEDIATION,
    "restorative-program-referral": ServiceArea.RESTORATIVE_PRACTICES,
    "group-facilitation-inquiry": ServiceArea.FACILITATION,
    # Training requests are handled by the facilitation team
    "community-education-training-request": ServiceArea.FACILITATION,
}

SERVICE_AREA_LABELS: Dict[ServiceArea, str] = {
    ServiceArea.MEDIATION: "Mediation",
    ServiceArea.FACILITATION: "Facilitation",
    ServiceArea.RESTORATIVE_PRACTICES: "Restorative Practices",
}

FORM_TYPE_LABELS: Dict[str, str] = {
    "mediation-self-referral": "Mediation Referral",
    "restorative-program-referral": "Restorative Program",
    "group-facilitation-inquiry": "Facilitation Inquiry",
    "community-education-training-request": "Training Request",
}


def service_area_for_form(form_type: str) -> ServiceArea:
    """
    Raises:
        IntakeValidationError: Unknown form type
    """
    try:
        return FORM_TO_SERVICE_AREA[form_type]
    except KeyError:
        raise IntakeValidationError(
            {"form": [{"field": "formType", "message": f"Unknown form type '{form_type}'"}]}
        )
