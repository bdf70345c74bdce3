"""
Insightly specific schemas
"""
from typing import Optional, List, Any, Literal
from mediation_intake.schemas.base import BaseSchema


class InsightlyTag(BaseSchema):
    """Tag structure for Insightly"""
    TAG_NAME: str


class InsightlyCustomField(BaseSchema):
    FIELD_NAME: str
    FIELD_VALUE: Any


class InsightlyLeadCreate(BaseSchema):
    """Model for creating a Lead in Insightly"""
    FIRST_NAME: Optional[str] = None
    LAST_NAME: str
    EMAIL: Optional[str] = None
    PHONE: Optional[str] = None
    MOBILE: Optional[str] = None  # Home phone from the paper form
    TITLE: Optional[str] = None
    ORGANIZATION_NAME: Optional[str] = None
    ADDRESS_STREET: Optional[str] = None
    ADDRESS_CITY: Optional[str] = None
    ADDRESS_STATE: Optional[str] = None
    ADDRESS_POSTCODE: Optional[str] = None
    ADDRESS_COUNTRY: Optional[str] = None
    LEAD_STATUS_ID: Optional[int] = None
    LEAD_SOURCE_ID: Optional[int] = None
    LEAD_DESCRIPTION: str
    TAGS: List[InsightlyTag] = []


class InsightlyOpportunityCreate(BaseSchema):
    """Model for creating a Case (Opportunity) in Insightly"""
    OPPORTUNITY_NAME: str
    OPPORTUNITY_STATE: str = "Open"
    PIPELINE_ID: int
    STAGE_ID: int
    OPPORTUNITY_DETAILS: Optional[str] = None
    CUSTOMFIELDS: List[InsightlyCustomField] = []


class InsightlyLinkCreate(BaseSchema):
    """Link between a Case and one of its participants' Leads"""
    LINK_OBJECT_NAME: Literal["Lead", "Contact", "Organisation"] = "Lead"
    LINK_OBJECT_ID: int
    DETAILS: Optional[str] = None


class InsightlyNoteCreate(BaseSchema):
    TITLE: str
    BODY: str


class InsightlyLead(BaseSchema):
    """Lead as returned by GET /Leads"""
    class Config:
        extra = "allow"

    LEAD_ID: int
    FIRST_NAME: Optional[str] = None
    LAST_NAME: Optional[str] = None
    EMAIL: Optional[str] = None
    PHONE: Optional[str] = None
    MOBILE: Optional[str] = None
    LEAD_STATUS_ID: Optional[int] = None
    DATE_CREATED_UTC: Optional[str] = None
    TAGS: Optional[List[InsightlyTag]] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.FIRST_NAME, self.LAST_NAME) if part)


class InsightlyLeadSource(BaseSchema):
    class Config:
        extra = "allow"

    LEAD_SOURCE_ID: int
    LEAD_SOURCE: str
    DEFAULT_VALUE: bool = False
    FIELD_ORDER: Optional[int] = None
