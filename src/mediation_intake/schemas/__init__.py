"""
Pydantic schemas for request/response validation
"""
from mediation_intake.schemas.base import (
    BaseSchema,
    CamelSchema,
    TimestampSchema,
    IDSchema,
    BaseResponseSchema
)
from mediation_intake.schemas.paper_intake import (
    PaperIntakeCreate,
    PaperIntakeRead,
    PaperIntakeListResponse,
    PaperIntakeStats,
    SkipIntakeRequest,
    DuplicateCheckResult,
    LeadSourceSetupResult,
    validate_paper_intake
)
from mediation_intake.schemas.insightly import (
    InsightlyLead,
    InsightlyLeadCreate,
    InsightlyOpportunityCreate
)
from mediation_intake.schemas.inquiries import (
    InquiryCreate,
    InquiryRead,
    InquiryListResponse,
    InquiryUpdate,
    CalendlySchedulingRequest,
    MondayLinkRequest,
    StaffTaskRead,
    StaffActivityRead
)
from mediation_intake.schemas.calendly import (
    CalendlyAuthorizeResponse,
    CalendlyConnectionStatus,
    CalendlyRefreshResponse
)

__all__ = [
    # Base schemas
    "BaseSchema",
    "CamelSchema",
    "TimestampSchema",
    "IDSchema",
    "BaseResponseSchema",
    # Paper intake schemas
    "PaperIntakeCreate",
    "PaperIntakeRead",
    "PaperIntakeListResponse",
    "PaperIntakeStats",
    "SkipIntakeRequest",
    "DuplicateCheckResult",
    "LeadSourceSetupResult",
    "validate_paper_intake",
    # Insightly schemas
    "InsightlyLead",
    "InsightlyLeadCreate",
    "InsightlyOpportunityCreate",
    # Inquiry schemas
    "InquiryCreate",
    "InquiryRead",
    "InquiryListResponse",
    "InquiryUpdate",
    "CalendlySchedulingRequest",
    "MondayLinkRequest",
    "StaffTaskRead",
    "StaffActivityRead",
    # Calendly schemas
    "CalendlyAuthorizeResponse",
    "CalendlyConnectionStatus",
    "CalendlyRefreshResponse",
]
