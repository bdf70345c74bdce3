"""
Database models module
"""
from mediation_intake.database.models.base import Base
from mediation_intake.database.models.database import (  # Import all models here
    PaperIntake,
    Inquiry,
    IntegrationToken,
    StaffTask,
    StaffActivity,
)

__all__ = ["Base", "PaperIntake", "Inquiry", "IntegrationToken", "StaffTask", "StaffActivity"]
