"""
Main API router for v1 endpoints
"""
from fastapi import APIRouter

from mediation_intake.api.v1.endpoints import calendly, inquiries, insightly, paper_intakes, staff

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(paper_intakes.router, tags=["paper-intakes"])
api_router.include_router(insightly.router, tags=["insightly"])
api_router.include_router(inquiries.router, tags=["inquiries"])
api_router.include_router(calendly.router, tags=["calendly"])
api_router.include_router(staff.router, tags=["staff"])
