"""
Insightly setup endpoints
"""
from fastapi import APIRouter, Depends

from mediation_intake.core.dependencies import get_insightly_client, require_intake_writer
from mediation_intake.core.security import CurrentUser
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.schemas.paper_intake import LeadSourceSetupResult
from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/insightly/lead-sources/ensure", response_model=LeadSourceSetupResult)
async def ensure_lead_sources(
    crm_client: InsightlyClient = Depends(get_insightly_client),
    user: CurrentUser = Depends(require_intake_writer),
):
    """
    Create the paper-intake Lead Sources that Insightly is missing and
    cache every source id for Lead creation.
    """
    logger.info(f"[cyan]Lead source setup requested by[/cyan] {user.display_name}")
    return await crm_client.ensure_lead_sources()
