from typing import Any, Dict, List, Optional

from eth_utils import is_address
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..core.campaigns import Campaign, CampaignProgress, CampaignStore, CampaignTab, DashboardSummary, filter_campaigns
from ..core.errors import PersistenceError
from ..db import get_table_backend

router = APIRouter()


class CampaignView(BaseModel):
    campaign: Campaign
    percent_funded: str = Field(description="Percent of the target collected; may exceed 100")
    days_left: int
    is_active: bool
    is_funded: bool

    @classmethod
    def build(cls, campaign: Campaign) -> "CampaignView":
        progress = CampaignProgress.from_campaign(campaign)
        return cls(
            campaign=campaign,
            percent_funded=f"{progress.percent_funded:.1f}",
            days_left=progress.days_left,
            is_active=progress.is_active,
            is_funded=progress.is_funded,
        )


def get_campaign_store() -> CampaignStore:
    return CampaignStore(get_table_backend())


@router.get("/campaigns", response_model=List[CampaignView])
async def list_campaigns(
    search: str = Query("", description="Case-insensitive text matched against title and description"),
    tab: CampaignTab = Query(CampaignTab.ALL, description="all, active or funded"),
    store: CampaignStore = Depends(get_campaign_store),
) -> List[CampaignView]:
    try:
        campaigns = await store.fetch_all()
    except PersistenceError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return [CampaignView.build(c) for c in filter_campaigns(campaigns, search=search, tab=tab)]


@router.get("/campaigns/{campaign_id}", response_model=CampaignView)
async def get_campaign(
    campaign_id: str,
    store: CampaignStore = Depends(get_campaign_store),
) -> CampaignView:
    try:
        campaign: Optional[Campaign] = await store.get(campaign_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    if campaign is None:
        raise HTTPException(status_code=404, detail=f"Campaign {campaign_id} not found")
    return CampaignView.build(campaign)


@router.get("/accounts/{address}/dashboard")
async def get_dashboard(
    address: str,
    store: CampaignStore = Depends(get_campaign_store),
) -> Dict[str, Any]:
    if not is_address(address):
        raise HTTPException(status_code=400, detail=f"Invalid address: {address}")
    try:
        campaigns = await store.fetch_all()
        donations = await store.donations_by_donor(address)
    except PersistenceError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return DashboardSummary.build(address, campaigns, donations).to_dict()
