"""Browsing helpers: funding progress, search and dashboard summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from eth_utils import from_wei

from .models import Campaign, Donation, now_ms


MS_PER_DAY = 24 * 60 * 60 * 1000


class CampaignTab(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    FUNDED = "funded"


@dataclass(frozen=True)
class CampaignProgress:
    """Funding progress of one campaign at a point in time."""

    campaign_id: str
    percent_funded: Decimal
    days_left: int
    is_active: bool
    is_funded: bool

    @classmethod
    def from_campaign(cls, campaign: Campaign, now: Optional[int] = None) -> "CampaignProgress":
        now = now_ms() if now is None else now
        # Over-funded campaigns keep their real percentage
        percent = Decimal(campaign.amount_collected) * 100 / Decimal(campaign.target_amount)
        return cls(
            campaign_id=campaign.id,
            percent_funded=percent,
            days_left=max(0, (campaign.deadline - now) // MS_PER_DAY),
            is_active=campaign.deadline > now,
            is_funded=campaign.amount_collected >= campaign.target_amount,
        )


def filter_campaigns(
    campaigns: Sequence[Campaign],
    search: str = "",
    tab: CampaignTab = CampaignTab.ALL,
    now: Optional[int] = None,
) -> List[Campaign]:
    """Case-insensitive title/description search restricted to a tab."""
    now = now_ms() if now is None else now
    term = (search or "").strip().lower()
    tab = CampaignTab(tab)

    results = []
    for campaign in campaigns:
        if term and term not in campaign.title.lower() and term not in campaign.description.lower():
            continue
        if tab == CampaignTab.ACTIVE and campaign.deadline <= now:
            continue
        if tab == CampaignTab.FUNDED and campaign.amount_collected < campaign.target_amount:
            continue
        results.append(campaign)
    return results


def format_ether(amount_wei: int) -> Decimal:
    return Decimal(str(from_wei(amount_wei, "ether")))


@dataclass
class DashboardSummary:
    """What the dashboard shows for one account."""

    account_address: str
    my_campaigns: List[Campaign] = field(default_factory=list)
    donated_campaigns: List[Campaign] = field(default_factory=list)
    donations: List[Donation] = field(default_factory=list)

    @property
    def total_donated(self) -> int:
        return sum(d.amount for d in self.donations)

    @classmethod
    def build(
        cls,
        account_address: str,
        campaigns: Sequence[Campaign],
        donations: Sequence[Donation],
    ) -> "DashboardSummary":
        account = account_address.lower()
        donated_ids = {d.campaign_id for d in donations if d.donor_address == account}
        return cls(
            account_address=account,
            my_campaigns=[c for c in campaigns if c.creator_address == account],
            donated_campaigns=[c for c in campaigns if c.id in donated_ids],
            donations=[d for d in donations if d.donor_address == account],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account_address,
            "myCampaigns": [c.model_dump() for c in self.my_campaigns],
            "donatedCampaigns": [c.model_dump() for c in self.donated_campaigns],
            "donations": [d.model_dump() for d in self.donations],
            "totalDonatedWei": str(self.total_donated),
            "totalDonatedEth": str(format_ether(self.total_donated)),
        }
