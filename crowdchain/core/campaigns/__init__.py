from .models import Campaign, CampaignFields, Donation
from .store import CampaignStore
from .ledger import DonationLedger
from .browse import CampaignProgress, CampaignTab, DashboardSummary, filter_campaigns, format_ether

__all__ = [
    "Campaign",
    "CampaignFields",
    "Donation",
    "CampaignStore",
    "DonationLedger",
    "CampaignProgress",
    "CampaignTab",
    "DashboardSummary",
    "filter_campaigns",
    "format_ether",
]
