from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from crowdchain.core.campaigns import (
    Campaign,
    CampaignProgress,
    CampaignStore,
    CampaignTab,
    DashboardSummary,
    Donation,
    DonationLedger,
    filter_campaigns,
    format_ether,
)
from crowdchain.core.errors import PersistenceError
from crowdchain.db import CAMPAIGNS_TABLE, DONATIONS_TABLE, InMemoryTableBackend


CREATOR = "0x" + "c1" * 20
DONOR = "0x" + "d0" * 20
OTHER = "0x" + "d1" * 20
NOW = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000


def _session(address):
    return SimpleNamespace(account_address=address)


def _campaign(campaign_id, **overrides):
    data = {
        "id": campaign_id,
        "creator_address": CREATOR,
        "title": f"Campaign {campaign_id}",
        "description": "A description long enough to be a real campaign.",
        "target_amount": 100,
        "amount_collected": 0,
        "deadline": NOW + 10 * DAY_MS,
    }
    data.update(overrides)
    return Campaign(**data)


class TestDonationLedger:

    @pytest.fixture
    def ledger(self):
        backend = InMemoryTableBackend(seed={
            CAMPAIGNS_TABLE: [],
            DONATIONS_TABLE: [
                {"id": "1", "campaign_id": "a", "donor_address": DONOR, "amount": 5},
                {"id": "2", "campaign_id": "a", "donor_address": DONOR, "amount": 7},
                {"id": "3", "campaign_id": "b", "donor_address": OTHER, "amount": 9},
            ],
        })
        return DonationLedger(CampaignStore(backend))

    @pytest.mark.asyncio
    async def test_views_are_subsets_for_the_account(self, ledger):
        campaigns = [_campaign("a"), _campaign("b", creator_address=DONOR)]
        session = _session(DONOR.upper().replace("0X", "0x"))

        await ledger.refresh(campaigns, session)

        assert [c.id for c in ledger.my_campaigns(session)] == ["b"]
        assert [d.id for d in ledger.my_donations(session)] == ["1", "2"]
        assert [c.id for c in ledger.donated_campaigns(session)] == ["a"]
        assert ledger.total_donated(session) == 12

    @pytest.mark.asyncio
    async def test_donations_of_another_account_are_hidden(self, ledger):
        await ledger.refresh([_campaign("a")], _session(DONOR))

        assert ledger.my_donations(_session(OTHER)) == []

    @pytest.mark.asyncio
    async def test_refresh_without_session_empties_views(self, ledger):
        await ledger.refresh([_campaign("a")], _session(DONOR))
        await ledger.refresh([_campaign("a")], None)

        assert ledger.account is None
        assert ledger.my_donations(_session(DONOR)) == []
        assert ledger.my_campaigns(None) == []

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_views(self, ledger):
        session = _session(DONOR)
        await ledger.refresh([_campaign("a")], session)
        ledger.store.donations_by_donor = AsyncMock(side_effect=PersistenceError("timeout"))

        with pytest.raises(PersistenceError):
            await ledger.refresh([_campaign("z", creator_address=DONOR)], session)

        assert ledger.account == DONOR
        assert ledger.my_campaigns(session) == []
        assert [c.id for c in ledger.donated_campaigns(session)] == ["a"]
        assert ledger.total_donated(session) == 12


class TestProgress:

    def test_over_funded_percentage_is_not_capped(self):
        progress = CampaignProgress.from_campaign(_campaign("a", amount_collected=150), now=NOW)

        assert progress.percent_funded == Decimal(150)
        assert progress.is_funded
        assert progress.is_active
        assert progress.days_left == 10

    def test_expired_campaign(self):
        progress = CampaignProgress.from_campaign(_campaign("a", deadline=NOW - DAY_MS), now=NOW)

        assert progress.days_left == 0
        assert not progress.is_active


class TestFilterCampaigns:

    def test_search_matches_title_and_description(self):
        campaigns = [
            _campaign("a", title="Solar Panels"),
            _campaign("b", description="Buying SOLAR lamps for the night market."),
            _campaign("c"),
        ]

        result = filter_campaigns(campaigns, search="solar", now=NOW)

        assert [c.id for c in result] == ["a", "b"]

    def test_tabs(self):
        campaigns = [
            _campaign("active"),
            _campaign("expired", deadline=NOW - 1),
            _campaign("funded", amount_collected=100),
        ]

        assert [c.id for c in filter_campaigns(campaigns, tab=CampaignTab.ACTIVE, now=NOW)] == ["active", "funded"]
        assert [c.id for c in filter_campaigns(campaigns, tab="funded", now=NOW)] == ["funded"]
        assert len(filter_campaigns(campaigns, now=NOW)) == 3


def test_dashboard_summary():
    campaigns = [_campaign("a"), _campaign("b", creator_address=DONOR)]
    donations = [
        Donation(campaign_id="a", donor_address=DONOR, amount=10**17),
        Donation(campaign_id="a", donor_address=OTHER, amount=1),
    ]

    summary = DashboardSummary.build(DONOR, campaigns, donations)
    data = summary.to_dict()

    assert [c.id for c in summary.my_campaigns] == ["b"]
    assert [c.id for c in summary.donated_campaigns] == ["a"]
    assert summary.total_donated == 10**17
    assert data["totalDonatedWei"] == str(10**17)
    assert Decimal(data["totalDonatedEth"]) == Decimal("0.1")


def test_format_ether():
    assert format_ether(25 * 10**16) == Decimal("0.25")
