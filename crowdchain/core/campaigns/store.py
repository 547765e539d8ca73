"""
Campaign store: the core's only path to the backing store.
"""

import logging
from typing import List, Optional

from crowdchain.core.errors import InvalidRecordError, PersistenceError
from crowdchain.core.wallet.models import SessionView
from crowdchain.db import CAMPAIGNS_TABLE, DONATIONS_TABLE, StoreError, TableBackend, get_table_backend

from .models import Campaign, CampaignFields, Donation


logger = logging.getLogger(__name__)


class CampaignStore:
    """
    Reads and writes campaign and donation records.

    Responsibilities:
    - Fresh campaign snapshots on every fetch
    - Campaign inserts attributed to the session account
    - Donation bookkeeping as a single atomic increment on the backend
    - Validating every row into entities before it leaves the store
    """

    def __init__(
        self,
        backend: Optional[TableBackend] = None,
        session: Optional[SessionView] = None,
    ):
        self.backend = backend or get_table_backend()
        self.session = session
        self.rejected_rows = 0

    def _account(self, explicit: Optional[str]) -> str:
        address = explicit or (self.session.account_address if self.session else None)
        if not address:
            raise PersistenceError("No account available to attribute the record to", operation="attribute")
        return address.lower()

    async def fetch_all(self) -> List[Campaign]:
        """
        Fetch every campaign.

        Rows that fail validation are logged and left out of the snapshot.

        Raises:
            PersistenceError: If the backing store call fails
        """
        try:
            rows = await self.backend.select(CAMPAIGNS_TABLE)
        except StoreError as e:
            raise PersistenceError(f"Failed to fetch campaigns: {e}", operation="fetch_all") from e

        campaigns: List[Campaign] = []
        for row in rows:
            try:
                campaigns.append(Campaign.from_row(row))
            except InvalidRecordError as e:
                self.rejected_rows += 1
                logger.warning(f"Skipping campaign row: {e.message}")
        return campaigns

    async def get(self, campaign_id: str) -> Optional[Campaign]:
        try:
            rows = await self.backend.select(CAMPAIGNS_TABLE, {"id": campaign_id})
        except StoreError as e:
            raise PersistenceError(f"Failed to fetch campaign {campaign_id}: {e}", operation="get") from e
        return Campaign.from_row(rows[0]) if rows else None

    async def create(self, fields: CampaignFields, creator_address: Optional[str] = None) -> Campaign:
        """
        Insert a new campaign with nothing collected and not claimed.

        Raises:
            PersistenceError: If the insert fails or the stored row is invalid
        """
        creator = self._account(creator_address)
        try:
            row = await self.backend.insert(CAMPAIGNS_TABLE, fields.to_row(creator))
        except StoreError as e:
            raise PersistenceError(f"Failed to create campaign: {e}", operation="create") from e

        campaign = Campaign.from_row(row)
        logger.info(f"Created campaign {campaign.id} for {creator}")
        return campaign

    async def record_donation(
        self,
        campaign_id: str,
        amount: int,
        donor_address: Optional[str] = None,
    ) -> int:
        """
        Append a donation and increase the campaign's collected amount.

        The increment is applied by the backend relative to the stored value,
        never computed from a locally cached campaign.

        Returns:
            The campaign's new ``amount_collected``

        Raises:
            PersistenceError: If the write fails
        """
        if amount <= 0:
            raise PersistenceError("Donation amount must be positive", operation="record_donation")
        donor = self._account(donor_address)

        try:
            total = await self.backend.record_donation(str(campaign_id), donor, amount)
        except StoreError as e:
            raise PersistenceError(
                f"Failed to record donation to campaign {campaign_id}: {e}",
                operation="record_donation",
            ) from e

        logger.info(f"Recorded donation of {amount} wei to {campaign_id} from {donor}, total {total}")
        return total

    async def donations_by_donor(self, donor_address: str) -> List[Donation]:
        try:
            rows = await self.backend.select(DONATIONS_TABLE, {"donor_address": donor_address.lower()})
        except StoreError as e:
            raise PersistenceError(f"Failed to fetch donations: {e}", operation="donations_by_donor") from e

        donations: List[Donation] = []
        for row in rows:
            try:
                donations.append(Donation.from_row(row))
            except InvalidRecordError as e:
                self.rejected_rows += 1
                logger.warning(f"Skipping donation row: {e.message}")
        return donations

    async def set_actor(self, address: Optional[str]) -> None:
        try:
            await self.backend.set_actor(address)
        except StoreError as e:
            raise PersistenceError(f"Failed to scope store to {address}: {e}", operation="set_actor") from e
