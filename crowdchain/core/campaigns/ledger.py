"""
Per-account views derived from the campaign snapshot and the donation table.
"""

import logging
from typing import List, Optional, Sequence, Union

from crowdchain.core.wallet.models import Session, SessionView

from .models import Campaign, Donation
from .store import CampaignStore


logger = logging.getLogger(__name__)


def _same_address(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class DonationLedger:
    """
    Read-only derived views for the connected account.

    ``refresh`` recomputes everything; callers run it whenever the campaign
    snapshot or the session account changes.
    """

    def __init__(self, store: CampaignStore):
        self.store = store
        self._campaigns: List[Campaign] = []
        self._donations: List[Donation] = []
        self._account: Optional[str] = None

    @property
    def account(self) -> Optional[str]:
        return self._account

    def my_campaigns(self, session: Union[Session, SessionView, None]) -> List[Campaign]:
        account = session.account_address if session is not None else None
        if not account:
            return []
        return [c for c in self._campaigns if _same_address(c.creator_address, account)]

    def my_donations(self, session: Union[Session, SessionView, None]) -> List[Donation]:
        account = session.account_address if session is not None else None
        if not account or not _same_address(account, self._account):
            return []
        return [d for d in self._donations if _same_address(d.donor_address, account)]

    def donated_campaigns(self, session: Union[Session, SessionView, None]) -> List[Campaign]:
        ids = {d.campaign_id for d in self.my_donations(session)}
        return [c for c in self._campaigns if c.id in ids]

    def total_donated(self, session: Union[Session, SessionView, None]) -> int:
        return sum(d.amount for d in self.my_donations(session))

    async def refresh(
        self,
        campaigns: Sequence[Campaign],
        session: Union[Session, SessionView, None],
    ) -> None:
        """
        Recompute views from a new snapshot and the session's account.

        On failure the previous views are kept unchanged.

        Raises:
            PersistenceError: If the donation query fails
        """
        account = session.account_address if session is not None else None
        donations = await self.store.donations_by_donor(account) if account else []

        # Nothing is replaced until every query has succeeded
        self._campaigns = list(campaigns)
        self._donations = donations
        self._account = account.lower() if account else None
        if account:
            logger.debug(f"Ledger refreshed for {account}: {len(donations)} donation(s)")

    def clear(self) -> None:
        self._campaigns = []
        self._donations = []
        self._account = None
