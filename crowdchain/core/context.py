"""
Funding context: the orchestration facade over the wallet session, the
network guard, the transaction coordinator and the campaign store.

One FundingContext serves one user session. Every public operation catches
errors at its boundary, reports them through the notification sink, and
returns a boolean or ActionResult instead of raising.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from crowdchain.core.campaigns import Campaign, CampaignFields, CampaignStore, Donation, DonationLedger
from crowdchain.core.errors import (
    ConnectionError,
    InvalidInputError,
    NetworkSwitchError,
    PersistenceError,
)
from crowdchain.core.execution import ActionResult, TransactionCoordinator, TransactionType
from crowdchain.core.notifications import (
    LoggingNotificationSink,
    Notification,
    NotificationKind,
    NotificationSink,
)
from crowdchain.core.wallet import (
    ConnectionCache,
    NetworkGuard,
    SessionChange,
    SessionChangeKind,
    SessionView,
    WalletProvider,
    WalletSessionManager,
)
from crowdchain.db import TableBackend


logger = logging.getLogger(__name__)


class FundingContext:
    """
    Wires the core together for one user.

    Control flow:
        connect -> network check -> fetch campaigns -> create/donate
        -> persist -> recompute the ledger
    """

    def __init__(
        self,
        provider: Optional[WalletProvider],
        backend: Optional[TableBackend] = None,
        notifications: Optional[NotificationSink] = None,
        connection_cache: Optional[ConnectionCache] = None,
        required_chain_id: Optional[int] = None,
        signature_timeout: Optional[float] = None,
        receipt_timeout: Optional[float] = None,
        receipt_poll_interval: Optional[float] = None,
    ):
        self.notifications = notifications or LoggingNotificationSink()
        self.connection_cache = connection_cache
        self.sessions = WalletSessionManager(provider, connection_cache=connection_cache)
        self.guard = NetworkGuard(provider, required_chain_id=required_chain_id)
        self.store = CampaignStore(backend, session=self.sessions.view)
        self.ledger = DonationLedger(self.store)
        self.coordinator = TransactionCoordinator(
            self.sessions.view,
            self.guard,
            self.store,
            notifications=self.notifications,
            signature_timeout=signature_timeout,
            receipt_timeout=receipt_timeout,
            receipt_poll_interval=receipt_poll_interval,
        )

        self.campaigns: List[Campaign] = []
        self.loading_campaigns = False
        self.connecting = False
        self._unsubscribe = self.sessions.subscribe(self._on_session_change)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def session(self) -> SessionView:
        return self.sessions.view

    @property
    def account(self) -> Optional[str]:
        return self.session.account_address

    @property
    def connected(self) -> bool:
        return self.session.connected

    @property
    def is_correct_network(self) -> bool:
        return self.guard.is_correct_network(self.session)

    @property
    def my_campaigns(self) -> List[Campaign]:
        return self.ledger.my_campaigns(self.session)

    @property
    def my_donations(self) -> List[Donation]:
        return self.ledger.my_donations(self.session)

    def _notify(self, kind: NotificationKind, title: str, message: str = "", category: Optional[str] = None) -> None:
        self.notifications.emit(Notification(kind=kind, title=title, message=message, error_category=category))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def startup(self) -> None:
        """Reconnect when the last session ended connected, otherwise load the public catalog."""
        if self.connection_cache is not None and self.connection_cache.has_cached_connection():
            logger.info("Cached wallet connection found, reconnecting")
            if await self.connect():
                return
        await self.fetch_campaigns()

    async def connect(self) -> bool:
        self.connecting = True
        self._notify(NotificationKind.CONNECTING, "Connecting", "Please approve the connection in your wallet.")
        try:
            await self.sessions.connect()
        except ConnectionError as e:
            self._notify(
                NotificationKind.ERROR,
                "Connection Failed",
                e.message or "Could not connect to wallet. Please try again.",
                e.category.value,
            )
            return False
        finally:
            self.connecting = False
        return True

    async def disconnect(self) -> None:
        await self.sessions.disconnect()

    async def switch_network(self) -> bool:
        try:
            await self.guard.switch_network()
        except NetworkSwitchError as e:
            self._notify(NotificationKind.ERROR, "Network Switch Failed", e.message, e.category.value)
            return False
        return True

    async def fetch_campaigns(self) -> bool:
        """Replace the campaign snapshot and recompute the ledger."""
        self.loading_campaigns = True
        try:
            campaigns = await self.store.fetch_all()
            await self.ledger.refresh(campaigns, self.session)
        except PersistenceError as e:
            logger.warning(f"Fetching campaigns failed: {e.message}")
            self._notify(
                NotificationKind.ERROR,
                "Error",
                "Failed to fetch campaigns. Please try again later.",
                e.category.value,
            )
            return False
        finally:
            self.loading_campaigns = False

        self.campaigns = campaigns
        return True

    async def create_campaign(self, fields: Union[CampaignFields, Dict[str, Any]]) -> ActionResult:
        if not isinstance(fields, CampaignFields):
            try:
                fields = CampaignFields.model_validate(fields)
            except ValidationError as e:
                error = InvalidInputError(
                    "; ".join(err["msg"] for err in e.errors()),
                    field_name=str(e.errors()[0]["loc"][0]) if e.errors() else None,
                )
                self._notify(NotificationKind.ERROR, "Invalid campaign", error.message, error.category.value)
                return ActionResult(success=False, action=TransactionType.CREATE_CAMPAIGN, error=error)

        result = await self.coordinator.create_campaign(fields)
        if result:
            await self.fetch_campaigns()
        return result

    async def donate(self, campaign_id: str, amount_wei: int) -> ActionResult:
        result = await self.coordinator.donate(campaign_id, amount_wei)
        if result:
            await self.fetch_campaigns()
        return result

    async def close(self) -> None:
        await self.sessions.disconnect()
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Session changes
    # ------------------------------------------------------------------

    async def _on_session_change(self, change: SessionChange) -> None:
        if change.kind == SessionChangeKind.CONNECTED:
            self._notify(NotificationKind.CONNECTED, "Wallet connected", "Your wallet has been connected successfully.")
            self._warn_if_wrong_network()
            await self._scope_actor(change.account_address)
            await self.fetch_campaigns()

        elif change.kind == SessionChangeKind.ACCOUNT_CHANGED:
            await self._scope_actor(change.account_address)
            await self.fetch_campaigns()

        elif change.kind == SessionChangeKind.CHAIN_CHANGED:
            self._warn_if_wrong_network()
            await self.fetch_campaigns()

        elif change.kind == SessionChangeKind.DISCONNECTED:
            await self.ledger.refresh(self.campaigns, None)
            await self._scope_actor(None)
            self._notify(NotificationKind.DISCONNECTED, "Disconnected", "Your wallet has been disconnected.")

    def _warn_if_wrong_network(self) -> None:
        if not self.is_correct_network:
            self._notify(
                NotificationKind.WRONG_NETWORK,
                "Wrong Network",
                f"Please switch to the {self.guard.required_chain_name} network.",
                "wrong_network",
            )

    async def _scope_actor(self, address: Optional[str]) -> None:
        try:
            await self.store.set_actor(address)
        except PersistenceError as e:
            logger.warning(f"Could not scope store to {address}: {e.message}")
            self._notify(NotificationKind.ERROR, "Error", e.message, e.category.value)
