"""
Transaction coordinator for campaign actions.

Handles the full lifecycle of a create or donate action:
- Precondition checks (connected session, required chain) before anything is built
- Signature request bounded by a timeout
- Single-confirmation receipt wait
- Bookkeeping write once the transfer is confirmed
- Distinct reporting when the transfer succeeded but the write did not
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from crowdchain.config import settings
from crowdchain.core.campaigns.models import CampaignFields
from crowdchain.core.campaigns.store import CampaignStore
from crowdchain.core.errors import (
    ConnectionError,
    CrowdchainError,
    ErrorCategory,
    InvalidInputError,
    PersistenceAfterTransferError,
    PersistenceError,
    TransactionRejectedError,
    TransactionTimeoutError,
)
from crowdchain.core.notifications import Notification, NotificationKind, NotificationSink
from crowdchain.core.wallet.models import SessionView
from crowdchain.core.wallet.network_guard import NetworkGuard
from crowdchain.core.wallet.provider import ProviderRpcError

from .models import (
    ActionResult,
    PreparedTransaction,
    ReconciliationEntry,
    TransactionResult,
    TransactionStatus,
    TransactionType,
)
from .tx_builder import TransactionBuilder


logger = logging.getLogger(__name__)


def _parse_quantity(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(str(value), 16) if str(value).startswith("0x") else int(value)


class TransactionCoordinator:
    """
    Executes campaign actions through the session signer.

    The transfer and the bookkeeping write are not atomic. A failed write
    after a confirmed transfer is reported as PersistenceAfterTransferError
    and kept in ``reconciliation_log``; it is never retried here.
    """

    def __init__(
        self,
        session: SessionView,
        guard: NetworkGuard,
        store: CampaignStore,
        notifications: Optional[NotificationSink] = None,
        signature_timeout: Optional[float] = None,
        receipt_timeout: Optional[float] = None,
        receipt_poll_interval: Optional[float] = None,
    ):
        self.session = session
        self.guard = guard
        self.store = store
        self.notifications = notifications
        self.signature_timeout = signature_timeout or settings.signature_timeout_seconds
        self.receipt_timeout = receipt_timeout or settings.receipt_timeout_seconds
        self.receipt_poll_interval = receipt_poll_interval or settings.receipt_poll_interval_seconds
        self.reconciliation_log: List[ReconciliationEntry] = []

    def _notify(self, kind: NotificationKind, title: str, message: str = "") -> None:
        if self.notifications is not None:
            self.notifications.emit(Notification(kind=kind, title=title, message=message))

    def _notify_error(self, title: str, error: CrowdchainError) -> None:
        if self.notifications is None:
            return
        kind = NotificationKind.WRONG_NETWORK if error.category == ErrorCategory.WRONG_NETWORK else NotificationKind.ERROR
        self.notifications.emit(Notification(
            kind=kind,
            title=title,
            message=error.message,
            error_category=error.category.value,
        ))

    def _check_preconditions(self) -> None:
        """
        Raises:
            ConnectionError: If no wallet session is connected
            WrongNetworkError: If the session is not on the required chain
        """
        if not self.session.connected:
            raise ConnectionError("Please connect your wallet first.")
        self.guard.require_correct_network(self.session)

    async def create_campaign(self, fields: CampaignFields) -> ActionResult:
        """
        Ask the user to sign an acknowledgment, then store the campaign.

        Returns:
            ActionResult, truthy when the campaign was stored
        """
        result = ActionResult(success=False, action=TransactionType.CREATE_CAMPAIGN)

        try:
            self._check_preconditions()
            tx = TransactionBuilder.build_create_acknowledgment(
                chain_id=self.session.chain_id,
                creator_address=self.session.account_address,
                title=fields.title,
            )
            result.transaction = TransactionResult(
                tx_id=tx.tx_id,
                tx_type=tx.tx_type,
                chain_id=tx.chain_id,
            )
            self._notify(
                NotificationKind.TRANSACTION_PENDING,
                "Creating Campaign",
                "Please confirm the transaction in your wallet.",
            )
            await self._execute(tx, result.transaction)
            result.record = await self._persist(
                result.transaction,
                self.store.create(fields, creator_address=tx.from_address),
                account_address=tx.from_address,
                amount=0,
            )
        except CrowdchainError as e:
            result.error = e
            self._notify_error("Failed to create campaign", e)
            return result
        except Exception as e:
            logger.exception("Unexpected error while creating campaign")
            result.error = CrowdchainError(f"Failed to create campaign: {e}")
            self._notify_error("Failed to create campaign", result.error)
            return result

        result.success = True
        self._notify(NotificationKind.SUCCESS, "Success!", "Your campaign has been created successfully.")
        return result

    async def donate(self, campaign_id: str, amount_wei: int) -> ActionResult:
        """
        Transfer ``amount_wei`` to the campaign creator, then record the donation.

        Returns:
            ActionResult, truthy when the transfer confirmed and the donation was recorded
        """
        result = ActionResult(success=False, action=TransactionType.DONATION)

        try:
            self._check_preconditions()
            if isinstance(amount_wei, bool) or not isinstance(amount_wei, int) or amount_wei <= 0:
                raise InvalidInputError("Donation amount must be a positive number of wei", field_name="amount")

            campaign = await self.store.get(campaign_id)
            if campaign is None:
                raise InvalidInputError(f"Campaign {campaign_id} not found", field_name="campaign_id")

            # The lookup suspended; the wallet may have switched chains meanwhile
            self._check_preconditions()

            tx = TransactionBuilder.build_donation(
                chain_id=self.session.chain_id,
                donor_address=self.session.account_address,
                recipient_address=campaign.creator_address,
                campaign_id=campaign.id,
                amount_wei=amount_wei,
            )
            result.transaction = TransactionResult(
                tx_id=tx.tx_id,
                tx_type=tx.tx_type,
                chain_id=tx.chain_id,
                value=tx.value,
            )
            self._notify(
                NotificationKind.TRANSACTION_PENDING,
                "Processing Donation",
                "Please confirm the transaction in your wallet.",
            )
            await self._execute(tx, result.transaction)
            result.record = await self._persist(
                result.transaction,
                self.store.record_donation(campaign.id, amount_wei, donor_address=tx.from_address),
                account_address=tx.from_address,
                amount=amount_wei,
                campaign_id=campaign.id,
            )
        except CrowdchainError as e:
            result.error = e
            self._notify_error("Failed to process donation", e)
            return result
        except Exception as e:
            logger.exception("Unexpected error while donating")
            result.error = CrowdchainError(f"Failed to process donation: {e}")
            self._notify_error("Failed to process donation", result.error)
            return result

        result.success = True
        self._notify(NotificationKind.SUCCESS, "Success!", f"You have donated {amount_wei} wei to this campaign.")
        return result

    async def _execute(self, tx: PreparedTransaction, result: TransactionResult) -> None:
        """
        Sign, submit and wait for one confirmation.

        Raises:
            TransactionRejectedError: If the user declines, the wallet errors, or the transfer reverts
            TransactionTimeoutError: If the signature or receipt wait exceeds its bound
        """
        signer = self.session.signer
        if signer is None:
            raise ConnectionError("Wallet session has no signer")

        try:
            tx_hash = await asyncio.wait_for(
                signer.send_transaction(tx.to_dict()),
                timeout=self.signature_timeout,
            )
        except asyncio.TimeoutError as e:
            result.status = TransactionStatus.TIMEOUT
            result.error = "signature timeout"
            raise TransactionTimeoutError(
                "No response from the wallet. Check for a pending confirmation.",
                stage="signature",
            ) from e
        except ProviderRpcError as e:
            result.status = TransactionStatus.REJECTED
            result.error = e.message
            logger.info(f"Transaction {tx.tx_id} rejected: {e.message} (code {e.code})")
            raise TransactionRejectedError(e.message or "Transaction was rejected", code=e.code) from e

        result.tx_hash = tx_hash
        result.status = TransactionStatus.SUBMITTED
        result.submitted_at = datetime.now(timezone.utc)
        logger.info(f"Transaction {tx.tx_id} submitted: {tx_hash}")

        try:
            receipt = await asyncio.wait_for(
                signer.wait_for_receipt(tx_hash, poll_interval=self.receipt_poll_interval),
                timeout=self.receipt_timeout,
            )
        except asyncio.TimeoutError as e:
            result.status = TransactionStatus.TIMEOUT
            result.error = "receipt timeout"
            self._record_unconfirmed(tx, result)
            raise TransactionTimeoutError(
                f"Transaction {tx_hash} was not confirmed in time",
                stage="receipt",
                tx_hash=tx_hash,
            ) from e
        except ProviderRpcError as e:
            # Fate unknown: the transfer may still be mined
            result.status = TransactionStatus.TIMEOUT
            result.error = e.message
            self._record_unconfirmed(tx, result)
            raise TransactionTimeoutError(
                f"Could not confirm transaction {tx_hash}: {e.message}",
                stage="receipt",
                tx_hash=tx_hash,
            ) from e

        self._apply_receipt(result, receipt)
        if result.status == TransactionStatus.REVERTED:
            raise TransactionRejectedError("Transaction reverted", tx_hash=tx_hash)

    def _apply_receipt(self, result: TransactionResult, receipt: Dict[str, Any]) -> None:
        status = _parse_quantity(receipt.get("status"))
        result.block_number = _parse_quantity(receipt.get("blockNumber"))
        result.gas_used = _parse_quantity(receipt.get("gasUsed"))
        result.confirmed_at = datetime.now(timezone.utc)
        result.status = TransactionStatus.REVERTED if status == 0 else TransactionStatus.CONFIRMED
        logger.info(f"Transaction {result.tx_hash} {result.status.value} in block {result.block_number}")

    def _reconcile(
        self,
        transaction: TransactionResult,
        account_address: str,
        amount: int,
        campaign_id: Optional[str],
        reason: str,
    ) -> ReconciliationEntry:
        entry = ReconciliationEntry(
            tx_hash=transaction.tx_hash,
            action=transaction.tx_type,
            account_address=account_address,
            amount=amount,
            campaign_id=campaign_id,
            reason=reason,
        )
        self.reconciliation_log.append(entry)
        return entry

    def _record_unconfirmed(self, tx: PreparedTransaction, result: TransactionResult) -> None:
        """A broadcast transfer whose receipt never arrived may still be mined without a record."""
        reason = f"unconfirmed: {result.error}"
        self._reconcile(result, tx.from_address, tx.value, tx.campaign_id, reason)
        logger.error(
            f"Transfer {result.tx_hash} was broadcast but not confirmed ({result.error}). "
            f"Manual reconciliation required "
            f"(account={tx.from_address}, campaign={tx.campaign_id}, amount={tx.value})"
        )

    async def _persist(
        self,
        transaction: TransactionResult,
        write: Any,
        account_address: str,
        amount: int,
        campaign_id: Optional[str] = None,
    ) -> Any:
        """
        Await the bookkeeping write for a confirmed transfer.

        Raises:
            PersistenceAfterTransferError: If the write fails for any reason
        """
        try:
            return await write
        except Exception as e:
            cause = e.message if isinstance(e, PersistenceError) else str(e)
            self._reconcile(transaction, account_address, amount, campaign_id, cause)
            logger.error(
                f"Transfer {transaction.tx_hash} confirmed but {transaction.tx_type.value} "
                f"was not recorded: {cause}. Manual reconciliation required "
                f"(account={account_address}, campaign={campaign_id}, amount={amount})"
            )
            raise PersistenceAfterTransferError(
                "Your transaction was confirmed but could not be recorded. "
                "It has been logged for manual reconciliation.",
                tx_hash=transaction.tx_hash,
                campaign_id=campaign_id,
                amount=amount,
                cause=cause,
            ) from e
