"""
Tests for create and donate actions through the TransactionCoordinator.
"""

import asyncio

import pytest
from eth_utils import to_hex

from crowdchain.core.campaigns.models import CampaignFields, now_ms
from crowdchain.core.errors import (
    ConnectionError,
    ErrorCategory,
    InvalidInputError,
    PersistenceAfterTransferError,
    TransactionRejectedError,
    TransactionTimeoutError,
    WrongNetworkError,
)
from crowdchain.core.execution import TransactionStatus, TransactionType
from crowdchain.core.notifications import NotificationKind
from crowdchain.core.wallet import ProviderRpcError
from crowdchain.db import CAMPAIGNS_TABLE, DONATIONS_TABLE, InMemoryTableBackend, StoreMutationError


CREATOR = "0x" + "c1" * 20
DONOR = "0x" + "d0" * 20
SECOND_DONOR = "0x" + "d1" * 20


class BrokenDonationBackend(InMemoryTableBackend):
    """Memory store whose donation write always fails."""

    async def record_donation(self, campaign_id, donor_address, amount):
        raise StoreMutationError("connection reset by peer")


def _collected(backend, campaign_id="campaign-1"):
    row = next(r for r in backend.rows(CAMPAIGNS_TABLE) if r["id"] == campaign_id)
    return row["amount_collected"]


def _fields(**overrides):
    data = {
        "title": "Library Roof",
        "description": "Replacing the leaking roof of the village library this winter.",
        "target_amount": 5 * 10**17,
        "deadline": now_ms() + 7 * 24 * 60 * 60 * 1000,
    }
    data.update(overrides)
    return CampaignFields(**data)


class TestDonate:

    @pytest.mark.asyncio
    async def test_donation_transfers_and_records(self, provider, backend, sink, make_context):
        context = make_context(provider)
        assert await context.connect()

        result = await context.donate("campaign-1", 100)

        assert result
        assert result.transaction.status == TransactionStatus.CONFIRMED
        assert result.transaction.block_number == 16
        assert result.record == 100
        assert _collected(backend) == 100

        donations = backend.rows(DONATIONS_TABLE)
        assert len(donations) == 1
        assert donations[0]["donor_address"] == DONOR
        assert donations[0]["amount"] == 100

        tx = provider.sent_transactions()[0]
        assert tx["from"] == DONOR
        assert tx["to"] == CREATOR
        assert tx["value"] == hex(100)
        assert tx["chainId"] == "0xaa36a7"
        assert tx["data"] == to_hex(text="Donate to Campaign #campaign-1")

        kinds = sink.kinds()
        assert kinds.index(NotificationKind.TRANSACTION_PENDING) < kinds.index(NotificationKind.SUCCESS)

    @pytest.mark.asyncio
    async def test_concurrent_donations_both_count(self, wallet_factory, backend, make_context):
        first = make_context(wallet_factory(accounts=[DONOR]))
        second = make_context(wallet_factory(accounts=[SECOND_DONOR]))
        await first.connect()
        await second.connect()

        results = await asyncio.gather(
            first.donate("campaign-1", 100),
            second.donate("campaign-1", 50),
        )

        assert all(results)
        assert _collected(backend) == 150
        assert sorted(d["amount"] for d in backend.rows(DONATIONS_TABLE)) == [50, 100]

    @pytest.mark.asyncio
    async def test_rejected_signature_changes_nothing(self, provider, backend, sink, make_context):
        provider.send_error = ProviderRpcError("User denied transaction signature.", code=4001)
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert not result
        assert isinstance(result.error, TransactionRejectedError)
        assert result.error.code == 4001
        assert result.transaction.status == TransactionStatus.REJECTED
        assert _collected(backend) == 0
        assert backend.rows(DONATIONS_TABLE) == []
        assert sink.kinds()[-1] == NotificationKind.ERROR

    @pytest.mark.asyncio
    async def test_wrong_network_stops_before_signing(self, wallet_factory, backend, sink, make_context):
        provider = wallet_factory(chain_id="0x1")
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert not result
        assert isinstance(result.error, WrongNetworkError)
        assert not result.transaction_attempted
        assert provider.sent_transactions() == []
        assert _collected(backend) == 0
        assert sink.kinds()[-1] == NotificationKind.WRONG_NETWORK

    @pytest.mark.asyncio
    async def test_not_connected(self, provider, make_context):
        context = make_context(provider)

        result = await context.donate("campaign-1", 100)

        assert not result
        assert isinstance(result.error, ConnectionError)
        assert provider.sent_transactions() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, True, 1.5])
    async def test_invalid_amount(self, provider, make_context, amount):
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", amount)

        assert isinstance(result.error, InvalidInputError)
        assert result.error.field_name == "amount"
        assert provider.sent_transactions() == []

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, provider, make_context):
        context = make_context(provider)
        await context.connect()

        result = await context.donate("missing", 100)

        assert isinstance(result.error, InvalidInputError)
        assert result.error.field_name == "campaign_id"
        assert provider.sent_transactions() == []

    @pytest.mark.asyncio
    async def test_signature_timeout(self, provider, backend, make_context):
        provider.hang_on_send = True
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert isinstance(result.error, TransactionTimeoutError)
        assert result.error.stage == "signature"
        assert result.transaction.status == TransactionStatus.TIMEOUT
        assert _collected(backend) == 0
        assert context.coordinator.reconciliation_log == []

    @pytest.mark.asyncio
    async def test_receipt_timeout_keeps_hash(self, provider, backend, make_context):
        provider.receipt_status = None
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert isinstance(result.error, TransactionTimeoutError)
        assert result.error.stage == "receipt"
        assert result.error.context.tx_hash == result.transaction.tx_hash
        assert result.transaction.tx_hash is not None
        assert _collected(backend) == 0

        log = context.coordinator.reconciliation_log
        assert len(log) == 1
        assert log[0].tx_hash == result.transaction.tx_hash
        assert log[0].reason.startswith("unconfirmed")
        assert log[0].amount == 100
        assert log[0].account_address == DONOR
        assert log[0].campaign_id == "campaign-1"

    @pytest.mark.asyncio
    async def test_receipt_lookup_error_is_reported_as_timeout(self, provider, make_context):
        provider.receipt_error = ProviderRpcError("header not found", code=-32000)
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert isinstance(result.error, TransactionTimeoutError)
        assert result.error.stage == "receipt"
        assert len(context.coordinator.reconciliation_log) == 1
        assert "header not found" in context.coordinator.reconciliation_log[0].reason

    @pytest.mark.asyncio
    async def test_reverted_transfer_is_not_recorded(self, provider, backend, make_context):
        provider.receipt_status = "0x0"
        context = make_context(provider)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert isinstance(result.error, TransactionRejectedError)
        assert result.transaction.status == TransactionStatus.REVERTED
        assert _collected(backend) == 0

    @pytest.mark.asyncio
    async def test_write_failure_after_transfer_needs_reconciliation(self, provider, campaign_row, sink, make_context):
        backend = BrokenDonationBackend(seed={CAMPAIGNS_TABLE: [campaign_row()]})
        context = make_context(provider, store_backend=backend)
        await context.connect()

        result = await context.donate("campaign-1", 100)

        assert not result
        assert isinstance(result.error, PersistenceAfterTransferError)
        assert result.error.category == ErrorCategory.RECONCILIATION
        assert result.error.tx_hash == result.transaction.tx_hash
        assert result.transaction.status == TransactionStatus.CONFIRMED

        log = context.coordinator.reconciliation_log
        assert len(log) == 1
        assert log[0].tx_hash == result.transaction.tx_hash
        assert log[0].action == TransactionType.DONATION
        assert log[0].amount == 100
        assert log[0].campaign_id == "campaign-1"
        assert "connection reset" in log[0].reason
        assert sink.kinds()[-1] == NotificationKind.ERROR


class TestCreateCampaign:

    @pytest.mark.asyncio
    async def test_create_signs_acknowledgment_then_stores(self, provider, backend, make_context):
        context = make_context(provider)
        await context.connect()

        result = await context.create_campaign(_fields())

        assert result
        assert result.record.creator_address == DONOR
        assert result.record.amount_collected == 0
        assert result.record.claimed is False

        tx = provider.sent_transactions()[0]
        assert tx["from"] == tx["to"] == DONOR
        assert tx["value"] == "0x0"
        assert tx["data"] == to_hex(text="Create Campaign: Library Roof")

        assert len(backend.rows(CAMPAIGNS_TABLE)) == 2
        assert [c.title for c in context.my_campaigns] == ["Library Roof"]

    @pytest.mark.asyncio
    async def test_create_rejected_stores_nothing(self, provider, backend, make_context):
        provider.send_error = ProviderRpcError("User denied transaction signature.", code=4001)
        context = make_context(provider)
        await context.connect()

        result = await context.create_campaign(_fields())

        assert isinstance(result.error, TransactionRejectedError)
        assert len(backend.rows(CAMPAIGNS_TABLE)) == 1

    @pytest.mark.asyncio
    async def test_create_from_invalid_input(self, provider, sink, make_context):
        context = make_context(provider)
        await context.connect()

        result = await context.create_campaign({
            "title": "ab",
            "description": "too short",
            "target_amount": 0,
            "deadline": now_ms() + 1000,
        })

        assert isinstance(result.error, InvalidInputError)
        assert provider.sent_transactions() == []
        assert sink.kinds()[-1] == NotificationKind.ERROR
