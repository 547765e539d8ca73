"""
Shared fixtures: a scriptable in-process wallet and a seeded memory store.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from crowdchain.core.campaigns.models import now_ms
from crowdchain.core.context import FundingContext
from crowdchain.core.notifications import BufferedNotificationSink
from crowdchain.core.wallet.provider import CHAIN_CHANGED, METHOD_NOT_FOUND, ProviderRpcError, WalletProvider
from crowdchain.db import CAMPAIGNS_TABLE, InMemoryTableBackend


SEPOLIA_HEX = "0xaa36a7"
CREATOR = "0x" + "c1" * 20
DONOR = "0x" + "d0" * 20
DAY_MS = 24 * 60 * 60 * 1000


class FakeWalletProvider(WalletProvider):
    """Wallet double whose answers are set per test."""

    name = "fake"

    def __init__(self, accounts: Optional[List[str]] = None, chain_id: str = SEPOLIA_HEX):
        super().__init__()
        self.accounts = list(accounts if accounts is not None else [DONOR])
        self.chain_id = chain_id
        self.requests: List[tuple] = []

        self.connect_error: Optional[ProviderRpcError] = None
        self.send_error: Optional[ProviderRpcError] = None
        self.receipt_error: Optional[ProviderRpcError] = None
        self.switch_error: Optional[ProviderRpcError] = None
        self.hang_on_send = False
        self.receipt_status: Optional[str] = "0x1"
        self.chain_gate: Optional[asyncio.Event] = None
        self._tx_count = 0

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self.requests.append((method, params))

        if method == "eth_requestAccounts":
            if self.connect_error is not None:
                raise self.connect_error
            return list(self.accounts)
        if method == "eth_accounts":
            return list(self.accounts)
        if method == "eth_chainId":
            if self.chain_gate is not None:
                await self.chain_gate.wait()
            return self.chain_id
        if method == "eth_sendTransaction":
            if self.send_error is not None:
                raise self.send_error
            if self.hang_on_send:
                await asyncio.Event().wait()
            self._tx_count += 1
            return "0x" + f"{self._tx_count:064x}"
        if method == "eth_getTransactionReceipt":
            if self.receipt_error is not None:
                raise self.receipt_error
            if self.receipt_status is None:
                return None
            return {
                "transactionHash": params[0],
                "status": self.receipt_status,
                "blockNumber": "0x10",
                "gasUsed": "0x5208",
            }
        if method == "wallet_switchEthereumChain":
            if self.switch_error is not None:
                raise self.switch_error
            self.chain_id = params[0]["chainId"]
            await self.emit(CHAIN_CHANGED, self.chain_id)
            return None

        raise ProviderRpcError(f"Unsupported method {method}", code=METHOD_NOT_FOUND)

    def sent_transactions(self) -> List[Dict[str, Any]]:
        return [params[0] for method, params in self.requests if method == "eth_sendTransaction"]


def make_campaign_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "campaign-1",
        "creator_address": CREATOR,
        "title": "Community Garden",
        "description": "Raising funds for raised beds and a shared tool shed.",
        "target_amount": 1000,
        "amount_collected": 0,
        "deadline": now_ms() + 30 * DAY_MS,
        "claimed": False,
        "image_url": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def campaign_row():
    return make_campaign_row


@pytest.fixture
def wallet_factory():
    return FakeWalletProvider


@pytest.fixture
def provider():
    return FakeWalletProvider()


@pytest.fixture
def backend():
    return InMemoryTableBackend(seed={CAMPAIGNS_TABLE: [make_campaign_row()]})


@pytest.fixture
def sink():
    return BufferedNotificationSink()


@pytest.fixture
def make_context(backend, sink):
    """Build a FundingContext with short transaction bounds."""

    def factory(provider, store_backend=None, notifications=None, connection_cache=None):
        return FundingContext(
            provider,
            backend=store_backend or backend,
            notifications=notifications or sink,
            connection_cache=connection_cache,
            signature_timeout=0.1,
            receipt_timeout=0.1,
            receipt_poll_interval=0.01,
        )

    return factory
