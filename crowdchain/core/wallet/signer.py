"""
Signer handle bound to the session's account.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .provider import ProviderRpcError, WalletProvider


logger = logging.getLogger(__name__)


class Signer:
    """Signs and submits transactions for one account through the wallet provider."""

    def __init__(self, provider: WalletProvider, address: str):
        self.provider = provider
        self.address = address.lower()

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        """
        Ask the wallet to sign and broadcast a transaction.

        Suspends until the user approves or rejects in the wallet UI.

        Returns:
            The transaction hash

        Raises:
            ProviderRpcError: If the user rejects or the wallet fails
        """
        tx_hash = await self.provider.request("eth_sendTransaction", [tx])
        if not tx_hash:
            raise ProviderRpcError("Wallet returned no transaction hash")
        return tx_hash

    async def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.provider.request("eth_getTransactionReceipt", [tx_hash])

    async def wait_for_receipt(
        self,
        tx_hash: str,
        poll_interval: float = 2.0,
    ) -> Dict[str, Any]:
        """
        Poll until the transaction is mined (one confirmation).

        The caller bounds the wait; this loop runs until a receipt appears.
        """
        while True:
            receipt = await self.get_receipt(tx_hash)
            if receipt:
                return receipt
            logger.debug(f"Receipt for {tx_hash} not available yet")
            await asyncio.sleep(poll_interval)
