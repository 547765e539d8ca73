"""
Network identity checks and chain switching.
"""

import logging
from typing import Optional, Union

from crowdchain.config import settings
from crowdchain.core.errors import NetworkSwitchError, WrongNetworkError

from .models import Session, SessionView
from .provider import ProviderRpcError, WalletProvider


logger = logging.getLogger(__name__)


class NetworkGuard:
    """
    Validates the connected chain against the required chain id.

    The check is advisory: the wallet can switch chains at any time, so money
    moving callers must check again right before every action.
    """

    def __init__(
        self,
        provider: Optional[WalletProvider],
        required_chain_id: Optional[int] = None,
        required_chain_name: Optional[str] = None,
    ):
        self.provider = provider
        self.required_chain_id = required_chain_id or settings.required_chain_id
        self.required_chain_name = required_chain_name or settings.required_chain_name

    @property
    def required_chain_id_hex(self) -> str:
        return hex(self.required_chain_id)

    def is_correct_network(self, session: Union[Session, SessionView, None]) -> bool:
        if session is None or session.chain_id is None:
            return False
        return session.chain_id == self.required_chain_id

    def require_correct_network(self, session: Union[Session, SessionView, None]) -> None:
        """
        Raises:
            WrongNetworkError: If the session is not on the required chain
        """
        if not self.is_correct_network(session):
            chain_id = session.chain_id if session is not None else None
            raise WrongNetworkError(
                f"Please switch to the {self.required_chain_name} network.",
                chain_id=chain_id,
                required_chain_id=self.required_chain_id,
            )

    async def switch_network(self) -> None:
        """
        Ask the wallet to switch to the required chain.

        Raises:
            NetworkSwitchError: If no provider is present or the wallet refuses
        """
        if self.provider is None:
            raise NetworkSwitchError("No wallet found. Please install a wallet to switch networks.")

        try:
            await self.provider.request(
                "wallet_switchEthereumChain",
                [{"chainId": self.required_chain_id_hex}],
            )
        except ProviderRpcError as e:
            logger.warning(f"Network switch to {self.required_chain_id_hex} failed: {e.message}")
            raise NetworkSwitchError(e.message or "Could not switch networks. Please try manually.") from e

        logger.info(f"Requested switch to chain {self.required_chain_id_hex}")
