"""
Transaction builder for the two value transfers the platform needs.
"""

import secrets
from decimal import Decimal
from typing import Union

from eth_utils import to_hex, to_wei

from .models import PreparedTransaction, TransactionType


def parse_ether(amount: Union[str, int, Decimal]) -> int:
    """Convert a human-entered ether amount (e.g. "0.25") to wei."""
    value = Decimal(str(amount))
    if value < 0:
        raise ValueError("Amount must not be negative")
    return int(to_wei(value, "ether"))


class TransactionBuilder:
    """
    Builds transactions for campaign actions.

    Handles:
    - Donations: native transfers to the campaign creator
    - Campaign creation: a zero-value self transfer carrying an
      acknowledgment text, used only to obtain an explicit user signature
    """

    @staticmethod
    def generate_tx_id() -> str:
        """Generate a unique transaction ID."""
        return f"tx_{secrets.token_hex(16)}"

    @staticmethod
    def build_donation(
        chain_id: int,
        donor_address: str,
        recipient_address: str,
        campaign_id: str,
        amount_wei: int,
    ) -> PreparedTransaction:
        """
        Build a donation transfer.

        Args:
            chain_id: The chain ID
            donor_address: The signing account
            recipient_address: The campaign creator receiving the funds
            campaign_id: The campaign being funded
            amount_wei: The donation in wei

        Returns:
            PreparedTransaction ready to be signed
        """
        if amount_wei <= 0:
            raise ValueError("Donation amount must be positive")

        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.DONATION,
            chain_id=chain_id,
            from_address=donor_address.lower(),
            to_address=recipient_address.lower(),
            data=to_hex(text=f"Donate to Campaign #{campaign_id}"),
            value=amount_wei,
            campaign_id=campaign_id,
            description=f"Donate {amount_wei} wei to campaign {campaign_id}",
        )

    @staticmethod
    def build_create_acknowledgment(
        chain_id: int,
        creator_address: str,
        title: str,
    ) -> PreparedTransaction:
        """
        Build the zero-value acknowledgment signed before a campaign is stored.

        The transaction has no on-chain link to the stored record.
        """
        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.CREATE_CAMPAIGN,
            chain_id=chain_id,
            from_address=creator_address.lower(),
            to_address=creator_address.lower(),
            data=to_hex(text=f"Create Campaign: {title}"),
            value=0,
            description=f"Create campaign '{title}'",
        )
