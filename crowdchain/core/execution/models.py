"""
Transaction execution models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from crowdchain.core.errors import CrowdchainError


class TransactionType(str, Enum):
    """Types of transactions."""
    CREATE_CAMPAIGN = "create_campaign"   # Zero-value acknowledgment
    DONATION = "donation"


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""
    PENDING = "pending"          # Built, waiting for the wallet decision
    SUBMITTED = "submitted"      # Signed and broadcast
    CONFIRMED = "confirmed"      # Mined with a successful receipt
    REVERTED = "reverted"        # Mined with a failed receipt
    REJECTED = "rejected"        # User declined or provider errored
    TIMEOUT = "timeout"          # No decision or receipt within the bound


@dataclass
class PreparedTransaction:
    """A transaction ready to be signed and broadcast."""
    tx_id: str                                  # Internal tracking ID
    tx_type: TransactionType
    chain_id: int
    from_address: str
    to_address: str
    data: str = "0x"                            # Hex payload
    value: int = 0                              # Wei to send

    # Metadata
    description: str = ""
    campaign_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the eth_sendTransaction parameter object."""
        return {
            "from": self.from_address,
            "to": self.to_address,
            "data": self.data,
            "value": hex(self.value),
            "chainId": hex(self.chain_id),
        }


@dataclass
class TransactionResult:
    """Result of a transaction submission."""
    tx_id: str
    tx_type: TransactionType
    tx_hash: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    chain_id: Optional[int] = None
    value: int = 0

    # Confirmation details
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    # Timing
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.CONFIRMED

    @property
    def is_final(self) -> bool:
        return self.status in {
            TransactionStatus.CONFIRMED,
            TransactionStatus.REVERTED,
            TransactionStatus.REJECTED,
            TransactionStatus.TIMEOUT,
        }


@dataclass
class ActionResult:
    """
    Outcome of a create or donate action.

    Truthy exactly when the transfer was confirmed and the record persisted,
    so callers that only need the boolean contract can use it directly.
    """
    success: bool
    action: TransactionType
    transaction: Optional[TransactionResult] = None
    error: Optional[CrowdchainError] = None
    record: Optional[Any] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def transaction_attempted(self) -> bool:
        return self.transaction is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action.value,
            "txHash": self.transaction.tx_hash if self.transaction else None,
            "status": self.transaction.status.value if self.transaction else None,
            "error": self.error.message if self.error else None,
            "errorCategory": self.error.category.value if self.error else None,
        }


@dataclass
class ReconciliationEntry:
    """A confirmed transfer whose bookkeeping write failed."""
    tx_hash: Optional[str]
    action: TransactionType
    account_address: str
    amount: int
    campaign_id: Optional[str] = None
    reason: str = ""
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: List[str] = field(default_factory=list)
