"""
Transaction Execution Layer

Provides the pieces that move money for campaign actions:
- TransactionBuilder: builds donation and create-acknowledgment transfers
- TransactionCoordinator: checks preconditions, signs, waits for the
  receipt and persists the matching record

Usage:
    from crowdchain.core.execution import TransactionCoordinator

    coordinator = TransactionCoordinator(session_view, guard, store, notifications)
    result = await coordinator.donate(campaign_id, amount_wei=10**16)
    if not result:
        print(result.error.message)
"""

from .models import (
    ActionResult,
    PreparedTransaction,
    ReconciliationEntry,
    TransactionResult,
    TransactionStatus,
    TransactionType,
)
from .tx_builder import TransactionBuilder, parse_ether
from .coordinator import TransactionCoordinator

__all__ = [
    # Models
    "ActionResult",
    "PreparedTransaction",
    "ReconciliationEntry",
    "TransactionResult",
    "TransactionStatus",
    "TransactionType",
    # Builder
    "TransactionBuilder",
    "parse_ether",
    # Coordinator
    "TransactionCoordinator",
]
