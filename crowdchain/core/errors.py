"""
Error Classification

Defines the error taxonomy of the session and transaction layer.
Errors are classified as recoverable (the user can retry or fix the situation
from the wallet) or unrecoverable (needs manual reconciliation).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors surfaced to the user."""

    CONNECTION = "connection"             # Wallet unavailable or connection declined
    WRONG_NETWORK = "wrong_network"       # Connected chain differs from the required one
    NETWORK_SWITCH = "network_switch"     # Chain switch request failed
    REJECTED = "rejected"                 # User declined or provider errored the transfer
    TIMEOUT = "timeout"                   # Signature or receipt wait exceeded its bound
    PERSISTENCE = "persistence"           # Backing store call failed
    RECONCILIATION = "reconciliation"     # Transfer confirmed, bookkeeping write failed
    VALIDATION = "validation"             # Input validation error
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    suggested_action: Optional[str] = None
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    campaign_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class CrowdchainError(Exception):
    """Base class for every error raised by the core."""

    recoverable: bool = True

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=self.recoverable)


class RecoverableError(CrowdchainError):
    """
    Base class for errors the user can recover from.

    Nothing has changed in the backing store when one of these is raised.
    """

    recoverable = True


class UnrecoverableError(CrowdchainError):
    """Base class for errors that need human intervention."""

    recoverable = False


class ConnectionError(RecoverableError):
    """Wallet provider unavailable or the user declined the connection."""

    def __init__(self, message: str = "Could not connect to wallet"):
        super().__init__(
            message,
            category=ErrorCategory.CONNECTION,
            context=ErrorContext(
                category=ErrorCategory.CONNECTION,
                recoverable=True,
                suggested_action="Unlock or install the wallet and connect again",
            ),
        )


class WrongNetworkError(RecoverableError):
    """The connected chain does not match the required chain."""

    def __init__(
        self,
        message: str = "Wallet is connected to the wrong network",
        chain_id: Optional[int] = None,
        required_chain_id: Optional[int] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.WRONG_NETWORK,
            context=ErrorContext(
                category=ErrorCategory.WRONG_NETWORK,
                recoverable=True,
                chain_id=chain_id,
                suggested_action="Switch the wallet to the required network",
                details={"required_chain_id": required_chain_id},
            ),
        )
        self.chain_id = chain_id
        self.required_chain_id = required_chain_id


class NetworkSwitchError(RecoverableError):
    """The chain switch request failed; the provider message is kept verbatim."""

    def __init__(self, message: str = "Could not switch networks"):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK_SWITCH,
            context=ErrorContext(
                category=ErrorCategory.NETWORK_SWITCH,
                recoverable=True,
                suggested_action="Switch networks manually in the wallet",
            ),
        )


class TransactionRejectedError(RecoverableError):
    """User declined the signature request or the provider errored the transfer."""

    def __init__(
        self,
        message: str = "Transaction was rejected",
        tx_hash: Optional[str] = None,
        code: Optional[int] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.REJECTED,
            context=ErrorContext(
                category=ErrorCategory.REJECTED,
                recoverable=True,
                tx_hash=tx_hash,
                suggested_action="Review the request and try again",
                details={"code": code} if code is not None else {},
            ),
        )
        self.code = code


class TransactionTimeoutError(RecoverableError):
    """No wallet decision or no receipt arrived within the configured bound."""

    def __init__(
        self,
        message: str = "Transaction timed out",
        stage: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.TIMEOUT,
            context=ErrorContext(
                category=ErrorCategory.TIMEOUT,
                recoverable=True,
                tx_hash=tx_hash,
                suggested_action="Check the wallet for a pending request before retrying",
                details={"stage": stage} if stage else {},
            ),
        )
        self.stage = stage


class InvalidInputError(RecoverableError):
    """The request itself is invalid (unknown campaign, non-positive amount, bad fields)."""

    def __init__(self, message: str = "Invalid input", field_name: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=True,
                suggested_action="Correct the input and try again",
                details={"field": field_name} if field_name else {},
            ),
        )
        self.field_name = field_name


class PersistenceError(UnrecoverableError):
    """A backing store call failed."""

    def __init__(self, message: str = "Backing store request failed", operation: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.PERSISTENCE,
            context=ErrorContext(
                category=ErrorCategory.PERSISTENCE,
                recoverable=False,
                suggested_action="Try again later",
                details={"operation": operation} if operation else {},
            ),
        )
        self.operation = operation


class InvalidRecordError(PersistenceError):
    """A row returned by the backing store is missing or has malformed required fields."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message, operation=f"validate:{table}" if table else "validate")
        self.table = table


class PersistenceAfterTransferError(UnrecoverableError):
    """
    The on-chain transfer was confirmed but the bookkeeping write failed.

    Money has moved without a record. Never retried automatically: retrying
    the transfer double-charges, retrying the write may double-persist.
    """

    def __init__(
        self,
        message: str = "Transfer confirmed but the record could not be saved",
        tx_hash: Optional[str] = None,
        campaign_id: Optional[str] = None,
        amount: Optional[int] = None,
        cause: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.RECONCILIATION,
            context=ErrorContext(
                category=ErrorCategory.RECONCILIATION,
                recoverable=False,
                tx_hash=tx_hash,
                campaign_id=campaign_id,
                suggested_action="Reconcile manually using the transaction hash",
                details={"amount": amount, "cause": cause},
            ),
        )
        self.tx_hash = tx_hash
        self.campaign_id = campaign_id
        self.amount = amount


class InvalidTransitionError(Exception):
    """A session state transition that the lifecycle does not allow."""

    def __init__(self, from_state: Any, to_state: Any):
        super().__init__(f"Invalid session transition: {from_state} -> {to_state}")
        self.from_state = from_state
        self.to_state = to_state
