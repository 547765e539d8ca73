"""
Wallet session models.

A Session exists only while a wallet is connected. It is owned and mutated
by the WalletSessionManager; everything else reads it through SessionView.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from .signer import Signer


class SessionState(str, Enum):
    """Connection lifecycle of the wallet session."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SessionChangeKind(str, Enum):
    """Why subscribers of the session manager are being notified."""
    CONNECTED = "connected"
    ACCOUNT_CHANGED = "account_changed"
    CHAIN_CHANGED = "chain_changed"
    DISCONNECTED = "disconnected"


@dataclass
class Session:
    """The live wallet session."""
    account_address: Optional[str]
    chain_id: Optional[int]
    signer: Optional[Signer]
    generation: int = 0

    @property
    def is_connected(self) -> bool:
        return bool(self.account_address) and self.signer is not None


@dataclass(frozen=True)
class SessionChange:
    """Notification emitted by the session manager after it mutated the session."""
    kind: SessionChangeKind
    account_address: Optional[str] = None
    chain_id: Optional[int] = None
    previous_account: Optional[str] = None
    previous_chain_id: Optional[int] = None


class SessionView:
    """
    Read-only handle onto whatever session the manager currently holds.

    Components keep a SessionView instead of a Session so they always see the
    current account and chain rather than a snapshot taken at connect time.
    """

    def __init__(self, manager: Any):
        self._manager = manager

    @property
    def session(self) -> Optional[Session]:
        return self._manager.session

    @property
    def connected(self) -> bool:
        session = self.session
        return session is not None and session.is_connected

    @property
    def account_address(self) -> Optional[str]:
        session = self.session
        return session.account_address if session else None

    @property
    def chain_id(self) -> Optional[int]:
        session = self.session
        return session.chain_id if session else None

    @property
    def signer(self) -> Optional[Signer]:
        session = self.session
        return session.signer if session else None


def parse_chain_id(value: Union[str, int, None]) -> Optional[int]:
    """Parse a chain id given as hex string, decimal string or int."""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text.startswith("0x"):
        return int(text, 16)
    return int(text)
