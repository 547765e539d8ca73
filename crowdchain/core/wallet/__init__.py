"""
Wallet Module

Owns everything that talks to the user's wallet:
- WalletProvider: EIP-1193 style request/event interface
- WalletSessionManager: connect/disconnect lifecycle and change events
- NetworkGuard: required-chain checks and chain switching
- Signer: transaction submission for the session account

Usage:
    from crowdchain.core.wallet import JsonRpcWalletProvider, WalletSessionManager, NetworkGuard

    provider = JsonRpcWalletProvider("http://127.0.0.1:8545")
    manager = WalletSessionManager(provider)
    session = await manager.connect()

    guard = NetworkGuard(provider)
    if not guard.is_correct_network(session):
        await guard.switch_network()
"""

from .models import (
    Session,
    SessionChange,
    SessionChangeKind,
    SessionState,
    SessionView,
    parse_chain_id,
)
from .provider import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    USER_REJECTED_REQUEST,
    JsonRpcWalletProvider,
    ProviderRpcError,
    WalletProvider,
)
from .signer import Signer
from .network_guard import NetworkGuard
from .connection_cache import ConnectionCache
from .session_manager import ListenerScope, WalletSessionManager

__all__ = [
    # Models
    "Session",
    "SessionChange",
    "SessionChangeKind",
    "SessionState",
    "SessionView",
    "parse_chain_id",
    # Provider
    "ACCOUNTS_CHANGED",
    "CHAIN_CHANGED",
    "USER_REJECTED_REQUEST",
    "JsonRpcWalletProvider",
    "ProviderRpcError",
    "WalletProvider",
    "Signer",
    # Session
    "NetworkGuard",
    "ConnectionCache",
    "ListenerScope",
    "WalletSessionManager",
]
