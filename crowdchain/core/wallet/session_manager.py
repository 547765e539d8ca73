"""
Wallet session manager.

Manages the lifecycle of the wallet session:
- Connecting to the injected provider and reading account and chain
- Scoped registration of the accountsChanged / chainChanged listeners
- Applying account and chain changes to the live session
- Disconnecting, which always releases the listeners first
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

import structlog

from crowdchain.core.errors import ConnectionError, InvalidTransitionError

from .connection_cache import ConnectionCache
from .models import Session, SessionChange, SessionChangeKind, SessionState, SessionView, parse_chain_id
from .provider import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    METHOD_NOT_FOUND,
    UNSUPPORTED_METHOD,
    EventHandler,
    ProviderRpcError,
    WalletProvider,
)
from .signer import Signer


logger = logging.getLogger(__name__)


SessionSubscriber = Callable[[SessionChange], Awaitable[None]]


class ListenerScope:
    """
    Wallet event listeners acquired together and released together.

    ``release`` is idempotent so it can run on every exit path.
    """

    def __init__(self, provider: WalletProvider):
        self.provider = provider
        self._registered: List[Tuple[str, EventHandler]] = []

    def register(self, event: str, handler: EventHandler) -> None:
        self.provider.on(event, handler)
        self._registered.append((event, handler))

    def release(self) -> None:
        while self._registered:
            event, handler = self._registered.pop()
            self.provider.remove_listener(event, handler)

    @property
    def active(self) -> bool:
        return bool(self._registered)


class WalletSessionManager:
    """
    Owns the connection to exactly one wallet provider.

    The provider is injected; nothing else in the core talks to the wallet
    directly except through the session's signer and the NetworkGuard.
    """

    TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
        SessionState.DISCONNECTED: {SessionState.CONNECTING},
        SessionState.CONNECTING: {SessionState.CONNECTED, SessionState.DISCONNECTED},
        SessionState.CONNECTED: {SessionState.DISCONNECTED},
    }

    def __init__(
        self,
        provider: Optional[WalletProvider],
        connection_cache: Optional[ConnectionCache] = None,
    ):
        self.provider = provider
        self.connection_cache = connection_cache
        self._state = SessionState.DISCONNECTED
        self._session: Optional[Session] = None
        self._listeners: Optional[ListenerScope] = None
        self._generation = 0
        self._subscribers: List[SessionSubscriber] = []
        self.view = SessionView(self)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def connected(self) -> bool:
        return self._state == SessionState.CONNECTED and self._session is not None

    @property
    def listeners_registered(self) -> bool:
        return self._listeners is not None and self._listeners.active

    def subscribe(self, subscriber: SessionSubscriber) -> Callable[[], None]:
        """Register a coroutine called after every session change. Returns an unsubscribe function."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _transition(self, to_state: SessionState) -> None:
        if to_state not in self.TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state, to_state)
        logger.debug(f"Session {self._state.value} -> {to_state.value}")
        self._state = to_state

    async def connect(self) -> Session:
        """
        Connect to the wallet.

        Returns:
            The live Session

        Raises:
            ConnectionError: If no provider is available, the user declines,
                or the wallet exposes no account
        """
        if self._state == SessionState.CONNECTED and self._session is not None:
            return self._session
        if self._state == SessionState.CONNECTING:
            raise ConnectionError("A wallet connection request is already pending")

        self._transition(SessionState.CONNECTING)

        if self.provider is None:
            self._transition(SessionState.DISCONNECTED)
            raise ConnectionError("No wallet found. Please install a wallet extension.")

        self._generation += 1
        generation = self._generation
        scope = ListenerScope(self.provider)

        try:
            session = await self._open_session(generation, scope)
            if generation != self._generation:
                raise ConnectionError("Connection was cancelled")
        except BaseException:
            scope.release()
            # A superseded attempt must not touch the state of the newer one
            if generation == self._generation and self._state != SessionState.DISCONNECTED:
                self._transition(SessionState.DISCONNECTED)
            raise

        self._transition(SessionState.CONNECTED)
        self._session = session
        self._listeners = scope
        self._bind_log_context()
        if self.connection_cache is not None:
            self.connection_cache.remember(self.provider.name, session.account_address)

        logger.info(f"Wallet connected: {session.account_address} on chain {session.chain_id}")

        await self._notify(SessionChange(
            kind=SessionChangeKind.CONNECTED,
            account_address=session.account_address,
            chain_id=session.chain_id,
        ))
        return session

    async def _open_session(self, generation: int, scope: ListenerScope) -> Session:
        try:
            accounts = await self._request_accounts()
            raw_chain_id = await self.provider.request("eth_chainId")
        except ProviderRpcError as e:
            logger.warning(f"Wallet connection failed: {e.message}")
            raise ConnectionError(e.message or "Could not connect to wallet. Please try again.") from e

        try:
            chain_id = parse_chain_id(raw_chain_id)
        except ValueError as e:
            logger.warning(f"Wallet returned a malformed chain id: {raw_chain_id!r}")
            raise ConnectionError("Wallet returned an invalid chain id") from e

        if not accounts:
            raise ConnectionError("Wallet did not expose any account")

        account = accounts[0].lower()

        scope.register(ACCOUNTS_CHANGED, self._bind_handler(generation, self._handle_accounts_changed))
        scope.register(CHAIN_CHANGED, self._bind_handler(generation, self._handle_chain_changed))

        return Session(
            account_address=account,
            chain_id=chain_id,
            signer=Signer(self.provider, account),
            generation=generation,
        )

    async def _request_accounts(self) -> List[str]:
        try:
            accounts = await self.provider.request("eth_requestAccounts")
        except ProviderRpcError as e:
            if e.code not in (METHOD_NOT_FOUND, UNSUPPORTED_METHOD):
                raise
            accounts = await self.provider.request("eth_accounts")
        return list(accounts or [])

    def _bind_handler(
        self,
        generation: int,
        handler: Callable[[Any], Awaitable[None]],
    ) -> EventHandler:
        """
        Wrap an event handler so it only acts on the connection it was registered for.

        The wrapped handler reads ``self._session`` when it fires, never a
        session captured at registration time.
        """
        async def dispatch(payload: Any) -> None:
            if generation != self._generation or self._session is None:
                logger.debug(f"Ignoring wallet event for stale connection {generation}")
                return
            await handler(payload)

        return dispatch

    async def _handle_accounts_changed(self, accounts: Any) -> None:
        accounts = list(accounts or [])
        if not accounts:
            logger.info("Wallet reported no accounts, disconnecting")
            await self.disconnect()
            return

        session = self._session
        new_account = accounts[0].lower()
        if new_account == session.account_address:
            return

        previous = session.account_address
        session.account_address = new_account
        session.signer = Signer(self.provider, new_account)
        self._bind_log_context()
        if self.connection_cache is not None:
            self.connection_cache.remember(self.provider.name, new_account)

        logger.info(f"Wallet account changed: {previous} -> {new_account}")

        await self._notify(SessionChange(
            kind=SessionChangeKind.ACCOUNT_CHANGED,
            account_address=new_account,
            chain_id=session.chain_id,
            previous_account=previous,
        ))

    async def _handle_chain_changed(self, chain_id: Any) -> None:
        session = self._session
        try:
            new_chain_id = parse_chain_id(chain_id)
        except ValueError:
            logger.warning(f"Ignoring malformed chain id from wallet: {chain_id!r}")
            return

        previous = session.chain_id
        session.chain_id = new_chain_id
        self._bind_log_context()

        logger.info(f"Wallet chain changed: {previous} -> {new_chain_id}")

        await self._notify(SessionChange(
            kind=SessionChangeKind.CHAIN_CHANGED,
            account_address=session.account_address,
            chain_id=new_chain_id,
            previous_chain_id=previous,
        ))

    async def disconnect(self) -> None:
        """Release the wallet listeners, then drop the session."""
        listeners, self._listeners = self._listeners, None
        if listeners is not None:
            listeners.release()

        # Invalidates handlers and any connect still in flight
        self._generation += 1

        previous = self._session
        self._session = None
        if self._state != SessionState.DISCONNECTED:
            self._transition(SessionState.DISCONNECTED)
        if self.connection_cache is not None:
            self.connection_cache.clear()
        structlog.contextvars.unbind_contextvars("account", "chain_id")

        if previous is None:
            return

        logger.info(f"Wallet disconnected: {previous.account_address}")

        await self._notify(SessionChange(
            kind=SessionChangeKind.DISCONNECTED,
            previous_account=previous.account_address,
            previous_chain_id=previous.chain_id,
        ))

    def _bind_log_context(self) -> None:
        if self._session is None:
            return
        structlog.contextvars.bind_contextvars(
            account=self._session.account_address,
            chain_id=self._session.chain_id,
        )

    async def _notify(self, change: SessionChange) -> None:
        for subscriber in list(self._subscribers):
            try:
                await subscriber(change)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Session subscriber failed on {change.kind.value}")
