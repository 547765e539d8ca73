"""
Wallet provider interface and a JSON-RPC implementation.

The provider is the only channel to the user's wallet: requests go through
``request(method, params)`` and account/chain changes arrive as events on the
listeners registered with ``on``.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from crowdchain.config import settings


logger = logging.getLogger(__name__)


ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"
SUPPORTED_EVENTS = (ACCOUNTS_CHANGED, CHAIN_CHANGED)

# EIP-1193 provider error codes
USER_REJECTED_REQUEST = 4001
UNAUTHORIZED = 4100
UNSUPPORTED_METHOD = 4200
DISCONNECTED = 4900
METHOD_NOT_FOUND = -32601

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class ProviderRpcError(Exception):
    """Error returned by the wallet for a request."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    @property
    def is_user_rejection(self) -> bool:
        return self.code == USER_REJECTED_REQUEST


class WalletProvider(ABC):
    """Base wallet provider interface"""

    name: str = "wallet"

    def __init__(self) -> None:
        self._listeners: Dict[str, List[EventHandler]] = {event: [] for event in SUPPORTED_EVENTS}

    @abstractmethod
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send a request to the wallet. Raises ProviderRpcError on failure."""
        pass

    def on(self, event: str, handler: EventHandler) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unsupported wallet event: {event}")
        self._listeners[event].append(handler)
        self._on_listeners_changed()

    def remove_listener(self, event: str, handler: EventHandler) -> None:
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
        self._on_listeners_changed()

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(handlers) for handlers in self._listeners.values())

    async def emit(self, event: str, payload: Any) -> None:
        """Dispatch an event to a snapshot of the currently registered listeners."""
        for handler in list(self._listeners.get(event, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Wallet event handler failed for {event}")

    def _on_listeners_changed(self) -> None:
        """Hook for providers that only watch for events while someone listens."""

    async def close(self) -> None:
        pass


class JsonRpcWalletProvider(WalletProvider):
    """
    Wallet provider backed by a JSON-RPC endpoint that manages accounts
    (a local signer, a dev node, or a wallet bridge).

    Account and chain changes are detected by polling ``eth_accounts`` and
    ``eth_chainId`` while at least one listener is registered.
    """

    name = "json-rpc"

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self.rpc_url = rpc_url or settings.wallet_rpc_url
        if not self.rpc_url:
            raise ValueError("WALLET_RPC_URL is required")
        self.poll_interval = poll_interval or settings.wallet_poll_interval_seconds
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.wallet_request_timeout_seconds
        )
        self._request_id = 0
        self._watch_task: Optional[asyncio.Task] = None
        self._last_accounts: Optional[List[str]] = None
        self._last_chain_id: Optional[str] = None

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": self._request_id,
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderRpcError(f"Wallet request failed: {e.response.text}", code=DISCONNECTED) from e
        except httpx.RequestError as e:
            raise ProviderRpcError(f"Wallet unreachable: {str(e)}", code=DISCONNECTED) from e

        if "error" in result:
            error = result["error"] or {}
            raise ProviderRpcError(
                error.get("message", "Unknown wallet error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return result.get("result")

    def _on_listeners_changed(self) -> None:
        if self.listener_count() > 0:
            self._start_watching()
        else:
            self._stop_watching()

    def _start_watching(self) -> None:
        if self._watch_task is not None and not self._watch_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; wallet change polling not started")
            return
        self._watch_task = loop.create_task(self._watch())

    def _stop_watching(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
        self._last_accounts = None
        self._last_chain_id = None

    async def _watch(self) -> None:
        while True:
            try:
                await self.poll_once()
            except ProviderRpcError as e:
                logger.warning(f"Wallet change polling failed: {e.message}")
            await asyncio.sleep(self.poll_interval)

    async def poll_once(self) -> None:
        """Compare the wallet's accounts and chain with the last seen values and emit changes."""
        accounts = list(await self.request("eth_accounts") or [])
        chain_id = await self.request("eth_chainId")

        if self._last_accounts is not None and accounts != self._last_accounts:
            self._last_accounts = accounts
            await self.emit(ACCOUNTS_CHANGED, accounts)
        else:
            self._last_accounts = accounts

        if self._last_chain_id is not None and chain_id != self._last_chain_id:
            self._last_chain_id = chain_id
            await self.emit(CHAIN_CHANGED, chain_id)
        else:
            self._last_chain_id = chain_id

    async def close(self) -> None:
        self._stop_watching()
        await self._client.aclose()
