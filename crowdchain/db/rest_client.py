"""
REST client for the tabular backing store.

Talks to a PostgREST-compatible HTTP API (``/rest/v1/<table>`` for table
access and ``/rest/v1/rpc/<function>`` for stored procedures).
"""

from typing import Any, Dict, List, Optional

import httpx

from crowdchain.config import settings

from .base import (
    CAMPAIGNS_TABLE,
    StoreAuthError,
    StoreError,
    StoreMutationError,
    StoreQueryError,
    TableBackend,
)


class RestTableClient(TableBackend):
    """
    Async client for the backing store's REST API.

    Example usage:
        client = RestTableClient(
            base_url="https://your-project.example.co",
            api_key="...",
        )

        campaigns = await client.select("campaigns")
        row = await client.insert("campaigns", {...})
        total = await client.record_donation(row["id"], "0xabc...", 10**17)

    The donation RPC must insert the donation row and run
    ``amount_collected = amount_collected + p_amount`` in one transaction.
    """

    name = "rest"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.store_url
        self.api_key = api_key or settings.store_api_key
        self.timeout = timeout or settings.store_timeout_seconds
        self._transport = transport

        if not self.base_url:
            raise StoreError("STORE_URL is required")

        self.base_url = self.base_url.rstrip("/")
        self._actor: Optional[str] = None
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        """Get headers for backing store requests."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if self._actor:
            headers["x-actor-address"] = self._actor
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def set_actor(self, address: Optional[str]) -> None:
        self._actor = address.lower() if address else None

    async def select(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Select rows from a table.

        Args:
            table: The table name
            filters: Column equality filters

        Returns:
            The matching rows

        Raises:
            StoreQueryError: If the request fails
        """
        client = await self._get_client()
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"

        try:
            response = await client.get(
                f"{self.base_url}/rest/v1/{table}",
                params=params,
                headers=self.headers,
            )

            if response.status_code == 401:
                raise StoreAuthError("Invalid or missing store API key")

            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            raise StoreQueryError(f"Select on {table} failed: {e.response.text}") from e
        except httpx.RequestError as e:
            raise StoreQueryError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            raise StoreQueryError(f"Select on {table} returned a non-JSON body") from e

        if not isinstance(data, list):
            raise StoreQueryError(f"Unexpected response for {table}: {data!r}")
        return data

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert one row.

        Returns:
            The stored row as returned by the server

        Raises:
            StoreMutationError: If the insert fails
        """
        client = await self._get_client()
        headers = {**self.headers, "Prefer": "return=representation"}

        try:
            response = await client.post(
                f"{self.base_url}/rest/v1/{table}",
                json=row,
                headers=headers,
            )

            if response.status_code == 401:
                raise StoreAuthError("Invalid or missing store API key")

            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            raise StoreMutationError(f"Insert into {table} failed: {e.response.text}") from e
        except httpx.RequestError as e:
            raise StoreMutationError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            raise StoreMutationError(f"Insert into {table} returned a non-JSON body") from e

        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            raise StoreMutationError(f"Insert into {table} returned no row")
        return data

    async def rpc(self, function_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a stored procedure.

        Raises:
            StoreMutationError: If the call fails
        """
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self.base_url}/rest/v1/rpc/{function_name}",
                json=args or {},
                headers=self.headers,
            )

            if response.status_code == 401:
                raise StoreAuthError("Invalid or missing store API key")

            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            raise StoreMutationError(f"RPC {function_name} failed: {e.response.text}") from e
        except httpx.RequestError as e:
            raise StoreMutationError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            raise StoreMutationError(f"RPC {function_name} returned a non-JSON body") from e

    async def record_donation(self, campaign_id: str, donor_address: str, amount: int) -> int:
        result = await self.rpc(
            "record_donation",
            {
                "p_campaign_id": campaign_id,
                "p_donor_address": donor_address.lower(),
                "p_amount": amount,
            },
        )

        # Scalar functions return the value, set-returning ones a list of rows
        if isinstance(result, list):
            result = result[0] if result else None
        if isinstance(result, dict):
            result = result.get("amount_collected")
        if result is None:
            raise StoreMutationError(f"Campaign {campaign_id} not found")
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise StoreMutationError(f"record_donation returned a non-numeric total: {result!r}") from e

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.select(CAMPAIGNS_TABLE, {"id": "00000000-0000-0000-0000-000000000000"})
        except StoreError as e:
            return {"status": "unhealthy", "backend": self.name, "error": str(e)}
        return {"status": "healthy", "backend": self.name}
