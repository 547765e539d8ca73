"""
In-process backing store.

Keeps both tables in memory. Every mutation runs under one asyncio lock, so
concurrent sessions sharing an instance see the same atomic-increment
behaviour as the REST store's ``record_donation`` function.
"""

import asyncio
import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .base import CAMPAIGNS_TABLE, DONATIONS_TABLE, StoreMutationError, StoreQueryError, TableBackend


class InMemoryTableBackend(TableBackend):
    name = "memory"

    def __init__(self, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = {
            CAMPAIGNS_TABLE: [],
            DONATIONS_TABLE: [],
        }
        for table, rows in (seed or {}).items():
            self._tables.setdefault(table, []).extend(copy.deepcopy(rows))
        self._lock = asyncio.Lock()
        self.actor: Optional[str] = None

    def _table(self, table: str) -> List[Dict[str, Any]]:
        if table not in self._tables:
            raise StoreQueryError(f"Unknown table: {table}")
        return self._tables[table]

    async def select(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        rows = self._table(table)
        filters = filters or {}
        return [
            copy.deepcopy(row)
            for row in rows
            if all(str(row.get(column)) == str(value) for column, value in filters.items())
        ]

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            rows = self._table(table)
            stored = copy.deepcopy(row)
            stored.setdefault("id", str(uuid.uuid4()))
            stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            rows.append(stored)
            return copy.deepcopy(stored)

    async def record_donation(self, campaign_id: str, donor_address: str, amount: int) -> int:
        async with self._lock:
            campaign = next(
                (row for row in self._tables[CAMPAIGNS_TABLE] if str(row.get("id")) == str(campaign_id)),
                None,
            )
            if campaign is None:
                raise StoreMutationError(f"Campaign {campaign_id} not found")

            self._tables[DONATIONS_TABLE].append({
                "id": str(uuid.uuid4()),
                "campaign_id": str(campaign_id),
                "donor_address": donor_address.lower(),
                "amount": amount,
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            campaign["amount_collected"] = int(campaign.get("amount_collected") or 0) + amount
            return campaign["amount_collected"]

    async def set_actor(self, address: Optional[str]) -> None:
        self.actor = address.lower() if address else None

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Direct copy of a table's rows, for inspection."""
        return copy.deepcopy(self._table(table))
