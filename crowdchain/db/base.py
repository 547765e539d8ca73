from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


CAMPAIGNS_TABLE = "campaigns"
DONATIONS_TABLE = "donations"


class StoreError(Exception):
    """Base exception for backing store errors."""
    pass


class StoreAuthError(StoreError):
    """Authentication error when calling the backing store."""
    pass


class StoreQueryError(StoreError):
    """Error executing a read."""
    pass


class StoreMutationError(StoreError):
    """Error executing a write."""
    pass


class TableBackend(ABC):
    """Tabular CRUD contract the campaign store needs from its backing store"""

    name: str

    @abstractmethod
    async def select(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Return all rows of ``table`` whose columns equal the given filter values"""
        pass

    @abstractmethod
    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored (including its generated id)"""
        pass

    @abstractmethod
    async def record_donation(self, campaign_id: str, donor_address: str, amount: int) -> int:
        """
        Append a donation row and add ``amount`` to the campaign's
        ``amount_collected`` in one atomic operation. Returns the new total.
        """
        pass

    async def set_actor(self, address: Optional[str]) -> None:
        """Scope subsequent calls to the given actor for row-level authorization"""

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": self.name}

    async def close(self) -> None:
        pass
