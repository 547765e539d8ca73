from typing import Optional

from crowdchain.config import settings

from .base import (
    CAMPAIGNS_TABLE,
    DONATIONS_TABLE,
    StoreAuthError,
    StoreError,
    StoreMutationError,
    StoreQueryError,
    TableBackend,
)
from .memory import InMemoryTableBackend
from .rest_client import RestTableClient


_table_backend: Optional[TableBackend] = None


def get_table_backend() -> TableBackend:
    """Get the singleton backing store selected by ``settings.store_backend``."""
    global _table_backend
    if _table_backend is None:
        if settings.uses_memory_store:
            _table_backend = InMemoryTableBackend()
        else:
            _table_backend = RestTableClient()
    return _table_backend


async def close_table_backend() -> None:
    global _table_backend
    if _table_backend is not None:
        await _table_backend.close()
        _table_backend = None


__all__ = [
    "CAMPAIGNS_TABLE",
    "DONATIONS_TABLE",
    "StoreAuthError",
    "StoreError",
    "StoreMutationError",
    "StoreQueryError",
    "TableBackend",
    "InMemoryTableBackend",
    "RestTableClient",
    "get_table_backend",
    "close_table_backend",
]
