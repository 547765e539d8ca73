from typing import Any, Dict

from fastapi import APIRouter

from ..config import settings
from ..db import StoreError, get_table_backend

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies the backing store"""

    try:
        store_status = await get_table_backend().health_check()
    except StoreError as exc:
        store_status = {"status": "unconfigured", "error": str(exc)}

    return {
        "status": "healthy" if store_status["status"] == "healthy" else "degraded",
        "store": store_status,
        "required_chain_id": settings.required_chain_id,
        "wallet_rpc_configured": settings.has_wallet_rpc,
    }
