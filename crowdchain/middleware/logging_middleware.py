"""
HTTP request logging middleware.

Each request is logged once, with its timing, under a request id that is
echoed back in ``x-request-id``. A valid ``x-actor-address`` header is bound
as the acting account so store and session logs for the request carry it.
"""

import time
import uuid
from typing import Optional

import structlog
from eth_utils import is_address
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("http")

REQUEST_ID_HEADER = "x-request-id"
ACTOR_HEADER = "x-actor-address"

# Polled by load balancers; only failures are worth more than debug
QUIET_PATHS = frozenset({"/healthz"})


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def actor_from_header(value: Optional[str]) -> Optional[str]:
    """Lowercased wallet address from the actor header, or None when absent or malformed."""
    if not value or not is_address(value):
        return None
    return value.lower()


def log_level_for(path: str, status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    return "debug" if path in QUIET_PATHS else "info"


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        raw_actor = request.headers.get(ACTOR_HEADER)
        actor = actor_from_header(raw_actor)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        if actor:
            structlog.contextvars.bind_contextvars(account=actor)
        elif raw_actor:
            logger.warning("ignoring_malformed_actor", path=request.url.path)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            log = getattr(logger, log_level_for(request.url.path, status_code))
            log(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
