"""FastAPI dependencies for rate limiting and access to app-scoped services."""

from fastapi import Depends, Request

from api.webflow_client import WebflowClient
from models.errors import RateLimitedError
from orchestrator.core import RewriteOrchestrator
from server.utils import client_key, redact_sensitive_headers
from utils.logger import get_logger
from utils.rate_limiter import FixedWindowRateLimiter

logger = get_logger(__name__)


def get_orchestrator(request: Request) -> RewriteOrchestrator:
    """The orchestrator built by the lifespan."""
    return request.app.state.orchestrator


def get_webflow_client(request: Request) -> WebflowClient:
    return request.app.state.webflow_client


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


async def enforce_rate_limit(
    request: Request, limiter: FixedWindowRateLimiter = Depends(get_rate_limiter)
) -> str:
    """Reject the request with ``RateLimitedError`` once the caller's window is full."""
    key = client_key(request)
    try:
        limiter.check(key)
    except RateLimitedError:
        logger.debug(
            "Rejected request headers",
            extra={
                "extra_fields": {
                    "request_id": getattr(request.state, "request_id", "unknown"),
                    "headers": redact_sensitive_headers(dict(request.headers)),
                }
            },
        )
        raise
    return key


def get_authorization(request: Request) -> str:
    """The caller's ``Authorization`` header, forwarded to the item store untouched."""
    return request.headers.get("authorization", "")
