"""Shared utilities for FastAPI routes."""

from collections.abc import Mapping

from fastapi import Request

SENSITIVE_HEADERS = {"x-api-key", "authorization", "x-subscription-token"}


def redact_sensitive_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """
    Redact auth-bearing headers before logging.
    """
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS and value:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting: first forwarded address, else the peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
