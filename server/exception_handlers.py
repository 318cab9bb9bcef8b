"""Map the error taxonomy onto HTTP responses.

Every error leaves the API in one envelope:

    {"error": {"kind": "...", "message": "...", "details": {...}}}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config.config import Settings
from models.errors import ContentOpsError, PipelineStageError, RateLimitedError, UpstreamError
from utils.logger import get_logger

logger = get_logger(__name__)

KIND_TO_STATUS: dict[str, int] = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
    "upstream": status.HTTP_502_BAD_GATEWAY,
    "network": status.HTTP_502_BAD_GATEWAY,
    "parse": status.HTTP_502_BAD_GATEWAY,
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
}

# Credential and quota rejections keep the upstream status
PASSTHROUGH_UPSTREAM_STATUSES = {401, 403, 429}


def status_for(exc: ContentOpsError) -> int:
    upstream = exc.cause if isinstance(exc, PipelineStageError) else exc
    if isinstance(upstream, UpstreamError) and upstream.status_code in PASSTHROUGH_UPSTREAM_STATUSES:
        return upstream.status_code
    return KIND_TO_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(status_code: int, kind: str, message: str, details: dict | None = None,
                   headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"kind": kind, "message": message, "details": details or {}}},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register the handlers on ``app``. Call once from the app factory."""

    @app.exception_handler(ContentOpsError)
    async def contentops_error_handler(request: Request, exc: ContentOpsError) -> JSONResponse:
        status_code = status_for(exc)
        logger.warning(
            f"Request failed: {exc.message}",
            extra={
                "extra_fields": {
                    "request_id": getattr(request.state, "request_id", "unknown"),
                    "method": request.method,
                    "path": request.url.path,
                    "kind": exc.kind,
                    "status_code": status_code,
                }
            },
        )
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(max(1, int(round(exc.retry_after_s))))}
        return error_response(status_code, exc.kind, exc.message, exc.details, headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "reason": err.get("msg")}
            for err in exc.errors()
        ]
        return error_response(
            status.HTTP_400_BAD_REQUEST, "validation", "Request body is invalid", {"errors": errors}
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={
                "extra_fields": {
                    "request_id": getattr(request.state, "request_id", "unknown"),
                    "method": request.method,
                    "path": request.url.path,
                    "error_type": type(exc).__name__,
                }
            },
        )
        details = {"error_type": type(exc).__name__, "error": str(exc)} if settings.DEBUG_ERRORS else {}
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal", "An internal error occurred", details
        )
