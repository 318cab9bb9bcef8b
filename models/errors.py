"""Error taxonomy shared by the pipeline, the HTTP helpers and the API layer."""

from dataclasses import dataclass, field
from typing import Any


class ContentOpsError(Exception):
    """Base class for every error the backend raises on purpose.

    ``kind`` is the machine-readable category surfaced to API clients,
    ``details`` carries diagnostics that are safe to return.
    """

    kind = "internal"
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(ContentOpsError):
    """Required input is missing or malformed; no network call was made."""

    kind = "validation"

    def __init__(self, field_name: str, reason: str, details: dict[str, Any] | None = None):
        self.field_name = field_name
        super().__init__(
            f"Validation failed for '{field_name}': {reason}",
            details or {"field": field_name, "reason": reason},
        )


class UpstreamError(ContentOpsError):
    """An external service answered with a non-success response."""

    kind = "upstream"

    def __init__(
        self,
        provider: str,
        status_code: int | None,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.provider = provider
        self.status_code = status_code
        merged = {"provider": provider, "status_code": status_code}
        merged.update(details or {})
        super().__init__(message, merged)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code in {408, 429} or (self.status_code or 0) >= 500


class NetworkError(ContentOpsError):
    """Transport-level failure after all retry attempts were used."""

    kind = "network"
    retryable = True

    def __init__(self, url: str, attempts: int, reason: str):
        self.url = url
        self.attempts = attempts
        super().__init__(
            f"Request to {url} failed after {attempts} attempt(s): {reason}",
            {"attempts": attempts, "reason": reason},
        )


class RequestTimeoutError(ContentOpsError):
    """The last attempt (or a stage deadline) ran out of time."""

    kind = "timeout"
    retryable = True

    def __init__(self, operation: str, timeout_s: float, attempts: int = 1, hint: str | None = None):
        self.operation = operation
        self.timeout_s = timeout_s
        self.attempts = attempts
        message = f"'{operation}' timed out after {timeout_s:g}s"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(
            message, {"operation": operation, "timeout_s": timeout_s, "attempts": attempts}
        )


TRANSPORT_ERRORS = (NetworkError, RequestTimeoutError)


class ParseError(ContentOpsError):
    """A response body could not be interpreted in the expected shape."""

    kind = "parse"

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"Could not parse {source}: {reason}", {"source": source, "reason": reason})


class RateLimitedError(ContentOpsError):
    """The caller exceeded the configured request rate."""

    kind = "rate_limited"
    retryable = True

    def __init__(self, client_key: str, retry_after_s: float):
        self.client_key = client_key
        self.retry_after_s = retry_after_s
        super().__init__(
            "Too many requests, please retry later",
            {"retry_after_s": round(max(retry_after_s, 0.0), 1)},
        )


class PipelineStageError(ContentOpsError):
    """A pipeline stage failed terminally.

    Wraps the underlying error and keeps its ``kind`` so API clients can still
    tell a timeout from an upstream rejection.
    """

    def __init__(self, stage: str, cause: ContentOpsError):
        self.stage = stage
        self.cause = cause
        self.kind = cause.kind
        details = dict(cause.details)
        details["stage"] = stage
        super().__init__(cause.message, details)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.cause.retryable


@dataclass(frozen=True)
class IntegrityWarning:
    """Non-fatal signal that rewritten content diverged from its input.

    Logged and returned to the caller; never raised.
    """

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}
