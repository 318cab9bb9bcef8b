"""
Models package for pipeline data objects and the error taxonomy.
"""

from .errors import (
    ContentOpsError,
    IntegrityWarning,
    NetworkError,
    ParseError,
    PipelineStageError,
    RateLimitedError,
    RequestTimeoutError,
    UpstreamError,
    ValidationError,
)
from .pipeline import (
    PipelineRequest,
    PipelineResult,
    PipelineStats,
    QueryResults,
    SearchBatchOutcome,
    SearchProviderName,
    SearchResult,
    WidgetToken,
)

__all__ = [
    "ContentOpsError",
    "IntegrityWarning",
    "NetworkError",
    "ParseError",
    "PipelineRequest",
    "PipelineResult",
    "PipelineStageError",
    "PipelineStats",
    "QueryResults",
    "RateLimitedError",
    "RequestTimeoutError",
    "SearchBatchOutcome",
    "SearchProviderName",
    "SearchResult",
    "UpstreamError",
    "ValidationError",
    "WidgetToken",
]
