from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from models.errors import IntegrityWarning


class SearchProviderName(str, Enum):
    BRAVE = "brave"
    TAVILY = "tavily"


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str
    source_provider: SearchProviderName

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source_provider": self.source_provider.value,
        }


@dataclass(frozen=True)
class QueryResults:
    """Results of one query across every provider, in provider order."""

    query: str
    results: tuple[SearchResult, ...] = ()


@dataclass(frozen=True)
class SearchBatchOutcome:
    groups: tuple[QueryResults, ...]
    unique_results: tuple[SearchResult, ...]
    searches_attempted: int

    @property
    def unique_count(self) -> int:
        return len(self.unique_results)


@dataclass(frozen=True)
class WidgetToken:
    index: int
    raw_fragment: str

    @property
    def placeholder(self) -> str:
        return f"___WIDGET_{self.index}___"


@dataclass(frozen=True)
class PipelineRequest:
    content: str
    title: str
    llm_key: str
    search_keys: dict[SearchProviderName, str] = field(default_factory=dict)
    llm_provider: str = "anthropic"
    writing_prompt: str | None = None
    keywords: tuple[str, ...] = ()
    target_keyword: str | None = None

    def cache_options(self) -> dict[str, Any]:
        """Inputs besides the content that change the pipeline output."""
        return {
            "title": self.title,
            "llm_provider": self.llm_provider,
            "providers": sorted(p.value for p in self.search_keys),
            "writing_prompt": self.writing_prompt or "",
            "keywords": list(self.keywords),
            "target_keyword": self.target_keyword or "",
        }


@dataclass(frozen=True)
class PipelineStats:
    searches_performed: int = 0
    unique_results_used: int = 0
    elapsed_seconds: float = 0.0
    widgets_protected: int = 0
    llm_calls: int = 0
    queries_generated: int = 0
    chunks: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "searches_performed": self.searches_performed,
            "unique_results_used": self.unique_results_used,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "widgets_protected": self.widgets_protected,
            "llm_calls": self.llm_calls,
            "queries_generated": self.queries_generated,
            "chunks": self.chunks,
        }


@dataclass(frozen=True)
class PipelineResult:
    rewritten_content: str
    stats: PipelineStats
    research_sample: tuple[SearchResult, ...] = ()
    queries: tuple[str, ...] = ()
    changes: tuple[str, ...] = ()
    warnings: tuple[IntegrityWarning, ...] = ()
    fell_back_to_original: bool = False
    cached: bool = False
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.rewritten_content,
            "stats": self.stats.to_dict(),
            "research_sample": [r.to_dict() for r in self.research_sample],
            "queries": list(self.queries),
            "changes": list(self.changes),
            "warnings": [w.to_dict() for w in self.warnings],
            "fell_back_to_original": self.fell_back_to_original,
            "cached": self.cached,
            "created_at": self.created_at,
        }
