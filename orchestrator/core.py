"""
RewriteOrchestrator - the research-and-rewrite pipeline.

Key guarantees:
- Input is validated before any network call
- Stages run strictly in order: cache check, widget protect, query
  generation, search, rewrite, widget restore, integrity check, cache store
- Nothing is cached when a run fails
- Search failures degrade to empty research; rewrite failures are fatal
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace

from api.base_client import BaseLLMClient
from config.config import IntegrityPolicy, LLMProvider, QueryFailurePolicy, Settings
from models.errors import (
    ContentOpsError,
    ParseError,
    PipelineStageError,
    RequestTimeoutError,
    UpstreamError,
    ValidationError,
)
from models.pipeline import PipelineRequest, PipelineResult, PipelineStats, SearchBatchOutcome
from orchestrator import integrity
from orchestrator.query_gen import (
    QUERY_SYSTEM_PROMPT,
    ParsedQueries,
    build_query_prompt,
    parse_query_array,
)
from orchestrator.rewrite import (
    DEFAULT_REWRITE_SYSTEM_PROMPT,
    build_rewrite_prompt,
    clean_rewrite_output,
    split_into_chunks,
)
from orchestrator.widgets import protect, restore
from tools.web.aggregator import SearchAggregator
from tools.web.cache import CacheStoreName, ContentCache
from tools.web.research_pack import build_research_findings
from utils.hashing import pipeline_cache_key
from utils.logger import get_logger

logger = get_logger(__name__)

LLMClientFactory = Callable[[str, str], BaseLLMClient]

REWRITE_TIMEOUT_HINT = "Try again with shorter content."


def validate_request(request: PipelineRequest) -> None:
    """Raise ``ValidationError`` for the first missing required input."""
    if not isinstance(request.content, str) or not request.content.strip():
        raise ValidationError("content", "content is required")
    if not request.title or not request.title.strip():
        raise ValidationError("title", "title is required")
    if request.llm_provider not in {p.value for p in LLMProvider}:
        raise ValidationError("llm_provider", f"unknown provider '{request.llm_provider}'")
    if not request.llm_key or not request.llm_key.strip():
        raise ValidationError("llm_key", f"an API key for '{request.llm_provider}' is required")
    if not any(key and key.strip() for key in request.search_keys.values()):
        raise ValidationError("search_keys", "at least one search provider key is required")


class RewriteOrchestrator:
    def __init__(
        self,
        settings: Settings,
        cache: ContentCache,
        aggregator: SearchAggregator,
        llm_factory: LLMClientFactory,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.settings = settings
        self.cache = cache
        self.aggregator = aggregator
        self.llm_factory = llm_factory
        self._clock = clock

    async def run(self, request: PipelineRequest) -> PipelineResult:
        start_time = self._clock()
        validate_request(request)

        cache_key = pipeline_cache_key(request.content, request.cache_options())
        cached = self.cache.get(CacheStoreName.PIPELINE, cache_key)
        if cached is not None:
            logger.info("Pipeline cache hit", extra={"extra_fields": {"cache_ref": cache_key}})
            return replace(cached, cached=True)

        llm = self.llm_factory(request.llm_provider, request.llm_key)
        protected = protect(request.content)
        llm_calls = 0

        logger.info(
            "Pipeline run started",
            extra={
                "extra_fields": {
                    "cache_ref": cache_key,
                    "content_length": len(request.content),
                    "widgets_protected": protected.count,
                    "llm_provider": request.llm_provider,
                    "search_providers": sorted(p.value for p in request.search_keys),
                }
            },
        )

        llm_calls += 1
        queries = await self._generate_queries(llm, request.title, protected.sanitized)

        search_keys = {p: k for p, k in request.search_keys.items() if k and k.strip()}
        outcome = await self.aggregator.run_batch(
            queries, search_keys, self.settings.SEARCH_RESULTS_PER_QUERY
        )
        findings = build_research_findings(outcome)

        chunks = split_into_chunks(protected.sanitized, self.settings.CHUNK_THRESHOLD_CHARS)
        rewritten_parts: list[str] = []
        for number, chunk in enumerate(chunks, start=1):
            llm_calls += 1
            part = (number, len(chunks)) if len(chunks) > 1 else None
            rewritten_parts.append(await self._rewrite(llm, request, chunk, findings, part))
        rewritten_protected = "".join(rewritten_parts)

        restored = restore(rewritten_protected, protected.widgets)

        report = integrity.evaluate(
            request.content,
            rewritten_protected,
            restored,
            protected.widgets,
            drift_threshold=self.settings.TAG_DRIFT_THRESHOLD,
            min_ratio=self.settings.MIN_REWRITE_RATIO,
        )
        for warning in report.warnings:
            logger.warning(
                "Rewrite integrity warning",
                extra={
                    "extra_fields": {
                        "cache_ref": cache_key,
                        "code": warning.code,
                        "detail": warning.message,
                        **warning.details,
                    }
                },
            )

        fell_back = (
            self.settings.INTEGRITY_POLICY == IntegrityPolicy.FALLBACK.value
            and integrity.requires_fallback(report)
        )
        final_content = request.content if fell_back else restored

        stats = PipelineStats(
            searches_performed=outcome.searches_attempted,
            unique_results_used=outcome.unique_count,
            elapsed_seconds=self._clock() - start_time,
            widgets_protected=protected.count,
            llm_calls=llm_calls,
            queries_generated=len(queries),
            chunks=len(chunks),
        )
        result = PipelineResult(
            rewritten_content=final_content,
            stats=stats,
            research_sample=outcome.unique_results[: self.settings.RESEARCH_SAMPLE_SIZE],
            queries=queries,
            changes=self._summarize_changes(stats, outcome, report, fell_back),
            warnings=report.warnings,
            fell_back_to_original=fell_back,
        )
        self.cache.set(CacheStoreName.PIPELINE, cache_key, result)

        logger.info(
            "Pipeline run complete",
            extra={"extra_fields": {"cache_ref": cache_key, **stats.to_dict()}},
        )
        return result

    async def _generate_queries(self, llm: BaseLLMClient, title: str, protected_content: str) -> tuple[str, ...]:
        abort = self.settings.QUERY_FAILURE_POLICY == QueryFailurePolicy.ABORT.value
        prompt = build_query_prompt(
            title,
            protected_content,
            self.settings.QUERY_CONTENT_PREFIX_CHARS,
            self.settings.MAX_QUERIES,
        )
        try:
            response = await llm.complete(
                prompt, system=QUERY_SYSTEM_PROMPT, max_tokens=self.settings.QUERY_MAX_TOKENS
            )
        except ContentOpsError as e:
            if abort:
                raise PipelineStageError("query_generation", e) from e
            logger.warning(
                "Query generation failed, continuing without research",
                extra={"extra_fields": {"error_kind": e.kind, "error": e.message}},
            )
            return ()

        parsed = parse_query_array(response.text, self.settings.MAX_QUERIES)
        if isinstance(parsed, ParsedQueries) and parsed.queries:
            return parsed.queries

        reason = "no queries returned" if isinstance(parsed, ParsedQueries) else parsed.reason
        if abort:
            raise PipelineStageError("query_generation", ParseError("query generation answer", reason))
        logger.warning(
            "No usable search queries, continuing without research",
            extra={"extra_fields": {"reason": reason}},
        )
        return ()

    async def _rewrite(
        self,
        llm: BaseLLMClient,
        request: PipelineRequest,
        content: str,
        findings: str,
        part: tuple[int, int] | None,
    ) -> str:
        prompt = build_rewrite_prompt(
            content,
            findings,
            keywords=request.keywords,
            target_keyword=request.target_keyword,
            part=part,
        )
        timeout_s = self.settings.REWRITE_TIMEOUT_S
        try:
            response = await asyncio.wait_for(
                llm.complete(
                    prompt,
                    system=request.writing_prompt or DEFAULT_REWRITE_SYSTEM_PROMPT,
                    max_tokens=self.settings.REWRITE_MAX_TOKENS,
                ),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise PipelineStageError(
                "rewrite", RequestTimeoutError("rewrite", timeout_s, hint=REWRITE_TIMEOUT_HINT)
            ) from e
        except ContentOpsError as e:
            raise PipelineStageError("rewrite", e) from e

        text = clean_rewrite_output(response.text)
        if not text:
            raise PipelineStageError(
                "rewrite", UpstreamError(response.provider, None, "The rewrite returned no content")
            )
        return text

    def _summarize_changes(
        self,
        stats: PipelineStats,
        outcome: SearchBatchOutcome,
        report: integrity.IntegrityReport,
        fell_back: bool,
    ) -> tuple[str, ...]:
        changes = [
            f"Generated {stats.queries_generated} research queries",
            f"Performed {stats.searches_performed} searches, "
            f"{outcome.unique_count} unique sources found",
        ]
        if stats.widgets_protected:
            changes.append(f"Protected {stats.widgets_protected} embedded widgets")
        if stats.chunks > 1:
            changes.append(f"Rewrote content in {stats.chunks} parts")
        else:
            changes.append("Updated facts and readability from research")
        if report.warnings:
            changes.append(f"{len(report.warnings)} integrity warning(s) raised")
        if fell_back:
            changes.append("Kept the original content because the rewrite failed integrity checks")
        return tuple(changes)
