"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.factory import LLMClientFactory
from api.webflow_client import WebflowClient
from config.config import Settings, get_settings
from orchestrator.core import RewriteOrchestrator
from server.exception_handlers import setup_exception_handlers
from server.middleware import RequestIDMiddleware
from server.routes import health, smartcheck, webflow
from tools.web.aggregator import SearchAggregator
from tools.web.cache import ContentCache, PeriodicSweeper
from tools.web.inflight import InFlightDeduplicator
from tools.web.providers import build_providers
from utils.http import RetryPolicy
from utils.logger import get_logger
from utils.rate_limiter import FixedWindowRateLimiter

logger = get_logger(__name__)


def build_services(app: FastAPI, settings: Settings, http_client: httpx.AsyncClient) -> None:
    """Create the process-wide stores and services and attach them to ``app.state``."""
    fetch_policy = RetryPolicy(
        timeout_s=settings.FETCH_TIMEOUT_S,
        max_attempts=settings.FETCH_MAX_ATTEMPTS,
        backoff_base_s=settings.FETCH_BACKOFF_BASE_S,
        backoff_cap_s=settings.FETCH_BACKOFF_CAP_S,
    )
    search_policy = RetryPolicy(
        timeout_s=settings.SEARCH_TIMEOUT_S,
        max_attempts=settings.FETCH_MAX_ATTEMPTS,
        backoff_base_s=settings.FETCH_BACKOFF_BASE_S,
        backoff_cap_s=settings.FETCH_BACKOFF_CAP_S,
    )

    cache = ContentCache(
        search_ttl_s=settings.SEARCH_CACHE_TTL_S,
        listing_ttl_s=settings.LISTING_CACHE_TTL_S,
        pipeline_ttl_s=settings.PIPELINE_CACHE_TTL_S,
    )
    aggregator = SearchAggregator(
        build_providers(http_client, search_policy),
        cache,
        batch_size=settings.SEARCH_BATCH_SIZE,
        batch_delay_s=settings.SEARCH_BATCH_DELAY_S,
    )

    app.state.cache = cache
    app.state.rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX, window_s=settings.RATE_LIMIT_WINDOW_S
    )
    app.state.orchestrator = RewriteOrchestrator(
        settings, cache, aggregator, LLMClientFactory(settings, http_client)
    )
    app.state.webflow_client = WebflowClient(
        http_client,
        cache,
        InFlightDeduplicator(),
        base_url=settings.WEBFLOW_API_BASE,
        page_size=settings.WEBFLOW_PAGE_SIZE,
        retry_policy=fetch_policy,
    )
    app.state.sweeper = PeriodicSweeper(
        [cache, app.state.rate_limiter], interval_s=settings.CACHE_SWEEP_INTERVAL_S
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown logic."""
    settings: Settings = app.state.settings
    logger.info("FastAPI server starting up")

    problems = settings.validate()
    if problems:
        logger.warning("Configuration problems found", extra={"extra_fields": {"problems": problems}})

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.FETCH_TIMEOUT_S))
    build_services(app, settings, http_client)
    app.state.sweeper.start()

    try:
        yield
    finally:
        await app.state.sweeper.stop()
        await http_client.aclose()
        logger.info("FastAPI server shutting down")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="ContentOps API",
        description="Research-backed blog rewriting and Webflow CMS proxy",
        version=health.API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials="*" not in settings.CORS_ALLOW_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app, settings)

    app.include_router(health.router)
    app.include_router(smartcheck.router)
    app.include_router(webflow.router)

    return app
