import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv


class LLMProvider(Enum):
    """Supported text-generation providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class IntegrityPolicy(Enum):
    """What to do when a rewrite looks structurally damaged."""
    LOG = "log"
    FALLBACK = "fallback"


class QueryFailurePolicy(Enum):
    """What to do when query generation yields nothing usable."""
    PROCEED = "proceed"
    ABORT = "abort"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Configuration management for the application.

    Values come from the process environment, optionally seeded from a ``.env``
    file at the project root. Components take the values they need through
    their constructors; nothing below reads the environment after ``__init__``.
    """

    def __init__(self, load_env_file: bool = True):
        if load_env_file:
            env_path = Path(__file__).parent.parent / ".env"
            if env_path.exists():
                load_dotenv(dotenv_path=env_path)

        # Server
        self.HOST = os.getenv("HOST", "127.0.0.1")
        self.PORT = _env_int("PORT", 3000)
        self.CORS_ALLOW_ORIGINS = _env_list("CORS_ALLOW_ORIGINS", ["*"])
        self.DEBUG_ERRORS = _env_bool("DEBUG_ERRORS", False)

        # Caches (seconds)
        self.SEARCH_CACHE_TTL_S = _env_float("SEARCH_CACHE_TTL_S", 3600.0)
        self.LISTING_CACHE_TTL_S = _env_float("LISTING_CACHE_TTL_S", 300.0)
        self.PIPELINE_CACHE_TTL_S = _env_float("PIPELINE_CACHE_TTL_S", 1800.0)
        self.CACHE_SWEEP_INTERVAL_S = _env_float("CACHE_SWEEP_INTERVAL_S", 300.0)

        # Rate limiting (fixed window)
        self.RATE_LIMIT_MAX = _env_int("RATE_LIMIT_MAX", 30)
        self.RATE_LIMIT_WINDOW_S = _env_float("RATE_LIMIT_WINDOW_S", 60.0)

        # Outbound HTTP
        self.FETCH_TIMEOUT_S = _env_float("FETCH_TIMEOUT_S", 30.0)
        self.FETCH_MAX_ATTEMPTS = _env_int("FETCH_MAX_ATTEMPTS", 3)
        self.FETCH_BACKOFF_BASE_S = _env_float("FETCH_BACKOFF_BASE_S", 1.0)
        self.FETCH_BACKOFF_CAP_S = _env_float("FETCH_BACKOFF_CAP_S", 8.0)

        # Search
        self.SEARCH_TIMEOUT_S = _env_float("SEARCH_TIMEOUT_S", 10.0)
        self.SEARCH_BATCH_SIZE = _env_int("SEARCH_BATCH_SIZE", 3)
        self.SEARCH_BATCH_DELAY_S = _env_float("SEARCH_BATCH_DELAY_S", 0.6)
        self.SEARCH_RESULTS_PER_QUERY = _env_int("SEARCH_RESULTS_PER_QUERY", 5)
        self.MAX_QUERIES = _env_int("MAX_QUERIES", 8)

        # LLM
        self.ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
        self.OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
        self.QUERY_MAX_TOKENS = _env_int("QUERY_MAX_TOKENS", 1000)
        self.REWRITE_MAX_TOKENS = _env_int("REWRITE_MAX_TOKENS", 16000)
        self.QUERY_CONTENT_PREFIX_CHARS = _env_int("QUERY_CONTENT_PREFIX_CHARS", 3000)
        self.LLM_REQUEST_TIMEOUT_S = _env_float("LLM_REQUEST_TIMEOUT_S", 60.0)
        self.REWRITE_TIMEOUT_S = _env_float("REWRITE_TIMEOUT_S", 120.0)

        # Pipeline policy
        self.RESEARCH_SAMPLE_SIZE = _env_int("RESEARCH_SAMPLE_SIZE", 15)
        self.CHUNK_THRESHOLD_CHARS = _env_int("CHUNK_THRESHOLD_CHARS", 60000)
        self.INTEGRITY_POLICY = os.getenv("INTEGRITY_POLICY", IntegrityPolicy.LOG.value).lower()
        self.TAG_DRIFT_THRESHOLD = _env_float("TAG_DRIFT_THRESHOLD", 0.3)
        self.MIN_REWRITE_RATIO = _env_float("MIN_REWRITE_RATIO", 0.5)
        self.QUERY_FAILURE_POLICY = os.getenv(
            "QUERY_FAILURE_POLICY", QueryFailurePolicy.PROCEED.value
        ).lower()

        # Item store
        self.WEBFLOW_API_BASE = os.getenv("WEBFLOW_API_BASE", "https://api.webflow.com/v2")
        self.WEBFLOW_PAGE_SIZE = _env_int("WEBFLOW_PAGE_SIZE", 100)

    def validate(self) -> list[str]:
        """
        Check the loaded values for problems.

        Returns:
            list[str]: Human-readable problems; empty when the configuration is usable
        """
        problems: list[str] = []
        for name in (
            "SEARCH_CACHE_TTL_S",
            "LISTING_CACHE_TTL_S",
            "PIPELINE_CACHE_TTL_S",
            "CACHE_SWEEP_INTERVAL_S",
            "RATE_LIMIT_WINDOW_S",
            "FETCH_TIMEOUT_S",
            "REWRITE_TIMEOUT_S",
        ):
            if getattr(self, name) <= 0:
                problems.append(f"{name} must be positive")
        for name in ("RATE_LIMIT_MAX", "FETCH_MAX_ATTEMPTS", "SEARCH_BATCH_SIZE", "MAX_QUERIES"):
            if getattr(self, name) < 1:
                problems.append(f"{name} must be at least 1")
        if self.WEBFLOW_PAGE_SIZE < 1 or self.WEBFLOW_PAGE_SIZE > 100:
            problems.append("WEBFLOW_PAGE_SIZE must be between 1 and 100")
        if self.INTEGRITY_POLICY not in {p.value for p in IntegrityPolicy}:
            problems.append(
                f"Unknown INTEGRITY_POLICY '{self.INTEGRITY_POLICY}'. "
                f"Must be one of: {', '.join(p.value for p in IntegrityPolicy)}"
            )
        if self.QUERY_FAILURE_POLICY not in {p.value for p in QueryFailurePolicy}:
            problems.append(
                f"Unknown QUERY_FAILURE_POLICY '{self.QUERY_FAILURE_POLICY}'. "
                f"Must be one of: {', '.join(p.value for p in QueryFailurePolicy)}"
            )
        return problems


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
