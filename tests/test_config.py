import pytest

from config.config import Settings

pytestmark = pytest.mark.unit

ENV_NAMES = [
    "RATE_LIMIT_MAX", "SEARCH_CACHE_TTL_S", "CORS_ALLOW_ORIGINS", "INTEGRITY_POLICY",
    "DEBUG_ERRORS", "QUERY_FAILURE_POLICY", "WEBFLOW_PAGE_SIZE", "PORT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults(clean_env):
    settings = Settings(load_env_file=False)

    assert settings.PORT == 3000
    assert settings.RATE_LIMIT_MAX == 30
    assert settings.RATE_LIMIT_WINDOW_S == 60.0
    assert settings.SEARCH_BATCH_SIZE == 3
    assert settings.SEARCH_BATCH_DELAY_S == 0.6
    assert settings.CORS_ALLOW_ORIGINS == ["*"]
    assert settings.INTEGRITY_POLICY == "log"
    assert settings.QUERY_FAILURE_POLICY == "proceed"
    assert settings.DEBUG_ERRORS is False
    assert settings.validate() == []


def test_environment_overrides(mock_env):
    settings = Settings(load_env_file=False)

    assert settings.RATE_LIMIT_MAX == 5
    assert settings.SEARCH_CACHE_TTL_S == 120.0
    assert settings.CORS_ALLOW_ORIGINS == ["https://a.example", "https://b.example"]
    assert settings.INTEGRITY_POLICY == "fallback"
    assert settings.DEBUG_ERRORS is True


def test_malformed_numbers_fall_back_to_defaults(clean_env, monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    assert Settings(load_env_file=False).PORT == 3000


def test_validate_reports_problems(clean_env, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_MAX", "0")
    monkeypatch.setenv("WEBFLOW_PAGE_SIZE", "500")
    monkeypatch.setenv("INTEGRITY_POLICY", "explode")
    monkeypatch.setenv("QUERY_FAILURE_POLICY", "retry")

    problems = Settings(load_env_file=False).validate()

    assert "RATE_LIMIT_MAX must be at least 1" in problems
    assert "WEBFLOW_PAGE_SIZE must be between 1 and 100" in problems
    assert any(p.startswith("Unknown INTEGRITY_POLICY 'explode'") for p in problems)
    assert any(p.startswith("Unknown QUERY_FAILURE_POLICY 'retry'") for p in problems)
