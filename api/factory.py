"""Build an LLM client for the provider and credential of one request."""

import httpx

from config.config import LLMProvider, Settings
from models.errors import ValidationError
from utils.http import RetryPolicy

from .anthropic_client import AnthropicClient
from .base_client import BaseLLMClient
from .openai_client import OpenAIClient


class LLMClientFactory:
    """Callable that turns ``(provider, api_key)`` into a ready client."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client
        # One attempt may run as long as the rewrite deadline
        self.timeout_s = max(settings.LLM_REQUEST_TIMEOUT_S, settings.REWRITE_TIMEOUT_S)
        self.retry_policy = RetryPolicy(
            timeout_s=self.timeout_s,
            max_attempts=settings.FETCH_MAX_ATTEMPTS,
            backoff_base_s=settings.FETCH_BACKOFF_BASE_S,
            backoff_cap_s=settings.FETCH_BACKOFF_CAP_S,
        )

    def __call__(self, provider: str, api_key: str) -> BaseLLMClient:
        try:
            llm_provider = LLMProvider(provider.lower())
        except ValueError:
            raise ValidationError(
                "llm_provider",
                f"unknown provider '{provider}'. Valid providers: "
                f"{', '.join(p.value for p in LLMProvider)}",
            ) from None

        if llm_provider == LLMProvider.OPENAI:
            return OpenAIClient(
                api_key=api_key,
                model_name=self.settings.OPENAI_MODEL,
                timeout_s=self.timeout_s,
                http_client=self.http_client,
            )
        return AnthropicClient(
            api_key=api_key,
            model_name=self.settings.ANTHROPIC_MODEL,
            http_client=self.http_client,
            retry_policy=self.retry_policy,
        )
