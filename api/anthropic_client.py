import time
from typing import Any

import httpx

from models.errors import ParseError, UpstreamError
from utils.http import RetryPolicy, fetch_resilient
from utils.logger import get_logger

from .base_client import BaseLLMClient, LLMResponse, TokenUsage

logger = get_logger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


def extract_text_blocks(payload: Any) -> str:
    """Concatenate the ``text`` blocks of a Messages API body, in order."""
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), list):
        raise ParseError("anthropic response", "missing 'content' block list")
    parts: list[str] = []
    for block in payload["content"]:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text") or ""))
    return "".join(parts)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class AnthropicClient(BaseLLMClient):
    """
    Client for the Anthropic Messages API over the shared httpx client.

    Every call goes through ``fetch_resilient``, so transport failures are
    retried with backoff while HTTP error responses surface immediately as
    ``UpstreamError`` with the provider's own message.
    """

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model_name: str,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        base_url: str = ANTHROPIC_MESSAGES_URL,
    ):
        super().__init__(api_key, model_name)
        self.http_client = http_client
        self.retry_policy = retry_policy or RetryPolicy(timeout_s=60.0, max_attempts=2)
        self.base_url = base_url

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        body: dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            body["system"] = system

        start_time = time.time()
        response = await fetch_resilient(
            self.http_client,
            "POST",
            self.base_url,
            policy=self.retry_policy,
            json=body,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
        )
        latency_ms = int((time.time() - start_time) * 1000)

        if not response.is_success:
            message = _error_message(response)
            logger.error(
                "Anthropic completion failed",
                extra={
                    "extra_fields": {
                        "model": self.model_name,
                        "status_code": response.status_code,
                        "error_message": message,
                        "latency_ms": latency_ms,
                    }
                },
            )
            raise UpstreamError(self.provider_name, response.status_code, message)

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError("anthropic response", f"body is not JSON: {e}") from e

        text = extract_text_blocks(payload)
        usage_raw = payload.get("usage") or {}
        usage = TokenUsage(
            prompt_tokens=int(usage_raw.get("input_tokens") or 0),
            completion_tokens=int(usage_raw.get("output_tokens") or 0),
        )

        logger.info(
            "Anthropic completion successful",
            extra={
                "extra_fields": {
                    "model": self.model_name,
                    "latency_ms": latency_ms,
                    "tokens": usage.total_tokens,
                    "stop_reason": payload.get("stop_reason"),
                }
            },
        )

        return LLMResponse(
            text=text,
            provider=self.provider_name,
            model=str(payload.get("model") or self.model_name),
            usage=usage,
            stop_reason=payload.get("stop_reason"),
        )
