import time

import httpx
import openai

from models.errors import NetworkError, ParseError, RequestTimeoutError, UpstreamError
from utils.logger import get_logger

from .base_client import BaseLLMClient, LLMResponse, TokenUsage

logger = get_logger(__name__)


class OpenAIClient(BaseLLMClient):
    """
    A client for the OpenAI chat completions API.

    SDK-level retries are disabled; the error is translated into the shared
    taxonomy and the pipeline decides what to do with it.
    """

    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        model_name: str = "gpt-4o",
        timeout_s: float = 60.0,
        client: openai.AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the OpenAI client.

        Args:
            api_key: The OpenAI API key
            model_name: The name of the model to use (default: gpt-4o)
            timeout_s: Per-request timeout passed to the SDK
            client: Pre-built SDK client, mainly for tests
            http_client: Shared connection pool for the SDK to send requests through
        """
        super().__init__(api_key, model_name)
        self.timeout_s = timeout_s
        self.client = client or openai.AsyncOpenAI(
            api_key=api_key, timeout=timeout_s, max_retries=0, http_client=http_client
        )

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            raise RequestTimeoutError("openai chat completion", self.timeout_s) from e
        except openai.APIConnectionError as e:
            raise NetworkError("https://api.openai.com/v1/chat/completions", 1, str(e)) from e
        except openai.APIStatusError as e:
            logger.error(
                "OpenAI completion failed",
                extra={
                    "extra_fields": {
                        "model": self.model_name,
                        "status_code": e.status_code,
                        "error_message": str(e.message),
                    }
                },
            )
            raise UpstreamError(self.provider_name, e.status_code, str(e.message)) from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise ParseError("openai response", "no choices returned")
        choice = response.choices[0]
        text = choice.message.content or ""

        usage = TokenUsage()
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        logger.info(
            "OpenAI completion successful",
            extra={
                "extra_fields": {
                    "model": self.model_name,
                    "latency_ms": latency_ms,
                    "tokens": usage.total_tokens,
                    "finish_reason": choice.finish_reason,
                }
            },
        )

        return LLMResponse(
            text=text,
            provider=self.provider_name,
            model=getattr(response, "model", None) or self.model_name,
            usage=usage,
            stop_reason=choice.finish_reason,
        )
