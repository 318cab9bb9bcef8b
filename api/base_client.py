from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if self.total_tokens == 0 and (self.prompt_tokens > 0 or self.completion_tokens > 0):
            object.__setattr__(self, "total_tokens", self.prompt_tokens + self.completion_tokens)


@dataclass(frozen=True)
class LLMResponse:
    text: str
    provider: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    stop_reason: str | None = None


class BaseLLMClient(ABC):
    """
    Abstract base class for text-generation clients.

    Implementations raise the shared error taxonomy instead of returning
    error objects: ``UpstreamError`` for non-success responses,
    ``NetworkError`` / ``RequestTimeoutError`` for transport failures and
    ``ParseError`` for bodies that do not have the expected shape.
    """

    provider_name: str = "unknown"

    def __init__(self, api_key: str, model_name: str):
        """
        Args:
            api_key: Credential for the provider, supplied per request by the caller
            model_name: Model identifier sent with every call
        """
        self.api_key = api_key
        self.model_name = model_name

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """
        Send one user message and return the generated text.

        Args:
            prompt: The user message
            system: Optional system instruction
            max_tokens: Upper bound on the output size

        Returns:
            LLMResponse whose ``text`` joins the text parts of the answer in order
        """
