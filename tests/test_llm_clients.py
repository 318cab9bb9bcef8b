import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from api.anthropic_client import AnthropicClient, extract_text_blocks
from api.factory import LLMClientFactory
from api.openai_client import OpenAIClient
from conftest import make_settings
from models.errors import NetworkError, ParseError, RequestTimeoutError, UpstreamError, ValidationError
from utils.http import RetryPolicy

pytestmark = pytest.mark.unit

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _anthropic_complete(handler, **kwargs):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            llm = AnthropicClient("sk-ant", "claude-test", client, RetryPolicy(max_attempts=1))
            return await llm.complete("Write queries", **kwargs)

    return asyncio.run(scenario())


def test_anthropic_concatenates_text_blocks_and_sends_headers():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "model": "claude-test",
                "content": [
                    {"type": "text", "text": '["a",'},
                    {"type": "tool_use", "id": "x"},
                    {"type": "text", "text": ' "b"]'},
                ],
                "usage": {"input_tokens": 12, "output_tokens": 5},
                "stop_reason": "end_turn",
            },
        )

    response = _anthropic_complete(handler, system="Be terse", max_tokens=300)

    assert response.text == '["a", "b"]'
    assert response.provider == "anthropic"
    assert response.usage.total_tokens == 17
    assert response.stop_reason == "end_turn"
    assert seen["headers"]["x-api-key"] == "sk-ant"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"]["system"] == "Be terse"
    assert seen["body"]["max_tokens"] == 300
    assert seen["body"]["messages"] == [{"role": "user", "content": "Write queries"}]


def test_anthropic_omits_system_when_not_given():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "ok"}]})

    assert _anthropic_complete(handler).text == "ok"
    assert "system" not in seen["body"]


def test_anthropic_error_message_is_surfaced():
    def handler(request):
        return httpx.Response(
            401, json={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}
        )

    with pytest.raises(UpstreamError) as excinfo:
        _anthropic_complete(handler)
    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "invalid x-api-key"
    assert excinfo.value.provider == "anthropic"


def test_anthropic_body_without_content_is_a_parse_error():
    with pytest.raises(ParseError):
        _anthropic_complete(lambda request: httpx.Response(200, json={"id": "msg_1"}))


def test_extract_text_blocks_with_no_text_blocks():
    assert extract_text_blocks({"content": []}) == ""


class _FakeCompletions:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _openai(outcome):
    completions = _FakeCompletions(outcome)
    sdk = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIClient("sk-openai", "gpt-test", timeout_s=5.0, client=sdk), completions


def test_openai_returns_first_choice_text():
    reply = SimpleNamespace(
        model="gpt-test",
        choices=[SimpleNamespace(message=SimpleNamespace(content="<p>updated</p>"), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=4, total_tokens=14),
    )
    llm, completions = _openai(reply)

    response = asyncio.run(llm.complete("Rewrite", system="You edit blogs", max_tokens=50))

    assert response.text == "<p>updated</p>"
    assert response.usage.total_tokens == 14
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "You edit blogs"},
        {"role": "user", "content": "Rewrite"},
    ]
    assert completions.kwargs["max_tokens"] == 50


def test_openai_without_choices_is_a_parse_error():
    llm, _ = _openai(SimpleNamespace(model="gpt-test", choices=[], usage=None))
    with pytest.raises(ParseError):
        asyncio.run(llm.complete("Rewrite"))


def test_openai_status_error_maps_to_upstream_error():
    request = httpx.Request("POST", OPENAI_URL)
    error = openai.RateLimitError(
        "Rate limit reached", response=httpx.Response(429, request=request), body=None
    )
    llm, _ = _openai(error)

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(llm.complete("Rewrite"))
    assert excinfo.value.status_code == 429
    assert excinfo.value.provider == "openai"


def test_openai_timeout_and_connection_errors():
    request = httpx.Request("POST", OPENAI_URL)

    llm, _ = _openai(openai.APITimeoutError(request=request))
    with pytest.raises(RequestTimeoutError):
        asyncio.run(llm.complete("Rewrite"))

    llm, _ = _openai(openai.APIConnectionError(request=request))
    with pytest.raises(NetworkError):
        asyncio.run(llm.complete("Rewrite"))


def test_factory_selects_client_by_provider():
    settings = make_settings(LLM_REQUEST_TIMEOUT_S=30.0, REWRITE_TIMEOUT_S=90.0)
    factory = LLMClientFactory(settings, http_client=None)

    anthropic_llm = factory("anthropic", "sk-ant")
    openai_llm = factory("OpenAI", "sk-openai")

    assert isinstance(anthropic_llm, AnthropicClient)
    assert anthropic_llm.model_name == settings.ANTHROPIC_MODEL
    assert anthropic_llm.retry_policy.timeout_s == 90.0
    assert isinstance(openai_llm, OpenAIClient)
    assert openai_llm.timeout_s == 90.0


def test_factory_openai_client_sends_through_the_shared_http_client():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-1",
                "object": "chat.completion",
                "created": 0,
                "model": "gpt-test",
                "choices": [
                    {"index": 0, "message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}
                ],
                "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
            },
        )

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            factory = LLMClientFactory(make_settings(), http_client)
            first = await factory("openai", "sk-one").complete("Rewrite")
            second = await factory("openai", "sk-two").complete("Rewrite")
            return first, second

    first, second = asyncio.run(scenario())

    assert (first.text, second.text) == ("ok", "ok")
    assert [str(r.url) for r in requests] == [OPENAI_URL, OPENAI_URL]
    assert [r.headers["authorization"] for r in requests] == ["Bearer sk-one", "Bearer sk-two"]


def test_factory_rejects_unknown_provider():
    factory = LLMClientFactory(make_settings(), http_client=None)
    with pytest.raises(ValidationError) as excinfo:
        factory("mistral", "key")
    assert excinfo.value.field_name == "llm_provider"
