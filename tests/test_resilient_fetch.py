import asyncio

import httpx
import pytest

from models.errors import NetworkError, RequestTimeoutError
from utils.http import RetryPolicy, fetch_resilient

pytestmark = pytest.mark.unit

URL = "https://api.example.com/items?token=secret"


def _run(handler, policy, sleeps):
    async def record_sleep(seconds):
        sleeps.append(seconds)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_resilient(client, "GET", URL, policy=policy, sleep=record_sleep)

    return asyncio.run(scenario())


def test_delay_is_exponential_and_capped():
    policy = RetryPolicy(backoff_base_s=1.0, backoff_cap_s=3.0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]


def test_transport_failures_are_retried_until_success():
    attempts = []
    sleeps = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    response = _run(handler, RetryPolicy(max_attempts=3), sleeps)

    assert response.status_code == 200
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.parametrize("status_code", [429, 500, 503])
def test_http_error_responses_are_returned_without_retry(status_code):
    attempts = []
    sleeps = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(status_code, json={"error": "nope"})

    response = _run(handler, RetryPolicy(max_attempts=3), sleeps)

    assert response.status_code == status_code
    assert len(attempts) == 1
    assert sleeps == []


def test_final_transport_failure_raises_network_error():
    sleeps = []

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError) as excinfo:
        _run(handler, RetryPolicy(max_attempts=3, backoff_base_s=0.5), sleeps)

    assert excinfo.value.attempts == 3
    assert excinfo.value.kind == "network"
    assert "secret" not in excinfo.value.message
    assert sleeps == [0.5, 1.0]


def test_httpx_timeout_raises_timeout_error():
    sleeps = []

    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(RequestTimeoutError) as excinfo:
        _run(handler, RetryPolicy(max_attempts=2), sleeps)

    assert excinfo.value.kind == "timeout"
    assert excinfo.value.attempts == 2
    assert sleeps == [1.0]


def test_slow_call_is_cut_off_by_attempt_timeout():
    sleeps = []

    async def handler(request):
        await asyncio.sleep(1.0)
        return httpx.Response(200)

    with pytest.raises(RequestTimeoutError):
        _run(handler, RetryPolicy(timeout_s=0.01, max_attempts=1), sleeps)
    assert sleeps == []
