import base64

import pytest
from fastapi.testclient import TestClient

from conftest import make_result, make_settings
from models.errors import (
    PipelineStageError,
    RequestTimeoutError,
    UpstreamError,
    ValidationError,
)
from models.pipeline import PipelineResult, PipelineStats, SearchProviderName
from server.app import create_app
from server.dependencies import get_orchestrator, get_rate_limiter, get_webflow_client
from utils.rate_limiter import FixedWindowRateLimiter

pytestmark = pytest.mark.integration

SMARTCHECK_BODY = {
    "blogContent": "<h2>Pricing</h2><p>Costs $10.</p>",
    "title": "Pricing guide",
    "llmProvider": "anthropic",
    "anthropicKey": "sk-ant",
    "braveKey": "brave-key",
    "keywords": ["crm"],
}


def _result(**overrides):
    fields = {
        "rewritten_content": "<h2>Pricing</h2><p>Costs $12.</p>",
        "stats": PipelineStats(
            searches_performed=6, unique_results_used=4, elapsed_seconds=1.5, llm_calls=2,
            queries_generated=3,
        ),
        "research_sample": (make_result("https://a.com", title="A", snippet="a"),),
        "queries": ("q1", "q2", "q3"),
        "changes": ("Generated 3 research queries",),
    }
    fields.update(overrides)
    return PipelineResult(**fields)


class FakeOrchestrator:
    def __init__(self, outcome=None):
        self.outcome = outcome if outcome is not None else _result()
        self.requests = []

    async def run(self, request):
        self.requests.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class FakeWebflowClient:
    def __init__(self):
        self.calls = []

    async def list_items(self, collection_id, authorization, offset=0, limit=None):
        self.calls.append(("list_items", collection_id, authorization, offset, limit))
        return {"items": [{"id": "a"}], "pagination": {"offset": offset, "limit": limit, "total": 1}}

    async def list_all_items(self, collection_id, authorization):
        self.calls.append(("list_all_items", collection_id, authorization))
        if not authorization:
            raise ValidationError("authorization", "authorization is required")
        return {"items": [{"id": "a"}], "total": 1, "cached": False}

    async def get_item(self, collection_id, item_id, authorization):
        self.calls.append(("get_item", collection_id, item_id, authorization))
        raise UpstreamError("webflow", 404, "Requested resource not found")

    async def patch_item(self, collection_id, item_id, authorization, body):
        self.calls.append(("patch_item", collection_id, item_id, authorization, body))
        return {"id": item_id, **body}

    async def upload_asset(self, site_id, authorization, file_name, content, content_type):
        self.calls.append(("upload_asset", site_id, authorization, file_name, content, content_type))
        return {"id": "asset-1", "fileName": file_name}


@pytest.fixture
def services():
    return {
        "orchestrator": FakeOrchestrator(),
        "limiter": FixedWindowRateLimiter(max_requests=2, window_s=60.0),
        "webflow": FakeWebflowClient(),
    }


@pytest.fixture
def app(services):
    application = create_app(make_settings(DEBUG_ERRORS=False))
    application.dependency_overrides[get_orchestrator] = lambda: services["orchestrator"]
    application.dependency_overrides[get_rate_limiter] = lambda: services["limiter"]
    application.dependency_overrides[get_webflow_client] = lambda: services["webflow"]
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


def test_status_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "ContentOps Backend Running"

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["version"] == root.json()["version"]


def test_smartcheck_accepts_camel_case_and_returns_result(client, services):
    response = client.post("/api/smartcheck", json=SMARTCHECK_BODY, headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
    body = response.json()
    assert body["request_id"] == "req-123"
    assert body["content"] == "<h2>Pricing</h2><p>Costs $12.</p>"
    assert body["searchesUsed"] == 6
    assert body["llmCalls"] == 2
    assert body["duration"] == 1500
    assert body["stats"]["unique_results_used"] == 4
    assert body["research_sample"][0]["source_provider"] == "brave"
    assert body["cached"] is False

    request = services["orchestrator"].requests[0]
    assert request.content == SMARTCHECK_BODY["blogContent"]
    assert request.llm_key == "sk-ant"
    assert request.search_keys == {SearchProviderName.BRAVE: "brave-key"}
    assert request.keywords == ("crm",)


def test_openai_provider_uses_openai_key(client, services):
    body = dict(SMARTCHECK_BODY, llmProvider="OpenAI", openaiKey="sk-openai", tavilyKey="tv")
    client.post("/api/smartcheck", json=body)

    request = services["orchestrator"].requests[0]
    assert request.llm_provider == "openai"
    assert request.llm_key == "sk-openai"
    assert set(request.search_keys) == {SearchProviderName.BRAVE, SearchProviderName.TAVILY}


def test_analyze_is_an_alias(client):
    response = client.post("/api/analyze", json=SMARTCHECK_BODY)
    assert response.status_code == 200
    assert response.headers["X-Request-ID"].startswith("req_")


def test_rate_limit_returns_429_with_retry_after(client):
    assert client.post("/api/smartcheck", json=SMARTCHECK_BODY).status_code == 200
    assert client.post("/api/smartcheck", json=SMARTCHECK_BODY).status_code == 200

    response = client.post("/api/smartcheck", json=SMARTCHECK_BODY)

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) >= 1
    assert response.json()["error"]["kind"] == "rate_limited"


@pytest.mark.parametrize(
    "error, status_code, kind",
    [
        (ValidationError("title", "title is required"), 400, "validation"),
        (
            PipelineStageError("rewrite", RequestTimeoutError("rewrite", 120, hint="Try again with shorter content.")),
            504,
            "timeout",
        ),
        (PipelineStageError("rewrite", UpstreamError("anthropic", 401, "invalid x-api-key")), 401, "upstream"),
        (PipelineStageError("rewrite", UpstreamError("anthropic", 529, "Overloaded")), 502, "upstream"),
    ],
)
def test_pipeline_errors_map_to_status_codes(client, services, error, status_code, kind):
    services["orchestrator"].outcome = error

    response = client.post("/api/smartcheck", json=SMARTCHECK_BODY)

    assert response.status_code == status_code
    envelope = response.json()["error"]
    assert envelope["kind"] == kind
    assert envelope["message"] == error.message


def test_unexpected_errors_are_generic_500(app, services):
    services["orchestrator"].outcome = RuntimeError("database password is hunter2")

    response = TestClient(app, raise_server_exceptions=False).post("/api/smartcheck", json=SMARTCHECK_BODY)

    assert response.status_code == 500
    assert response.json()["error"] == {
        "kind": "internal", "message": "An internal error occurred", "details": {},
    }
    assert "hunter2" not in response.text


def test_malformed_body_is_a_400(client, services):
    response = client.post("/api/smartcheck", json={"title": "x", "keywords": "not-a-list"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "validation"
    assert error["details"]["errors"][0]["field"] == "keywords"
    assert services["orchestrator"].requests == []


def test_webflow_routes_forward_authorization(client, services):
    headers = {"Authorization": "Bearer site-token"}

    page = client.get("/api/webflow", params={"collectionId": "c1", "offset": 10, "limit": 5}, headers=headers)
    listing = client.get("/api/webflow/all", params={"collectionId": "c1"}, headers=headers)
    patched = client.patch(
        "/api/webflow", params={"collectionId": "c1", "itemId": "a"},
        json={"fieldData": {"name": "New"}}, headers=headers,
    )

    assert page.status_code == 200
    assert listing.json()["total"] == 1
    assert patched.json() == {"id": "a", "fieldData": {"name": "New"}}
    assert services["webflow"].calls[0] == ("list_items", "c1", "Bearer site-token", 10, 5)
    assert services["webflow"].calls[2][3] == "Bearer site-token"


def test_webflow_errors_use_the_envelope(client):
    missing_auth = client.get("/api/webflow/all", params={"collectionId": "c1"})
    not_found = client.get("/api/webflow/item", params={"collectionId": "c1", "itemId": "zzz"},
                           headers={"Authorization": "Bearer t"})

    assert missing_auth.status_code == 400
    assert not_found.status_code == 502
    assert not_found.json()["error"]["details"]["status_code"] == 404


def test_asset_upload_decodes_base64(client, services):
    body = {"siteId": "s1", "fileName": "a.txt", "contentType": "text/plain",
            "data": base64.b64encode(b"hello").decode()}

    response = client.post("/api/webflow/assets", json=body, headers={"Authorization": "Bearer t"})

    assert response.status_code == 200
    assert services["webflow"].calls[0] == ("upload_asset", "s1", "Bearer t", "a.txt", b"hello", "text/plain")


def test_asset_upload_rejects_invalid_base64(client, services):
    body = {"siteId": "s1", "fileName": "a.txt", "data": "***not base64***"}

    response = client.post("/api/webflow/assets", json=body, headers={"Authorization": "Bearer t"})

    assert response.status_code == 400
    assert response.json()["error"]["details"]["field"] == "data"
    assert services["webflow"].calls == []


def test_cors_allows_configured_origin(client):
    response = client.options(
        "/api/smartcheck",
        headers={"Origin": "https://app.example", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in {"*", "https://app.example"}
