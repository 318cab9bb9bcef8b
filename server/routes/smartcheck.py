"""Research-and-rewrite pipeline endpoints."""

from fastapi import APIRouter, Depends, Request

from orchestrator.core import RewriteOrchestrator
from server.dependencies import enforce_rate_limit, get_orchestrator
from server.schemas.requests import SmartCheckRequest
from server.schemas.responses import SmartCheckResponseDTO
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Pipeline"])


async def _run_pipeline(
    body: SmartCheckRequest, http_request: Request, orchestrator: RewriteOrchestrator
) -> SmartCheckResponseDTO:
    request_id = getattr(http_request.state, "request_id", "unknown")
    logger.info(
        "Pipeline request received",
        extra={
            "extra_fields": {
                "request_id": request_id,
                "title": body.title[:120],
                "content_length": len(body.content or ""),
                "llm_provider": body.llm_provider,
            }
        },
    )
    result = await orchestrator.run(body.to_pipeline_request())
    return SmartCheckResponseDTO.from_pipeline_result(result, request_id=request_id)


@router.post("/smartcheck", response_model=SmartCheckResponseDTO)
async def smartcheck(
    body: SmartCheckRequest,
    http_request: Request,
    orchestrator: RewriteOrchestrator = Depends(get_orchestrator),
    _client: str = Depends(enforce_rate_limit),
):
    """Fact-check and rewrite one post using fresh web research."""
    return await _run_pipeline(body, http_request, orchestrator)


@router.post("/analyze", response_model=SmartCheckResponseDTO)
async def analyze(
    body: SmartCheckRequest,
    http_request: Request,
    orchestrator: RewriteOrchestrator = Depends(get_orchestrator),
    _client: str = Depends(enforce_rate_limit),
):
    """Older name of ``/api/smartcheck``; same body, same response."""
    return await _run_pipeline(body, http_request, orchestrator)
